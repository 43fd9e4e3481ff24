"""
GraphiQL playground.

Usage:
    from resourcegraph.playground import mount_playground

    mount_playground(app, path="/playground", api_url="/graphql")
"""

from __future__ import annotations

import html
import json

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

GRAPHIQL_VERSION = "3"

_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <style>body {{ margin: 0; height: 100vh; }} #graphiql {{ height: 100vh; }}</style>
  <link rel="stylesheet" href="https://unpkg.com/graphiql@{version}/graphiql.min.css">
  <script crossorigin src="https://unpkg.com/react@18/umd/react.production.min.js"></script>
  <script crossorigin src="https://unpkg.com/react-dom@18/umd/react-dom.production.min.js"></script>
  <script crossorigin src="https://unpkg.com/graphiql@{version}/graphiql.min.js"></script>
</head>
<body>
  <div id="graphiql"></div>
  <script>
    const fetcher = GraphiQL.createFetcher({{ url: {api_url} }});
    ReactDOM.createRoot(document.getElementById("graphiql")).render(
      React.createElement(GraphiQL, {{ fetcher }})
    );
  </script>
</body>
</html>
"""


def get_playground_html(*, api_url: str = "/graphql", title: str = "resourcegraph") -> str:
    """
    Get GraphiQL HTML pointed at the GraphQL endpoint.

    Args:
        api_url: URL of the GraphQL endpoint
        title: Page title
    """
    return _TEMPLATE.format(
        title=html.escape(title),
        version=GRAPHIQL_VERSION,
        api_url=json.dumps(api_url),
    )


def mount_playground(
    app: FastAPI,
    path: str = "/playground",
    api_url: str = "/graphql",
    title: str = "resourcegraph",
) -> None:
    """
    Mount the playground to a FastAPI application.

    Args:
        app: FastAPI application
        path: URL path for the playground
        api_url: URL of the GraphQL endpoint
        title: Page title
    """
    path = path.rstrip("/")
    page = get_playground_html(api_url=api_url, title=title)

    @app.get(path, response_class=HTMLResponse, include_in_schema=False)
    @app.get(f"{path}/", response_class=HTMLResponse, include_in_schema=False)
    async def playground_html():
        """GraphiQL playground."""
        return page
