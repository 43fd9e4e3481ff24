"""
API module - FastAPI endpoints.
"""

from __future__ import annotations

from .router import GraphQLRequest, create_graphql_router, default_context, error_response, status_for

__all__ = [
    "GraphQLRequest",
    "create_graphql_router",
    "default_context",
    "error_response",
    "status_for",
]
