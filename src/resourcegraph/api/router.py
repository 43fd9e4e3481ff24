"""
FastAPI router for the resourcegraph API.

Endpoints:
- POST {graphql_path}     - Executes a GraphQL operation
- GET  /__schema.graphql  - Generated schema as SDL
- GET  /__graph           - Capability dump of every resource type

Request body:
    {"query": "...", "variables": {...}, "operationName": "..."}

Responses are ``{"data": ...}`` on success and ``{"errors": [...]}`` with
an HTTP status matching the error class otherwise. No partial data is ever
returned.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Union

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import (
    AccessDeniedError,
    DepthExceededError,
    GuardEvaluationError,
    PageSizeExceededError,
    RequiredFilterMissingError,
    ResourceGraphError,
    ResourceLayerError,
    SchemaShapeError,
    UnsupportedPaginationError,
)
from ..runtime.context import ANONYMOUS
from ..runtime.executor import OperationExecutor

logger = logging.getLogger(__name__)

ContextGetter = Callable[[Request], Union[Any, Awaitable[Any]]]

# Most specific first
STATUS_CODES: list[tuple[type[ResourceGraphError], int]] = [
    (SchemaShapeError, 400),
    (RequiredFilterMissingError, 400),
    (PageSizeExceededError, 400),
    (DepthExceededError, 400),
    (UnsupportedPaginationError, 400),
    (AccessDeniedError, 403),
    (GuardEvaluationError, 500),
    (ResourceLayerError, 502),
]


class GraphQLRequest(BaseModel):
    """Body of a GraphQL POST."""
    model_config = ConfigDict(populate_by_name=True)

    query: str
    variables: Optional[dict[str, Any]] = None
    operation_name: Optional[str] = Field(default=None, alias="operationName")


def status_for(error: ResourceGraphError) -> int:
    for error_class, status in STATUS_CODES:
        if isinstance(error, error_class):
            return status
    return 500


def error_response(error: ResourceGraphError) -> JSONResponse:
    return JSONResponse(status_code=status_for(error), content={"errors": error.formatted})


async def default_context(request: Request) -> Any:
    """
    Request context used when the application supplies none.

    Production apps pass their own ``context_getter`` (e.g. one that reads a
    JWT and returns a Principal).
    """
    return ANONYMOUS


def create_graphql_router(
    executor: OperationExecutor,
    *,
    graphql_path: str = "/graphql",
    context_getter: Optional[ContextGetter] = None,
) -> APIRouter:
    """
    Create a configured resourcegraph API router.

    Args:
        executor: Operation executor (holds the current schema)
        graphql_path: Path of the GraphQL endpoint
        context_getter: Builds the request context from the HTTP request

    Returns:
        Configured FastAPI router
    """
    router = APIRouter()
    getter = context_getter or default_context

    async def get_context(request: Request) -> Any:
        context = getter(request)
        if hasattr(context, "__await__"):
            context = await context
        return context

    @router.post(graphql_path)
    async def graphql_endpoint(body: GraphQLRequest, context: Any = Depends(get_context)):
        """Execute a GraphQL query operation."""
        try:
            return await executor.execute(
                body.query,
                variables=body.variables,
                context=context,
                operation_name=body.operation_name,
            )
        except ResourceGraphError as e:
            level = logging.WARNING if status_for(e) >= 500 else logging.INFO
            logger.log(level, f"Operation failed ({e.code}): {e.message}")
            return error_response(e)

    @router.get("/__schema.graphql", response_class=PlainTextResponse)
    async def schema_sdl() -> str:
        """Return the generated schema as SDL."""
        return executor.holder.current.sdl()

    @router.get("/__graph")
    async def graph_dump() -> dict:
        """
        Return every resource type's capabilities (JSON).

        Guards are shown as ``true``/``false`` when static and ``"dynamic"``
        when evaluated per request.
        """
        return executor.holder.current.registry.to_dict()

    return router
