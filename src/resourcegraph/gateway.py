"""
resourcegraph Gateway - main entry point for creating a GraphQL application.

Usage:
    from resourcegraph import CapabilityRegistry, Gateway, InMemoryResourceLayer

    registry = CapabilityRegistry([Employee, Position, Department])
    gateway = Gateway(registry, InMemoryResourceLayer(data))

    app = gateway.app
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import create_graphql_router
from .api.router import ContextGetter
from .config import GraphSettings
from .core.errors import SchemaConfigError
from .core.registry import CapabilityRegistry
from .core.schema import SchemaBuilder, SchemaDescriptor, SchemaHolder
from .playground import mount_playground
from .runtime.executor import OperationExecutor
from .runtime.resource_layer import ResourceLayer

logger = logging.getLogger(__name__)


class Gateway:
    """
    GraphQL gateway over a resource layer.

    Features:
    - Builds the schema from the capability registry at startup
    - Rebuilds and atomically publishes it on ``refresh_schema()``
    - Provides a FastAPI app with the GraphQL and schema endpoints
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        resource_layer: ResourceLayer,
        settings: Optional[GraphSettings] = None,
        *,
        context_getter: Optional[ContextGetter] = None,
        playground_path: str = "/playground",
    ):
        """
        Initialize gateway.

        Args:
            registry: Registry holding every resource type
            resource_layer: Resource layer plans are executed against
            settings: Limits and transport options (default: GraphSettings())
            context_getter: Builds the request context from the HTTP request
            playground_path: URL path for the GraphiQL playground
        """
        self.registry = registry
        self.resource_layer = resource_layer
        self.settings = settings or GraphSettings()
        self.context_getter = context_getter
        self.playground_path = playground_path
        self.builder = SchemaBuilder()

        # Build schema (fails fast on configuration errors)
        self.holder = SchemaHolder(self._build_schema())
        self.executor = OperationExecutor(self.holder, resource_layer, self.settings)

        # Create FastAPI app
        self.app = self._create_app()

        # Store reference to gateway on app for refresh endpoint
        self.app.state.gateway = self

    @property
    def descriptor(self) -> SchemaDescriptor:
        return self.holder.current

    def _build_schema(self) -> SchemaDescriptor:
        return self.builder.build(self.registry, self.settings.entrypoints)

    async def execute(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
        context: Any = None,
        operation_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """Execute an operation without going through HTTP."""
        return await self.executor.execute(query, variables, context, operation_name)

    def refresh_schema(self) -> dict[str, Any]:
        """
        Rebuild the schema from the registry and publish it.

        The old schema stays in place when the rebuild fails; requests in
        flight finish against the version they started with.
        """
        logger.info("Refreshing schema...")
        try:
            descriptor = self._build_schema()
        except SchemaConfigError as e:
            logger.error(f"Schema refresh failed, keeping version {self.descriptor.version}: {e}")
            return {"status": "error", "message": e.message, "version": self.descriptor.version}

        self.holder.publish(descriptor)
        return {"status": "ok", "version": descriptor.version, "types": len(descriptor.registry.types)}

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        app = FastAPI(
            title=self.settings.title,
            description="GraphQL over resources",
            version="1.0.0",
        )

        # CORS
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        app.include_router(
            create_graphql_router(
                self.executor,
                graphql_path=self.settings.graphql_path,
                context_getter=self.context_getter,
            )
        )

        # Health check
        @app.get("/health")
        async def health():
            return {"status": "ok"}

        # Schema refresh endpoint
        @app.post("/__refresh")
        async def refresh_schema():
            """
            Rebuild the schema from the registry and publish it atomically.
            Use this after resource types were registered or changed.
            """
            gateway = app.state.gateway
            return gateway.refresh_schema()

        # Also expose current schema info
        @app.get("/__status")
        async def schema_status():
            """Get current schema status."""
            descriptor = self.holder.current
            return {
                "version": descriptor.version,
                "types": len(descriptor.registry.types),
                "rootFields": sorted(descriptor.root_fields),
            }

        # Mount playground
        if self.settings.playground:
            mount_playground(
                app,
                path=self.playground_path,
                api_url=self.settings.graphql_path,
                title=self.settings.title,
            )

        return app
