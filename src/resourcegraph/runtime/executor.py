"""
Operation executor - runs one GraphQL operation end to end.

Handles:
- Parsing and validating against the current schema descriptor
- Depth limiting before planning
- Planning every root field (all guards run before any I/O)
- Resolving each root plan through the resource layer
- Assembling the response tree
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from graphql import GraphQLError, execute_sync, get_operation_ast, parse

from ..config import GraphSettings
from ..core.errors import ResourceGraphError, ResourceLayerError, SchemaShapeError
from ..core.schema import SchemaDescriptor, SchemaHolder
from ..core.validator import QueryValidator
from .assembler import ResultAssembler
from .context import ExecutionContext
from .planner import PlanNode, SelectionPlanner
from .resource_layer import ResourceLayer

logger = logging.getLogger(__name__)


class OperationExecutor:
    """
    Executes operations against a resource layer.

    Usage:
        executor = OperationExecutor(holder, InMemoryResourceLayer(data))
        response = await executor.execute('{ employees { firstName } }', context=principal)
        # {"data": {"employees": [{"firstName": "Stephen"}, ...]}}
    """

    def __init__(
        self,
        holder: Union[SchemaHolder, SchemaDescriptor],
        resource_layer: ResourceLayer,
        settings: Optional[GraphSettings] = None,
    ):
        """
        Initialize executor.

        Args:
            holder: Schema holder (or a fixed descriptor)
            resource_layer: Resource layer plans are sent to
            settings: Limits (max depth, page sizes)
        """
        self.holder = holder if isinstance(holder, SchemaHolder) else SchemaHolder(holder)
        self.resource_layer = resource_layer
        self.settings = settings or GraphSettings()
        self.assembler = ResultAssembler()

    async def execute(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
        context: Any = None,
        operation_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Execute an operation.

        Args:
            query: Operation text
            variables: Raw variable values
            context: Request context for guards and the resource layer
            operation_name: Operation to run when the document has several

        Returns:
            {"data": {...}}

        Raises:
            ResourceGraphError: any planning or resource-layer failure.
                No partial data is returned.
        """
        # One descriptor for the whole operation, even if a rebuild lands meanwhile
        descriptor = self.holder.current

        try:
            document = parse(query)
        except GraphQLError as e:
            raise SchemaShapeError([e]) from e

        validator = QueryValidator(descriptor, self.settings.max_depth)
        validator.validate(document)
        operation = get_operation_ast(document, operation_name)
        if operation is None:
            raise SchemaShapeError(["Must provide a valid operation name."])
        validator.check_depth(document, operation)

        planner = SelectionPlanner(
            descriptor,
            max_depth=self.settings.max_depth,
            max_page_size=self.settings.max_page_size,
            default_page_size=self.settings.default_page_size,
        )
        plan = planner.plan_operation(document, context, variables, operation_name)

        if plan.introspection:
            if plan.resource_roots:
                raise SchemaShapeError(["Introspection fields cannot be combined with resource fields"])
            return self._introspect(descriptor, document, variables, operation_name)

        execution = ExecutionContext(
            context=context,
            variables=plan.variables,
            schema_version=descriptor.version,
        )
        data: dict[str, Any] = {}
        for key, node in plan.roots.items():
            if node is None:
                data[key] = descriptor.schema.query_type.name
                continue
            result = await self._resolve(node, execution)
            data[key] = self.assembler.assemble(node, result)

        logger.debug(
            f"Executed operation {operation_name or '<anonymous>'}: "
            f"{execution.resource_calls} resource calls (schema version {execution.schema_version})"
        )
        return {"data": data}

    async def _resolve(self, node: PlanNode, execution: ExecutionContext) -> Any:
        execution.resource_calls += 1
        try:
            return await self.resource_layer.resolve(node, execution.context)
        except ResourceGraphError:
            raise
        except Exception as e:
            logger.error(f"Resource layer failed at {'.'.join(node.path)}: {e}", exc_info=True)
            raise ResourceLayerError(str(e), node.path) from e

    def _introspect(
        self,
        descriptor: SchemaDescriptor,
        document,
        variables: Optional[dict[str, Any]],
        operation_name: Optional[str],
    ) -> dict[str, Any]:
        result = execute_sync(
            descriptor.schema,
            document,
            variable_values=variables,
            operation_name=operation_name,
        )
        if result.errors:
            raise SchemaShapeError(result.errors)
        return {"data": result.data}
