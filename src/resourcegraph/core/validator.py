"""
Operation validator.

Checks a parsed operation against the generated schema and the configured
maximum selection depth, before anything is planned.
"""

from __future__ import annotations

from typing import Optional

from graphql import (
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    OperationDefinitionNode,
    SelectionSetNode,
    validate,
)

from .errors import DepthExceededError, SchemaShapeError
from .schema import SchemaDescriptor


class QueryValidator:
    """
    Validates operations against a schema descriptor.

    Usage:
        validator = QueryValidator(descriptor, max_depth=5)
        validator.validate(document)          # raises SchemaShapeError
        validator.check_depth(document, op)   # raises DepthExceededError
    """

    def __init__(self, descriptor: SchemaDescriptor, max_depth: Optional[int] = None):
        self.descriptor = descriptor
        self.max_depth = max_depth

    def validate(self, document: DocumentNode):
        """Run graphql-core validation rules against the generated schema."""
        errors = validate(self.descriptor.schema, document)
        if errors:
            raise SchemaShapeError(errors)

    def check_depth(self, document: DocumentNode, operation: OperationDefinitionNode):
        if self.max_depth is None:
            return
        depth = selection_depth(operation.selection_set, fragments_of(document))
        if depth > self.max_depth:
            raise DepthExceededError(depth, self.max_depth)


def fragments_of(document: DocumentNode) -> dict[str, FragmentDefinitionNode]:
    return {
        definition.name.value: definition
        for definition in document.definitions
        if isinstance(definition, FragmentDefinitionNode)
    }


def selection_depth(
    selection_set: Optional[SelectionSetNode],
    fragments: dict[str, FragmentDefinitionNode],
    _visited: frozenset[str] = frozenset(),
) -> int:
    """
    Depth of a selection set, counting leaf fields.

    ``employees { positions { department { name } } }`` has depth 4.
    Fragments are inlined; introspection fields (``__*``) do not count.
    """
    if selection_set is None:
        return 0

    deepest = 0
    for selection in selection_set.selections:
        if isinstance(selection, FieldNode):
            if selection.name.value.startswith("__"):
                continue
            deepest = max(deepest, 1 + selection_depth(selection.selection_set, fragments, _visited))
        elif isinstance(selection, InlineFragmentNode):
            deepest = max(deepest, selection_depth(selection.selection_set, fragments, _visited))
        elif isinstance(selection, FragmentSpreadNode):
            name = selection.name.value
            fragment = fragments.get(name)
            if fragment is None or name in _visited:
                continue
            deepest = max(deepest, selection_depth(fragment.selection_set, fragments, _visited | {name}))
    return deepest
