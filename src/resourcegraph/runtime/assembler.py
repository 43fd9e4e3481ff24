"""
Result assembler - folds resource-layer results into the response tree.

Handles:
- Projecting only the requested keys, in selection order
- Picking the variant projection by each entity's discriminant
- Cardinality: object or null for ``one``, list (never null) for ``many``
- Serializing values by attribute kind (ids as strings, ISO dates)

The assembler never sorts, filters or fetches: list order is whatever the
resource layer returned.
"""

from __future__ import annotations

from typing import Any, Optional

from ..core.types import get_kind
from .planner import PlanNode, Projection

TYPE_KEY = "_type"


class ResultAssembler:
    """
    Builds response trees from plan nodes and nested result objects.

    Usage:
        assembler = ResultAssembler()
        data = assembler.assemble(plan_node, resource_layer_result)
    """

    def assemble(self, plan: PlanNode, result: Any) -> Any:
        """
        Assemble the response value for one plan node.

        Args:
            plan: Plan node the result was produced for
            result: Entity dict, list of entity dicts, or None

        Returns:
            dict or None for ``one`` nodes, list for ``many`` nodes
        """
        if plan.cardinality == "one":
            entity = _first(result)
            return None if entity is None else self._entity(plan, entity)

        if result is None:
            return []
        if isinstance(result, dict):
            result = [result]
        return [self._entity(plan, entity) for entity in result]

    def _entity(self, plan: PlanNode, entity: dict[str, Any]) -> dict[str, Any]:
        discriminant = entity.get(TYPE_KEY)
        resource = plan.resource_for(discriminant)
        if discriminant is None and resource is not None:
            discriminant = resource.type

        variant = plan.variants.get(discriminant)
        projection = variant.projection if variant else plan.projection

        out: dict[str, Any] = {}
        for item in projection:
            out[item.key] = self._value(plan, variant, item, entity, discriminant, resource)
        return out

    def _value(
        self,
        plan: PlanNode,
        variant,
        item: Projection,
        entity: dict[str, Any],
        discriminant: Optional[str],
        resource,
    ) -> Any:
        if item.kind == "type":
            return discriminant
        if item.kind == "typename":
            return resource.name if resource is not None else None
        if item.kind == "relationship":
            child = variant.children.get(item.key) if variant else None
            if child is None:
                child = plan.children[item.key]
            return self.assemble(child, entity.get(item.source))

        value = entity.get(item.source)
        if item.attribute is None:
            return value
        return get_kind(item.attribute.kind).render(value)


def _first(result: Any) -> Optional[dict[str, Any]]:
    if result is None:
        return None
    if isinstance(result, dict):
        return result
    for entity in result:
        return entity
    return None
