"""
Resource layer contract and the in-memory reference engine.

A resource layer receives a root plan node and returns the entities for
it, each one carrying ``id``, ``_type``, the requested attribute names and,
under every child response key, the already filtered/sorted/paginated
child entities.

Usage:
    layer = InMemoryResourceLayer({
        "employees": [{"id": 1, "first_name": "Stephen"}],
        "positions": [{"id": 1, "employee_id": 1, "title": "Manager"}],
    })
    entities = await layer.resolve(plan_node, context)
"""

from __future__ import annotations

import datetime as dt
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Optional

from ..core.defs import ResourceType
from ..core.errors import UnsupportedPaginationError
from ..core.query_types import FilterParam, PageParams, SortParam
from ..core.types import get_kind
from .planner import PlanNode

logger = logging.getLogger(__name__)

# (resource type, filter name) -> predicate(record, op, value)
FilterHandler = Callable[[dict, str, Any], bool]


class ResourceLayer(ABC):
    """Executes resource query plans."""

    @abstractmethod
    async def resolve(self, plan: PlanNode, context: Any = None) -> list[dict[str, Any]]:
        """
        Resolve a root plan node.

        Returns:
            Entities in the order the plan's sort dictates. An empty list
            when nothing matches.

        Raises:
            ResourceLayerError: when the plan cannot be executed
        """


class InMemoryResourceLayer(ResourceLayer):
    """
    Reference resource layer over plain dict records.

    Records are stored per discriminant (``"employees"``). Records of a
    polymorphic resource are stored under the parent's discriminant and
    carry ``_type``. Relationships are joined using each relationship's
    LinkSpec.
    """

    def __init__(
        self,
        data: dict[str, list[dict[str, Any]]],
        filters: Optional[dict[tuple[str, str], FilterHandler]] = None,
    ):
        self.data = data
        self.filters = filters or {}
        self.calls: list[PlanNode] = []

    async def resolve(self, plan: PlanNode, context: Any = None) -> list[dict[str, Any]]:
        self.calls.append(plan)
        records = self._query(plan, plan.resource, self._collection(plan.resource))
        records = self._paginate(plan, records)

        pairs = [self._materialize(plan, record) for record in records]
        self._attach(plan, pairs)
        logger.debug(f"Resolved {plan.name}: {len(pairs)} entities")
        return [entity for entity, _record in pairs]

    # =========================================================================
    # Relationships
    # =========================================================================

    def _attach(self, node: PlanNode, pairs: list[tuple[dict, dict]]):
        """Resolve every child of ``node`` for the given parent entities."""
        for key, child in node.children.items():
            parents = [
                (entity, record) for entity, record in pairs
                if not self._overridden(node, entity["_type"], key)
            ]
            self._resolve_child(child, key, parents)

        for discriminant, variant in node.variants.items():
            parents = [(entity, record) for entity, record in pairs if entity["_type"] == discriminant]
            for key, child in variant.children.items():
                self._resolve_child(child, key, parents)

    def _overridden(self, node: PlanNode, discriminant: str, key: str) -> bool:
        variant = node.variants.get(discriminant)
        return variant is not None and key in variant.children

    def _resolve_child(self, child: PlanNode, key: str, parents: list[tuple[dict, dict]]):
        if child.page is not None and len(parents) > 1:
            raise UnsupportedPaginationError(
                f"'{key}' cannot be paginated across {len(parents)} parents", child.path
            )

        link = child.relationship.link
        child_pairs: list[tuple[dict, dict]] = []
        for entity, record in parents:
            discriminant = None
            if child.resource is None:
                discriminant, matches = self._polymorphic_matches(child, record)
            else:
                candidates = self._query(child, child.resource, self._collection(child.resource))
                parent_value = record.get(link.parent_field)
                matches = [
                    c for c in candidates
                    if parent_value is not None and _same(c.get(link.child_field), parent_value)
                    and (link.child_type_field is None or c.get(link.child_type_field) == link.child_type_value)
                ]
                matches = self._paginate(child, matches)

            materialized = [self._materialize(child, m, discriminant) for m in matches]
            child_pairs.extend(materialized)
            children = [e for e, _r in materialized]
            if child.cardinality == "one":
                entity[key] = children[0] if children else None
            else:
                entity[key] = children

        self._attach(child, child_pairs)

    def _polymorphic_matches(self, child: PlanNode, record: dict) -> tuple[Optional[str], list[dict]]:
        """The candidate type named by the parent record and the matching entity."""
        link = child.relationship.link
        target = child.type_set.get(record.get(link.parent_type_field))
        parent_value = record.get(link.parent_field)
        if target is None or parent_value is None:
            return None, []
        matches = [
            c for c in self._collection(target)
            if _same(c.get(link.child_field), parent_value)
        ]
        return target.type, matches[:1]

    # =========================================================================
    # Records
    # =========================================================================

    def _collection(self, resource: Optional[ResourceType]) -> list[dict]:
        if resource is None:
            return []
        if resource.type in self.data:
            return self.data[resource.type]
        # Variants live in their parent's collection
        return [
            record
            for records in self.data.values()
            for record in records
            if record.get("_type") == resource.type
        ]

    def _materialize(self, node: PlanNode, record: dict, discriminant: Optional[str] = None) -> tuple[dict, dict]:
        discriminant = discriminant or record.get("_type") or (node.resource.type if node.resource else None)
        resource = node.resource_for(discriminant)
        names = list(node.fields) + list(node.extra_fields)
        variant = node.variants.get(discriminant)
        if variant is not None:
            names += variant.fields + variant.extra_fields

        entity: dict[str, Any] = {"id": record.get("id"), "_type": discriminant}
        for name in names:
            entity[name] = self._value(resource, record, name)
        return entity, record

    def _value(self, resource: Optional[ResourceType], record: dict, name: str) -> Any:
        attr = resource.attribute_named(name) if resource is not None else None
        if attr is not None and attr.getter is not None:
            return attr.getter(record)
        return record.get(name)

    def _query(self, node: PlanNode, resource: Optional[ResourceType], records: Iterable[dict]) -> list[dict]:
        records = [r for r in records if all(self._matches(resource, r, f) for f in node.filters)]
        return _sort(records, node.sort, lambda r, name: self._value(resource, r, name))

    def _paginate(self, node: PlanNode, records: list[dict]) -> list[dict]:
        page: Optional[PageParams] = node.page
        if page is None:
            return records
        return records[page.offset:page.offset + page.size]

    # =========================================================================
    # Filters
    # =========================================================================

    def _matches(self, resource: ResourceType, record: dict, f: FilterParam) -> bool:
        handler = self.filters.get((resource.type, f.field))
        if handler is not None:
            return handler(record, f.op, f.value)

        spec = next((s for s in resource.filters if s.name == f.field), None)
        canonical = get_kind(spec.kind).canonical if spec and spec.kind else "string"
        value = self._value(resource, record, f.field)

        expected = f.value if isinstance(f.value, (list, tuple)) else [f.value]
        op = f.op
        negate = op.startswith("not_")
        if negate:
            op = op[len("not_"):]
        result = any(_compare(op, canonical, value, e) for e in expected)
        return not result if negate else result


def _compare(op: str, canonical: str, actual: Any, expected: Any) -> bool:
    if canonical == "id":
        return _same(actual, expected) if op == "eq" else False
    if canonical == "string" and actual is not None:
        if op == "eql":
            return actual == expected
        actual, expected = str(actual).lower(), str(expected).lower()
        if op == "eq":
            return actual == expected
        if op == "prefix":
            return actual.startswith(expected)
        if op == "suffix":
            return actual.endswith(expected)
        if op == "match":
            return expected in actual
        return False
    if canonical in ("date", "datetime"):
        actual = _temporal(canonical, actual)
    if op == "eq":
        return actual == expected
    if actual is None:
        return False
    if op == "gt":
        return actual > expected
    if op == "gte":
        return actual >= expected
    if op == "lt":
        return actual < expected
    if op == "lte":
        return actual <= expected
    return False


def _temporal(canonical: str, value: Any) -> Any:
    """Stored dates may be ISO strings or datetimes; compare them as the filter kind."""
    if isinstance(value, str):
        try:
            value = dt.datetime.fromisoformat(value)
        except ValueError:
            return None
    if canonical == "date" and isinstance(value, dt.datetime):
        return value.date()
    if canonical == "datetime" and isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return dt.datetime.combine(value, dt.time())
    return value


def _same(a: Any, b: Any) -> bool:
    """Key equality that treats 1 and "1" alike."""
    if a is None or b is None:
        return False
    return a == b or str(a) == str(b)


def _sort(records: list[dict], sort: list[SortParam], value_of) -> list[dict]:
    # Stable sorts applied from the least to the most significant key; nulls last either way
    for param in reversed(sort):
        present = [r for r in records if value_of(r, param.field) is not None]
        missing = [r for r in records if value_of(r, param.field) is None]
        present = sorted(present, key=lambda r: value_of(r, param.field), reverse=param.dir == "desc")
        records = present + missing
    return records
