"""
Capability registry - collects resource type definitions.

Resource types are registered once at startup. ``build()`` resolves every
derived piece of the declarations (implicit ``id``, GraphQL names, filters
and sorts derived from attributes, variant inheritance, default join keys)
and returns an immutable snapshot that the schema builder, planner and
resource layers share.

Usage:
    from resourcegraph.core.registry import CapabilityRegistry

    registry = CapabilityRegistry()
    registry.register(Employee)
    registry.register(Position)
    registry.register(CreditCard)  # variants are registered with their parent

    snapshot = registry.build()
    snapshot.get("Employee").attribute("firstName")
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from .defs import (
    AttributeSpec,
    FilterSpec,
    LinkSpec,
    RelationshipSpec,
    ResourceType,
    SortSpec,
)
from .errors import SchemaConfigError
from .types import get_kind
from .utils import to_camel_case, to_snake_case

logger = logging.getLogger(__name__)

_build_counter = itertools.count(1)

RESERVED_ATTRIBUTES = frozenset({"_type", "__typename"})


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable, fully resolved view of every registered resource type."""
    types: Mapping[str, ResourceType]
    version: int
    camelize: bool = True

    def get(self, name: str) -> ResourceType:
        try:
            return self.types[name]
        except KeyError:
            raise SchemaConfigError(f"Unknown resource type '{name}'") from None

    def variants_of(self, resource: ResourceType) -> tuple[ResourceType, ...]:
        return tuple(self.types[v.name] for v in resource.variants)

    def roots(self) -> list[ResourceType]:
        """Types that get root query fields."""
        return [t for t in self.types.values() if t.exposed]

    def to_dict(self) -> dict[str, Any]:
        """Capability dump used by the ``/__graph`` endpoint."""
        return {
            "version": self.version,
            "types": {name: _describe(t) for name, t in self.types.items()},
        }


class CapabilityRegistry:
    """
    Collects resource type definitions.

    Two-phase:
    1. ``register()`` stores raw declarations (order is kept)
    2. ``build()`` resolves them into a ``RegistrySnapshot``

    Example:
        registry = CapabilityRegistry(camelize=True)
        registry.register(Employee)
        snapshot = registry.build()
    """

    def __init__(self, resources: Iterable[ResourceType] = (), camelize: bool = True):
        self.camelize = camelize
        self._resources: list[ResourceType] = []
        for resource in resources:
            self.register(resource)

    def register(self, resource: ResourceType) -> ResourceType:
        """Register a resource type (and, implicitly, its variants)."""
        self._resources.append(resource)
        return resource

    @property
    def resources(self) -> tuple[ResourceType, ...]:
        return tuple(self._resources)

    def build(self) -> RegistrySnapshot:
        """
        Resolve all registered declarations.

        Returns:
            RegistrySnapshot with resolved types keyed by name

        Raises:
            SchemaConfigError: on duplicate names or discriminants, unknown
                relationship targets, nested polymorphism or reserved
                attribute names
        """
        raw = self._flatten()

        resolved: dict[str, ResourceType] = {}
        for resource in raw.values():
            parent = raw.get(resource.parent) if resource.parent else None
            resolved[resource.name] = self._resolve(resource, parent)

        # Variants point at the resolved children, not the raw declarations
        for name, resource in resolved.items():
            if resource.variants:
                resolved[name] = replace(
                    resource, variants=tuple(resolved[v.name] for v in resource.variants)
                )

        self._check_relationships(resolved)

        snapshot = RegistrySnapshot(
            types=MappingProxyType(resolved),
            version=next(_build_counter),
            camelize=self.camelize,
        )
        logger.info(f"Registry built: {len(resolved)} resource types (version {snapshot.version})")
        return snapshot

    # =========================================================================
    # Build phases
    # =========================================================================

    def _flatten(self) -> dict[str, ResourceType]:
        """Collect top-level types and their variants, checking uniqueness."""
        flat: dict[str, ResourceType] = {}
        discriminants: dict[str, str] = {}

        def add(resource: ResourceType):
            if resource.name in flat:
                raise SchemaConfigError(f"Duplicate resource type '{resource.name}'")
            owner = discriminants.get(resource.type)
            if owner is not None:
                raise SchemaConfigError(
                    f"Resource types '{owner}' and '{resource.name}' share discriminant '{resource.type}'"
                )
            flat[resource.name] = resource
            discriminants[resource.type] = resource.name

        for resource in self._resources:
            add(resource)
            for variant in resource.variants:
                if variant.variants:
                    raise SchemaConfigError(
                        f"Variant '{variant.name}' of '{resource.name}' cannot declare variants of its own"
                    )
                # Variants only get root fields when given an explicit entrypoint
                add(replace(variant, parent=resource.name, exposed=variant.entrypoint is not None))

        return flat

    def _resolve(self, resource: ResourceType, parent: Optional[ResourceType]) -> ResourceType:
        attributes = self._resolve_attributes(resource, parent)
        by_name = {a.name: a for a in attributes}

        # Inherited relationships keep joining on the parent's keys
        inherited = tuple(self._resolve_relationship(parent, r) for r in parent.relationships) if parent else ()
        relationships = _merge(
            inherited, tuple(self._resolve_relationship(resource, r) for r in resource.relationships)
        )

        explicit_filters = _merge(parent.filters if parent else (), resource.filters)
        explicit_sorts = _merge(parent.sorts if parent else (), resource.sorts)

        return replace(
            resource,
            attributes=attributes,
            relationships=relationships,
            filters=self._resolve_filters(attributes, by_name, explicit_filters),
            sorts=self._resolve_sorts(attributes, explicit_sorts),
        )

    def _resolve_attributes(
        self, resource: ResourceType, parent: Optional[ResourceType]
    ) -> tuple[AttributeSpec, ...]:
        declared = _merge(parent.attributes if parent else (), resource.attributes)

        for attr in declared:
            if attr.name in RESERVED_ATTRIBUTES:
                raise SchemaConfigError(f"'{attr.name}' is reserved (resource '{resource.name}')")
            get_kind(attr.kind)  # raises on unknown kinds

        if not any(a.name == "id" for a in declared):
            declared = (AttributeSpec("id", kind="integer_id"),) + declared

        return tuple(replace(a, graphql_name=a.graphql_name or self._graphql_name(a.name)) for a in declared)

    def _resolve_relationship(self, owner: ResourceType, rel: RelationshipSpec) -> RelationshipSpec:
        link = rel.link
        if link is None:
            if rel.cardinality == "many":
                link = LinkSpec(parent_field="id", child_field=f"{to_snake_case(owner.name)}_id")
            elif rel.polymorphic:
                link = LinkSpec(
                    parent_field=f"{rel.name}_id",
                    child_field="id",
                    parent_type_field=f"{rel.name}_type",
                )
            elif rel.owner_key:
                link = LinkSpec(parent_field=f"{rel.name}_id", child_field="id")
            else:
                link = LinkSpec(parent_field="id", child_field=f"{to_snake_case(owner.name)}_id")
        if link.child_type_field and link.child_type_value is None:
            link = replace(link, child_type_value=owner.type)

        return replace(rel, link=link, graphql_name=rel.graphql_name or self._graphql_name(rel.name))

    def _resolve_filters(
        self,
        attributes: tuple[AttributeSpec, ...],
        by_name: dict[str, AttributeSpec],
        explicit: tuple[FilterSpec, ...],
    ) -> tuple[FilterSpec, ...]:
        filters: dict[str, FilterSpec] = {}

        for attr in attributes:
            if attr.filterable is False:
                continue
            operators = get_kind(attr.kind).operators
            if operators:
                filters[attr.name] = FilterSpec(
                    name=attr.name,
                    kind=attr.kind,
                    guard=attr.filterable,
                    graphql_name=attr.graphql_name,
                    operators=operators,
                )

        for spec in explicit:
            attr = by_name.get(spec.name)
            kind = spec.kind or (attr.kind if attr else None)
            guard = spec.guard
            if guard is True and attr is not None:
                guard = attr.filterable
            operators = ()
            if kind is not None:
                operators = tuple(
                    op for op in get_kind(kind).operators
                    if (spec.only is None or op in spec.only)
                    and (spec.exclude is None or op not in spec.exclude)
                )
            # A filter with no kind and no attribute is reported by the schema builder
            filters[spec.name] = replace(
                spec,
                kind=kind,
                guard=guard,
                operators=operators,
                graphql_name=spec.graphql_name or self._graphql_name(spec.name),
            )

        return tuple(filters.values())

    def _resolve_sorts(
        self,
        attributes: tuple[AttributeSpec, ...],
        explicit: tuple[SortSpec, ...],
    ) -> tuple[SortSpec, ...]:
        sorts: dict[str, SortSpec] = {}
        for attr in attributes:
            if attr.sortable is False:
                continue
            if get_kind(attr.kind).is_list or get_kind(attr.kind).canonical == "hash":
                continue
            sorts[attr.name] = SortSpec(name=attr.name, guard=attr.sortable, graphql_name=attr.graphql_name)
        for spec in explicit:
            sorts[spec.name] = replace(spec, graphql_name=spec.graphql_name or self._graphql_name(spec.name))
        return tuple(sorts.values())

    def _check_relationships(self, resolved: dict[str, ResourceType]):
        for resource in resolved.values():
            for rel in resource.relationships:
                for target in rel.candidates:
                    if target is None or target not in resolved:
                        raise SchemaConfigError(
                            f"Relationship '{resource.name}.{rel.name}' targets unknown type '{target}'"
                        )
                    if rel.polymorphic and resolved[target].polymorphic:
                        raise SchemaConfigError(
                            f"Relationship '{resource.name}.{rel.name}': candidate '{target}' is itself polymorphic"
                        )

    def _graphql_name(self, name: str) -> str:
        return to_camel_case(name) if self.camelize else name


def _merge(inherited: tuple, own: tuple) -> tuple:
    """Parent declarations first, own declarations override by name."""
    merged = {item.name: item for item in inherited}
    for item in own:
        merged[item.name] = item
    return tuple(merged.values())


def _guard_repr(guard) -> Any:
    return guard if isinstance(guard, bool) else "dynamic"


def _describe(resource: ResourceType) -> dict[str, Any]:
    return {
        "type": resource.type,
        "entrypoints": [resource.plural_field, resource.singular_field] if resource.exposed else [],
        "parent": resource.parent,
        "variants": [v.name for v in resource.variants],
        "attributes": {
            a.graphql_name: {"kind": a.kind, "readable": _guard_repr(a.readable), "writable": _guard_repr(a.writable)}
            for a in resource.attributes
        },
        "filters": {f.graphql_name: list(f.operators) for f in resource.filters},
        "sorts": [s.graphql_name for s in resource.sorts],
        "relationships": {
            r.graphql_name: {
                "cardinality": r.cardinality,
                "targets": list(r.candidates),
                "readable": _guard_repr(r.readable),
            }
            for r in resource.relationships
        },
    }
