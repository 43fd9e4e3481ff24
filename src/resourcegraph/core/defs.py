"""
Core dataclass definitions for the resourcegraph system.

These describe what each resource type can do: its attributes, filters,
sorts and relationships, together with the guards that decide per request
whether a capability may be used.

Usage:
    from resourcegraph.core.defs import AttributeSpec, ResourceType, has_many

    Employee = ResourceType(
        name="Employee",
        attributes=[
            AttributeSpec("first_name"),
            AttributeSpec("salary", kind="integer", readable=lambda ctx: ctx.has_role("admin")),
        ],
        relationships=[has_many("positions", "Position")],
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, Literal, Optional, Union

from .utils import pluralize, to_camel_case, to_snake_case, singularize


# A guard is either a static flag or a predicate over the request context.
Guard = Union[bool, Callable[[Any], bool]]

Cardinality = Literal["one", "many"]


def _as_tuple(value) -> tuple:
    if value is None:
        return ()
    return tuple(value)


@dataclass(frozen=True)
class AttributeSpec:
    """Definition of a resource attribute."""
    name: str
    kind: str = "string"
    readable: Guard = True
    writable: Guard = True
    filterable: Guard = True
    sortable: Guard = True
    extra: bool = False  # only fetched when requested explicitly
    graphql_name: Optional[str] = None
    description: Optional[str] = None
    getter: Optional[Callable[[dict], Any]] = field(default=None, compare=False)


@dataclass(frozen=True)
class FilterSpec:
    """
    Definition of a filter.

    A filter without ``kind`` borrows its kind from the attribute of the same
    name. A filter with an explicit ``kind`` stands on its own.
    """
    name: str
    kind: Optional[str] = None
    only: Optional[tuple[str, ...]] = None  # restrict to these operators
    exclude: Optional[tuple[str, ...]] = None
    guard: Guard = True
    required: bool = False
    graphql_name: Optional[str] = None
    operators: tuple[str, ...] = ()  # resolved by the registry

    def __post_init__(self):
        if self.only is not None:
            object.__setattr__(self, "only", tuple(self.only))
        if self.exclude is not None:
            object.__setattr__(self, "exclude", tuple(self.exclude))
        object.__setattr__(self, "operators", _as_tuple(self.operators))


@dataclass(frozen=True)
class SortSpec:
    """Definition of a sortable attribute."""
    name: str
    guard: Guard = True
    graphql_name: Optional[str] = None


@dataclass(frozen=True)
class LinkSpec:
    """
    How parent and child records are joined.

    Resource layers read these to group child records under their parents.
    For polymorphic belongs-to, ``parent_type_field`` names the parent
    column holding the target discriminant. For polymorphic has-many,
    ``child_type_field`` / ``child_type_value`` narrow the child records to
    the owner's type.
    """
    parent_field: str
    child_field: str
    parent_type_field: Optional[str] = None
    child_type_field: Optional[str] = None
    child_type_value: Optional[str] = None


@dataclass(frozen=True)
class RelationshipSpec:
    """Definition of a relationship between resource types."""
    name: str
    target: Optional[str] = None
    cardinality: Cardinality = "many"
    targets: tuple[str, ...] = ()  # polymorphic candidate set
    readable: Guard = True
    link: Optional[LinkSpec] = None
    graphql_name: Optional[str] = None
    description: Optional[str] = None
    owner_key: bool = True  # to-one only: owner holds "<name>_id" (belongs_to) vs child holds it (has_one)

    def __post_init__(self):
        object.__setattr__(self, "targets", _as_tuple(self.targets))

    @property
    def polymorphic(self) -> bool:
        return bool(self.targets)

    @property
    def accepts_arguments(self) -> bool:
        """Only non-polymorphic to-many relationships take filter/sort/page."""
        return self.cardinality == "many" and not self.polymorphic

    @property
    def candidates(self) -> tuple[str, ...]:
        return self.targets if self.polymorphic else (self.target,)


@dataclass(frozen=True)
class ResourceType:
    """Complete definition of a resource type."""
    name: str
    type: Optional[str] = None  # discriminant, defaults to snake plural of name
    attributes: tuple[AttributeSpec, ...] = ()
    relationships: tuple[RelationshipSpec, ...] = ()
    filters: tuple[FilterSpec, ...] = ()
    sorts: tuple[SortSpec, ...] = ()
    entrypoint: Optional[str] = None
    entrypoint_singular: Optional[str] = None
    exposed: bool = True
    variants: tuple["ResourceType", ...] = ()
    parent: Optional[str] = None
    service: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        for name in ("attributes", "relationships", "filters", "sorts", "variants"):
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))
        if self.type is None:
            object.__setattr__(self, "type", pluralize(to_snake_case(self.name)))

    # =========================================================================
    # Derived names
    # =========================================================================

    @property
    def polymorphic(self) -> bool:
        return bool(self.variants)

    @property
    def plural_field(self) -> str:
        return self.entrypoint or to_camel_case(self.type)

    @property
    def singular_field(self) -> str:
        return self.entrypoint_singular or singularize(self.plural_field)

    # =========================================================================
    # Lookups
    # =========================================================================

    @cached_property
    def _attributes_by_graphql_name(self) -> dict[str, AttributeSpec]:
        return {a.graphql_name or a.name: a for a in self.attributes}

    @cached_property
    def _relationships_by_graphql_name(self) -> dict[str, RelationshipSpec]:
        return {r.graphql_name or r.name: r for r in self.relationships}

    @cached_property
    def _filters_by_graphql_name(self) -> dict[str, FilterSpec]:
        return {f.graphql_name or f.name: f for f in self.filters}

    @cached_property
    def _sorts_by_graphql_name(self) -> dict[str, SortSpec]:
        return {s.graphql_name or s.name: s for s in self.sorts}

    def attribute(self, graphql_name: str) -> Optional[AttributeSpec]:
        return self._attributes_by_graphql_name.get(graphql_name)

    def relationship(self, graphql_name: str) -> Optional[RelationshipSpec]:
        return self._relationships_by_graphql_name.get(graphql_name)

    def filter(self, graphql_name: str) -> Optional[FilterSpec]:
        return self._filters_by_graphql_name.get(graphql_name)

    def sort(self, graphql_name: str) -> Optional[SortSpec]:
        return self._sorts_by_graphql_name.get(graphql_name)

    def attribute_named(self, name: str) -> Optional[AttributeSpec]:
        """Look up an attribute by its resource-layer name."""
        return next((a for a in self.attributes if a.name == name), None)


# =============================================================================
# Relationship helpers
# =============================================================================


def has_many(name: str, target: str, **kwargs) -> RelationshipSpec:
    """To-many relationship: child.<owner>_id -> owner.id by default."""
    return RelationshipSpec(name=name, target=target, cardinality="many", **kwargs)


def has_one(name: str, target: str, **kwargs) -> RelationshipSpec:
    """To-one relationship where the child holds ``<owner>_id``."""
    return RelationshipSpec(name=name, target=target, cardinality="one", owner_key=False, **kwargs)


def belongs_to(name: str, target: str, **kwargs) -> RelationshipSpec:
    """To-one relationship where the owner holds ``<name>_id``."""
    return RelationshipSpec(name=name, target=target, cardinality="one", **kwargs)


def polymorphic_belongs_to(name: str, targets: list[str] | tuple[str, ...], **kwargs) -> RelationshipSpec:
    """To-one relationship whose target type is read from ``<name>_type``."""
    return RelationshipSpec(name=name, targets=tuple(targets), cardinality="one", **kwargs)


def polymorphic_has_many(name: str, target: str, as_: str, **kwargs) -> RelationshipSpec:
    """
    To-many relationship onto a resource that belongs to several owner types.

    Args:
        name: Relationship name on the owner
        target: Child resource type name
        as_: Name of the child's polymorphic belongs-to (e.g. "notable")
    """
    kwargs.setdefault(
        "link",
        LinkSpec(
            parent_field="id",
            child_field=f"{as_}_id",
            child_type_field=f"{as_}_type",
        ),
    )
    return RelationshipSpec(name=name, target=target, cardinality="many", **kwargs)
