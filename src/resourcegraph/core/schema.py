"""
Schema builder - generates the GraphQL schema from the capability registry.

Only declared capabilities become schema surface:
- one object type per resource (interface + object per variant when polymorphic)
- ``<Type>Filter`` inputs carrying only each filter's operators
- ``<Type>Sort`` inputs ``{att, dir}`` and the shared ``Page`` input
- a plural and a singular root field per exposed resource

Anything whose guard is statically ``False`` is left out. Callable guards
stay in the schema and are checked per request by the planner.

Usage:
    from resourcegraph.core.schema import SchemaBuilder, SchemaHolder

    descriptor = SchemaBuilder().build(registry)
    holder = SchemaHolder(descriptor)
    print(descriptor.sdl())
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from graphql import (
    GraphQLArgument,
    GraphQLBoolean,
    GraphQLEnumType,
    GraphQLEnumValue,
    GraphQLError,
    GraphQLField,
    GraphQLFloat,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLInt,
    GraphQLInterfaceType,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    GraphQLString,
    StringValueNode,
    print_schema,
    validate_schema,
)
from graphql.utilities import value_from_ast_untyped

from .defs import RelationshipSpec, ResourceType
from .errors import SchemaConfigError
from .registry import CapabilityRegistry, RegistrySnapshot
from .types import get_kind
from .utils import to_camel_case, to_pascal_case

logger = logging.getLogger(__name__)


# =============================================================================
# Scalars
# =============================================================================


def _serialize_temporal(value: Any) -> str:
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return str(value)


def _parse_date(value: Any) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except (TypeError, ValueError):
        raise GraphQLError(f"Date cannot represent value: {value!r}") from None


def _parse_datetime(value: Any) -> dt.datetime:
    try:
        # Python < 3.11 fromisoformat rejects a trailing "Z"
        if isinstance(value, str) and value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return dt.datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise GraphQLError(f"DateTime cannot represent value: {value!r}") from None


def _literal_parser(parse):
    def parse_literal(node, _variables=None):
        if not isinstance(node, StringValueNode):
            raise GraphQLError("Expected an ISO 8601 string", node)
        return parse(node.value)
    return parse_literal


GraphQLDate = GraphQLScalarType(
    name="Date",
    description="ISO 8601 date",
    serialize=_serialize_temporal,
    parse_value=_parse_date,
    parse_literal=_literal_parser(_parse_date),
)

GraphQLDateTime = GraphQLScalarType(
    name="DateTime",
    description="ISO 8601 date and time",
    serialize=_serialize_temporal,
    parse_value=_parse_datetime,
    parse_literal=_literal_parser(_parse_datetime),
)

GraphQLJSON = GraphQLScalarType(
    name="JSON",
    description="Arbitrary JSON value",
    serialize=lambda value: value,
    parse_value=lambda value: value,
    parse_literal=value_from_ast_untyped,
)

_CANONICAL_SCALARS = {
    "string": GraphQLString,
    "id": GraphQLString,
    "integer": GraphQLInt,
    "float": GraphQLFloat,
    "boolean": GraphQLBoolean,
    "date": GraphQLDate,
    "datetime": GraphQLDateTime,
    "hash": GraphQLJSON,
}


def scalar_for_kind(kind_name: str) -> GraphQLScalarType:
    """Scalar used for a single value of the given kind."""
    return _CANONICAL_SCALARS[get_kind(kind_name).canonical]


def output_type_for_kind(kind_name: str):
    kind = get_kind(kind_name)
    scalar = _CANONICAL_SCALARS[kind.canonical]
    return GraphQLList(scalar) if kind.is_list else scalar


SortDirEnum = GraphQLEnumType(
    "SortDir",
    {"asc": GraphQLEnumValue("asc"), "desc": GraphQLEnumValue("desc")},
)

PageInput = GraphQLInputObjectType(
    "Page",
    lambda: {
        "size": GraphQLInputField(GraphQLInt),
        "number": GraphQLInputField(GraphQLInt),
    },
)


# =============================================================================
# Descriptor
# =============================================================================


@dataclass(frozen=True)
class RootField:
    """A root query field and the resource behind it."""
    name: str
    resource: str
    single: bool


@dataclass(frozen=True)
class SchemaDescriptor:
    """Result of a schema build. Never mutated after construction."""
    registry: RegistrySnapshot
    schema: GraphQLSchema
    root_fields: Mapping[str, RootField]

    @property
    def version(self) -> int:
        return self.registry.version

    def sdl(self) -> str:
        return print_schema(self.schema)

    def root_field(self, name: str) -> Optional[RootField]:
        return self.root_fields.get(name)


class SchemaHolder:
    """
    Holds the current SchemaDescriptor.

    Readers take ``current`` without locking; ``publish`` replaces the
    reference under a single-writer lock.
    """

    def __init__(self, descriptor: Optional[SchemaDescriptor] = None):
        self._descriptor = descriptor
        self._write_lock = threading.Lock()

    @property
    def current(self) -> SchemaDescriptor:
        descriptor = self._descriptor
        if descriptor is None:
            raise SchemaConfigError("No schema has been published yet")
        return descriptor

    def publish(self, descriptor: SchemaDescriptor) -> SchemaDescriptor:
        with self._write_lock:
            previous = self._descriptor
            self._descriptor = descriptor
        logger.info(
            f"Schema published: version {descriptor.version}"
            + (f" (replaces {previous.version})" if previous else "")
        )
        return descriptor


# =============================================================================
# Builder
# =============================================================================


class SchemaBuilder:
    """
    Builds a GraphQL schema from a registry snapshot.

    The builder is stateless between calls; every ``build()`` starts from
    scratch and returns a new descriptor.
    """

    def build(
        self,
        registry: Union[CapabilityRegistry, RegistrySnapshot],
        entrypoints: Optional[Iterable[str]] = None,
    ) -> SchemaDescriptor:
        """
        Build the schema.

        Args:
            registry: Registry or already built snapshot
            entrypoints: Resource names or plural entrypoint names to expose
                at the root. Default: every exposed resource.

        Returns:
            SchemaDescriptor

        Raises:
            SchemaConfigError: on entrypoint collisions, filters on unknown
                attributes, an empty root type or an invalid schema
        """
        snapshot = registry.build() if isinstance(registry, CapabilityRegistry) else registry
        return _Build(snapshot, entrypoints).run()


class _Build:
    """State of a single schema build."""

    def __init__(self, snapshot: RegistrySnapshot, entrypoints: Optional[Iterable[str]]):
        self.snapshot = snapshot
        self.entrypoints = set(entrypoints) if entrypoints is not None else None
        self.output_types: dict[str, Union[GraphQLObjectType, GraphQLInterfaceType]] = {}
        self.relationship_interfaces: dict[str, GraphQLInterfaceType] = {}
        # candidate resource name -> interfaces it must implement
        self.implements: dict[str, list[str]] = {}
        self.filter_inputs: dict[str, Optional[GraphQLInputObjectType]] = {}
        self.sort_inputs: dict[str, Optional[GraphQLInputObjectType]] = {}

    def run(self) -> SchemaDescriptor:
        for resource in self.snapshot.types.values():
            self._check_filters(resource)

        for resource in self.snapshot.types.values():
            self._output_type(resource)

        root_fields, query_fields = self._root_fields()
        if not query_fields:
            raise SchemaConfigError("No entrypoints exposed: the Query type would be empty")

        query = GraphQLObjectType("Query", query_fields)
        types = list(self.output_types.values()) + list(self.relationship_interfaces.values())
        types += [t for t in self.filter_inputs.values() if t is not None]
        types += [t for t in self.sort_inputs.values() if t is not None]
        schema = GraphQLSchema(query=query, types=types)

        errors = validate_schema(schema)
        if errors:
            raise SchemaConfigError("Invalid schema: " + "; ".join(e.message for e in errors))

        logger.info(
            f"Schema built: {len(root_fields)} root fields, "
            f"{len(self.output_types)} resource types (registry version {self.snapshot.version})"
        )
        return SchemaDescriptor(registry=self.snapshot, schema=schema, root_fields=root_fields)

    # =========================================================================
    # Checks
    # =========================================================================

    def _check_filters(self, resource: ResourceType):
        for spec in resource.filters:
            if spec.kind is None:
                raise SchemaConfigError(
                    f"Filter '{spec.name}' on '{resource.name}' references unknown attribute '{spec.name}'"
                )
            if not spec.operators:
                raise SchemaConfigError(
                    f"Filter '{spec.name}' on '{resource.name}' has no operators"
                )

    # =========================================================================
    # Output types
    # =========================================================================

    def _output_type(self, resource: ResourceType):
        existing = self.output_types.get(resource.name)
        if existing is not None:
            return existing

        if resource.polymorphic:
            gql_type = GraphQLInterfaceType(
                resource.name,
                lambda r=resource: self._fields(r),
                description=resource.description,
            )
        else:
            gql_type = GraphQLObjectType(
                resource.name,
                lambda r=resource: self._fields(r),
                interfaces=lambda r=resource: self._interfaces(r),
                description=resource.description,
            )
        self.output_types[resource.name] = gql_type

        # Polymorphic relationship interfaces are registered eagerly so that
        # candidates know which interfaces they implement.
        for rel in resource.relationships:
            if rel.polymorphic and rel.readable is not False:
                self._relationship_interface(self._relationship_owner(resource, rel), rel)

        return gql_type

    def _relationship_owner(self, resource: ResourceType, rel: RelationshipSpec) -> ResourceType:
        """The type that declared ``rel``: the parent when a variant inherited it."""
        if resource.parent:
            parent = self.snapshot.get(resource.parent)
            if parent.relationship(rel.graphql_name) == rel:
                return parent
        return resource

    def _interfaces(self, resource: ResourceType) -> list[GraphQLInterfaceType]:
        interfaces = []
        if resource.parent:
            interfaces.append(self.output_types[resource.parent])
        interfaces.extend(self.relationship_interfaces[name] for name in self.implements.get(resource.name, ()))
        return interfaces

    def _fields(self, resource: ResourceType) -> dict[str, GraphQLField]:
        fields: dict[str, GraphQLField] = {}
        for attr in resource.attributes:
            if attr.readable is False:
                continue
            gql_type = output_type_for_kind(attr.kind)
            if attr.name == "id":
                gql_type = GraphQLNonNull(gql_type)
            fields[attr.graphql_name] = GraphQLField(gql_type, description=attr.description)

        fields["_type"] = GraphQLField(GraphQLNonNull(GraphQLString), description="Resource type discriminant")

        for rel in resource.relationships:
            if rel.readable is False:
                continue
            if rel.graphql_name in fields:
                raise SchemaConfigError(
                    f"Relationship '{rel.name}' on '{resource.name}' collides with an attribute"
                )
            fields[rel.graphql_name] = self._relationship_field(resource, rel)
        return fields

    def _relationship_field(self, resource: ResourceType, rel: RelationshipSpec) -> GraphQLField:
        if rel.polymorphic:
            owner = self._relationship_owner(resource, rel)
            target_type = self.relationship_interfaces[_interface_name(owner, rel)]
        else:
            target_type = self._output_type(self.snapshot.get(rel.target))

        if rel.cardinality == "one":
            return GraphQLField(target_type, description=rel.description)

        args = {}
        if rel.accepts_arguments:
            args = self._collection_args(self.snapshot.get(rel.target), root=False)
        return GraphQLField(
            GraphQLNonNull(GraphQLList(GraphQLNonNull(target_type))),
            args=args,
            description=rel.description,
        )

    def _relationship_interface(self, owner: ResourceType, rel: RelationshipSpec) -> GraphQLInterfaceType:
        name = _interface_name(owner, rel)
        if name in self.relationship_interfaces:
            return self.relationship_interfaces[name]

        candidates = [self.snapshot.get(target) for target in rel.targets]
        interface = GraphQLInterfaceType(
            name,
            lambda: self._common_fields(candidates),
            description=f"Any of: {', '.join(c.name for c in candidates)}",
        )
        self.relationship_interfaces[name] = interface
        for candidate in candidates:
            self.implements.setdefault(candidate.name, []).append(name)
        return interface

    def _common_fields(self, candidates: list[ResourceType]) -> dict[str, GraphQLField]:
        """id, _type and the readable attributes every candidate shares."""
        def same_shape(candidate: ResourceType, attr) -> bool:
            other = candidate.attribute(attr.graphql_name)
            if other is None or other.readable is False:
                return False
            mine, theirs = get_kind(attr.kind), get_kind(other.kind)
            return (mine.canonical, mine.is_list) == (theirs.canonical, theirs.is_list)

        first, rest = candidates[0], candidates[1:]
        fields: dict[str, GraphQLField] = {}
        for attr in first.attributes:
            if attr.readable is False:
                continue
            if all(same_shape(c, attr) for c in rest):
                gql_type = output_type_for_kind(attr.kind)
                fields[attr.graphql_name] = GraphQLField(
                    GraphQLNonNull(gql_type) if attr.name == "id" else gql_type
                )
        fields["_type"] = GraphQLField(GraphQLNonNull(GraphQLString))
        return fields

    # =========================================================================
    # Arguments
    # =========================================================================

    def _collection_args(self, resource: ResourceType, root: bool) -> dict[str, GraphQLArgument]:
        args: dict[str, GraphQLArgument] = {}
        filter_input = self._filter_input(resource)
        if filter_input is not None:
            required = root and any(f.required for f in resource.filters if f.guard is not False)
            args["filter"] = GraphQLArgument(GraphQLNonNull(filter_input) if required else filter_input)
        sort_input = self._sort_input(resource)
        if sort_input is not None:
            args["sort"] = GraphQLArgument(GraphQLList(GraphQLNonNull(sort_input)))
        args["page"] = GraphQLArgument(PageInput)
        return args

    def _filter_input(self, resource: ResourceType) -> Optional[GraphQLInputObjectType]:
        if resource.name in self.filter_inputs:
            return self.filter_inputs[resource.name]

        filter_fields: dict[str, GraphQLInputField] = {}
        for spec in resource.filters:
            if spec.guard is False:
                continue
            scalar = scalar_for_kind(spec.kind)
            operator_input = GraphQLInputObjectType(
                f"{resource.name}Filter{to_pascal_case(spec.graphql_name)}",
                {to_camel_case(op): GraphQLInputField(scalar) for op in spec.operators},
            )
            filter_fields[spec.graphql_name] = GraphQLInputField(
                GraphQLNonNull(operator_input) if spec.required else operator_input
            )

        filter_input = GraphQLInputObjectType(f"{resource.name}Filter", filter_fields) if filter_fields else None
        self.filter_inputs[resource.name] = filter_input
        return filter_input

    def _sort_input(self, resource: ResourceType) -> Optional[GraphQLInputObjectType]:
        if resource.name in self.sort_inputs:
            return self.sort_inputs[resource.name]

        values = {
            s.graphql_name: GraphQLEnumValue(s.graphql_name)
            for s in resource.sorts
            if s.guard is not False
        }
        sort_input = None
        if values:
            att_enum = GraphQLEnumType(f"{resource.name}SortAtt", values)
            sort_input = GraphQLInputObjectType(
                f"{resource.name}Sort",
                {
                    "att": GraphQLInputField(GraphQLNonNull(att_enum)),
                    "dir": GraphQLInputField(GraphQLNonNull(SortDirEnum)),
                },
            )
        self.sort_inputs[resource.name] = sort_input
        return sort_input

    # =========================================================================
    # Root
    # =========================================================================

    def _root_fields(self) -> tuple[dict[str, RootField], dict[str, GraphQLField]]:
        root_fields: dict[str, RootField] = {}
        query_fields: dict[str, GraphQLField] = {}

        def claim(name: str, resource: ResourceType, single: bool):
            if name in root_fields:
                raise SchemaConfigError(
                    f"Entrypoint '{name}' of '{resource.name}' collides with "
                    f"'{root_fields[name].resource}'"
                )
            root_fields[name] = RootField(name=name, resource=resource.name, single=single)

        for resource in self.snapshot.roots():
            if self.entrypoints is not None and not (
                resource.name in self.entrypoints or resource.plural_field in self.entrypoints
            ):
                continue
            gql_type = self.output_types[resource.name]
            plural, singular = resource.plural_field, resource.singular_field
            if plural == singular:
                raise SchemaConfigError(
                    f"Resource '{resource.name}' needs distinct singular and plural entrypoints"
                )

            claim(plural, resource, single=False)
            query_fields[plural] = GraphQLField(
                GraphQLNonNull(GraphQLList(GraphQLNonNull(gql_type))),
                args=self._collection_args(resource, root=True),
                description=resource.description,
            )
            claim(singular, resource, single=True)
            query_fields[singular] = GraphQLField(
                gql_type,
                args={"id": GraphQLArgument(GraphQLNonNull(GraphQLString))},
                description=resource.description,
            )
        return root_fields, query_fields


def _interface_name(owner: ResourceType, rel: RelationshipSpec) -> str:
    return f"{owner.name}{to_pascal_case(rel.name)}"
