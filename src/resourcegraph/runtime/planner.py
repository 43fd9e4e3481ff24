"""
Selection planner - turns a GraphQL selection into a resource query plan.

The plan is a tree of PlanNodes, one per selected resource-typed position
in the response. Every node carries the attribute names to fetch, the
decoded filter/sort/page parameters and one child node per selected
relationship (keyed by response key, so aliases stay distinct).

Polymorphic positions carry a per-discriminant map of VariantPlans with
the fields and relationships that only a fragment on that type asked for.
Nothing is ever requested against a discriminant whose fragment did not
declare it.

Planning runs every guard up front and raises before any resource-layer
call is made.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Literal, Optional

from graphql import (
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    GraphQLError,
    GraphQLIncludeDirective,
    GraphQLSkipDirective,
    InlineFragmentNode,
    OperationType,
    SelectionSetNode,
    get_named_type,
    get_operation_ast,
    is_abstract_type,
)
from graphql.execution.values import get_argument_values, get_directive_values, get_variable_values

from ..core.defs import AttributeSpec, RelationshipSpec, ResourceType
from ..core.errors import (
    DepthExceededError,
    PageSizeExceededError,
    RequiredFilterMissingError,
    SchemaShapeError,
)
from ..core.query_types import FilterParam, PageParams, ResourceQueryRequest, SortParam, VariantRequest
from ..core.schema import SchemaDescriptor
from ..core.utils import to_snake_case
from ..core.validator import fragments_of, selection_depth
from ..iam.guard import GuardEvaluator

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
DEFAULT_MAX_PAGE_SIZE = 1000


@dataclass(frozen=True)
class Projection:
    """One response key of a plan node and where its value comes from."""
    key: str
    source: str  # attribute name, or the response key for relationships
    kind: Literal["attribute", "type", "typename", "relationship"]
    attribute: Optional[AttributeSpec] = field(default=None, repr=False)


@dataclass
class VariantPlan:
    """Fragment-specific selections for one discriminant."""
    resource: ResourceType = field(repr=False)
    fields: list[str] = field(default_factory=list)  # fetched in addition to the base fields
    extra_fields: list[str] = field(default_factory=list)
    projection: list[Projection] = field(default_factory=list)  # full, in response order
    children: dict[str, "PlanNode"] = field(default_factory=dict)

    @property
    def discriminant(self) -> str:
        return self.resource.type


@dataclass
class PlanNode:
    """
    One level of a resource query plan.

    ``resource`` is None for polymorphic relationships; their candidates are
    in ``type_set`` and each one gets a VariantPlan.
    """
    resource: Optional[ResourceType] = field(repr=False)
    path: tuple[str, ...] = ()
    relationship: Optional[RelationshipSpec] = field(default=None, repr=False)
    cardinality: Literal["one", "many"] = "many"
    single: bool = False  # singular root field
    fields: list[str] = field(default_factory=list)
    extra_fields: list[str] = field(default_factory=list)
    projection: list[Projection] = field(default_factory=list)
    filters: list[FilterParam] = field(default_factory=list)
    sort: list[SortParam] = field(default_factory=list)
    page: Optional[PageParams] = None
    children: dict[str, "PlanNode"] = field(default_factory=dict)
    type_set: dict[str, ResourceType] = field(default_factory=dict, repr=False)
    variants: dict[str, VariantPlan] = field(default_factory=dict)
    depth: int = 1

    @property
    def polymorphic(self) -> bool:
        return bool(self.type_set)

    @property
    def name(self) -> str:
        if self.resource is not None:
            return self.resource.type
        return "|".join(self.type_set)

    def resource_for(self, discriminant: Optional[str]) -> Optional[ResourceType]:
        """Concrete resource type of an entity with the given discriminant."""
        if discriminant in self.type_set:
            return self.type_set[discriminant]
        return self.resource

    def filter_params(self) -> dict[str, dict[str, Any]]:
        """Filters grouped as ``{field: {op: value}}``."""
        params: dict[str, dict[str, Any]] = {}
        for f in self.filters:
            params.setdefault(f.field, {})[f.op] = f.value
        return params

    def walk(self) -> Iterable["PlanNode"]:
        """This node and every descendant, depth first."""
        yield self
        for child in self.children.values():
            yield from child.walk()
        for variant in self.variants.values():
            for child in variant.children.values():
                yield from child.walk()

    def to_request(self) -> ResourceQueryRequest:
        """Wire form sent to remote resource layers."""
        link = self.relationship.link if self.relationship else None
        return ResourceQueryRequest(
            resource=self.name,
            path=list(self.path),
            cardinality=self.cardinality,
            fields=list(self.fields),
            extra_fields=list(self.extra_fields),
            filters=list(self.filters),
            sort=list(self.sort),
            page=self.page,
            link=asdict(link) if link else None,
            relations={key: child.to_request() for key, child in self.children.items()},
            variants={
                disc: VariantRequest(
                    fields=variant.fields + variant.extra_fields,
                    relations={key: child.to_request() for key, child in variant.children.items()},
                )
                for disc, variant in self.variants.items()
            },
        )


@dataclass
class OperationPlan:
    """Plans for every root field of one operation, in response order."""
    roots: dict[str, Optional[PlanNode]]  # None for a root __typename
    introspection: list[str] = field(default_factory=list)
    variables: dict[str, Any] = field(default_factory=dict)
    depth: int = 0

    @property
    def resource_roots(self) -> dict[str, PlanNode]:
        return {key: node for key, node in self.roots.items() if node is not None}


@dataclass
class _Selection:
    fields: list[str] = field(default_factory=list)
    extra_fields: list[str] = field(default_factory=list)
    projection: dict[str, Projection] = field(default_factory=dict)
    children: dict[str, PlanNode] = field(default_factory=dict)


class SelectionPlanner:
    """
    Builds plan trees from parsed operations.

    The planner holds no per-request state, so one instance can serve
    concurrent requests against the same descriptor.

    Usage:
        planner = SelectionPlanner(descriptor, max_depth=5)
        plan = planner.plan_operation(parse(query), context=principal, variables={...})
        plan.roots["employees"].filters
    """

    def __init__(
        self,
        descriptor: SchemaDescriptor,
        max_depth: Optional[int] = None,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
        default_page_size: Optional[int] = None,
    ):
        self.descriptor = descriptor
        self.max_depth = max_depth
        self.max_page_size = max_page_size
        self.default_page_size = default_page_size

    def plan_operation(
        self,
        document: DocumentNode,
        context: Any = None,
        variables: Optional[dict[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> OperationPlan:
        """
        Plan every root field of an operation.

        Args:
            document: Parsed (and validated) document
            context: Request context handed to guard predicates
            variables: Raw variable values, coerced against the schema here
            operation_name: Operation to run when the document has several

        Returns:
            OperationPlan

        Raises:
            SchemaShapeError, AccessDeniedError, GuardEvaluationError,
            DepthExceededError, PageSizeExceededError, RequiredFilterMissingError
        """
        operation = get_operation_ast(document, operation_name)
        if operation is None:
            raise SchemaShapeError([
                f"Unknown operation named '{operation_name}'." if operation_name
                else "Must provide operation name if query contains multiple operations."
            ])
        if operation.operation != OperationType.QUERY:
            raise SchemaShapeError([
                GraphQLError(
                    f"Only query operations are supported, got '{operation.operation.value}'.",
                    operation,
                )
            ])

        schema = self.descriptor.schema
        coerced = get_variable_values(schema, operation.variable_definitions or (), variables or {})
        if isinstance(coerced, list):
            raise SchemaShapeError(coerced)

        fragments = fragments_of(document)
        run = _PlanningPass(self, fragments, coerced, context)
        run.operation_depth = selection_depth(operation.selection_set, fragments)

        roots: dict[str, Optional[PlanNode]] = {}
        introspection: list[str] = []
        query_type = schema.query_type
        possible = frozenset({query_type.name})
        for key, nodes in run.collect([operation.selection_set], None, possible).items():
            name = nodes[0].name.value
            if name == "__typename":
                roots[key] = None
            elif name.startswith("__"):
                introspection.append(key)
            else:
                roots[key] = run.plan_root(key, nodes)

        logger.debug(
            f"Planned {len(roots)} root fields "
            f"({sum(1 for n in roots.values() if n for _ in n.walk())} nodes, "
            f"{run.guards.evaluated} guard checks)"
        )
        return OperationPlan(roots=roots, introspection=introspection, variables=coerced, depth=run.operation_depth)

    def plan(
        self,
        field_node: FieldNode,
        resource: ResourceType,
        variables: Optional[dict[str, Any]] = None,
        context: Any = None,
        fragments: Optional[dict[str, FragmentDefinitionNode]] = None,
    ) -> PlanNode:
        """
        Plan a single root field node against a resource type.

        ``variables`` must already be coerced.
        """
        run = _PlanningPass(self, fragments or {}, variables or {}, context)
        if field_node.selection_set is not None:
            run.operation_depth = 1 + selection_depth(field_node.selection_set, run.fragments)
        key = field_node.alias.value if field_node.alias else field_node.name.value
        return run.plan_root(key, [field_node], resource)


class _PlanningPass:
    """State of one planning pass: fragments, variables and guards."""

    def __init__(
        self,
        planner: SelectionPlanner,
        fragments: dict[str, FragmentDefinitionNode],
        variables: dict[str, Any],
        context: Any,
    ):
        self.planner = planner
        self.descriptor = planner.descriptor
        self.schema = planner.descriptor.schema
        self.snapshot = planner.descriptor.registry
        self.fragments = fragments
        self.variables = variables
        self.guards = GuardEvaluator(context)
        self.operation_depth = 0

    # =========================================================================
    # Root fields
    # =========================================================================

    def plan_root(self, key: str, nodes: list[FieldNode], resource: Optional[ResourceType] = None) -> PlanNode:
        field_node = nodes[0]
        name = field_node.name.value
        root_field = self.descriptor.root_field(name)
        field_def = self.schema.query_type.fields.get(name)
        if root_field is None or field_def is None:
            raise SchemaShapeError([GraphQLError(f"Cannot query field '{name}' on type 'Query'.", field_node)])
        if resource is None:
            resource = self.snapshot.get(root_field.resource)

        args = self._arguments(field_def, field_node)
        node = PlanNode(
            resource=resource,
            path=(key,),
            cardinality="one" if root_field.single else "many",
            single=root_field.single,
            type_set=self._variant_set(resource),
            depth=1,
        )
        if root_field.single:
            node.filters.append(FilterParam(field="id", op="eq", value=args["id"]))
        else:
            self._apply_collection_arguments(node, resource, args, root=True)

        self._fill(node, get_named_type(field_def.type), nodes)
        return node

    # =========================================================================
    # Nodes
    # =========================================================================

    def _fill(self, node: PlanNode, gql_type, nodes: list[FieldNode]):
        """Plan the selections of ``nodes`` into ``node``."""
        selection_sets = [n.selection_set for n in nodes if n.selection_set is not None]
        self._check_depth(node, selection_sets)
        possible = self._possible(gql_type.name)
        base = self.collect(selection_sets, None, possible)

        if node.resource is None:
            # Polymorphic relationship: every candidate is planned on its own
            for resource in node.type_set.values():
                full = self.collect(selection_sets, resource.name, possible)
                selection = self._plan_selection(node, resource, self.schema.get_type(resource.name), full)
                node.variants[resource.type] = VariantPlan(
                    resource=resource,
                    fields=selection.fields,
                    extra_fields=selection.extra_fields,
                    projection=list(selection.projection.values()),
                    children=selection.children,
                )
            first = next(iter(node.variants.values()), None)
            if first is not None:
                node.projection = [p for p in first.projection if p.key in base]
            return

        selection = self._plan_selection(node, node.resource, gql_type, base)
        node.fields = selection.fields
        node.extra_fields = selection.extra_fields
        node.projection = list(selection.projection.values())
        node.children = selection.children

        for type_name in self._referenced_types(selection_sets, possible):
            variant_resource = self.snapshot.get(type_name)
            full = self.collect(selection_sets, type_name, possible)
            # Keys that are new or whose selections grew are planned against the variant only
            own = {
                key: field_nodes for key, field_nodes in full.items()
                if key not in base or len(field_nodes) > len(base[key])
            }
            if not own:
                continue
            variant_selection = self._plan_selection(
                node, variant_resource, self.schema.get_type(type_name), own
            )
            node.variants[variant_resource.type] = VariantPlan(
                resource=variant_resource,
                fields=[f for f in variant_selection.fields if f not in node.fields],
                extra_fields=[f for f in variant_selection.extra_fields if f not in node.extra_fields],
                projection=[
                    variant_selection.projection.get(key) or selection.projection[key]
                    for key in full
                ],
                children=variant_selection.children,
            )

    def _plan_selection(
        self,
        node: PlanNode,
        resource: ResourceType,
        gql_type,
        fields_by_key: dict[str, list[FieldNode]],
    ) -> _Selection:
        selection = _Selection()
        for key, field_nodes in fields_by_key.items():
            name = field_nodes[0].name.value

            if name == "__typename":
                selection.projection[key] = Projection(key=key, source=name, kind="typename")
                continue
            if name == "_type":
                selection.projection[key] = Projection(key=key, source="_type", kind="type")
                continue

            attr = resource.attribute(name)
            if attr is not None:
                self.guards.check_attribute(resource, attr, node.path + (key,))
                target = selection.extra_fields if attr.extra else selection.fields
                if attr.name not in target:
                    target.append(attr.name)
                selection.projection[key] = Projection(key=key, source=attr.name, kind="attribute", attribute=attr)
                continue

            rel = resource.relationship(name)
            if rel is not None:
                self.guards.check_relationship(resource, rel, node.path + (key,))
                selection.children[key] = self._plan_relationship(node, resource, rel, gql_type, key, field_nodes)
                selection.projection[key] = Projection(key=key, source=key, kind="relationship")
                continue

            raise SchemaShapeError([
                GraphQLError(f"Cannot query field '{name}' on type '{resource.name}'.", field_nodes)
            ])
        return selection

    def _plan_relationship(
        self,
        parent: PlanNode,
        owner: ResourceType,
        rel: RelationshipSpec,
        parent_type,
        key: str,
        field_nodes: list[FieldNode],
    ) -> PlanNode:
        field_node = field_nodes[0]
        field_def = parent_type.fields.get(field_node.name.value) if hasattr(parent_type, "fields") else None
        if field_def is None:
            raise SchemaShapeError([
                GraphQLError(f"Cannot query field '{field_node.name.value}' on type '{owner.name}'.", field_node)
            ])
        args = self._arguments(field_def, field_node)

        if rel.polymorphic:
            target = None
            type_set = {t.type: t for t in (self.snapshot.get(name) for name in rel.targets)}
        else:
            target = self.snapshot.get(rel.target)
            type_set = self._variant_set(target)

        node = PlanNode(
            resource=target,
            path=parent.path + (key,),
            relationship=rel,
            cardinality=rel.cardinality,
            type_set=type_set,
            depth=parent.depth + 1,
        )

        if any(value is not None for value in args.values()):
            if not rel.accepts_arguments:
                raise SchemaShapeError([
                    GraphQLError(
                        f"Relationship '{key}' on '{owner.name}' does not accept filter, sort or page arguments.",
                        field_node,
                    )
                ])
            self._apply_collection_arguments(node, target, args, root=False)

        self._fill(node, get_named_type(field_def.type), field_nodes)
        return node

    def _check_depth(self, node: PlanNode, selection_sets: list):
        max_depth = self.planner.max_depth
        if max_depth is None:
            return
        # Leaf selections sit one level below the node; meta fields alone add none
        inner = max((selection_depth(s, self.fragments) for s in selection_sets), default=0)
        depth = node.depth + min(inner, 1)
        if depth > max_depth:
            raise DepthExceededError(max(self.operation_depth, depth), max_depth)

    # =========================================================================
    # Arguments
    # =========================================================================

    def _arguments(self, field_def, field_node: FieldNode) -> dict[str, Any]:
        try:
            return get_argument_values(field_def, field_node, self.variables)
        except GraphQLError as e:
            raise SchemaShapeError([e]) from e

    def _apply_collection_arguments(self, node: PlanNode, resource: ResourceType, args: dict, root: bool):
        for filter_name, operators in (args.get("filter") or {}).items():
            spec = resource.filter(filter_name)
            if spec is None:
                raise SchemaShapeError([f"Unknown filter '{filter_name}' on '{resource.name}'"])
            self.guards.check_filter(resource, spec, node.path)
            for op_name, value in (operators or {}).items():
                if value is None:
                    continue
                op = to_snake_case(op_name)
                if op not in spec.operators:
                    raise SchemaShapeError([
                        f"Operator '{op_name}' is not supported by filter '{filter_name}' on '{resource.name}'"
                    ])
                node.filters.append(FilterParam(field=spec.name, op=op, value=value))

        if root:
            present = {f.field for f in node.filters}
            for spec in resource.filters:
                if spec.required and spec.guard is not False and spec.name not in present:
                    raise RequiredFilterMissingError(resource.name, spec.graphql_name or spec.name, node.path)

        for entry in args.get("sort") or ():
            spec = resource.sort(entry["att"])
            if spec is None:
                raise SchemaShapeError([f"Unknown sort attribute '{entry['att']}' on '{resource.name}'"])
            self.guards.check_sort(resource, spec, node.path)
            node.sort.append(SortParam(field=spec.name, dir=entry.get("dir") or "asc"))

        page = args.get("page")
        if page is not None:
            node.page = self._page(page, node.path)
        elif root and self.planner.default_page_size:
            node.page = PageParams(size=self.planner.default_page_size)

    def _page(self, page: dict, path: tuple[str, ...]) -> PageParams:
        size = page.get("size")
        if size is None:
            size = self.planner.default_page_size or DEFAULT_PAGE_SIZE
        number = page.get("number") or 1
        if size < 1 or number < 1:
            raise SchemaShapeError([f"Page size and number must be positive (at {'.'.join(path)})"])
        if size > self.planner.max_page_size:
            raise PageSizeExceededError(size, self.planner.max_page_size, path)
        return PageParams(size=size, number=number)

    # =========================================================================
    # Field collection
    # =========================================================================

    def collect(
        self,
        selection_sets: list[SelectionSetNode],
        runtime_type: Optional[str],
        possible: frozenset[str],
    ) -> dict[str, list[FieldNode]]:
        """
        Collect fields by response key.

        With ``runtime_type`` None only selections that apply to every
        possible type are collected. Otherwise fragments on ``runtime_type``
        (or an abstract type containing it) are collected too.
        """
        fields: dict[str, list[FieldNode]] = {}
        visited: set[str] = set()

        def walk(selection_set: SelectionSetNode):
            for selection in selection_set.selections:
                if not self._included(selection):
                    continue
                if isinstance(selection, FieldNode):
                    key = selection.alias.value if selection.alias else selection.name.value
                    fields.setdefault(key, []).append(selection)
                elif isinstance(selection, InlineFragmentNode):
                    if self._applies(selection.type_condition, runtime_type, possible):
                        walk(selection.selection_set)
                elif isinstance(selection, FragmentSpreadNode):
                    name = selection.name.value
                    fragment = self.fragments.get(name)
                    if name in visited or fragment is None:
                        continue
                    visited.add(name)
                    if self._applies(fragment.type_condition, runtime_type, possible):
                        walk(fragment.selection_set)

        for selection_set in selection_sets:
            walk(selection_set)
        return fields

    def _referenced_types(self, selection_sets: list[SelectionSetNode], possible: frozenset[str]) -> list[str]:
        """Concrete types named by fragments that do not cover every possible type."""
        found: list[str] = []
        visited: set[str] = set()

        def note(type_condition):
            if type_condition is None:
                return
            covered = self._possible(type_condition.name.value) & possible
            if covered >= possible:
                return
            for name in sorted(covered):
                if name not in found:
                    found.append(name)

        def walk(selection_set: SelectionSetNode):
            for selection in selection_set.selections:
                if not self._included(selection):
                    continue
                if isinstance(selection, InlineFragmentNode):
                    note(selection.type_condition)
                    walk(selection.selection_set)
                elif isinstance(selection, FragmentSpreadNode):
                    name = selection.name.value
                    fragment = self.fragments.get(name)
                    if name in visited or fragment is None:
                        continue
                    visited.add(name)
                    note(fragment.type_condition)
                    walk(fragment.selection_set)

        for selection_set in selection_sets:
            walk(selection_set)
        return found

    def _applies(self, type_condition, runtime_type: Optional[str], possible: frozenset[str]) -> bool:
        if type_condition is None:
            return True
        covered = self._possible(type_condition.name.value) & possible
        if covered >= possible:
            return True
        return runtime_type is not None and runtime_type in covered

    def _possible(self, type_name: str) -> frozenset[str]:
        gql_type = self.schema.get_type(type_name)
        if gql_type is None:
            return frozenset()
        if is_abstract_type(gql_type):
            return frozenset(t.name for t in self.schema.get_possible_types(gql_type))
        return frozenset({type_name})

    def _included(self, selection) -> bool:
        skip = get_directive_values(GraphQLSkipDirective, selection, self.variables)
        if skip and skip["if"]:
            return False
        include = get_directive_values(GraphQLIncludeDirective, selection, self.variables)
        return not (include and not include["if"])

    def _variant_set(self, resource: ResourceType) -> dict[str, ResourceType]:
        return {v.type: v for v in self.snapshot.variants_of(resource)}
