"""
resourcegraph - GraphQL over declarative resources.

Resource types declare their attributes, filters, sorts and relationships
once. From that, resourcegraph:
- generates a GraphQL schema exposing only the declared capabilities
- plans each incoming operation into a tree of resource queries
- runs every guard before any data is fetched
- folds the resource layer's results back into the requested shape

Usage:
    from resourcegraph import CapabilityRegistry, Gateway, InMemoryResourceLayer

    registry = CapabilityRegistry([Employee, Position])
    app = Gateway(registry, InMemoryResourceLayer(data)).app
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import GraphSettings, load_settings
from .core import (
    AccessDeniedError,
    AttributeSpec,
    CapabilityRegistry,
    DepthExceededError,
    FilterSpec,
    GuardEvaluationError,
    LinkSpec,
    PageSizeExceededError,
    RegistrySnapshot,
    RelationshipSpec,
    RequiredFilterMissingError,
    ResourceGraphError,
    ResourceLayerError,
    ResourceType,
    SchemaBuilder,
    SchemaConfigError,
    SchemaDescriptor,
    SchemaHolder,
    SchemaShapeError,
    SortSpec,
    UnsupportedPaginationError,
    belongs_to,
    has_many,
    has_one,
    polymorphic_belongs_to,
    polymorphic_has_many,
    register_kind,
)
from .gateway import Gateway
from .iam import GuardEvaluator, NonFatalGuard, allowed
from .runtime import (
    InMemoryResourceLayer,
    OperationExecutor,
    PlanNode,
    Principal,
    ResourceLayer,
    ResultAssembler,
    SelectionPlanner,
    ServiceResourceLayer,
    VariantPlan,
)

__all__ = [
    "__version__",
    # Config
    "GraphSettings",
    "load_settings",
    # Definitions
    "AttributeSpec",
    "FilterSpec",
    "LinkSpec",
    "RelationshipSpec",
    "ResourceType",
    "SortSpec",
    "belongs_to",
    "has_many",
    "has_one",
    "polymorphic_belongs_to",
    "polymorphic_has_many",
    "register_kind",
    # Registry / schema
    "CapabilityRegistry",
    "RegistrySnapshot",
    "SchemaBuilder",
    "SchemaDescriptor",
    "SchemaHolder",
    # Guards
    "GuardEvaluator",
    "NonFatalGuard",
    "allowed",
    # Runtime
    "InMemoryResourceLayer",
    "OperationExecutor",
    "PlanNode",
    "Principal",
    "ResourceLayer",
    "ResultAssembler",
    "SelectionPlanner",
    "ServiceResourceLayer",
    "VariantPlan",
    # Gateway
    "Gateway",
    # Errors
    "AccessDeniedError",
    "DepthExceededError",
    "GuardEvaluationError",
    "PageSizeExceededError",
    "RequiredFilterMissingError",
    "ResourceGraphError",
    "ResourceLayerError",
    "SchemaConfigError",
    "SchemaShapeError",
    "UnsupportedPaginationError",
]
