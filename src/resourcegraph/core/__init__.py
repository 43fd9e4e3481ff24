"""
Core module - definitions, kinds, registry, schema and validation.
"""

from __future__ import annotations

from .defs import (
    AttributeSpec,
    FilterSpec,
    LinkSpec,
    RelationshipSpec,
    ResourceType,
    SortSpec,
    belongs_to,
    has_many,
    has_one,
    polymorphic_belongs_to,
    polymorphic_has_many,
)
from .errors import (
    AccessDeniedError,
    DepthExceededError,
    GuardEvaluationError,
    PageSizeExceededError,
    RequiredFilterMissingError,
    ResourceGraphError,
    ResourceLayerError,
    SchemaConfigError,
    SchemaShapeError,
    ServiceError,
    UnsupportedPaginationError,
)
from .query_types import (
    FilterParam,
    PageParams,
    ResourceQueryRequest,
    ResourceQueryResponse,
    SortParam,
    VariantRequest,
)
from .registry import CapabilityRegistry, RegistrySnapshot
from .schema import RootField, SchemaBuilder, SchemaDescriptor, SchemaHolder
from .types import Kind, get_kind, register_kind, unregister_kind
from .validator import QueryValidator, selection_depth

__all__ = [
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
    # Kinds
    "Kind",
    "get_kind",
    "register_kind",
    "unregister_kind",
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
    "ServiceError",
    "UnsupportedPaginationError",
    # Request models
    "FilterParam",
    "PageParams",
    "ResourceQueryRequest",
    "ResourceQueryResponse",
    "SortParam",
    "VariantRequest",
    # Registry / schema
    "CapabilityRegistry",
    "RegistrySnapshot",
    "RootField",
    "SchemaBuilder",
    "SchemaDescriptor",
    "SchemaHolder",
    # Validation
    "QueryValidator",
    "selection_depth",
]
