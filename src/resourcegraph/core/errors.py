"""
Custom exceptions for the resourcegraph system.

Every error raised while planning or executing an operation carries enough
structured context (type name, field name, relationship path) for the
transport layer to render a GraphQL error object via ``formatted``.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from graphql import GraphQLError


class ResourceGraphError(Exception):
    """Base exception for all resourcegraph errors."""

    code = "internal"

    def __init__(self, message: str, path: Optional[Sequence[str]] = None):
        self.message = message
        self.path = tuple(path) if path else ()
        super().__init__(message)

    @property
    def extensions(self) -> dict[str, Any]:
        return {"code": self.code}

    @property
    def formatted(self) -> list[dict[str, Any]]:
        """GraphQL error objects for this error."""
        error: dict[str, Any] = {"message": self.message, "extensions": self.extensions}
        if self.path:
            error["path"] = list(self.path)
        return [error]


class SchemaConfigError(ResourceGraphError):
    """Raised when the registry or generated schema is invalid."""

    code = "schemaConfig"


class SchemaShapeError(ResourceGraphError):
    """
    Raised when an operation does not match the generated schema.

    Wraps one or more graphql-core errors (syntax, validation, variable
    coercion, undeclared fields).
    """

    code = "schemaShape"

    def __init__(self, errors: Sequence[GraphQLError | str]):
        self.errors = [
            e if isinstance(e, GraphQLError) else GraphQLError(str(e))
            for e in errors
        ]
        super().__init__("; ".join(e.message for e in self.errors))

    @property
    def formatted(self) -> list[dict[str, Any]]:
        return [e.formatted for e in self.errors]


class AccessDeniedError(ResourceGraphError):
    """Raised when a guard denies access to an attribute, filter, sort or relationship."""

    code = "accessDenied"

    def __init__(
        self,
        resource: str,
        attribute: str,
        action: str = "read",
        path: Optional[Sequence[str]] = None,
    ):
        self.resource = resource
        self.attribute = attribute
        self.action = action
        super().__init__(
            f"Access denied: cannot {action} '{attribute}' on '{resource}'",
            path=path,
        )

    @property
    def extensions(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "typeName": self.resource,
            "attribute": self.attribute,
            "action": self.action,
        }


class GuardEvaluationError(ResourceGraphError):
    """Raised when a guard predicate itself fails (fail closed)."""

    code = "guardFailed"

    def __init__(self, resource: str, attribute: str, cause: BaseException):
        self.resource = resource
        self.attribute = attribute
        super().__init__(f"Guard for '{attribute}' on '{resource}' failed: {cause}")

    @property
    def extensions(self) -> dict[str, Any]:
        return {"code": self.code, "typeName": self.resource, "attribute": self.attribute}


class DepthExceededError(ResourceGraphError):
    """Raised when an operation is nested deeper than the configured maximum."""

    code = "depthExceeded"

    def __init__(self, depth: int, max_depth: int):
        self.depth = depth
        self.max_depth = max_depth
        super().__init__(f"Query has depth of {depth}, which exceeds max depth of {max_depth}")

    @property
    def extensions(self) -> dict[str, Any]:
        return {"code": self.code, "depth": self.depth, "maxDepth": self.max_depth}


class PageSizeExceededError(ResourceGraphError):
    """Raised when a requested page is larger than the configured maximum."""

    code = "pageSizeExceeded"

    def __init__(self, size: int, max_size: int, path: Optional[Sequence[str]] = None):
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"Requested page size {size} exceeds max page size of {max_size}", path=path
        )

    @property
    def extensions(self) -> dict[str, Any]:
        return {"code": self.code, "size": self.size, "maxSize": self.max_size}


class RequiredFilterMissingError(ResourceGraphError):
    """Raised when a root collection is queried without one of its required filters."""

    code = "requiredFilterMissing"

    def __init__(self, resource: str, filter_name: str, path: Optional[Sequence[str]] = None):
        self.resource = resource
        self.filter_name = filter_name
        super().__init__(
            f"Filter '{filter_name}' is required when querying '{resource}'", path=path
        )

    @property
    def extensions(self) -> dict[str, Any]:
        return {"code": self.code, "typeName": self.resource, "filter": self.filter_name}


class ResourceLayerError(ResourceGraphError):
    """Raised when the resource layer fails to resolve a plan node."""

    code = "resourceLayer"

    def __init__(self, message: str, path: Optional[Sequence[str]] = None):
        location = f" at {'.'.join(path)}" if path else ""
        super().__init__(f"Resource layer failed{location}: {message}", path=path)
        self.reason = message

    @property
    def extensions(self) -> dict[str, Any]:
        return {"code": self.code, "relationshipPath": list(self.path)}


class UnsupportedPaginationError(ResourceLayerError):
    """Raised when a nested relationship cannot be paginated per parent."""

    code = "unsupportedPagination"


class ServiceError(ResourceLayerError):
    """Raised when a remote resource service call fails."""

    def __init__(
        self,
        service: str,
        status_code: int,
        message: str,
        path: Optional[Sequence[str]] = None,
    ):
        self.service = service
        self.status_code = status_code
        super().__init__(f"Service '{service}' returned {status_code}: {message}", path=path)
