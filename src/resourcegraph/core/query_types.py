"""
Pydantic models for resource-layer requests.

A plan node is sent to a resource layer as a ResourceQueryRequest: the
resource, its requested fields, filter/sort/page parameters and the nested
requests for every selected relationship.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class FilterParam(BaseModel):
    """
    A single resolved filter.

    Input: employees(filter: { firstName: { eq: "Agatha" } })
    Resolved: FilterParam(field="first_name", op="eq", value="Agatha")
    """
    field: str
    op: str  # eq, not_eq, eql, prefix, gt, ...
    value: Any


class SortParam(BaseModel):
    """
    A single sort key.

    Input: sort: [{ att: amount, dir: desc }]
    Resolved: SortParam(field="amount", dir="desc")
    """
    field: str
    dir: Literal["asc", "desc"] = "asc"


class PageParams(BaseModel):
    """Page-number pagination. ``number`` is 1-based."""
    size: int
    number: int = 1

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.size


class VariantRequest(BaseModel):
    """Fields and relationships requested only for one discriminant."""
    fields: list[str] = Field(default_factory=list)
    relations: dict[str, "ResourceQueryRequest"] = Field(default_factory=dict)


class ResourceQueryRequest(BaseModel):
    """
    Wire form of a plan node.

    Example:
    {
        "resource": "employees",
        "fields": ["id", "first_name"],
        "filters": [{"field": "first_name", "op": "eq", "value": "Agatha"}],
        "sort": [],
        "page": null,
        "relations": {
            "positions": {"resource": "positions", "fields": ["title"], ...}
        }
    }
    """
    resource: str
    path: list[str] = Field(default_factory=list)
    cardinality: Literal["one", "many"] = "many"
    fields: list[str] = Field(default_factory=list)
    extra_fields: list[str] = Field(default_factory=list)
    filters: list[FilterParam] = Field(default_factory=list)
    sort: list[SortParam] = Field(default_factory=list)
    page: Optional[PageParams] = None
    link: Optional[dict[str, Any]] = None
    relations: dict[str, "ResourceQueryRequest"] = Field(default_factory=dict)
    variants: dict[str, VariantRequest] = Field(default_factory=dict)


class ResourceQueryResponse(BaseModel):
    """Response of a remote resource service."""
    data: list[dict[str, Any]] = Field(default_factory=list)


VariantRequest.model_rebuild()
ResourceQueryRequest.model_rebuild()
