"""Category tree payloads."""

from __future__ import annotations

from pydantic import Field

from catalog_ingest.api.schemas.base import ApiModel


class CategoryNode(ApiModel):
    id: int
    level: int = Field(..., ge=1, le=4)
    name: str
    slug: str
    path: str = Field(..., description="Hierarchical URL path, e.g. /audio/headphones")
    position: int
    total_product: int
    children: list[CategoryNode] = Field(default_factory=list)


class RecountResponse(ApiModel):
    success: bool = True
    levels: dict[str, int] = Field(
        default_factory=dict, description="Number of nodes recounted per level"
    )
