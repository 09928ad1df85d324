from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.outpost.schemas.common import ListPaginationMeta


class CatalogItemCreateRequest(BaseModel):
    location_id: str | None = Field(
        default=None,
        description="Target location. Required for ADMIN callers; managers always write to their own location.",
    )
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    is_available: bool = True


class CatalogItemUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    is_available: bool | None = None


class CatalogItemOut(BaseModel):
    id: str
    location_id: str
    name: str
    description: str | None = None
    category: str | None = None
    price: Decimal
    is_available: bool
    created_at: datetime
    updated_at: datetime


class CatalogItemResponse(BaseModel):
    item: CatalogItemOut
    trace_id: str


class CatalogItemListResponse(BaseModel):
    items: list[CatalogItemOut]
    pagination: ListPaginationMeta
    trace_id: str


class CatalogCategoryListResponse(BaseModel):
    categories: list[str]
    trace_id: str
