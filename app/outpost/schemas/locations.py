from datetime import datetime

from pydantic import BaseModel, Field

from app.outpost.schemas.common import ListPaginationMeta


class LocationCreateRequest(BaseModel):
    region_id: str
    name: str = Field(..., min_length=1, max_length=255)
    city: str | None = Field(default=None, max_length=255)
    is_active: bool = True

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"region_id": "4f7f2c5e-9cfd-4efa-a575-2a0ad38df4e8", "name": "Harbor Street", "city": "Lisbon"},
            ]
        }
    }


class LocationUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    city: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None


class LocationItem(BaseModel):
    id: str
    region_id: str
    name: str
    city: str | None = None
    is_active: bool
    created_at: datetime


class LocationResponse(BaseModel):
    location: LocationItem
    trace_id: str


class LocationListResponse(BaseModel):
    locations: list[LocationItem]
    pagination: ListPaginationMeta
    trace_id: str


class RegionItem(BaseModel):
    id: str
    name: str


class RegionListResponse(BaseModel):
    regions: list[RegionItem]
    trace_id: str
