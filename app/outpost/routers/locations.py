from fastapi import APIRouter, Depends, Query, Request, status

from app.outpost.core.context import Principal
from app.outpost.core.deps import get_gate, get_pagination, get_principal, get_requested_scope
from app.outpost.repos.base import Pagination
from app.outpost.schemas.common import ListPaginationMeta
from app.outpost.schemas.locations import (
    LocationCreateRequest,
    LocationListResponse,
    LocationResponse,
    LocationUpdateRequest,
    RegionListResponse,
)
from app.outpost.services import locations as location_service
from app.outpost.services.gate import AuthorizationGate

router = APIRouter()


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


@router.get("/outpost/locations", response_model=LocationListResponse)
def list_locations(
    request: Request,
    active: bool | None = Query(None),
    search: str | None = Query(None, max_length=100),
    requested_scope=Depends(get_requested_scope),
    pagination: Pagination = Depends(get_pagination),
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    result = location_service.list_locations(
        gate,
        principal,
        requested_scope=requested_scope,
        active=active,
        search=search,
        pagination=pagination,
    )
    return LocationListResponse(
        locations=result["locations"],
        pagination=ListPaginationMeta(
            total=result["total"],
            count=len(result["locations"]),
            limit=pagination.limit,
            offset=pagination.offset,
        ),
        trace_id=_trace_id(request),
    )


@router.get("/outpost/locations/{location_id}", response_model=LocationResponse)
def get_location(
    request: Request,
    location_id: str,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    location = location_service.get_location(gate, principal, location_id)
    return LocationResponse(location=location, trace_id=_trace_id(request))


@router.post("/outpost/locations", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
def create_location(
    request: Request,
    payload: LocationCreateRequest,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    location = location_service.create_location(gate, principal, payload)
    return LocationResponse(location=location, trace_id=_trace_id(request))


@router.patch("/outpost/locations/{location_id}", response_model=LocationResponse)
def update_location(
    request: Request,
    location_id: str,
    payload: LocationUpdateRequest,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    location = location_service.update_location(gate, principal, location_id, payload)
    return LocationResponse(location=location, trace_id=_trace_id(request))


@router.delete("/outpost/locations/{location_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_location(
    location_id: str,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    location_service.delete_location(gate, principal, location_id)


@router.get("/outpost/regions", response_model=RegionListResponse)
def list_regions(
    request: Request,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    result = location_service.list_regions(gate, principal)
    return RegionListResponse(regions=result["regions"], trace_id=_trace_id(request))
