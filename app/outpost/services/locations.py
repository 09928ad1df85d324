from __future__ import annotations

from app.outpost.core.context import Principal
from app.outpost.core.error_catalog import Denied, InvalidInput
from app.outpost.core.scope import Operation, ScopeFilter
from app.outpost.db.models import Location
from app.outpost.repos.base import Pagination
from app.outpost.repos.locations import LocationRepository, RegionRepository
from app.outpost.schemas.locations import (
    LocationCreateRequest,
    LocationItem,
    LocationUpdateRequest,
    RegionItem,
)
from app.outpost.services.gate import AuthorizationGate, NarrowedQuery, OperationPayload, require_uuid


def location_item(row: Location) -> LocationItem:
    return LocationItem(
        id=str(row.id),
        region_id=str(row.region_id),
        name=row.name,
        city=row.city,
        is_active=row.is_active,
        created_at=row.created_at,
    )


def list_locations(
    gate: AuthorizationGate,
    principal: Principal,
    *,
    requested_scope: ScopeFilter | None,
    active: bool | None,
    search: str | None,
    pagination: Pagination,
) -> dict:
    def load(query: NarrowedQuery) -> dict:
        rows, total = LocationRepository(gate.db).find(
            query.scope,
            active=query.filters.get("active"),
            search=query.filters.get("search"),
            pagination=query.pagination,
        )
        return {
            "locations": [location_item(row).model_dump(mode="json") for row in rows],
            "total": total,
        }

    payload = OperationPayload(
        requested_scope=requested_scope,
        filters={"active": active, "search": search},
        pagination=pagination,
    )
    return gate.read(principal, Operation.LIST_LOCATIONS, payload, load)


def get_location(gate: AuthorizationGate, principal: Principal, location_id: str) -> dict:
    def load(query: NarrowedQuery) -> dict:
        row = LocationRepository(gate.db).get(query.scope, query.resource_id)
        if row is None:
            raise Denied("location not found or outside scope")
        return location_item(row).model_dump(mode="json")

    return gate.read(principal, Operation.GET_LOCATION, OperationPayload(resource_id=location_id), load)


def create_location(gate: AuthorizationGate, principal: Principal, request: LocationCreateRequest) -> LocationItem:
    def target(query: NarrowedQuery):
        return RegionRepository(gate.db).get(request.region_id)

    def mutate(query: NarrowedQuery, region) -> Location:
        return LocationRepository(gate.db).add(
            Location(region_id=region.id, name=request.name, city=request.city, is_active=request.is_active)
        )

    require_uuid(request.region_id, "region_id")
    row = gate.write(principal, Operation.CREATE_LOCATION, OperationPayload(), target=target, mutate=mutate)
    return location_item(row)


def update_location(
    gate: AuthorizationGate,
    principal: Principal,
    location_id: str,
    request: LocationUpdateRequest,
) -> LocationItem:
    def target(query: NarrowedQuery):
        return LocationRepository(gate.db).get(query.scope, query.resource_id)

    def mutate(query: NarrowedQuery, row: Location) -> Location:
        changes = request.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is None:
            raise InvalidInput("name must not be empty", field="name")
        for field_name, value in changes.items():
            setattr(row, field_name, value)
        gate.db.flush()
        return row

    row = gate.write(
        principal,
        Operation.UPDATE_LOCATION,
        OperationPayload(resource_id=location_id),
        target=target,
        mutate=mutate,
    )
    return location_item(row)


def delete_location(gate: AuthorizationGate, principal: Principal, location_id: str) -> None:
    def target(query: NarrowedQuery):
        return LocationRepository(gate.db).get(query.scope, query.resource_id)

    def mutate(query: NarrowedQuery, row: Location) -> None:
        LocationRepository(gate.db).delete(row)

    gate.write(
        principal,
        Operation.DELETE_LOCATION,
        OperationPayload(resource_id=location_id),
        target=target,
        mutate=mutate,
    )


def list_regions(gate: AuthorizationGate, principal: Principal) -> dict:
    def load(query: NarrowedQuery) -> dict:
        rows = RegionRepository(gate.db).find()
        return {"regions": [RegionItem(id=str(row.id), name=row.name).model_dump(mode="json") for row in rows]}

    return gate.read(principal, Operation.LIST_REGIONS, OperationPayload(), load)
