from __future__ import annotations

from app.outpost.core.context import Principal
from app.outpost.core.error_catalog import Denied, InvalidInput
from app.outpost.core.scope import Operation, ScopeKind
from app.outpost.db.models import CatalogItem
from app.outpost.repos.base import Pagination
from app.outpost.repos.catalog import CatalogItemRepository
from app.outpost.repos.locations import LocationRepository
from app.outpost.repos.transactions import TransactionRepository
from app.outpost.schemas.catalog import CatalogItemCreateRequest, CatalogItemOut, CatalogItemUpdateRequest
from app.outpost.services.gate import AuthorizationGate, NarrowedQuery, OperationPayload, require_uuid


def catalog_item_out(row: CatalogItem) -> CatalogItemOut:
    return CatalogItemOut(
        id=str(row.id),
        location_id=str(row.location_id),
        name=row.name,
        description=row.description,
        category=row.category,
        price=row.price,
        is_available=row.is_available,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def list_catalog_items(
    gate: AuthorizationGate,
    principal: Principal,
    *,
    requested_scope=None,
    available: bool | None = None,
    category: str | None = None,
    search: str | None = None,
    pagination: Pagination,
) -> dict:
    def load(query: NarrowedQuery) -> dict:
        rows, total = CatalogItemRepository(gate.db).find(
            query.scope,
            available=query.filters.get("available"),
            category=query.filters.get("category"),
            search=query.filters.get("search"),
            pagination=query.pagination,
        )
        return {
            "items": [catalog_item_out(row).model_dump(mode="json") for row in rows],
            "total": total,
        }

    payload = OperationPayload(
        requested_scope=requested_scope,
        filters={"available": available, "category": category, "search": search},
        pagination=pagination,
    )
    return gate.read(principal, Operation.LIST_CATALOG_ITEMS, payload, load)


def get_catalog_item(gate: AuthorizationGate, principal: Principal, item_id: str) -> dict:
    def load(query: NarrowedQuery) -> dict:
        row = CatalogItemRepository(gate.db).get(query.scope, query.resource_id)
        if row is None:
            raise Denied("catalog item not found or outside scope")
        return catalog_item_out(row).model_dump(mode="json")

    return gate.read(principal, Operation.GET_CATALOG_ITEM, OperationPayload(resource_id=item_id), load)


def list_catalog_categories(gate: AuthorizationGate, principal: Principal, *, requested_scope=None) -> list[str]:
    """Distinct categories offered inside the caller's scope, alphabetically."""

    def load(query: NarrowedQuery) -> list[str]:
        return CatalogItemRepository(gate.db).categories(query.scope)

    payload = OperationPayload(requested_scope=requested_scope, filters={"view": "categories"})
    return gate.read(principal, Operation.LIST_CATALOG_CATEGORIES, payload, load)


def create_catalog_item(
    gate: AuthorizationGate,
    principal: Principal,
    request: CatalogItemCreateRequest,
) -> CatalogItemOut:
    def target(query: NarrowedQuery):
        location_id = request.location_id
        if location_id is None:
            if query.scope.kind is not ScopeKind.LOCATION:
                raise InvalidInput("location_id is required", field="location_id")
            location_id = query.scope.location_id
        location_id = require_uuid(location_id, "location_id")
        return LocationRepository(gate.db).get(query.scope, location_id)

    def mutate(query: NarrowedQuery, location) -> CatalogItem:
        return CatalogItemRepository(gate.db).add(
            CatalogItem(
                location_id=location.id,
                name=request.name,
                description=request.description,
                category=request.category,
                price=request.price,
                is_available=request.is_available,
            )
        )

    row = gate.write(principal, Operation.CREATE_CATALOG_ITEM, OperationPayload(), target=target, mutate=mutate)
    return catalog_item_out(row)


def update_catalog_item(
    gate: AuthorizationGate,
    principal: Principal,
    item_id: str,
    request: CatalogItemUpdateRequest,
) -> CatalogItemOut:
    def target(query: NarrowedQuery):
        return CatalogItemRepository(gate.db).get(query.scope, query.resource_id)

    def mutate(query: NarrowedQuery, row: CatalogItem) -> CatalogItem:
        changes = request.model_dump(exclude_unset=True)
        for field_name in ("name", "price"):
            if field_name in changes and changes[field_name] is None:
                raise InvalidInput(f"{field_name} must not be empty", field=field_name)
        for field_name, value in changes.items():
            setattr(row, field_name, value)
        gate.db.flush()
        return row

    row = gate.write(
        principal,
        Operation.UPDATE_CATALOG_ITEM,
        OperationPayload(resource_id=item_id),
        target=target,
        mutate=mutate,
    )
    return catalog_item_out(row)


def delete_catalog_item(gate: AuthorizationGate, principal: Principal, item_id: str) -> None:
    def target(query: NarrowedQuery):
        return CatalogItemRepository(gate.db).get(query.scope, query.resource_id)

    def mutate(query: NarrowedQuery, row: CatalogItem) -> None:
        if TransactionRepository(gate.db).count_item_references(query.resource_id):
            raise InvalidInput("catalog item is referenced by transactions; mark it unavailable instead", field="id")
        CatalogItemRepository(gate.db).delete(row)

    gate.write(
        principal,
        Operation.DELETE_CATALOG_ITEM,
        OperationPayload(resource_id=item_id),
        target=target,
        mutate=mutate,
    )
