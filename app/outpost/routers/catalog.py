from fastapi import APIRouter, Depends, Query, Request, status

from app.outpost.core.context import Principal
from app.outpost.core.deps import get_gate, get_pagination, get_principal, get_requested_scope
from app.outpost.repos.base import Pagination
from app.outpost.schemas.catalog import (
    CatalogCategoryListResponse,
    CatalogItemCreateRequest,
    CatalogItemListResponse,
    CatalogItemResponse,
    CatalogItemUpdateRequest,
)
from app.outpost.schemas.common import ListPaginationMeta
from app.outpost.services import catalog as catalog_service
from app.outpost.services.gate import AuthorizationGate

router = APIRouter()


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


@router.get("/outpost/catalog-items", response_model=CatalogItemListResponse)
def list_catalog_items(
    request: Request,
    available: bool | None = Query(None),
    category: str | None = Query(None, max_length=100),
    search: str | None = Query(None, max_length=100),
    requested_scope=Depends(get_requested_scope),
    pagination: Pagination = Depends(get_pagination),
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    result = catalog_service.list_catalog_items(
        gate,
        principal,
        requested_scope=requested_scope,
        available=available,
        category=category,
        search=search,
        pagination=pagination,
    )
    return CatalogItemListResponse(
        items=result["items"],
        pagination=ListPaginationMeta(
            total=result["total"],
            count=len(result["items"]),
            limit=pagination.limit,
            offset=pagination.offset,
        ),
        trace_id=_trace_id(request),
    )


@router.get("/outpost/catalog-categories", response_model=CatalogCategoryListResponse)
def list_catalog_categories(
    request: Request,
    requested_scope=Depends(get_requested_scope),
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    categories = catalog_service.list_catalog_categories(gate, principal, requested_scope=requested_scope)
    return CatalogCategoryListResponse(categories=categories, trace_id=_trace_id(request))


@router.get("/outpost/catalog-items/{item_id}", response_model=CatalogItemResponse)
def get_catalog_item(
    request: Request,
    item_id: str,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    item = catalog_service.get_catalog_item(gate, principal, item_id)
    return CatalogItemResponse(item=item, trace_id=_trace_id(request))


@router.post("/outpost/catalog-items", response_model=CatalogItemResponse, status_code=status.HTTP_201_CREATED)
def create_catalog_item(
    request: Request,
    payload: CatalogItemCreateRequest,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    item = catalog_service.create_catalog_item(gate, principal, payload)
    return CatalogItemResponse(item=item, trace_id=_trace_id(request))


@router.patch("/outpost/catalog-items/{item_id}", response_model=CatalogItemResponse)
def update_catalog_item(
    request: Request,
    item_id: str,
    payload: CatalogItemUpdateRequest,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    item = catalog_service.update_catalog_item(gate, principal, item_id, payload)
    return CatalogItemResponse(item=item, trace_id=_trace_id(request))


@router.delete("/outpost/catalog-items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_catalog_item(
    item_id: str,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    catalog_service.delete_catalog_item(gate, principal, item_id)
