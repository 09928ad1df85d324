from fastapi import APIRouter, Depends, Query, Request, status

from app.outpost.core.context import Principal
from app.outpost.core.deps import get_gate, get_pagination, get_principal, get_requested_scope
from app.outpost.repos.base import Pagination
from app.outpost.schemas.accounts import (
    AccountCreateRequest,
    AccountListResponse,
    AccountResponse,
    AccountRole,
    AccountUpdateRequest,
)
from app.outpost.schemas.common import ListPaginationMeta
from app.outpost.services import accounts as account_service
from app.outpost.services.gate import AuthorizationGate

router = APIRouter()


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


@router.get("/outpost/accounts", response_model=AccountListResponse)
def list_accounts(
    request: Request,
    role: AccountRole | None = Query(None),
    is_active: bool | None = Query(None),
    search: str | None = Query(None, max_length=100),
    requested_scope=Depends(get_requested_scope),
    pagination: Pagination = Depends(get_pagination),
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    result = account_service.list_accounts(
        gate,
        principal,
        requested_scope=requested_scope,
        role=role,
        is_active=is_active,
        search=search,
        pagination=pagination,
    )
    return AccountListResponse(
        accounts=result["accounts"],
        pagination=ListPaginationMeta(
            total=result["total"],
            count=len(result["accounts"]),
            limit=pagination.limit,
            offset=pagination.offset,
        ),
        trace_id=_trace_id(request),
    )


@router.get("/outpost/accounts/{user_id}", response_model=AccountResponse)
def get_account(
    request: Request,
    user_id: str,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    account = account_service.get_account(gate, principal, user_id)
    return AccountResponse(account=account, trace_id=_trace_id(request))


@router.post("/outpost/accounts", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    request: Request,
    payload: AccountCreateRequest,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    account = account_service.create_account(gate, principal, payload)
    return AccountResponse(account=account, trace_id=_trace_id(request))


@router.patch("/outpost/accounts/{user_id}", response_model=AccountResponse)
def update_account(
    request: Request,
    user_id: str,
    payload: AccountUpdateRequest,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    account = account_service.update_account(gate, principal, user_id, payload)
    return AccountResponse(account=account, trace_id=_trace_id(request))
