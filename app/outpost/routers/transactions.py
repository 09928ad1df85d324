from fastapi import APIRouter, Depends, Query, Request, status

from app.outpost.core.context import Principal
from app.outpost.core.deps import get_gate, get_pagination, get_principal, get_requested_scope
from app.outpost.repos.base import Pagination
from app.outpost.schemas.common import ListPaginationMeta
from app.outpost.schemas.transactions import (
    OrderCreateRequest,
    OrderItemAddRequest,
    TransactionActionRequest,
    TransactionListResponse,
    TransactionResponse,
    TransactionStatus,
)
from app.outpost.services import orders as order_service
from app.outpost.services.gate import AuthorizationGate

router = APIRouter()


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


@router.get("/outpost/transactions", response_model=TransactionListResponse)
def list_transactions(
    request: Request,
    status_filter: TransactionStatus | None = Query(None, alias="status"),
    requested_scope=Depends(get_requested_scope),
    pagination: Pagination = Depends(get_pagination),
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    result = order_service.list_transactions(
        gate,
        principal,
        requested_scope=requested_scope,
        status=status_filter,
        pagination=pagination,
    )
    return TransactionListResponse(
        transactions=result["transactions"],
        pagination=ListPaginationMeta(
            total=result["total"],
            count=len(result["transactions"]),
            limit=pagination.limit,
            offset=pagination.offset,
        ),
        trace_id=_trace_id(request),
    )


@router.get("/outpost/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    request: Request,
    transaction_id: str,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    transaction = order_service.get_transaction(gate, principal, transaction_id)
    return TransactionResponse(transaction=transaction, trace_id=_trace_id(request))


@router.post("/outpost/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    request: Request,
    payload: OrderCreateRequest,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    transaction = order_service.create_order(gate, principal, payload)
    return TransactionResponse(transaction=transaction, trace_id=_trace_id(request))


@router.post(
    "/outpost/transactions/{transaction_id}/items",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_order_item(
    request: Request,
    transaction_id: str,
    payload: OrderItemAddRequest,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    transaction = order_service.add_order_item(gate, principal, transaction_id, payload)
    return TransactionResponse(transaction=transaction, trace_id=_trace_id(request))


@router.post("/outpost/transactions/{transaction_id}/actions", response_model=TransactionResponse)
def change_transaction_status(
    request: Request,
    transaction_id: str,
    payload: TransactionActionRequest,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    transaction = order_service.change_transaction_status(gate, principal, transaction_id, payload.action)
    return TransactionResponse(transaction=transaction, trace_id=_trace_id(request))
