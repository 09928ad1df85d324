"""Order lifecycle.

A transaction starts PENDING, collects items while PENDING, and moves
through the state machine below. COMPLETED and CANCELLED are terminal.
"""

from __future__ import annotations

from decimal import Decimal

from app.outpost.core.context import Principal, Role
from app.outpost.core.error_catalog import Conflict, Denied, InvalidInput
from app.outpost.core.scope import Operation, ScopeKind
from app.outpost.db.models import Transaction, TransactionItem
from app.outpost.repos.base import Pagination
from app.outpost.repos.catalog import CatalogItemRepository
from app.outpost.repos.locations import LocationRepository
from app.outpost.repos.transactions import TransactionRepository
from app.outpost.repos.users import UserRepository
from app.outpost.schemas.transactions import (
    OrderCreateRequest,
    OrderItemAddRequest,
    TransactionLineOut,
    TransactionOut,
)
from app.outpost.services.gate import AuthorizationGate, NarrowedQuery, OperationPayload, require_uuid

ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "PENDING": ("PLACED", "CANCELLED"),
    "PLACED": ("COMPLETED", "CANCELLED"),
    "COMPLETED": (),
    "CANCELLED": (),
}

ACTION_TARGETS = {
    "place": "PLACED",
    "complete": "COMPLETED",
    "cancel": "CANCELLED",
}


def transition(current_status: str, target_status: str) -> str:
    allowed = ALLOWED_TRANSITIONS.get(current_status, ())
    if target_status not in allowed:
        raise Conflict(
            current_status=current_status,
            allowed_transitions=list(allowed),
            message=f"cannot move a {current_status} transaction to {target_status}",
        )
    return target_status


def transaction_out(row: Transaction) -> TransactionOut:
    lines = [
        TransactionLineOut(
            id=str(item.id),
            catalog_item_id=str(item.catalog_item_id),
            position=item.position,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=(Decimal(str(item.unit_price)) * item.quantity).quantize(Decimal("0.01")),
        )
        for item in row.items
    ]
    return TransactionOut(
        id=str(row.id),
        location_id=str(row.location_id),
        customer_id=str(row.customer_id),
        status=row.status,
        notes=row.notes,
        total_amount=sum((line.line_total for line in lines), Decimal("0.00")),
        items=lines,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _own_orders_only(principal: Principal) -> str | None:
    """Customer id a principal's transaction reads are restricted to, if any."""
    return principal.id if principal.role is Role.MEMBER else None


def list_transactions(
    gate: AuthorizationGate,
    principal: Principal,
    *,
    requested_scope=None,
    status: str | None = None,
    pagination: Pagination,
) -> dict:
    def load(query: NarrowedQuery) -> dict:
        rows, total = TransactionRepository(gate.db).find(
            query.scope,
            status=query.filters.get("status"),
            customer_id=query.filters.get("customer_id"),
            pagination=query.pagination,
        )
        return {
            "transactions": [transaction_out(row).model_dump(mode="json") for row in rows],
            "total": total,
        }

    filters = {"status": status, "customer_id": _own_orders_only(principal)}
    payload = OperationPayload(requested_scope=requested_scope, filters=filters, pagination=pagination)
    return gate.read(principal, Operation.LIST_TRANSACTIONS, payload, load)


def get_transaction(gate: AuthorizationGate, principal: Principal, transaction_id: str) -> dict:
    def load(query: NarrowedQuery) -> dict:
        row = TransactionRepository(gate.db).get(query.scope, query.resource_id)
        if row is None:
            raise Denied("transaction not found or outside scope")
        return transaction_out(row).model_dump(mode="json")

    def check(query: NarrowedQuery, transaction: dict) -> None:
        customer_id = _own_orders_only(principal)
        if customer_id is not None and transaction["customer_id"] != customer_id:
            raise Denied("member may only view their own orders")

    return gate.read(
        principal,
        Operation.GET_TRANSACTION,
        OperationPayload(resource_id=transaction_id),
        load,
        check=check,
    )


def create_order(gate: AuthorizationGate, principal: Principal, request: OrderCreateRequest) -> TransactionOut:
    def target(query: NarrowedQuery):
        location_id = request.location_id
        if location_id is None:
            if query.scope.kind is not ScopeKind.LOCATION:
                raise InvalidInput("location_id is required", field="location_id")
            location_id = query.scope.location_id
        location_id = require_uuid(location_id, "location_id")
        return LocationRepository(gate.db).get(query.scope, location_id)

    def mutate(query: NarrowedQuery, location) -> Transaction:
        if not location.is_active:
            raise InvalidInput("location is not accepting orders", field="location_id")
        customer_id = principal.id
        if request.customer_id is not None and request.customer_id != principal.id:
            if principal.role is Role.MEMBER:
                raise Denied("member may only order for themselves")
            require_uuid(request.customer_id, "customer_id")
            if UserRepository(gate.db).get_by_id(request.customer_id) is None:
                raise InvalidInput("customer does not exist", field="customer_id")
            customer_id = request.customer_id
        return TransactionRepository(gate.db).add(
            Transaction(location_id=location.id, customer_id=customer_id, status="PENDING", notes=request.notes)
        )

    row = gate.write(principal, Operation.CREATE_ORDER, OperationPayload(), target=target, mutate=mutate)
    return transaction_out(row)


def add_order_item(
    gate: AuthorizationGate,
    principal: Principal,
    transaction_id: str,
    request: OrderItemAddRequest,
) -> TransactionOut:
    def target(query: NarrowedQuery):
        return TransactionRepository(gate.db).get(query.scope, query.resource_id, for_update=True)

    def mutate(query: NarrowedQuery, row: Transaction) -> Transaction:
        if principal.role is Role.MEMBER and str(row.customer_id) != principal.id:
            raise Denied("member may only modify their own orders")
        if row.status != "PENDING":
            raise Conflict(
                current_status=row.status,
                allowed_transitions=list(ALLOWED_TRANSITIONS.get(row.status, ())),
                message="items can only be added to PENDING orders",
            )
        require_uuid(request.catalog_item_id, "catalog_item_id")
        item = CatalogItemRepository(gate.db).get(query.scope, request.catalog_item_id)
        if item is None or item.location_id != row.location_id:
            raise InvalidInput("catalog item is not offered at this location", field="catalog_item_id")
        if not item.is_available:
            raise InvalidInput("catalog item is unavailable", field="catalog_item_id")
        TransactionRepository(gate.db).add_item(
            row,
            TransactionItem(catalog_item_id=item.id, quantity=request.quantity, unit_price=item.price),
        )
        return row

    row = gate.write(
        principal,
        Operation.ADD_ORDER_ITEM,
        OperationPayload(resource_id=transaction_id),
        target=target,
        mutate=mutate,
    )
    return transaction_out(row)


def change_transaction_status(
    gate: AuthorizationGate,
    principal: Principal,
    transaction_id: str,
    action: str,
) -> TransactionOut:
    target_status = ACTION_TARGETS.get(action)
    if target_status is None:
        raise InvalidInput("unknown action", field="action", allowed=sorted(ACTION_TARGETS))

    def target(query: NarrowedQuery):
        return TransactionRepository(gate.db).get(query.scope, query.resource_id, for_update=True)

    def mutate(query: NarrowedQuery, row: Transaction) -> Transaction:
        if target_status == "PLACED" and not row.items:
            raise InvalidInput("an order needs at least one item before it is placed", field="action")
        row.status = transition(row.status, target_status)
        gate.db.flush()
        return row

    row = gate.write(
        principal,
        Operation.CHANGE_TRANSACTION_STATUS,
        OperationPayload(resource_id=transaction_id),
        target=target,
        mutate=mutate,
    )
    return transaction_out(row)
