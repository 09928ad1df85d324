from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from app.outpost.schemas.common import ListPaginationMeta


TransactionStatus = Literal["PENDING", "PLACED", "COMPLETED", "CANCELLED"]
TransactionAction = Literal["place", "complete", "cancel"]


class OrderCreateRequest(BaseModel):
    location_id: str | None = Field(
        default=None,
        description="Target location. Required for ADMIN callers; others always order at their home location.",
    )
    customer_id: str | None = Field(
        default=None,
        description="Customer the order is placed for. Defaults to the caller; only MANAGER/ADMIN may set it.",
    )
    notes: str | None = Field(default=None, max_length=2000)


class OrderItemAddRequest(BaseModel):
    catalog_item_id: str
    quantity: int = Field(..., ge=1, le=1000)


class TransactionActionRequest(BaseModel):
    action: TransactionAction

    model_config = {"json_schema_extra": {"examples": [{"action": "place"}, {"action": "complete"}]}}


class TransactionLineOut(BaseModel):
    id: str
    catalog_item_id: str
    position: int
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class TransactionOut(BaseModel):
    id: str
    location_id: str
    customer_id: str
    status: TransactionStatus
    notes: str | None = None
    total_amount: Decimal
    items: list[TransactionLineOut]
    created_at: datetime
    updated_at: datetime


class TransactionResponse(BaseModel):
    transaction: TransactionOut
    trace_id: str


class TransactionListResponse(BaseModel):
    transactions: list[TransactionOut]
    pagination: ListPaginationMeta
    trace_id: str
