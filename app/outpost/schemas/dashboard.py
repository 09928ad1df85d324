from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


DashboardPreset = Literal["TODAY", "LAST_7_DAYS", "LAST_30_DAYS", "LAST_90_DAYS", "CUSTOM"]


class DashboardRangeOut(BaseModel):
    preset: DashboardPreset
    start: date
    end: date
    days: int


class DashboardMetric(BaseModel):
    key: str
    label: str
    value: Decimal
    unit: str | None = None


class DashboardTrendPoint(BaseModel):
    date: date
    orders: int
    revenue: Decimal


class DashboardPerformance(BaseModel):
    entity_id: str
    name: str
    orders: int
    revenue: Decimal
    average_order_value: Decimal


class DashboardRecentTransaction(BaseModel):
    id: str
    location_id: str
    status: str
    total_amount: Decimal
    customer_name: str
    created_at: datetime


class DashboardMetrics(BaseModel):
    range: DashboardRangeOut
    kpis: list[DashboardMetric]
    trend: list[DashboardTrendPoint]
    top_n: list[DashboardPerformance]
    top_items: list[DashboardPerformance]
    recent_transactions: list[DashboardRecentTransaction]


class DashboardResponse(DashboardMetrics):
    trace_id: str
