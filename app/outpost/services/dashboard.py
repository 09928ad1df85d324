"""Dashboard aggregation over the caller's scoped transactions.

Revenue figures only count COMPLETED transactions. Other statuses still
contribute to the working set (location count, pending orders).
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable

from app.outpost.core.config import settings
from app.outpost.core.context import Principal
from app.outpost.core.error_catalog import InvalidInput
from app.outpost.core.scope import Operation, ScopeFilter, ScopeKind
from app.outpost.repos.catalog import CatalogItemRepository
from app.outpost.repos.locations import LocationRepository
from app.outpost.repos.transactions import TransactionRepository
from app.outpost.repos.users import UserRepository
from app.outpost.schemas.dashboard import (
    DashboardMetric,
    DashboardMetrics,
    DashboardPerformance,
    DashboardRangeOut,
    DashboardRecentTransaction,
    DashboardTrendPoint,
)
from app.outpost.services.gate import AuthorizationGate, NarrowedQuery, OperationPayload

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
RECENT_TRANSACTIONS = 5


class RangePreset(str, Enum):
    TODAY = "TODAY"
    LAST_7_DAYS = "LAST_7_DAYS"
    LAST_30_DAYS = "LAST_30_DAYS"
    LAST_90_DAYS = "LAST_90_DAYS"
    CUSTOM = "CUSTOM"


PRESET_DAYS = {
    RangePreset.TODAY: 1,
    RangePreset.LAST_7_DAYS: 7,
    RangePreset.LAST_30_DAYS: 30,
    RangePreset.LAST_90_DAYS: 90,
}


@dataclass(frozen=True)
class RangeQuery:
    preset: RangePreset | None = None
    start: date | None = None
    end: date | None = None


@dataclass(frozen=True)
class DashboardRange:
    preset: RangePreset
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.start, time.min)

    @property
    def end_at(self) -> datetime:
        return datetime.combine(self.end, time.max)


def resolve_range(requested: RangeQuery | None, *, today: date | None = None, max_days: int | None = None) -> DashboardRange:
    """Turn a preset or an explicit pair of dates into an inclusive UTC day range."""
    requested = requested or RangeQuery()
    today = today or datetime.utcnow().date()
    max_days = max_days or settings.DASHBOARD_MAX_RANGE_DAYS

    preset = requested.preset
    if requested.start is not None and requested.end is not None:
        preset = RangePreset.CUSTOM
    elif requested.start is not None or requested.end is not None:
        raise InvalidInput("custom ranges need both start and end", field="range")
    preset = preset or RangePreset.LAST_7_DAYS

    if preset is RangePreset.CUSTOM:
        if requested.start is None or requested.end is None:
            raise InvalidInput("custom ranges need both start and end", field="range")
        if requested.end < requested.start:
            raise InvalidInput("end must not be before start", field="range")
        date_range = DashboardRange(preset=preset, start=requested.start, end=requested.end)
        if date_range.days > max_days:
            raise InvalidInput("date range exceeds limit", field="range", max_days=max_days)
        return date_range

    return DashboardRange(preset=preset, start=today - timedelta(days=PRESET_DAYS[preset] - 1), end=today)


def iter_dates(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


@dataclass(frozen=True)
class TransactionFact:
    id: str
    location_id: str
    customer_id: str
    status: str
    created_at: datetime
    total: Decimal
    lines: tuple[tuple[str, int, Decimal], ...] = ()


class _Performance:
    __slots__ = ("entity_id", "orders", "revenue", "first_seen")

    def __init__(self, entity_id: str, first_seen: int):
        self.entity_id = entity_id
        self.orders = 0
        self.revenue = ZERO
        self.first_seen = first_seen


def _average(revenue: Decimal, orders: int) -> Decimal:
    if not orders:
        return ZERO
    return (revenue / Decimal(orders)).quantize(CENT)


def rank_performance(
    contributions: Iterable[tuple[str, Decimal]],
    names: dict[str, str],
    *,
    limit: int,
) -> list[DashboardPerformance]:
    """Rank entities by revenue, then order count, then first appearance.

    ``contributions`` yields one ``(entity_id, revenue)`` pair per order the
    entity took part in, in chronological order.
    """
    table: dict[str, _Performance] = {}
    for entity_id, revenue in contributions:
        entry = table.get(entity_id)
        if entry is None:
            entry = table[entity_id] = _Performance(entity_id, len(table))
        entry.orders += 1
        entry.revenue += revenue

    ranked = sorted(table.values(), key=lambda entry: (-entry.revenue, -entry.orders, entry.first_seen))
    return [
        DashboardPerformance(
            entity_id=entry.entity_id,
            name=names.get(entry.entity_id, "Unknown"),
            orders=entry.orders,
            revenue=entry.revenue.quantize(CENT),
            average_order_value=_average(entry.revenue, entry.orders),
        )
        for entry in ranked[:limit]
    ]


def _location_contributions(completed: list[TransactionFact]):
    for fact in completed:
        yield fact.location_id, fact.total


def _item_contributions(completed: list[TransactionFact]):
    for fact in completed:
        per_item: dict[str, Decimal] = {}
        for catalog_item_id, _, line_total in fact.lines:
            per_item[catalog_item_id] = per_item.get(catalog_item_id, ZERO) + line_total
        yield from per_item.items()


def summarize(
    facts: list[TransactionFact],
    date_range: DashboardRange,
    *,
    scope: ScopeFilter,
    location_names: dict[str, str],
    item_names: dict[str, str],
    customer_names: dict[str, str],
    top_n: int | None = None,
) -> DashboardMetrics:
    top_n = top_n or settings.DASHBOARD_TOP_N
    completed = [fact for fact in facts if fact.status == "COMPLETED"]

    total_revenue = sum((fact.total for fact in completed), ZERO)
    total_orders = len(completed)
    location_count = len({fact.location_id for fact in facts})
    pending_orders = sum(1 for fact in facts if fact.status == "PENDING")

    kpis = [
        DashboardMetric(key="totalRevenue", label="Total revenue", value=total_revenue.quantize(CENT), unit="USD"),
        DashboardMetric(key="totalOrders", label="Completed orders", value=Decimal(total_orders)),
        DashboardMetric(
            key="averageOrderValue",
            label="Average order value",
            value=_average(total_revenue, total_orders),
            unit="USD",
        ),
        DashboardMetric(key="locationCount", label="Active locations", value=Decimal(location_count)),
        DashboardMetric(key="pendingOrders", label="Pending orders", value=Decimal(pending_orders)),
    ]

    orders_by_date: dict[date, int] = defaultdict(int)
    revenue_by_date: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for fact in completed:
        day = fact.created_at.date()
        orders_by_date[day] += 1
        revenue_by_date[day] += fact.total
    trend = [
        DashboardTrendPoint(
            date=day,
            orders=orders_by_date.get(day, 0),
            revenue=revenue_by_date.get(day, ZERO).quantize(CENT),
        )
        for day in iter_dates(date_range.start, date_range.end)
    ]

    top_items = rank_performance(_item_contributions(completed), item_names, limit=top_n)
    if scope.kind is ScopeKind.LOCATION:
        top = top_items
    else:
        top = rank_performance(_location_contributions(completed), location_names, limit=top_n)

    recent = sorted(completed, key=lambda fact: fact.created_at, reverse=True)[:RECENT_TRANSACTIONS]
    recent_transactions = [
        DashboardRecentTransaction(
            id=fact.id,
            location_id=fact.location_id,
            status=fact.status,
            total_amount=fact.total.quantize(CENT),
            customer_name=customer_names.get(fact.customer_id) or "Guest",
            created_at=fact.created_at,
        )
        for fact in recent
    ]

    return DashboardMetrics(
        range=DashboardRangeOut(
            preset=date_range.preset.value,
            start=date_range.start,
            end=date_range.end,
            days=date_range.days,
        ),
        kpis=kpis,
        trend=trend,
        top_n=top,
        top_items=top_items,
        recent_transactions=recent_transactions,
    )


def load_facts(db, scope: ScopeFilter, date_range: DashboardRange) -> list[TransactionFact]:
    repo = TransactionRepository(db)
    headers = repo.find_in_range(scope, start=date_range.start_at, end=date_range.end_at)
    completed_ids = [str(row.id) for row in headers if row.status == "COMPLETED"]

    lines_by_transaction: dict[str, list[tuple[str, int, Decimal]]] = defaultdict(list)
    for transaction_id, catalog_item_id, quantity, unit_price in repo.lines_for(completed_ids):
        line_total = Decimal(str(unit_price or 0)) * quantity
        lines_by_transaction[str(transaction_id)].append((str(catalog_item_id), quantity, line_total))

    facts = []
    for row in headers:
        lines = tuple(lines_by_transaction.get(str(row.id), ()))
        facts.append(
            TransactionFact(
                id=str(row.id),
                location_id=str(row.location_id),
                customer_id=str(row.customer_id),
                status=row.status,
                created_at=row.created_at,
                total=sum((line[2] for line in lines), ZERO),
                lines=lines,
            )
        )
    return facts


def build_dashboard(db, query: NarrowedQuery, date_range: DashboardRange) -> dict:
    facts = load_facts(db, query.scope, date_range)
    completed = [fact for fact in facts if fact.status == "COMPLETED"]
    location_ids = sorted({fact.location_id for fact in completed})
    item_ids = sorted({line[0] for fact in completed for line in fact.lines})
    customer_ids = sorted({fact.customer_id for fact in completed})

    metrics = summarize(
        facts,
        date_range,
        scope=query.scope,
        location_names=LocationRepository(db).names_by_id(query.scope, location_ids),
        item_names=CatalogItemRepository(db).names_by_id(query.scope, item_ids),
        customer_names=UserRepository(db).display_names(customer_ids),
    )
    return metrics.model_dump(mode="json")


def compute_dashboard(
    gate: AuthorizationGate,
    principal: Principal,
    range_query: RangeQuery | None = None,
    *,
    requested_scope: ScopeFilter | None = None,
    today: date | None = None,
) -> dict:
    date_range = resolve_range(range_query, today=today)
    payload = OperationPayload(
        requested_scope=requested_scope,
        filters={
            "preset": date_range.preset.value,
            "start": date_range.start.isoformat(),
            "end": date_range.end.isoformat(),
        },
    )
    return gate.read(
        principal,
        Operation.VIEW_DASHBOARD,
        payload,
        lambda query: build_dashboard(gate.db, query, date_range),
    )
