from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from app.outpost.core.error_catalog import InvalidInput
from app.outpost.core.identity import principal_from_user
from app.outpost.core.scope import ScopeFilter
from app.outpost.services.cache import CacheLayer, MemoryCacheBackend
from app.outpost.services.dashboard import (
    DashboardRange,
    RangePreset,
    RangeQuery,
    TransactionFact,
    compute_dashboard,
    resolve_range,
    summarize,
)
from app.outpost.services.gate import AuthorizationGate
from tests.outpost_helpers import Tenancy, auth_headers, create_catalog_item, create_transaction

TODAY = date(2024, 3, 10)
WEEK = DashboardRange(preset=RangePreset.LAST_7_DAYS, start=date(2024, 3, 4), end=TODAY)


def _fact(index, location_id, total, *, status="COMPLETED", day=TODAY, lines=()):
    return TransactionFact(
        id=f"t{index}",
        location_id=location_id,
        customer_id="c1",
        status=status,
        created_at=datetime.combine(day, datetime.min.time()) + timedelta(minutes=index),
        total=Decimal(total),
        lines=tuple(lines),
    )


def _summarize(facts, *, scope=None, date_range=WEEK):
    return summarize(
        facts,
        date_range,
        scope=scope or ScopeFilter.unrestricted(),
        location_names={"L1": "One", "L2": "Two", "L3": "Three"},
        item_names={},
        customer_names={"c1": "Casey"},
    )


def _kpi(metrics, key):
    return next(metric.value for metric in metrics.kpis if metric.key == key)


def test_resolve_range_defaults_to_last_seven_days():
    date_range = resolve_range(None, today=TODAY)
    assert date_range.preset is RangePreset.LAST_7_DAYS
    assert (date_range.start, date_range.end, date_range.days) == (date(2024, 3, 4), TODAY, 7)


@pytest.mark.parametrize(
    "preset, days",
    [(RangePreset.TODAY, 1), (RangePreset.LAST_30_DAYS, 30), (RangePreset.LAST_90_DAYS, 90)],
)
def test_resolve_range_presets(preset, days):
    date_range = resolve_range(RangeQuery(preset=preset), today=TODAY)
    assert date_range.end == TODAY
    assert date_range.days == days


def test_explicit_dates_imply_custom():
    date_range = resolve_range(
        RangeQuery(preset=RangePreset.TODAY, start=date(2024, 1, 1), end=date(2024, 3, 30)),
        today=TODAY,
    )
    assert date_range.preset is RangePreset.CUSTOM
    assert date_range.days == 90


@pytest.mark.parametrize(
    "query",
    [
        RangeQuery(start=date(2024, 3, 5), end=date(2024, 3, 4)),
        RangeQuery(start=date(2024, 1, 1), end=date(2024, 3, 31)),
        RangeQuery(start=date(2024, 1, 1)),
        RangeQuery(preset=RangePreset.CUSTOM),
    ],
)
def test_invalid_ranges_are_rejected(query):
    with pytest.raises(InvalidInput):
        resolve_range(query, today=TODAY)


def test_trend_is_dense_and_ascending():
    facts = [
        _fact(1, "L1", "10.00", day=date(2024, 3, 5)),
        _fact(2, "L1", "5.00", day=date(2024, 3, 8)),
        _fact(3, "L1", "7.00", day=date(2024, 3, 8)),
        _fact(4, "L1", "99.00", day=date(2024, 3, 8), status="CANCELLED"),
    ]

    trend = _summarize(facts).trend

    assert [point.date for point in trend] == [date(2024, 3, 4) + timedelta(days=n) for n in range(7)]
    assert [point.orders for point in trend] == [0, 1, 0, 0, 2, 0, 0]
    assert [point.revenue for point in trend] == [
        Decimal("0.00"),
        Decimal("10.00"),
        Decimal("0.00"),
        Decimal("0.00"),
        Decimal("12.00"),
        Decimal("0.00"),
        Decimal("0.00"),
    ]


def test_empty_working_set_has_zero_kpis():
    metrics = _summarize([])

    assert _kpi(metrics, "totalRevenue") == Decimal("0.00")
    assert _kpi(metrics, "totalOrders") == 0
    assert _kpi(metrics, "averageOrderValue") == Decimal("0.00")
    assert _kpi(metrics, "locationCount") == 0
    assert len(metrics.trend) == 7
    assert metrics.top_n == []
    assert metrics.recent_transactions == []


def test_kpis_count_completed_revenue_only():
    facts = [
        _fact(1, "L1", "30.00"),
        _fact(2, "L1", "10.00"),
        _fact(3, "L2", "50.00", status="PENDING"),
        _fact(4, "L3", "70.00", status="CANCELLED"),
    ]

    metrics = _summarize(facts)

    assert _kpi(metrics, "totalRevenue") == Decimal("40.00")
    assert _kpi(metrics, "totalOrders") == 2
    assert _kpi(metrics, "averageOrderValue") == Decimal("20.00")
    assert _kpi(metrics, "locationCount") == 3
    assert _kpi(metrics, "pendingOrders") == 1
    assert next(metric.unit for metric in metrics.kpis if metric.key == "totalRevenue") == "USD"


def test_top_n_breaks_revenue_ties_by_order_count():
    facts = []
    for _ in range(3):
        facts.append(_fact(len(facts), "L1", "33.33"))
    facts[-1] = _fact(len(facts) - 1, "L1", "33.34")
    for _ in range(5):
        facts.append(_fact(len(facts), "L2", "20.00"))
    for _ in range(10):
        facts.append(_fact(len(facts), "L3", "5.00"))

    top = _summarize(facts).top_n

    assert [entry.entity_id for entry in top] == ["L2", "L1", "L3"]
    assert [entry.revenue for entry in top] == [Decimal("100.00"), Decimal("100.00"), Decimal("50.00")]
    assert [entry.orders for entry in top] == [5, 3, 10]
    assert top[0].name == "Two"
    assert top[0].average_order_value == Decimal("20.00")


def test_full_ties_keep_first_seen_order():
    facts = [_fact(1, "L3", "10.00"), _fact(2, "L1", "10.00")]
    assert [entry.entity_id for entry in _summarize(facts).top_n] == ["L3", "L1"]


def test_single_location_scope_ranks_items():
    facts = [
        _fact(1, "L1", "14.00", lines=[("i1", 2, Decimal("8.00")), ("i2", 1, Decimal("6.00"))]),
        _fact(2, "L1", "6.00", lines=[("i2", 1, Decimal("6.00"))]),
    ]

    metrics = _summarize(facts, scope=ScopeFilter.for_location("L1"))

    assert [entry.entity_id for entry in metrics.top_n] == ["i2", "i1"]
    assert metrics.top_n == metrics.top_items
    assert metrics.top_n[0].orders == 2


def test_recent_transactions_are_latest_completed_first():
    facts = [_fact(index, "L1", "1.00") for index in range(7)]
    facts.append(_fact(99, "L1", "1.00", status="PENDING"))

    recent = _summarize(facts).recent_transactions

    assert [entry.id for entry in recent] == ["t6", "t5", "t4", "t3", "t2"]
    assert recent[0].customer_name == "Casey"


def test_dashboard_is_scoped_and_cached(db_session):
    tenancy = Tenancy(db_session)
    item_a1 = create_catalog_item(db_session, tenancy.location_a1, price="12.00")
    item_b1 = create_catalog_item(db_session, tenancy.location_b1, price="40.00")
    at = datetime.combine(TODAY, datetime.min.time()) + timedelta(hours=12)
    create_transaction(db_session, tenancy.location_a1, tenancy.member_a1, created_at=at, lines=[(item_a1, 2)])
    create_transaction(db_session, tenancy.location_b1, tenancy.member_b1, created_at=at, lines=[(item_b1, 1)])

    backend = MemoryCacheBackend()
    gate = AuthorizationGate(db_session, cache=CacheLayer(backend))
    manager = principal_from_user(tenancy.manager_a1)
    admin = principal_from_user(tenancy.admin)

    scoped = compute_dashboard(gate, manager, today=TODAY)
    overall = compute_dashboard(gate, admin, today=TODAY)
    again = compute_dashboard(gate, manager, today=TODAY)

    assert Decimal(scoped["kpis"][0]["value"]) == Decimal("24.00")
    assert Decimal(overall["kpis"][0]["value"]) == Decimal("64.00")
    assert [entry["entity_id"] for entry in scoped["top_n"]] == [str(item_a1.id)]
    assert [entry["entity_id"] for entry in overall["top_n"]] == [str(tenancy.location_b1.id), str(tenancy.location_a1.id)]
    assert again == scoped
    assert len([key for key in backend.keys() if key.startswith("dashboards:")]) == 2


def test_dashboard_endpoint_reflects_completed_orders(client, db_session):
    tenancy = Tenancy(db_session)
    item = create_catalog_item(db_session, tenancy.location_a1, price="7.50")
    manager = auth_headers(tenancy.manager_a1)

    empty = client.get("/outpost/dashboard", headers=manager)
    assert empty.status_code == 200
    assert empty.json()["range"]["preset"] == "LAST_7_DAYS"
    assert len(empty.json()["trend"]) == 7

    order = client.post("/outpost/transactions", json={}, headers=auth_headers(tenancy.member_a1)).json()
    order_id = order["transaction"]["id"]
    client.post(
        f"/outpost/transactions/{order_id}/items",
        json={"catalog_item_id": str(item.id), "quantity": 2},
        headers=auth_headers(tenancy.member_a1),
    )
    client.post(f"/outpost/transactions/{order_id}/actions", json={"action": "place"}, headers=manager)
    client.post(f"/outpost/transactions/{order_id}/actions", json={"action": "complete"}, headers=manager)

    payload = client.get("/outpost/dashboard", headers=manager).json()
    kpis = {metric["key"]: Decimal(metric["value"]) for metric in payload["kpis"]}
    assert kpis["totalRevenue"] == Decimal("15.00")
    assert kpis["totalOrders"] == 1
    assert payload["recent_transactions"][0]["id"] == order_id


def test_dashboard_rejects_oversized_custom_range(client, db_session):
    tenancy = Tenancy(db_session)
    response = client.get(
        "/outpost/dashboard",
        params={"start": "2024-01-01", "end": "2024-06-30"},
        headers=auth_headers(tenancy.admin),
    )
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_INPUT"


def test_renamed_items_show_up_in_cached_rankings(client, db_session):
    tenancy = Tenancy(db_session)
    item = create_catalog_item(db_session, tenancy.location_a1, name="Soup", price="6.00")
    create_transaction(db_session, tenancy.location_a1, tenancy.member_a1, lines=[(item, 1)])
    manager = auth_headers(tenancy.manager_a1)

    before = client.get("/outpost/dashboard", headers=manager).json()
    assert [entry["name"] for entry in before["top_n"]] == ["Soup"]

    client.patch(f"/outpost/catalog-items/{item.id}", json={"name": "Broth"}, headers=manager)

    after = client.get("/outpost/dashboard", headers=manager).json()
    assert [entry["name"] for entry in after["top_n"]] == ["Broth"]
    assert [entry["name"] for entry in after["top_items"]] == ["Broth"]
