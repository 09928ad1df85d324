from decimal import Decimal

from tests.outpost_helpers import Tenancy, auth_headers, create_catalog_item, create_transaction


def _open_order(client, user, **body):
    response = client.post("/outpost/transactions", json=body, headers=auth_headers(user))
    assert response.status_code == 201
    return response.json()["transaction"]


def _add_item(client, user, order_id, item, quantity=1):
    return client.post(
        f"/outpost/transactions/{order_id}/items",
        json={"catalog_item_id": str(item.id), "quantity": quantity},
        headers=auth_headers(user),
    )


def _act(client, user, order_id, action):
    return client.post(
        f"/outpost/transactions/{order_id}/actions",
        json={"action": action},
        headers=auth_headers(user),
    )


def test_order_lifecycle(client, db_session):
    tenancy = Tenancy(db_session)
    item = create_catalog_item(db_session, tenancy.location_a1, price="4.25")

    order = _open_order(client, tenancy.member_a1, notes="no onions")
    assert order["status"] == "PENDING"
    assert order["location_id"] == str(tenancy.location_a1.id)
    assert order["customer_id"] == str(tenancy.member_a1.id)
    assert Decimal(order["total_amount"]) == Decimal("0")

    added = _add_item(client, tenancy.member_a1, order["id"], item, quantity=3)
    assert added.status_code == 201
    line = added.json()["transaction"]["items"][0]
    assert Decimal(line["unit_price"]) == Decimal("4.25")
    assert Decimal(line["line_total"]) == Decimal("12.75")

    placed = _act(client, tenancy.manager_a1, order["id"], "place")
    assert placed.status_code == 200
    assert placed.json()["transaction"]["status"] == "PLACED"

    completed = _act(client, tenancy.manager_a1, order["id"], "complete")
    assert completed.json()["transaction"]["status"] == "COMPLETED"
    assert Decimal(completed.json()["transaction"]["total_amount"]) == Decimal("12.75")


def test_unit_price_is_snapshotted(client, db_session):
    tenancy = Tenancy(db_session)
    item = create_catalog_item(db_session, tenancy.location_a1, price="3.00")
    order = _open_order(client, tenancy.member_a1)
    _add_item(client, tenancy.member_a1, order["id"], item)

    response = client.patch(
        f"/outpost/catalog-items/{item.id}",
        json={"price": "9.00"},
        headers=auth_headers(tenancy.manager_a1),
    )
    assert response.status_code == 200

    current = client.get(f"/outpost/transactions/{order['id']}", headers=auth_headers(tenancy.member_a1))
    assert Decimal(current.json()["transaction"]["items"][0]["unit_price"]) == Decimal("3.00")


def test_invalid_transition_reports_allowed_moves(client, db_session):
    tenancy = Tenancy(db_session)
    item = create_catalog_item(db_session, tenancy.location_a1)
    order = _open_order(client, tenancy.member_a1)
    _add_item(client, tenancy.member_a1, order["id"], item)

    response = _act(client, tenancy.manager_a1, order["id"], "complete")

    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "CONFLICT"
    assert payload["details"]["current_status"] == "PENDING"
    assert payload["details"]["allowed_transitions"] == ["PLACED", "CANCELLED"]
    assert payload["trace_id"]


def test_terminal_transactions_cannot_change(client, db_session):
    tenancy = Tenancy(db_session)
    done = create_transaction(db_session, tenancy.location_a1, tenancy.member_a1, status="COMPLETED")

    response = _act(client, tenancy.manager_a1, str(done.id), "cancel")

    assert response.status_code == 409
    assert response.json()["details"]["allowed_transitions"] == []


def test_items_only_join_pending_orders(client, db_session):
    tenancy = Tenancy(db_session)
    item = create_catalog_item(db_session, tenancy.location_a1)
    placed = create_transaction(db_session, tenancy.location_a1, tenancy.member_a1, status="PLACED")

    response = _add_item(client, tenancy.member_a1, str(placed.id), item)

    assert response.status_code == 409
    assert response.json()["details"]["current_status"] == "PLACED"


def test_placing_an_empty_order_is_rejected(client, db_session):
    tenancy = Tenancy(db_session)
    order = _open_order(client, tenancy.member_a1)

    response = _act(client, tenancy.manager_a1, order["id"], "place")

    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_INPUT"


def test_members_cannot_change_status(client, db_session):
    tenancy = Tenancy(db_session)
    order = _open_order(client, tenancy.member_a1)

    response = _act(client, tenancy.member_a1, order["id"], "cancel")

    assert response.status_code == 403
    assert response.json()["code"] == "DENIED"


def test_members_only_touch_their_own_orders(client, db_session):
    tenancy = Tenancy(db_session)
    item = create_catalog_item(db_session, tenancy.location_a1)
    order = _open_order(client, tenancy.member_a1)

    foreign_add = _add_item(client, tenancy.member_a1_other, order["id"], item)
    assert foreign_add.status_code == 403

    on_behalf = client.post(
        "/outpost/transactions",
        json={"customer_id": str(tenancy.member_a1.id)},
        headers=auth_headers(tenancy.member_a1_other),
    )
    assert on_behalf.status_code == 403


def test_manager_can_open_order_for_customer(client, db_session):
    tenancy = Tenancy(db_session)

    order = _open_order(client, tenancy.manager_a1, customer_id=str(tenancy.member_a1.id))

    assert order["customer_id"] == str(tenancy.member_a1.id)
    assert order["location_id"] == str(tenancy.location_a1.id)


def test_items_from_other_locations_are_rejected(client, db_session):
    tenancy = Tenancy(db_session)
    sibling_item = create_catalog_item(db_session, tenancy.location_a2)
    order = create_transaction(db_session, tenancy.location_a1, tenancy.member_a1, status="PENDING")

    response = _add_item(client, tenancy.admin, str(order.id), sibling_item)

    assert response.status_code == 422
    assert response.json()["details"]["field"] == "catalog_item_id"


def test_unavailable_items_are_rejected(client, db_session):
    tenancy = Tenancy(db_session)
    item = create_catalog_item(db_session, tenancy.location_a1, is_available=False)
    order = _open_order(client, tenancy.member_a1)

    response = _add_item(client, tenancy.member_a1, order["id"], item)

    assert response.status_code == 422


def test_orders_at_inactive_locations_are_rejected(client, db_session):
    tenancy = Tenancy(db_session)
    tenancy.location_a2.is_active = False
    db_session.commit()

    response = client.post(
        "/outpost/transactions",
        json={"location_id": str(tenancy.location_a2.id)},
        headers=auth_headers(tenancy.admin),
    )

    assert response.status_code == 422


def test_transaction_listing_is_scoped(client, db_session):
    tenancy = Tenancy(db_session)
    own = create_transaction(db_session, tenancy.location_a1, tenancy.member_a1, status="PENDING")
    create_transaction(db_session, tenancy.location_a2, tenancy.admin, status="PENDING")
    foreign = create_transaction(db_session, tenancy.location_b1, tenancy.member_b1, status="COMPLETED")

    manager_view = client.get("/outpost/transactions", headers=auth_headers(tenancy.manager_a1)).json()
    admin_view = client.get(
        "/outpost/transactions",
        params={"status": "COMPLETED"},
        headers=auth_headers(tenancy.admin),
    ).json()

    assert [row["id"] for row in manager_view["transactions"]] == [str(own.id)]
    assert manager_view["pagination"]["total"] == 1
    assert [row["id"] for row in admin_view["transactions"]] == [str(foreign.id)]

    hidden = client.get(f"/outpost/transactions/{foreign.id}", headers=auth_headers(tenancy.manager_a1))
    assert hidden.status_code == 403


def test_members_only_see_their_own_orders(client, db_session):
    tenancy = Tenancy(db_session)
    own = create_transaction(db_session, tenancy.location_a1, tenancy.member_a1, status="PENDING")
    other = create_transaction(db_session, tenancy.location_a1, tenancy.member_a1_other, status="PENDING")
    member = auth_headers(tenancy.member_a1)

    listed = client.get("/outpost/transactions", headers=member).json()
    assert [row["id"] for row in listed["transactions"]] == [str(own.id)]
    assert listed["pagination"]["total"] == 1

    manager_view = client.get("/outpost/transactions", headers=auth_headers(tenancy.manager_a1)).json()
    assert manager_view["pagination"]["total"] == 2

    # cached by the manager's read; the member must still be refused
    assert client.get(f"/outpost/transactions/{other.id}", headers=auth_headers(tenancy.manager_a1)).status_code == 200
    hidden = client.get(f"/outpost/transactions/{other.id}", headers=member)
    assert hidden.status_code == 403
    assert hidden.json()["details"] is None
    assert client.get(f"/outpost/transactions/{own.id}", headers=member).status_code == 200
