import json
import logging
from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.outpost.core.request_stats import RequestStats
from app.outpost.middleware.observability import build_request_log_payload
from tests.outpost_helpers import Tenancy, auth_headers, create_catalog_item


def _request_log(caplog, trace_id):
    entries = [json.loads(record.getMessage()) for record in caplog.records if record.name == "outpost.request"]
    return next(entry for entry in entries if entry["trace_id"] == trace_id)


def test_build_request_log_payload():
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/outpost/catalog-items/42",
        "headers": [],
        "route": SimpleNamespace(path="/outpost/catalog-items/{item_id}"),
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.principal_id = "user-1"
    request.state.role = "MANAGER"

    payload = build_request_log_payload(
        request=request,
        response=Response(status_code=200),
        latency_ms=12.3456,
        stats=RequestStats(repository_ms=4.5678, repository_statements=3, cache_hits=1),
    )

    assert payload["trace_id"] == "trace-1"
    assert payload["principal_id"] == "user-1"
    assert payload["role"] == "MANAGER"
    assert payload["route"] == "/outpost/catalog-items/{item_id}"
    assert payload["status_code"] == 200
    assert payload["latency_ms"] == 12.35
    assert payload["repository_ms"] == 4.57
    assert payload["repository_statements"] == 3
    assert payload["cache_hits"] == 1
    assert payload["cache_misses"] == 0
    assert payload["error_code"] is None


def test_payload_without_response_reports_server_error():
    request = Request({"type": "http", "method": "POST", "path": "/outpost/transactions", "headers": []})

    payload = build_request_log_payload(request=request, response=None, latency_ms=1.0)

    assert payload["status_code"] == 500
    assert payload["route"] == "/outpost/transactions"
    assert payload["repository_statements"] == 0


def test_denied_request_is_logged_with_error_code(client, db_session, caplog):
    tenancy = Tenancy(db_session)

    with caplog.at_level(logging.INFO, logger="outpost.request"):
        client.get(
            "/outpost/accounts",
            headers={**auth_headers(tenancy.member_a1), "X-Trace-ID": "trace-log-1"},
        )

    entry = _request_log(caplog, "trace-log-1")
    assert entry["route"] == "/outpost/accounts"
    assert entry["status_code"] == 403
    assert entry["error_code"] == "DENIED"
    assert entry["principal_id"] == str(tenancy.member_a1.id)
    assert entry["role"] == "MEMBER"
    assert entry["repository_statements"] >= 1


def test_cache_outcome_is_logged_per_request(client, db_session, caplog):
    tenancy = Tenancy(db_session)
    item = create_catalog_item(db_session, tenancy.location_a1)
    headers = auth_headers(tenancy.manager_a1)

    with caplog.at_level(logging.INFO, logger="outpost.request"):
        client.get(f"/outpost/catalog-items/{item.id}", headers={**headers, "X-Trace-ID": "trace-miss"})
        client.get(f"/outpost/catalog-items/{item.id}", headers={**headers, "X-Trace-ID": "trace-hit"})

    miss = _request_log(caplog, "trace-miss")
    hit = _request_log(caplog, "trace-hit")
    assert (miss["cache_hits"], miss["cache_misses"]) == (0, 1)
    assert (hit["cache_hits"], hit["cache_misses"]) == (1, 0)
    assert hit["route"] == "/outpost/catalog-items/{item_id}"
