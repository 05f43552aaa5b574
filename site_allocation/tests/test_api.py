"""
Integration tests for the allocation API.

Requests go through httpx.AsyncClient with an ASGI transport so the app,
the seeded in-memory store and the test share one event loop.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from site_allocation.main import create_app
from site_allocation.services.exceptions import StoreUnavailable

OPERATOR = {"X-Operator-Id": "operator-1"}
OTHER_OPERATOR = {"X-Operator-Id": "operator-2"}


@pytest_asyncio.fixture
async def app(seeded_store):
    return create_app(store=seeded_store)


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def loaded_client(client):
    response = await client.post("/allocation/snapshot/load", headers=OPERATOR)
    assert response.status_code == 200
    return client


async def test_load_snapshot(client):
    response = await client.post("/allocation/snapshot/load", headers=OPERATOR)

    assert response.status_code == 200
    body = response.json()
    assert len(body["sites"]) == 10
    assert len(body["engineers"]) == 3
    assert body["stats"] == {"available_sites": 10, "available_engineers": 2, "pending_allocations": 10}
    assert body["filters"] == {"search_text": "", "region": "all-regions"}


async def test_operator_header_is_required(client):
    response = await client.post("/allocation/snapshot/load")

    assert response.status_code == 422


async def test_commands_before_load_conflict(client):
    response = await client.post(
        "/allocation/allocate", json={"engineer_id": "E1", "site_id": "S1"}, headers=OPERATOR
    )

    assert response.status_code == 409
    assert response.json()["error_type"] == "SnapshotNotLoaded"


async def test_allocate_and_reject_second_engineer(loaded_client):
    response = await loaded_client.post(
        "/allocation/allocate",
        json={"engineer_id": "E1", "site_id": "S1", "scheduled_date": "2026-11-03"},
        headers=OPERATOR,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["allocation"]["status"] == "allocated"
    assert body["allocation"]["engineer_id"] == "E1"
    assert body["allocation"]["scheduled_date"] == "2026-11-03"
    assert body["stats"]["available_engineers"] == 1

    response = await loaded_client.post(
        "/allocation/allocate", json={"engineer_id": "E2", "site_id": "S1"}, headers=OPERATOR
    )

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error_type"] == "EligibilityRejected"
    assert body["retryable"] is False


async def test_unknown_engineer_is_not_found(loaded_client):
    response = await loaded_client.post(
        "/allocation/allocate", json={"engineer_id": "E404", "site_id": "S1"}, headers=OPERATOR
    )

    assert response.status_code == 404
    assert response.json()["error_type"] == "RecordNotFound"


async def test_lifecycle_over_http(loaded_client):
    await loaded_client.post(
        "/allocation/allocate", json={"engineer_id": "E1", "site_id": "S1"}, headers=OPERATOR
    )

    response = await loaded_client.post("/allocation/A-S1/reassign", json={"engineer_id": "E2"}, headers=OPERATOR)
    assert response.status_code == 200
    assert response.json()["allocation"]["engineer_id"] == "E2"

    response = await loaded_client.post("/allocation/A-S1/start", headers=OPERATOR)
    assert response.json()["allocation"]["status"] == "in-progress"

    response = await loaded_client.post("/allocation/A-S1/complete", headers=OPERATOR)
    assert response.json()["allocation"]["status"] == "completed"

    response = await loaded_client.post("/allocation/A-S1/cancel", headers=OPERATOR)
    assert response.status_code == 409
    assert response.json()["error_type"] == "InvalidTransition"


async def test_cancel_returns_site_to_pool(loaded_client):
    await loaded_client.post(
        "/allocation/allocate", json={"engineer_id": "E1", "site_id": "S1"}, headers=OPERATOR
    )

    response = await loaded_client.post("/allocation/A-S1/cancel", headers=OPERATOR)

    assert response.status_code == 200
    body = response.json()
    assert body["allocation"]["status"] == "unallocated"
    assert body["allocation"]["engineer_id"] is None
    assert body["stats"]["pending_allocations"] == 10


async def test_sessions_are_kept_per_operator(loaded_client):
    await loaded_client.post("/allocation/snapshot/load", headers=OTHER_OPERATOR)
    await loaded_client.post(
        "/allocation/allocate", json={"engineer_id": "E1", "site_id": "S1"}, headers=OPERATOR
    )

    # operator-2 still holds the snapshot it loaded, but the store refuses the stale claim
    response = await loaded_client.post(
        "/allocation/allocate", json={"engineer_id": "E1", "site_id": "S2"}, headers=OTHER_OPERATOR
    )

    assert response.status_code == 409
    assert "no longer available" in response.json()["message"]


async def test_filters(loaded_client):
    response = await loaded_client.put(
        "/allocation/filters", json={"region": "Western Cape"}, headers=OPERATOR
    )

    assert response.status_code == 200
    body = response.json()
    assert [s["id"] for s in body["filtered"]] == ["S8"]
    assert [a["id"] for a in body["filtered_allocations"]] == ["A-S8"]
    assert len(body["sites"]) == 10

    response = await loaded_client.delete("/allocation/filters", headers=OPERATOR)

    assert len(response.json()["filtered"]) == 10
    assert response.json()["filters"]["region"] == "all-regions"


async def test_register_site(loaded_client):
    response = await loaded_client.post(
        "/allocation/sites",
        json={"name": "Kimberley Yard", "region": "Northern Cape", "priority": "high"},
        headers=OPERATOR,
    )

    assert response.status_code == 200
    allocation = response.json()["allocation"]
    assert allocation["status"] == "unallocated"
    assert allocation["site_name"] == "Kimberley Yard"
    assert allocation["site_id"]

    response = await loaded_client.get("/allocation/regions", headers=OPERATOR)
    assert "Northern Cape" in response.json()


async def test_register_site_rejects_blank_name(loaded_client):
    response = await loaded_client.post("/allocation/sites", json={"name": "  "}, headers=OPERATOR)

    assert response.status_code == 422
    assert response.json()["error_type"] == "ValidationError"


async def test_engineer_read_models(loaded_client):
    await loaded_client.post(
        "/allocation/allocate", json={"engineer_id": "E2", "site_id": "S4"}, headers=OPERATOR
    )

    response = await loaded_client.get("/allocation/engineers/workload", headers=OPERATOR)
    workload = {w["engineer_id"]: w for w in response.json()}
    assert workload["E2"]["allocated_sites"] == 1
    assert workload["E2"]["available"] is False

    response = await loaded_client.get("/allocation/engineers/E2/allocations", headers=OPERATOR)
    assert [a["site_id"] for a in response.json()["active"]] == ["S4"]

    response = await loaded_client.get("/allocation/engineers/E404/allocations", headers=OPERATOR)
    assert response.status_code == 404


async def test_store_outage_is_retryable(app, client, monkeypatch):
    async def broken():
        raise StoreUnavailable("database is locked")

    monkeypatch.setattr(app.state.store, "list_engineers", broken)

    response = await client.post("/allocation/snapshot/load", headers=OPERATOR)

    assert response.status_code == 503
    assert response.json()["retryable"] is True


@pytest.mark.parametrize("path", ["/health", "/metrics/prometheus"])
async def test_health_endpoints(client, path):
    response = await client.get(path)

    assert response.status_code == 200


async def test_prometheus_scrape_includes_command_counter(loaded_client):
    response = await loaded_client.get("/metrics/prometheus")

    assert response.status_code == 200
    assert "site_allocation_commands_total" in response.text
