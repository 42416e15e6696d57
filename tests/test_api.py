import pytest
from fastapi.testclient import TestClient

from conftest import ORG, RecordingNotifier
from transport_backend.api.main import create_app
from transport_backend.application.checklist import DEFAULT_CHECKLIST

HEADERS = {"X-Organization-Id": ORG, "X-User-Id": "USR-1"}


@pytest.fixture
def client(store, whatsapp):
    return TestClient(create_app(store=store, notifier=RecordingNotifier(), whatsapp=whatsapp))


def all_good():
    return {"responses": {item.item_id: {"status": "good"} for item in DEFAULT_CHECKLIST}, "time_to_complete": 90}


def test_root(client):
    assert client.get("/").json()["status"] == "ok"


def test_organization_header_required(client):
    assert client.get("/routes").status_code == 422


def test_full_route_lifecycle(client):
    r = client.post(
        "/routes",
        json={"origin": "Lagos", "destination": "Ibadan", "rate": 120000, "stops": [{"address": "Ring Road"}]},
        headers=HEADERS,
    )
    assert r.status_code == 201
    route_id = r.json()["route"]["route_id"]
    stop_id = r.json()["route"]["stops"][0]["stop_id"]

    r = client.post(f"/routes/{route_id}/assign", json={"driver_id": "D1", "vehicle_id": "V1"}, headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["route"]["progress"] == 5

    r = client.post(f"/routes/{route_id}/start", json=all_good(), headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["warnings"] == []

    r = client.post(f"/routes/{route_id}/stops/{stop_id}/status", json={"status": "arrived"}, headers=HEADERS)
    assert r.json()["route"]["stops"][0]["actual_arrival"].endswith("+00:00")

    r = client.post(
        f"/routes/{route_id}/stops/{stop_id}/pod",
        json={"recipient_name": "Kemi Ade", "delivery_notes": "Signed"},
        headers=HEADERS,
    )
    body = r.json()["route"]
    assert body["status"] == "Completed"
    assert body["progress"] == 100
    assert body["pods_collected"] == 1
    assert isinstance(body["completion_date"], str)

    r = client.post(f"/routes/{route_id}/expenses", json={"expense_type": "Tolls", "amount": 2000}, headers=HEADERS)
    assert r.json()["route"]["balance"] == 118000

    inspection = client.get(f"/routes/{route_id}/inspection", headers=HEADERS).json()
    assert inspection["is_perfect"] is True
    assert inspection["overall_score"] == 100


def test_error_codes_map_to_http_status(client):
    assert client.get("/routes/NOPE", headers=HEADERS).status_code == 404

    r = client.post("/routes/R1/assign", json={"driver_id": "D3", "vehicle_id": "V1"}, headers=HEADERS)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "precondition_failed"

    client.post("/routes/R1/assign", json={"driver_id": "D1", "vehicle_id": "V1"}, headers=HEADERS)
    r = client.patch("/routes/R1", json={"destination": "Oyo"}, headers=HEADERS)
    assert r.status_code == 403
    assert client.delete("/routes/R1", headers=HEADERS).status_code == 403


def test_non_finite_expense_is_rejected(client):
    r = client.post(
        "/routes/R1/expenses",
        content='{"expense_type": "Fuel", "amount": NaN}',
        headers={**HEADERS, "Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "precondition_failed"
    assert client.get("/routes/R1", headers=HEADERS).json()["expenses"] == []


def test_start_with_unanswered_items_is_rejected(client):
    client.post("/routes/R1/assign", json={"driver_id": "D1", "vehicle_id": "V1"}, headers=HEADERS)
    r = client.post("/routes/R1/start", json={"responses": {"engine_oil": {"status": "good"}}}, headers=HEADERS)
    assert r.status_code == 400


def test_manual_completion_without_body(client):
    client.post("/routes/R2/assign", json={"driver_id": "D1", "vehicle_id": "V1"}, headers=HEADERS)
    r = client.post("/routes/R2/complete", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["route"]["status"] == "Completed"


def test_list_routes(client):
    client.post("/routes/R1/assign", json={"driver_id": "D1", "vehicle_id": "V1"}, headers=HEADERS)
    routes = client.get("/routes", params={"status": "Pending"}, headers=HEADERS).json()["routes"]
    assert [r["route_id"] for r in routes] == ["R2"]
    assert client.get("/routes", headers={"X-Organization-Id": "ORG-9"}).json()["routes"] == []


def test_checklist(client):
    categories = client.get("/checklist").json()["categories"]
    assert len(categories) == 7
    assert sum(len(c["items"]) for c in categories) == len(DEFAULT_CHECKLIST)


def test_drivers_and_vehicles(client):
    r = client.post("/drivers", json={"name": "Emeka Nwosu", "phone": "08099998888"}, headers=HEADERS)
    assert r.status_code == 201
    driver_id = r.json()["driver"]["driver_id"]

    r = client.post("/vehicles", json={"plate_number": "ENU-101-AB"}, headers=HEADERS)
    assert r.status_code == 201
    vehicle_id = r.json()["vehicle"]["vehicle_id"]

    r = client.post(f"/drivers/{driver_id}/status", json={"status": "Offline"}, headers=HEADERS)
    assert r.json()["driver"]["status"] == "Offline"
    r = client.post(f"/vehicles/{vehicle_id}/status", json={"status": "On the Move"}, headers=HEADERS)
    assert r.status_code == 400
