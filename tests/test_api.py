"""
Tests for the HTTP surface: auth, error envelope and seating routes
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from seating.api.deps import get_session_factory
from seating.core.config import settings
from seating.core.db import Base, get_db
from seating.utils import security

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_api.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_TOKEN = "test-admin-token"
AUTH = {"Authorization": f"Bearer {ADMIN_TOKEN}"}

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", ADMIN_TOKEN)
    security.rate_limiter.clear()
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def event_id(client):
    response = client.post("/admin/events", headers=AUTH, json={
        "name": "Garden Wedding",
        "date": "2025-06-12T19:00:00",
        "organizer_email": "host@example.com",
    })
    assert response.status_code == 201
    return response.json()["data"]["id"]

def create_table(client, event_id, capacity, shape="regular-square"):
    response = client.post(f"/admin/events/{event_id}/tables", headers=AUTH, json={"capacity": capacity, "shape": shape})
    assert response.status_code == 201
    return response.json()["data"]["id"]

def create_guest(client, event_id, name, party_size, rsvp_status="coming"):
    response = client.post(f"/admin/events/{event_id}/guests", headers=AUTH, json={
        "name": name, "partySize": party_size, "rsvpStatus": rsvp_status,
    })
    assert response.status_code == 201
    return response.json()["data"]["id"]

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

def test_admin_routes_require_token(client, event_id):
    response = client.get(f"/admin/events/{event_id}/tables", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "unauthorized"

    response = client.get(f"/admin/events/{event_id}/tables")
    assert response.status_code in (401, 403)

def test_full_table_returns_conflict(client, event_id):
    table_id = create_table(client, event_id, 10)
    alice = create_guest(client, event_id, "Alice", 6)
    ben = create_guest(client, event_id, "Ben", 5)

    response = client.post(f"/admin/events/{event_id}/guests/{alice}/assign", headers=AUTH, json={"tableId": table_id})
    assert response.status_code == 200
    assert response.json()["data"]["tableId"] == table_id

    response = client.post(f"/admin/events/{event_id}/guests/{ben}/assign", headers=AUTH, json={"tableId": table_id})
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "capacity_exceeded"
    assert body["details"]["capacity"] == 10
    assert body["details"]["occupancy"] == 6
    assert body["details"]["party_size"] == 5

    # Deleting Alice frees the seats
    response = client.delete(f"/admin/events/{event_id}/guests/{alice}", headers=AUTH)
    assert response.status_code == 200
    response = client.post(f"/admin/events/{event_id}/guests/{ben}/assign", headers=AUTH, json={"tableId": table_id})
    assert response.status_code == 200

def test_unknown_ids_return_not_found(client, event_id):
    response = client.get("/admin/events/no-such-event/tables", headers=AUTH)
    assert response.status_code == 404
    assert response.json()["error_code"] == "not_found"

    guest_id = create_guest(client, event_id, "Carmel", 2)
    response = client.post(f"/admin/events/{event_id}/guests/{guest_id}/assign", headers=AUTH, json={"tableId": "T99"})
    assert response.status_code == 404

def test_invalid_body_uses_error_envelope(client, event_id):
    response = client.post(f"/admin/events/{event_id}/tables", headers=AUTH, json={"capacity": 0})
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "validation_error"

def test_move_many_reports_partial_result(client, event_id):
    table_id = create_table(client, event_id, 4, shape="regular-rectangle")
    carmel = create_guest(client, event_id, "Carmel", 2)
    alice = create_guest(client, event_id, "Alice", 6)
    dana = create_guest(client, event_id, "Dana", 1)

    response = client.post(
        f"/admin/events/{event_id}/tables/{table_id}/move",
        headers=AUTH,
        json={"guestIds": [carmel, alice, dana]},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["moved"] == [carmel, dana]
    assert [f["id"] for f in data["failed"]] == [alice]
    assert data["failed"][0]["reason"] == "capacity_exceeded"

def test_stats_and_check_in(client, event_id):
    table_id = create_table(client, event_id, 10)
    reserve_id = create_table(client, event_id, 8, shape="reserve")
    alice = create_guest(client, event_id, "Alice", 3)
    create_guest(client, event_id, "Ben", 1, rsvp_status="pending")
    client.post(f"/admin/events/{event_id}/guests/{alice}/assign", headers=AUTH, json={"tableId": table_id})

    response = client.post(f"/checkin/events/{event_id}/guests/{alice}", headers=AUTH, json={"checkedIn": True})
    assert response.status_code == 200
    result = response.json()["data"]
    assert result["guest"]["checkedIn"] is True
    assert result["was_already_checked_in"] is False
    assert result["stats"]["checkedInCount"] == 1

    response = client.get(f"/admin/events/{event_id}/stats", headers=AUTH)
    stats = response.json()["data"]
    assert stats["counts"]["total"] == 2
    assert stats["invitedPeople"] == 4
    assert stats["seatedArrivedPeople"] == 3
    assert stats["totalCapacity"] == 10
    assert stats["freeSeats"] == 7
    assert stats["seatedPercent"] == 50
    assert {row["tableId"] for row in stats["tables"]} == {table_id, reserve_id}

    # Lobby screens get the headline figures only
    response = client.get(f"/events/{event_id}/stats")
    assert response.status_code == 200
    assert response.json()["data"]["tables"] == []
    assert response.json()["data"]["checkedInPercent"] == 50

def test_checkin_sections(client, event_id):
    response = client.post(f"/admin/events/{event_id}/categories", headers=AUTH, json={"name": "Family", "side": "bride"})
    category_id = response.json()["data"]["id"]
    client.post(f"/admin/events/{event_id}/guests", headers=AUTH, json={"name": "Noa", "categoryId": category_id})
    guest_id = create_guest(client, event_id, "Omer", 1)
    client.post(f"/checkin/events/{event_id}/guests/{guest_id}", headers=AUTH, json={"checkedIn": True})

    response = client.get(f"/checkin/events/{event_id}/sections", headers=AUTH)
    data = response.json()["data"]
    assert [s["name"] for s in data["sections"]] == ["Family", "Uncategorized"]
    assert data["counts"] == {"total": 2, "checked_in": 1}

    response = client.get(f"/checkin/events/{event_id}/sections?filter=not_checked_in", headers=AUTH)
    assert [s["name"] for s in response.json()["data"]["sections"]] == ["Family"]

def test_table_edit_and_delete(client, event_id):
    table_id = create_table(client, event_id, 10)
    alice = create_guest(client, event_id, "Alice", 6)
    client.post(f"/admin/events/{event_id}/guests/{alice}/assign", headers=AUTH, json={"tableId": table_id})

    response = client.put(f"/admin/events/{event_id}/tables/{table_id}", headers=AUTH, json={"capacity": 3})
    assert response.status_code == 200
    assert response.json()["data"]["capacity"] == 3

    response = client.get(f"/admin/events/{event_id}/guests?table_id={table_id}", headers=AUTH)
    assert [g["id"] for g in response.json()["data"]["guests"]] == [alice]

    response = client.delete(f"/admin/events/{event_id}/tables/{table_id}", headers=AUTH)
    assert response.status_code == 200
    response = client.get(f"/admin/events/{event_id}/guests?table_id={table_id}", headers=AUTH)
    assert response.json()["data"]["guests"] == []

def test_rsvp_and_annotations(client, event_id):
    guest_id = create_guest(client, event_id, "Ben", 1, rsvp_status="pending")

    response = client.patch(f"/admin/events/{event_id}/guests/{guest_id}/rsvp", headers=AUTH, json={"rsvpStatus": "coming"})
    assert response.json()["data"]["rsvpStatus"] == "coming"

    response = client.put(f"/admin/events/{event_id}/annotations", headers=AUTH, json={
        "annotations": [{"x": 12, "y": 40, "text": "Stage"}],
    })
    assert response.status_code == 200
    response = client.get(f"/admin/events/{event_id}/annotations", headers=AUTH)
    notes = response.json()["data"]
    assert [n["text"] for n in notes] == ["Stage"]
    assert notes[0]["id"]

def test_public_stats_throttled_before_loading_event(client, event_id, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_PER_MINUTE", 1)

    response = client.get(f"/events/{event_id}/stats")
    assert response.status_code == 200

    # Throttled before the event is looked up, so an unknown id still gets 429
    response = client.get("/events/no-such-event/stats")
    assert response.status_code == 429
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "rate_limited"

def test_websocket_screen_holds_no_connection(client, event_id):
    with client.websocket_connect(f"/ws/events/{event_id}") as websocket:
        message = websocket.receive_json()
        assert message["type"] == "connection"
        assert message["stats"]["counts"]["total"] == 0

        assert engine.pool.checkedout() == 0

        websocket.send_json({"type": "ping", "timestamp": 1})
        assert websocket.receive_json() == {"type": "pong", "timestamp": 1}
