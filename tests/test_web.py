"""Tests for the FastAPI routes over a temporary SQLite database."""

import pytest
from fastapi.testclient import TestClient

from hotel_ops.services import LedgerOptions
from hotel_ops.web import create_app


@pytest.fixture
def database_path(tmp_path):
    return str(tmp_path / "hotel_ops.sqlite3")


@pytest.fixture
def client(database_path):
    app = create_app(database_path, options=LedgerOptions(receive_delay_seconds=0))
    with TestClient(app) as test_client:
        yield test_client


class TestState:
    def test_first_start_serves_demo_data(self, client):
        response = client.get("/state")
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "Management"
        assert body["permissions"]["can_adjust_stock"] is True
        assert len(body["tickets"]) == 18
        assert [order["id"] for order in body["pos"]] == ["OC-9001"]

    def test_tickets_carry_flame_flag(self, client):
        tickets = {ticket["id"]: ticket for ticket in client.get("/state").json()["tickets"]}
        assert tickets["T-8001"]["flame"] is True
        assert tickets["T-8003"]["flame"] is False

    def test_parts_carry_stock_badge(self, client):
        parts = {part["id"]: part for part in client.get("/state").json()["parts"]}
        assert parts["P-009"]["badge"] == "OUT"
        assert parts["P-001"]["badge"] == "LOW"
        assert parts["P-099"]["badge"] == "OK"

    def test_catalog(self, client):
        body = client.get("/catalog").json()
        assert len(body["rooms"]) == 50
        assert body["rooms"][0] == {"number": "101", "floor": 1, "type": "Suite"}
        assert "Plumbing" in body["assets"]
        assert [field["key"] for field in body["logbook_fields"]["POOL"]] == [
            "chlorine",
            "ph",
            "temp",
        ]


class TestTicketRoutes:
    def test_create_and_update_ticket(self, client):
        created = client.post(
            "/tickets",
            json={
                "room_number": "204",
                "is_occupied": True,
                "asset": "Plumbing",
                "issue_type": "Clogged / Blocked",
                "description": "Sink drains slowly",
                "urgency": "High",
                "impact": "Blocking",
            },
        )
        assert created.status_code == 201
        ticket = created.json()
        assert ticket["id"] == "T-8004"
        assert ticket["maintenance_type"] == "Plumber"

        updated = client.patch(
            f"/tickets/{ticket['id']}",
            json={"updates": {"urgency": "Low"}, "action": "Downgraded"},
        )
        assert updated.status_code == 200
        assert updated.json()["priority_score"] < ticket["priority_score"]

    def test_update_rejects_derived_fields(self, client):
        response = client.patch(
            "/tickets/T-8003", json={"updates": {"priority_score": 99}, "action": "Tamper"}
        )
        assert response.status_code == 422

    def test_update_cannot_reopen_verified_ticket(self, client):
        client.post("/tickets/T-8003/resolve", json={})
        client.post("/tickets/T-8003/verify", json={"verified_by": "Night manager"})
        response = client.patch(
            "/tickets/T-8003", json={"updates": {"status": "Reported"}, "action": "Reopen"}
        )
        assert response.status_code == 422
        tickets = {ticket["id"]: ticket for ticket in client.get("/state").json()["tickets"]}
        assert tickets["T-8003"]["status"] == "Verified"

    def test_update_unknown_ticket(self, client):
        response = client.patch("/tickets/T-1", json={"updates": {}, "action": "Noop"})
        assert response.status_code == 404

    def test_assign_resolve_verify(self, client):
        assert client.post("/tickets/T-8003/assign", json={"technician": "Ana"}).status_code == 200
        assert client.post("/tickets/T-8003/resolve", json={"time_spent_minutes": 20}).json()["ok"]
        verified = client.post("/tickets/T-8003/verify", json={"verified_by": "Night manager"})
        assert verified.status_code == 200
        again = client.post("/tickets/T-8003/escalate", json={"vendor_type": "Plumber"})
        assert again.status_code == 409
        assert again.json()["detail"]["kind"] == "AlreadyFinalized"

    def test_cannibalize_returns_donor_ticket(self, client):
        response = client.post(
            "/tickets/T-8003/cannibalize",
            json={"donor_room": "118", "part_name": "Universal Sink Gasket Kit"},
        )
        assert response.status_code == 200
        donor_id = response.json()["ticket_id"]
        tickets = {ticket["id"]: ticket for ticket in client.get("/state").json()["tickets"]}
        assert tickets[donor_id]["part_id"] == "P-002"
        assert tickets[donor_id]["origin"] == "SYSTEM"


class TestInventoryRoutes:
    def test_reserve_out_of_stock_part_conflicts(self, client):
        response = client.post("/tickets/T-8003/reserve", json={"part_id": "P-009", "qty": 1})
        assert response.status_code == 409
        assert response.json()["detail"]["kind"] == "InsufficientStock"

    def test_reserve_then_issue(self, client):
        reserved = client.post("/tickets/T-8003/reserve", json={"part_id": "P-099", "qty": 2})
        assert reserved.status_code == 200
        issued = client.post("/tickets/T-8003/issue", json={"note": "Fixed"})
        assert issued.status_code == 200
        parts = {part["id"]: part for part in client.get("/state").json()["parts"]}
        assert (parts["P-099"]["stock_on_hand"], parts["P-099"]["stock_reserved"]) == (8, 0)

    def test_role_without_permission_is_forbidden(self, client):
        assert client.put("/role", json={"role": "Cleaning"}).json()["permissions"] == {
            "can_view_inventory": False,
            "can_reserve": False,
            "can_create_po": False,
            "can_adjust_stock": False,
        }
        response = client.post("/tickets/T-8003/reserve", json={"part_id": "P-099"})
        assert response.status_code == 403

    def test_zero_adjustment_is_unprocessable(self, client):
        response = client.post("/parts/P-099/adjust", json={"delta": 0})
        assert response.status_code == 422

    def test_reorder_suggestions(self, client):
        suggestions = {s["part"]["id"]: s for s in client.get("/reorder-suggestions").json()}
        assert "P-001" in suggestions
        assert "P-099" not in suggestions


class TestPurchaseOrderRoutes:
    def test_create_send_and_receive(self, client):
        created = client.post("/parts/P-001/purchase-orders", json={"qty": 10})
        assert created.status_code == 201
        po_id = created.json()["po_id"]
        assert client.post(f"/purchase-orders/{po_id}/send").status_code == 200
        assert client.post(f"/purchase-orders/{po_id}/receive").status_code == 200
        assert client.post(f"/purchase-orders/{po_id}/receive").status_code == 409
        parts = {part["id"]: part for part in client.get("/state").json()["parts"]}
        assert parts["P-001"]["stock_on_hand"] == 11

    def test_unknown_part(self, client):
        assert client.post("/parts/P-404/purchase-orders", json={}).status_code == 404

    def test_cancel(self, client):
        assert client.post("/purchase-orders/OC-9001/cancel").status_code == 200
        assert client.post("/purchase-orders/OC-9001/receive").status_code == 409


class TestOtherRoutes:
    def test_logbook_entry_is_evaluated(self, client):
        response = client.post(
            "/logbook",
            json={"type": "POOL", "readings": {"chlorine": 0.2, "ph": 7.4, "temp": 27}},
        )
        assert response.status_code == 201
        assert response.json()["status"] == "CRITICAL"

    def test_inspection_finding(self, client):
        assert client.post("/inspections/112").status_code == 200
        response = client.post(
            "/inspections/112/findings",
            json={"asset": "TV/WiFi", "issue_type": "No Signal / Unprogrammed"},
        )
        assert response.status_code == 201
        assert client.get("/state").json()["inspections"].keys() == {"112"}

    def test_export_csv(self, client):
        response = client.get("/export.csv")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.text.split("\n")[0] == "ID,Room,Status,Description"

    def test_reset_restores_demo_data(self, client):
        client.post("/parts/P-099/adjust", json={"delta": -4})
        client.put("/role", json={"role": "Cleaning"})
        assert client.post("/reset").status_code == 200
        state = client.get("/state").json()
        assert state["role"] == "Management"
        assert {part["id"]: part for part in state["parts"]}["P-099"]["stock_on_hand"] == 10


def test_state_survives_restart(database_path):
    options = LedgerOptions(receive_delay_seconds=0)
    with TestClient(create_app(database_path, options=options)) as first:
        assert first.post("/parts/P-099/adjust", json={"delta": -4}).status_code == 200
    with TestClient(create_app(database_path, options=options)) as second:
        parts = {part["id"]: part for part in second.get("/state").json()["parts"]}
        assert parts["P-099"]["stock_on_hand"] == 6
