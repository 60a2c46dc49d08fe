"""Tests for the HTTP API."""

import base64
import io
import json

import openpyxl
import pytest
from fastapi.testclient import TestClient

from api.main import app
from api.routes import get_service
from milk_ledger.service import LedgerService
from milk_ledger.settings import SettingsStore
from milk_ledger.store import InMemoryEntryStore, MachineRegistry


def _make_service() -> LedgerService:
    machines = MachineRegistry()
    machines.add("Sector 7", "Main road", machine_id="A")
    machines.add("Market", machine_id="B")
    return LedgerService(InMemoryEntryStore(machines=machines), machines, SettingsStore())


def _entry_body(**kwargs) -> dict:
    body = {
        "date": "2025-01-10",
        "machine_id": "A",
        "shift": "morning",
        "total_milk_loaded": "500",
        "liters": {"cash": "200", "upi": "150"},
        "amounts": {"cash": "12000", "upi": "9000"},
    }
    body.update(kwargs)
    return body


@pytest.fixture
def client():
    service = _make_service()
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestMeta:
    def test_root(self, client):
        assert client.get("/").json()["health"] == "/api/v1/health"

    def test_health(self, client):
        assert client.get("/api/v1/health").json() == {"status": "ok"}


class TestMachines:
    def test_list(self, client):
        names = [m["name"] for m in client.get("/api/v1/machines").json()]
        assert names == ["Market", "Sector 7"]

    def test_add(self, client):
        resp = client.post("/api/v1/machines", json={"name": "Station", "location": "Platform 1"})
        assert resp.status_code == 200
        assert resp.json()["name"] == "Station"

    def test_add_blank_name(self, client):
        assert client.post("/api/v1/machines", json={"name": " "}).status_code == 400

    def test_deactivate(self, client):
        assert client.post("/api/v1/machines/B/deactivate").json()["is_active"] is False
        assert client.post("/api/v1/machines/Z/deactivate").status_code == 404


class TestEntries:
    def test_create_then_update(self, client):
        created = client.post("/api/v1/entries", json=_entry_body()).json()
        assert created["success"] is True
        assert created["status"] == "created"
        assert created["entry"]["distributed_milk"] == 350
        assert created["entry"]["leftover_milk"] == 150
        assert created["entry"]["payments"]["cash"] == {"liters": 200, "amount": 12000}

        updated = client.post("/api/v1/entries", json=_entry_body(total_milk_loaded="400")).json()
        assert updated["status"] == "updated"
        assert updated["entry"]["id"] == created["entry"]["id"]

    def test_validation_error(self, client):
        body = _entry_body(total_milk_loaded="100", liters={"cash": "70", "upi": "50"})
        data = client.post("/api/v1/entries", json=body).json()
        assert data["success"] is False
        assert data["error_type"] == "validation_error"
        assert "distributed_milk" in data["errors"]

    def test_list_and_delete(self, client):
        entry_id = client.post("/api/v1/entries", json=_entry_body()).json()["entry"]["id"]
        entries = client.get("/api/v1/entries", params={"from": "2025-01-01", "to": "2025-01-31"}).json()["entries"]
        assert [e["id"] for e in entries] == [entry_id]
        assert entries[0]["machine_name"] == "Sector 7"

        assert client.delete(f"/api/v1/entries/{entry_id}").json()["success"] is True
        assert client.delete(f"/api/v1/entries/{entry_id}").status_code == 404

    def test_draft(self, client):
        entry_id = client.post("/api/v1/entries", json=_entry_body()).json()["entry"]["id"]
        draft = client.get("/api/v1/entries/draft", params={"date": "2025-01-10", "machine_id": "A"}).json()
        assert draft["entry_id"] == entry_id
        assert draft["shift"] == "morning"
        assert float(draft["total_milk_loaded"]) == 500


class TestReports:
    def test_dashboard(self, client):
        client.post("/api/v1/entries", json=_entry_body())
        data = client.get("/api/v1/dashboard/today", params={"date": "2025-01-10"}).json()
        assert data["entry_count"] == 1
        assert data["total_milk"] == 500
        assert [m["id"] for m in data["pending_machines"]] == ["B"]

    def test_monthly(self, client):
        client.post("/api/v1/entries", json=_entry_body())
        data = client.get("/api/v1/reports/monthly", params={"year": 2025, "month": 1}).json()
        assert data["success"] is True
        assert data["report"]["summary"]["total_distributed"] == 350
        assert data["report"]["weeks"][0]["week_number"] == 2

    def test_monthly_empty(self, client):
        data = client.get("/api/v1/reports/monthly", params={"year": 2025, "month": 2}).json()
        assert data["report"]["summary"]["avg_distributed"] == 0
        assert data["report"]["weeks"] == []

    def test_payments(self, client):
        client.post("/api/v1/entries", json=_entry_body())
        data = client.get("/api/v1/reports/payments", params={"from": "2025-01-01", "to": "2025-01-31"}).json()
        shares = {line["method"]: line["percentage"] for line in data["report"]["methods"]}
        assert shares["cash"] == pytest.approx(57.1)
        assert shares["upi"] == pytest.approx(42.9)

    def test_leftover(self, client):
        client.post("/api/v1/entries", json=_entry_body())
        data = client.get("/api/v1/reports/leftover", params={"from": "2025-01-01", "to": "2025-01-31"}).json()
        assert data["report"]["insight"]["over_threshold"] is True
        assert data["report"]["rows"][0]["severity"] == "high"


class TestExportImport:
    def test_excel(self, client):
        client.post("/api/v1/entries", json=_entry_body())
        data = client.get("/api/v1/export/excel").json()
        assert data["entry_count"] == 1
        wb = openpyxl.load_workbook(io.BytesIO(base64.b64decode(data["excel_base64"])))
        assert wb.sheetnames == ["Daily Entries", "Summary", "Payment Methods"]

    def test_json_export_and_import(self, client):
        client.post("/api/v1/entries", json=_entry_body())
        backup = client.get("/api/v1/export/json").json()
        assert backup[0]["total_milk_loaded"] == "500"

        files = {"backup": ("backup.json", json.dumps(backup), "application/json")}
        data = client.post("/api/v1/import", files=files).json()
        assert data["success"] is True
        assert data["skipped"] == 1
        assert data["imported"] == 0

    def test_import_bad_file(self, client):
        files = {"backup": ("backup.json", "{}", "application/json")}
        data = client.post("/api/v1/import", files=files).json()
        assert data["success"] is False
        assert data["error_type"] == "format_error"


class TestSettings:
    def test_get_and_update(self, client):
        assert client.get("/api/v1/settings").json() == {"milk_rate": 0, "default_starting_milk": None}
        data = client.put("/api/v1/settings", json={"milk_rate": 60}).json()
        assert data["milk_rate"] == 60

        created = client.post("/api/v1/entries", json=_entry_body(amounts={})).json()
        assert created["entry"]["payments"]["cash"]["amount"] == 12000

    def test_negative_rate(self, client):
        assert client.put("/api/v1/settings", json={"milk_rate": -1}).status_code == 400
