"""Tests for the HTTP surface."""

from datetime import date, datetime, timedelta
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest
from jose import jwt

from labcrm.core.config import settings
from labcrm.modules.reminders.router import svc
from labcrm.modules.reminders.schemas import DispatchResult

API = settings.API_PREFIX


def tomorrow() -> str:
    return (datetime.now(ZoneInfo(settings.TIMEZONE)).date() + timedelta(days=1)).isoformat()


def new_patient(**overrides) -> dict:
    body = {
        "name": "Maria Souza",
        "phone": "(11) 98765-4321",
        "contact_date": "2025-06-01",
        "appointment_date": "2025-06-15",
        "media_origin": "instagram",
        "procedures": ["protese_total"],
    }
    body.update(overrides)
    return body


@pytest.fixture
def created(client):
    resp = client.post(f"{API}/patients", json=new_patient())
    assert resp.status_code == 200
    return resp.json()


class TestHealth:
    def test_health(self, client):
        resp = client.get(f"{API}/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestPatients:
    def test_create_and_list(self, client, created):
        assert created["status"] == "agendado"
        assert created["closed_value"] is None

        listed = client.get(f"{API}/patients").json()
        assert [p["id"] for p in listed] == [created["id"]]

    def test_search_filters(self, client, created):
        client.post(f"{API}/patients", json=new_patient(name="Pedro", media_origin="facebook"))
        assert len(client.get(f"{API}/patients", params={"q": "pedro"}).json()) == 1
        assert len(client.get(f"{API}/patients", params={"media_origin": "instagram"}).json()) == 1

    def test_closed_without_value_is_rejected(self, client):
        resp = client.post(f"{API}/patients", json=new_patient(status="fechado"))
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Informe o valor fechado"
        assert resp.json()["fields"] == ["closed_value"]

    def test_patch_and_delete(self, client, created):
        pid = created["id"]
        resp = client.patch(f"{API}/patients/{pid}", json={"status": "fechado", "closed_value": 1500})
        assert resp.status_code == 200
        assert resp.json()["closed_value"] == 1500
        assert resp.json()["name"] == "Maria Souza"

        resp = client.patch(f"{API}/patients/{pid}", json={"status": "veio"})
        assert resp.json()["closed_value"] is None

        assert client.delete(f"{API}/patients/{pid}").status_code == 204
        assert client.get(f"{API}/patients/{pid}").status_code == 404

    def test_null_status_is_a_validation_error(self, client, created):
        resp = client.patch(f"{API}/patients/{created['id']}", json={"status": None})
        assert resp.status_code == 422
        assert resp.json()["fields"] == ["status"]
        assert client.get(f"{API}/patients/{created['id']}").json()["status"] == "agendado"

    def test_unknown_patient(self, client):
        resp = client.patch(f"{API}/patients/nope", json={"status": "veio"})
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Paciente não encontrado"

    def test_reload(self, client, created):
        resp = client.post(f"{API}/patients/reload")
        assert [p["id"] for p in resp.json()] == [created["id"]]


class TestAuth:
    def test_invalid_token_is_rejected(self, client):
        resp = client.get(f"{API}/patients", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_each_user_gets_own_workspace(self, client, created, workspaces):
        token = jwt.encode({"sub": "user-2"}, settings.JWT_SECRET, algorithm=settings.JWT_ALG)
        resp = client.get(f"{API}/patients", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json() == []
        assert workspaces.count() == 2

    def test_unreadable_store_surfaces_safe_message(self, client, backend):
        with open(backend._path(settings.DEFAULT_USER_ID), "w", encoding="utf-8") as f:
            f.write("{broken")
        resp = client.get(f"{API}/patients")
        assert resp.status_code == 503
        assert resp.json()["detail"] == "Erro ao processar dados do paciente"

    def test_logout_closes_workspace(self, client, created, workspaces):
        assert workspaces.count() == 1
        resp = client.post(f"{API}/session/logout")
        assert resp.json() == {"status": "ok", "closed": True}
        assert workspaces.count() == 0


class TestNotifications:
    def test_manual_trigger_without_patients(self, client):
        resp = client.post(f"{API}/notifications/test")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Nenhum paciente agendado para amanhã"

    def test_manual_trigger_and_dismiss(self, client):
        client.post(f"{API}/patients", json=new_patient(appointment_date=tomorrow()))

        resp = client.post(f"{API}/notifications/test")
        assert resp.status_code == 200
        state = resp.json()["state"]
        assert resp.json()["raised"] == 1
        assert state["modal_open"] is True
        assert state["current"]["message"].endswith("Maria Souza")
        assert state["running"] is True

        key = state["current"]["key"]
        state = client.post(f"{API}/notifications/{key}/dismiss").json()
        assert state["modal_open"] is False
        assert state["dismissed_count"] == 1

    def test_state(self, client):
        state = client.get(f"{API}/notifications").json()
        assert state["notifications"] == []
        assert state["modal_open"] is False


class TestDashboardAndExports:
    def test_dashboard(self, client):
        client.post(f"{API}/patients", json=new_patient(status="fechado", closed_value=2000))
        client.post(f"{API}/patients", json=new_patient(name="Pedro"))

        body = client.get(f"{API}/dashboard").json()

        assert body["period_label"] == "Todo período"
        assert body["stats"]["total_revenue"] == 2000
        assert body["stats"]["conversion_rate"] == 50

    def test_dashboard_pdf(self, client, created):
        resp = client.get(f"{API}/dashboard/report.pdf", params={"period": "month"})
        assert resp.status_code == 200
        assert resp.content.startswith(b"%PDF")

    def test_csv_export(self, client, created):
        resp = client.get(f"{API}/exports/patients.csv", params={"include_observations": "false"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "magnata_crm_export_" in resp.headers["content-disposition"]
        assert "Observações" not in resp.content.decode("utf-8-sig")

    def test_empty_export_is_rejected(self, client):
        resp = client.get(f"{API}/exports/patients.csv")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Nenhum paciente para exportar"

    def test_pdf_export(self, client, created):
        resp = client.get(f"{API}/exports/report.pdf", params={"status": "agendado"})
        assert resp.status_code == 200
        assert resp.content.startswith(b"%PDF")


class StubService:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def dispatch(self, target_date=None):
        self.calls.append(target_date)
        if self.error:
            raise self.error
        return self.result


class TestReminderEndpoint:
    @pytest.fixture
    def stub(self, client):
        from labcrm.main import app

        service = StubService(DispatchResult(message="No reminders to send", target_date="2025-07-01"))
        app.dependency_overrides[svc] = lambda: service
        return service

    def test_dispatch_for_date(self, client, stub):
        resp = client.post(f"{API}/reminders/send", params={"date": "2025-07-01"})
        assert resp.status_code == 200
        assert resp.json()["message"] == "No reminders to send"
        assert resp.json()["count"] == 0
        assert stub.calls == [date(2025, 7, 1)]

    def test_get_defaults_to_tomorrow(self, client, stub):
        assert client.get(f"{API}/reminders/send").status_code == 200
        assert stub.calls == [None]

    def test_bad_date(self, client, stub):
        resp = client.get(f"{API}/reminders/send", params={"date": "01/07/2025"})
        assert resp.status_code == 400
        assert "error" in resp.json()
        assert stub.calls == []

    def test_failure_returns_error_body(self, client, stub):
        stub.error = RuntimeError("Z-API credentials not configured")
        resp = client.post(f"{API}/reminders/send")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Z-API credentials not configured"}

    def test_dispatch_key(self, client, stub, monkeypatch):
        monkeypatch.setattr(settings, "DISPATCH_API_KEY", "s3cret")
        assert client.post(f"{API}/reminders/send").status_code == 401
        ok = client.post(f"{API}/reminders/send", headers={"X-Dispatch-Key": "s3cret"})
        assert ok.status_code == 200

    def test_preflight(self, client):
        resp = client.options(f"{API}/reminders/send")
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "*"
