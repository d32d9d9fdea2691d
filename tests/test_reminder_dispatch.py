"""Tests for the WhatsApp reminder dispatch job."""

from datetime import date
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from labcrm.core.errors import ExternalDispatchError
from labcrm.modules.reminders.service import ReminderDispatchService, normalize_phone, render_message
from labcrm.platform.adapters.messaging_twilio import TwilioWhatsAppMessaging

TARGET = date(2025, 7, 1)


class FakeReminderRepository:
    """In-memory stand-in for the privileged reminder queries."""

    def __init__(self, patients=(), sent=()):
        self.patients = list(patients)
        self.sent = set(sent)
        self.logs = []
        self.commits = 0
        self.rollbacks = 0
        self.queried_statuses = None

    async def patients_due(self, target, statuses):
        self.queried_statuses = tuple(statuses)
        return [p for p in self.patients if p.appointment_date == target and p.status in statuses]

    async def already_sent(self, patient_ids, target):
        return {pid for pid in patient_ids if (pid, target) in self.sent}

    async def log(self, **row):
        self.logs.append(row)
        if row["status"] == "sent":
            self.sent.add((row["patient_id"], row["appointment_date"]))
        return SimpleNamespace(**row)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


class RecordingGateway:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent = []

    async def send_text(self, phone, message):
        if phone in self.fail_for:
            raise ExternalDispatchError("Z-API error [400]: {\"error\": \"invalid phone\"}")
        self.sent.append((phone, message))
        return {"zaapId": "1"}


def patient(pid, phone="(11) 98765-4321", status="agendado", appointment_date=TARGET, name="Maria"):
    return SimpleNamespace(id=pid, user_id="user-1", name=name, phone=phone,
                           status=status, appointment_date=appointment_date)


class TestNormalizePhone:
    @pytest.mark.parametrize("raw, expected", [
        ("(11) 98765-4321", "5511987654321"),
        ("011 98765-4321", "5511987654321"),
        ("+55 11 98765-4321", "5511987654321"),
        ("5511987654321", "5511987654321"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw, "55") == expected


class TestDispatch:
    async def test_nothing_due(self):
        result = await ReminderDispatchService(FakeReminderRepository(), RecordingGateway()).dispatch(TARGET)
        assert result.message == "No reminders to send"
        assert result.count == 0
        assert result.results == []

    async def test_sends_to_scheduled_and_attended_only(self):
        repo = FakeReminderRepository([
            patient("a"),
            patient("b", status="veio", phone="21 99999-0000"),
            patient("c", status="fechado"),
            patient("d", appointment_date=date(2025, 7, 2)),
        ])
        gateway = RecordingGateway()

        result = await ReminderDispatchService(repo, gateway, country_code="55").dispatch(TARGET)

        assert result.message == "Reminders processed"
        assert [(r.patient_id, r.status) for r in result.results] == [("a", "sent"), ("b", "sent")]
        assert [phone for phone, _ in gateway.sent] == ["5511987654321", "5521999990000"]
        assert set(repo.queried_statuses) == {"agendado", "veio"}
        assert [row["status"] for row in repo.logs] == ["sent", "sent"]
        assert all(row["appointment_date"] == TARGET for row in repo.logs)

    async def test_already_reminded_patients_are_skipped(self):
        repo = FakeReminderRepository([patient("a"), patient("b")], sent={("a", TARGET)})
        gateway = RecordingGateway()

        result = await ReminderDispatchService(repo, gateway).dispatch(TARGET)

        assert [r.patient_id for r in result.results] == ["b"]
        assert len(gateway.sent) == 1

    async def test_second_run_sends_nothing_new(self):
        repo = FakeReminderRepository([patient("a")])
        gateway = RecordingGateway()
        service = ReminderDispatchService(repo, gateway)

        await service.dispatch(TARGET)
        second = await service.dispatch(TARGET)

        assert second.results == []
        assert len(gateway.sent) == 1

    async def test_gateway_failure_is_isolated_per_patient(self):
        repo = FakeReminderRepository([
            patient("bad", phone="11 0000-0000"),
            patient("good"),
        ])
        gateway = RecordingGateway(fail_for={"551100000000"})

        result = await ReminderDispatchService(repo, gateway, country_code="55").dispatch(TARGET)

        statuses = {r.patient_id: r for r in result.results}
        assert statuses["bad"].status == "failed"
        assert "invalid phone" in statuses["bad"].error
        assert statuses["good"].status == "sent"
        failed_log = next(row for row in repo.logs if row["patient_id"] == "bad")
        assert failed_log["status"] == "failed"
        assert failed_log["error_message"]
        assert repo.commits == 2

    async def test_dropped_connection_does_not_stop_the_batch(self):
        client = MagicMock()
        client.messages.create.side_effect = [
            requests.exceptions.ConnectionError("reset"),
            MagicMock(sid="SM1", status="queued"),
        ]
        gateway = TwilioWhatsAppMessaging(client=client, from_number="whatsapp:+14155238886")
        repo = FakeReminderRepository([patient("a"), patient("b")])

        result = await ReminderDispatchService(repo, gateway, country_code="55").dispatch(TARGET)

        assert [(r.patient_id, r.status) for r in result.results] == [("a", "failed"), ("b", "sent")]
        assert [(row["patient_id"], row["status"]) for row in repo.logs] == [("a", "failed"), ("b", "sent")]
        assert "reset" in repo.logs[0]["error_message"]

    async def test_unexpected_error_is_logged_and_batch_continues(self):
        class FlakyRepository(FakeReminderRepository):
            async def commit(self):
                await super().commit()
                if self.commits == 1:
                    raise RuntimeError("connection closed")

        repo = FlakyRepository([patient("a"), patient("b")])
        gateway = RecordingGateway()

        result = await ReminderDispatchService(repo, gateway).dispatch(TARGET)

        assert [(r.patient_id, r.status) for r in result.results] == [("a", "failed"), ("b", "sent")]
        assert result.results[0].error
        assert repo.rollbacks == 1
        assert [(row["patient_id"], row["status"]) for row in repo.logs[1:]] == [("a", "failed"), ("b", "sent")]

    async def test_failure_to_record_a_failure_is_not_fatal(self):
        class BrokenRepository(FakeReminderRepository):
            async def log(self, **row):
                if row["patient_id"] == "a":
                    raise RuntimeError("database unavailable")
                return await super().log(**row)

        repo = BrokenRepository([patient("a"), patient("b")])

        result = await ReminderDispatchService(repo, RecordingGateway()).dispatch(TARGET)

        assert [(r.patient_id, r.status) for r in result.results] == [("a", "failed"), ("b", "sent")]
        assert [row["patient_id"] for row in repo.logs] == ["b"]

    async def test_failed_patients_are_retried_next_run(self):
        repo = FakeReminderRepository([patient("a", phone="11 0000-0000")])
        gateway = RecordingGateway(fail_for={"551100000000"})
        service = ReminderDispatchService(repo, gateway, country_code="55")

        await service.dispatch(TARGET)
        gateway.fail_for.clear()
        retry = await service.dispatch(TARGET)

        assert [r.status for r in retry.results] == ["sent"]

    async def test_missing_credentials_abort_before_any_send(self):
        class Unconfigured(RecordingGateway):
            def ensure_configured(self):
                raise RuntimeError("Z-API credentials not configured")

        repo = FakeReminderRepository([patient("a")])
        with pytest.raises(RuntimeError):
            await ReminderDispatchService(repo, Unconfigured()).dispatch(TARGET)
        assert repo.logs == []

    def test_message_text(self):
        text = render_message("Maria", TARGET)
        assert text.startswith("Olá Maria! 😊")
        assert "consulta agendada para amanhã (01/07/2025)" in text
        assert text.endswith("Aguardamos você! 🦷")
