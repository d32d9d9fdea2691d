"""
Shared pytest fixtures.

The app is configured for local storage and no-op messaging before anything
from ``labcrm`` is imported, so no test needs a database or network access.
"""

import itertools
import os
from datetime import date, datetime, timedelta, timezone
from typing import Callable

import pytest

os.environ["ENV"] = "local"
os.environ["PATIENT_STORE_PROVIDER"] = "local"
os.environ["MESSAGING_PROVIDER"] = "noop"
os.environ.setdefault("DISPATCH_API_KEY", "")

from fastapi.testclient import TestClient  # noqa: E402

from labcrm.core.base import new_id  # noqa: E402
from labcrm.modules.patients.schemas import PatientCreate, PatientRecord  # noqa: E402
from labcrm.modules.session import manager  # noqa: E402
from labcrm.platform.adapters.alerts_log import LoggingAlertSink  # noqa: E402
from labcrm.platform.adapters.patients_local import LocalPatientBackend  # noqa: E402


def ticking_clock(start: datetime | None = None) -> Callable[[], datetime]:
    """A clock that moves one minute forward on every call."""
    start = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
    ticks = itertools.count()
    return lambda: start + timedelta(minutes=next(ticks))


@pytest.fixture
def make_patient() -> Callable[..., PatientRecord]:
    """Factory for persisted-looking patient records."""

    def _make(**overrides) -> PatientRecord:
        now = overrides.pop("created_at", datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))
        data = {
            "id": new_id(),
            "user_id": "user-1",
            "name": "Maria Souza",
            "phone": "(11) 98765-4321",
            "contact_date": "2025-06-01",
            "appointment_date": "2025-06-15",
            "appointment_time": "09:30",
            "status": "agendado",
            "closed_value": None,
            "media_origin": "instagram",
            "procedures": ["protese_total"],
            "observations": None,
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        return PatientRecord.model_validate(data)

    return _make


@pytest.fixture
def make_draft() -> Callable[..., PatientCreate]:
    """Factory for new-patient submissions."""

    def _make(**overrides) -> PatientCreate:
        data = {
            "name": "João Lima",
            "phone": "11 91234-5678",
            "contact_date": date(2025, 6, 1),
            "appointment_date": date(2025, 6, 15),
            "media_origin": "facebook",
            "procedures": ["protese_flexivel"],
        }
        data.update(overrides)
        return PatientCreate(**data)

    return _make


@pytest.fixture
def backend(tmp_path) -> LocalPatientBackend:
    return LocalPatientBackend(str(tmp_path / "store"), clock=ticking_clock())


@pytest.fixture
def workspaces(backend, monkeypatch) -> manager.WorkspaceManager:
    """A fresh workspace manager backed by the temp-dir store."""
    mgr = manager.WorkspaceManager(backend_factory=lambda: backend, alert_sink_factory=LoggingAlertSink)
    monkeypatch.setattr(manager, "workspace_manager", mgr)
    return mgr


@pytest.fixture
def client(workspaces):
    from labcrm.main import app

    # context manager: startup/shutdown run and every request shares one event loop
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
