"""Per-user workspaces: one PatientStore and one NotificationEngine per login."""
import asyncio
import logging
from typing import Callable

from fastapi import Depends

from labcrm.core.security import Principal, get_principal
from labcrm.modules.notifications.engine import NotificationEngine
from labcrm.modules.patients.store import PatientStore
from labcrm.platform.ports.alerts import AlertSinkPort
from labcrm.platform.ports.patient_backend import PatientBackendPort
from labcrm.platform.provider_registry import registry

log = logging.getLogger(__name__)


class Workspace:
    def __init__(self, user_id: str, backend: PatientBackendPort, alert_sink: AlertSinkPort, **engine_opts):
        self.user_id = user_id
        self.store = PatientStore(backend, user_id)
        self.alert_sink = alert_sink
        self.engine = NotificationEngine(lambda: self.store.patients, alert_sink=alert_sink, **engine_opts)

    async def open(self) -> None:
        await self.store.load()
        await self.engine.start()

    async def close(self) -> None:
        await self.engine.stop()
        self.store.clear()


class WorkspaceManager:
    def __init__(self,
                 backend_factory: Callable[[], PatientBackendPort] = registry.patient_backend,
                 alert_sink_factory: Callable[[], AlertSinkPort] = registry.alert_sink):
        self.backend_factory = backend_factory
        self.alert_sink_factory = alert_sink_factory
        self.workspaces: dict[str, Workspace] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str) -> Workspace:
        """Return the user's workspace, opening it (fetch-on-login) the first time."""
        ws = self.workspaces.get(user_id)
        if ws:
            return ws
        async with self._lock:
            ws = self.workspaces.get(user_id)
            if ws:
                return ws
            ws = Workspace(user_id, self.backend_factory(), self.alert_sink_factory())
            await ws.open()  # PersistenceError propagates; nothing is cached
            self.workspaces[user_id] = ws
            log.info(f"Workspace opened for {user_id}")
            return ws

    async def close(self, user_id: str) -> bool:
        ws = self.workspaces.pop(user_id, None)
        if not ws:
            return False
        await ws.close()
        log.info(f"Workspace closed for {user_id}")
        return True

    async def close_all(self) -> None:
        for user_id in list(self.workspaces):
            await self.close(user_id)

    def count(self) -> int:
        return len(self.workspaces)


workspace_manager = WorkspaceManager()


async def get_workspace(principal: Principal = Depends(get_principal)) -> Workspace:
    return await workspace_manager.get(principal.user_id)
