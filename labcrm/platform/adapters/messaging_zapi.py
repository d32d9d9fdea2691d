import json
import logging
import httpx
from labcrm.core.config import settings
from labcrm.core.errors import ExternalDispatchError
from labcrm.platform.ports.messaging import MessagingPort

log = logging.getLogger("messaging.zapi")

class ZApiMessaging(MessagingPort):
    """WhatsApp text through Z-API's send-text endpoint."""

    def __init__(self, instance_id: str | None = None, token: str | None = None,
                 base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None,
                 timeout: float = 10.0):
        self.instance_id = instance_id or settings.ZAPI_INSTANCE_ID
        self.token = token or settings.ZAPI_TOKEN
        self.base_url = (base_url or settings.ZAPI_BASE_URL).rstrip("/")
        self.transport = transport
        self.timeout = timeout

    def ensure_configured(self) -> None:
        if not self.instance_id or not self.token:
            raise RuntimeError("Z-API credentials not configured")

    @property
    def url(self) -> str:
        return f"{self.base_url}/instances/{self.instance_id}/token/{self.token}/send-text"

    async def send_text(self, phone: str, message: str) -> dict:
        self.ensure_configured()
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                resp = await client.post(self.url, json={"phone": phone, "message": message})
        except httpx.HTTPError as e:
            raise ExternalDispatchError(f"Z-API request failed: {e}") from e
        try:
            data = resp.json()
        except ValueError:
            data = {"raw": resp.text}
        if resp.status_code >= 400:
            raise ExternalDispatchError(f"Z-API error [{resp.status_code}]: {json.dumps(data)}")
        log.debug(f"Z-API accepted message for {phone}")
        return data
