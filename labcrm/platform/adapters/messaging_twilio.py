import asyncio
import logging
import requests
from twilio.rest import Client
from twilio.base.exceptions import TwilioException
from labcrm.core.config import settings
from labcrm.core.errors import ExternalDispatchError
from labcrm.platform.ports.messaging import MessagingPort

log = logging.getLogger("messaging.twilio")

class TwilioWhatsAppMessaging(MessagingPort):
    def __init__(self, client: Client | None = None, from_number: str | None = None):
        self._client = client
        self.from_number = from_number or settings.TWILIO_WHATSAPP_FROM

    def ensure_configured(self) -> None:
        if self._client is None and not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN):
            raise RuntimeError("Twilio credentials not configured")
        if not self.from_number:
            raise RuntimeError("TWILIO_WHATSAPP_FROM not configured")

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
        return self._client

    async def send_text(self, phone: str, message: str) -> dict:
        self.ensure_configured()
        to = phone if phone.startswith("whatsapp:") else f"whatsapp:+{phone}"
        try:
            # the SDK is blocking
            msg = await asyncio.to_thread(self.client.messages.create, body=message, from_=self.from_number, to=to)
        except TwilioException as e:
            raise ExternalDispatchError(f"Twilio error: {e}") from e
        except requests.RequestException as e:
            raise ExternalDispatchError(f"Twilio request failed: {e}") from e
        log.debug(f"Twilio queued {msg.sid} for {to}")
        return {"sid": msg.sid, "status": msg.status}
