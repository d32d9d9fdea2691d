import logging
from labcrm.platform.ports.messaging import MessagingPort

log = logging.getLogger("messaging.noop")

class NoopMessaging(MessagingPort):
    async def send_text(self, phone: str, message: str) -> dict:
        log.info(f"[NOOP WHATSAPP] to={phone} chars={len(message)}")
        return {"provider": "noop", "phone": phone}
