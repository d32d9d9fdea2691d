from typing import Protocol, runtime_checkable

@runtime_checkable
class MessagingPort(Protocol):
    """Outbound WhatsApp text gateway. Raises ExternalDispatchError on failure."""
    async def send_text(self, phone: str, message: str) -> dict: ...
