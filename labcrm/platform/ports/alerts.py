from typing import Protocol, runtime_checkable

@runtime_checkable
class AlertSinkPort(Protocol):
    """Audible alert for the operator (the front-end plays the actual sound)."""
    def play(self, reason: str) -> None: ...
