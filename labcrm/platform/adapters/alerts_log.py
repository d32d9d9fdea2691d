import logging
from datetime import datetime, timezone
from labcrm.platform.ports.alerts import AlertSinkPort

log = logging.getLogger("alerts")

class LoggingAlertSink(AlertSinkPort):
    """Records alert plays so clients polling the notification state can beep."""

    def __init__(self):
        self.plays = 0
        self.last_played_at: datetime | None = None

    def play(self, reason: str) -> None:
        self.plays += 1
        self.last_played_at = datetime.now(timezone.utc)
        log.info(f"[ALERT] {reason} (play #{self.plays})")
