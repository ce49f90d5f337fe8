"""
Notification dispatcher that records deliveries and writes them to the log.

Outbound email/SMS delivery is handled outside this service; this
implementation keeps an in-memory outbox so callers (and tests) can see what
would have been sent.
"""
import threading
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from mailslot.integrations.base import NotificationDispatcher
from mailslot.utils import get_logger, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class SentNotification:
    user_id: int
    message: str
    channels: Tuple[str, ...]
    sent_at: str


class LoggingNotificationDispatcher(NotificationDispatcher):

    def __init__(self):
        self._lock = threading.Lock()
        self.outbox: List[SentNotification] = []

    def notify(self, user_id: int, message: str, channels: Sequence[str]) -> None:
        record = SentNotification(user_id, message, tuple(channels), utc_now().isoformat())
        with self._lock:
            self.outbox.append(record)
        logger.info("Notification dispatched", user_id=user_id, channels=list(channels), message=message)

    def clear(self) -> None:
        with self._lock:
            self.outbox.clear()
