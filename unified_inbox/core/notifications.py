"""
Transient in-app notifications.

Framework-agnostic: the center only tracks the current notification and its
expiry. The UI layer subscribes and decides how to show it.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from unified_inbox import config

logger = logging.getLogger(__name__)

NEW_MAIL = "new_mail"
ERROR = "error"
INFO = "info"


@dataclass(slots=True)
class Notification:
    kind: str
    message: str
    count: int
    created_at: float
    expires_at: float


def new_mail_message(count: int) -> str:
    if count == 1:
        return "You have 1 new email"
    return f"You have {count} new emails"


class NotificationCenter:
    """Holds at most one visible notification; a newer one replaces it."""

    def __init__(
        self,
        dismiss_after: float = config.NOTIFICATION_DISMISS_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.dismiss_after = dismiss_after
        self._clock = clock
        self._current: Optional[Notification] = None
        self._listeners: List[Callable[[Notification], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Callable[[Notification], None]) -> None:
        self._listeners.append(listener)

    def push(self, kind: str, message: str, count: int = 0) -> Notification:
        now = self._clock()
        notification = Notification(
            kind=kind,
            message=message,
            count=count,
            created_at=now,
            expires_at=now + self.dismiss_after,
        )
        with self._lock:
            self._current = notification
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed")
        return notification

    def notify_new_mail(self, count: int) -> Notification:
        return self.push(NEW_MAIL, new_mail_message(count), count)

    def current(self) -> Optional[Notification]:
        """The visible notification, or None once it has expired or been dismissed."""
        with self._lock:
            if self._current and self._clock() >= self._current.expires_at:
                self._current = None
            return self._current

    def dismiss(self) -> None:
        with self._lock:
            self._current = None
