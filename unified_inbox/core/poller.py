"""
Periodic inbox polling.

The poller re-fetches the inbox on a fixed period and reports increases of
the message count. It is guarded against overlapping ticks: a tick that
starts while another is still running is skipped.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from unified_inbox import config
from unified_inbox.models import Message

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NewMailEvent:
    """An inbox count increase between two ticks."""
    previous_count: int
    current_count: int
    messages: List[Message] = field(default_factory=list)

    @property
    def delta(self) -> int:
        return self.current_count - self.previous_count


class InboxPoller:
    """
    Polls the inbox and calls on_new_mail once per detected increase.

    fetch_inbox returns the current inbox messages (newest first), or None
    when the generation it was started for is no longer current. Exceptions
    from fetch_inbox are logged and leave the last known count untouched.
    """

    def __init__(
        self,
        fetch_inbox: Callable[[], Optional[List[Message]]],
        on_new_mail: Callable[[NewMailEvent], None],
        interval_seconds: float = config.POLL_INTERVAL_SECONDS,
    ):
        self._fetch_inbox = fetch_inbox
        self._on_new_mail = on_new_mail
        self.interval_seconds = interval_seconds
        self._last_count: Optional[int] = None
        self._in_flight = False
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def last_count(self) -> Optional[int]:
        return self._last_count

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def prime(self, count: int) -> None:
        """Set the baseline count, e.g. from the inbox load that preceded polling."""
        with self._lock:
            self._last_count = count

    def tick(self) -> Optional[NewMailEvent]:
        """
        Run one poll.

        Returns:
            The NewMailEvent when the count increased, otherwise None
            (including skipped and failed ticks).
        """
        with self._lock:
            if self._in_flight:
                logger.debug("Poll skipped: previous poll still running")
                return None
            self._in_flight = True

        try:
            try:
                messages = self._fetch_inbox()
            except Exception as e:
                logger.warning(f"Inbox poll failed, keeping last count {self._last_count}: {e}")
                return None

            if messages is None or self._stop_event.is_set():
                return None

            count = len(messages)
            with self._lock:
                previous = self._last_count
                self._last_count = count

            if previous is None or count <= previous:
                return None

            event = NewMailEvent(
                previous_count=previous,
                current_count=count,
                messages=list(messages[: count - previous]),
            )
            logger.info(f"Detected {event.delta} new message(s) in inbox")
            self._on_new_mail(event)
            return event
        finally:
            with self._lock:
                self._in_flight = False

    def start(self) -> None:
        """Start the worker thread; a no-op if already running."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="inbox-poller", daemon=True)
        self._thread.start()
        logger.info(f"Inbox polling started (every {self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the worker; a result still in flight is dropped."""
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            logger.info("Inbox polling stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.tick()
            except Exception:
                logger.exception("Unexpected error in inbox poll")
