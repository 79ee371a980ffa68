"""
Active account selection.

At most one connection is active. The choice is remembered in the settings
table and restored on load. A manual choice by the user beats any later
automatic request (for example an account hint carried in a stale link).
"""
import logging
import threading
from typing import Callable, List, Optional

from unified_inbox.core import settings
from unified_inbox.models import MailAccountConnection
from unified_inbox.utils.errors import AccountError

logger = logging.getLogger(__name__)

SelectionListener = Callable[[Optional[MailAccountConnection], Optional[MailAccountConnection]], None]


class AccountSelector:
    """Tracks the connected accounts and which one is active."""

    def __init__(
        self,
        load_connections: Callable[[], List[MailAccountConnection]],
        load_selection: Callable[[], Optional[str]] = settings.load_active_account,
        save_selection: Callable[[Optional[str]], None] = settings.save_active_account,
    ):
        self._load_connections = load_connections
        self._load_selection = load_selection
        self._save_selection = save_selection
        self._connections: List[MailAccountConnection] = []
        self._active: Optional[MailAccountConnection] = None
        self._manual = False
        self._listeners: List[SelectionListener] = []
        self._lock = threading.RLock()

    @property
    def connections(self) -> List[MailAccountConnection]:
        with self._lock:
            return list(self._connections)

    @property
    def active_connection(self) -> Optional[MailAccountConnection]:
        with self._lock:
            return self._active

    @property
    def manually_selected(self) -> bool:
        return self._manual

    def subscribe(self, listener: SelectionListener) -> None:
        """Register listener(previous, current), called after every change."""
        self._listeners.append(listener)

    def load(self) -> Optional[MailAccountConnection]:
        """
        Load connections and restore the remembered selection.

        Falls back to the first connection when nothing was remembered or the
        remembered account is gone.
        """
        with self._lock:
            self._connections = list(self._load_connections())
            remembered = self._load_selection()
            chosen = self._find(remembered) if remembered else None
            if chosen is None and remembered:
                logger.info(f"Remembered account {remembered} is no longer connected")
            if chosen is None and self._connections:
                chosen = self._connections[0]
        self._apply(chosen)
        return chosen

    def select_account(self, email_address: str) -> MailAccountConnection:
        """
        Manually select an account.

        Raises:
            AccountError: If the address is not connected.
        """
        with self._lock:
            connection = self._find(email_address)
            if connection is None:
                raise AccountError(f"Account {email_address} not found")
            self._manual = True
        self._apply(connection)
        return connection

    def request_account(self, email_address: str) -> bool:
        """
        Non-manual selection request; ignored once the user picked manually.

        Returns:
            True if the request changed or confirmed the selection.
        """
        with self._lock:
            if self._manual:
                logger.debug(f"Ignoring account request for {email_address}: manual selection wins")
                return False
            connection = self._find(email_address)
            if connection is None:
                logger.warning(f"Requested account {email_address} is not connected")
                return False
        self._apply(connection)
        return True

    def add_connection(self, connection: MailAccountConnection) -> None:
        """Register a newly connected account; it becomes active if none is."""
        with self._lock:
            self._connections = [
                c for c in self._connections if c.email_address != connection.email_address
            ] + [connection]
            make_active = self._active is None
        if make_active:
            self._apply(connection)

    def remove_connection(self, email_address: str) -> Optional[MailAccountConnection]:
        """Drop a disconnected account, falling back to the first remaining one."""
        with self._lock:
            self._connections = [
                c for c in self._connections if c.email_address != email_address
            ]
            was_active = self._active is not None and self._active.email_address == email_address
            fallback = self._connections[0] if self._connections else None
        if was_active:
            self._apply(fallback)
        return self.active_connection

    def _find(self, email_address: Optional[str]) -> Optional[MailAccountConnection]:
        for connection in self._connections:
            if connection.email_address == email_address:
                return connection
        return None

    def _apply(self, connection: Optional[MailAccountConnection]) -> None:
        with self._lock:
            previous = self._active
            self._active = connection
        same = (
            previous is not None
            and connection is not None
            and previous.email_address == connection.email_address
        )
        if same or (previous is None and connection is None):
            return

        self._save_selection(connection.email_address if connection else None)
        logger.info(
            f"Active account changed: {previous.email_address if previous else None} -> "
            f"{connection.email_address if connection else None}"
        )
        for listener in list(self._listeners):
            listener(previous, connection)
