"""
Inbox session: the container that ties the core together.

Owns the account selector, folder cache, folder map, per-folder load states,
the displayed message list, the poller, the notification center and the AI
hand-off. Every external call made from here is caught and turned into a
Failed state; callers never see provider exceptions.

Threading: the session does not create threads except through the poller.
Shared state is mutated under one lock, and a network result is applied only
if the account generation captured before the call is still current.
"""
import logging
import threading
from functools import partial
from typing import Callable, Dict, List, Optional

from unified_inbox import config
from unified_inbox.core import search
from unified_inbox.core.account_selector import AccountSelector
from unified_inbox.core.ai_handoff import AIHandoffClient
from unified_inbox.core.cache import FolderCache
from unified_inbox.core.compose import ComposeSession, build_draft
from unified_inbox.core.folders import resolve_folder_map
from unified_inbox.core.notifications import NotificationCenter
from unified_inbox.core.poller import InboxPoller, NewMailEvent
from unified_inbox.core.state import IDLE, LOADING, Failed, LoadState, Loaded
from unified_inbox.models import (
    ComposeMode,
    Folder,
    FolderKey,
    MailAccountConnection,
    Message,
)
from unified_inbox.providers.base import MailProvider
from unified_inbox.providers.factory import create_provider
from unified_inbox.utils.errors import (
    AccountError,
    FolderError,
    InboxError,
    human_friendly_message,
    is_reconnect_required,
)

logger = logging.getLogger(__name__)

NO_ACCOUNT_MESSAGE = "No email account is connected."


def _failed(exc: Exception) -> Failed:
    return Failed(error=human_friendly_message(exc), reconnect_required=is_reconnect_required(exc))


class InboxSession:
    """Unified inbox state for the active account."""

    def __init__(
        self,
        selector: AccountSelector,
        provider_factory: Callable[[MailAccountConnection], MailProvider] = create_provider,
        cache: Optional[FolderCache] = None,
        notifications: Optional[NotificationCenter] = None,
        handoff: Optional[AIHandoffClient] = None,
        poll_interval_seconds: float = config.POLL_INTERVAL_SECONDS,
        page_size: int = config.DEFAULT_PAGE_SIZE,
        agent_id: Optional[str] = None,
    ):
        self.selector = selector
        self._provider_factory = provider_factory
        self.cache = cache or FolderCache()
        self.notifications = notifications or NotificationCenter()
        self.handoff = handoff
        self.poll_interval_seconds = poll_interval_seconds
        self.page_size = page_size
        self.agent_id = agent_id

        self._lock = threading.RLock()
        self._generation = 0
        self._provider: Optional[MailProvider] = None
        self._poller: Optional[InboxPoller] = None
        self._polling_wanted = False

        self.folder_map: Dict[FolderKey, Folder] = {}
        self.folder_list_state: LoadState = IDLE
        self.folder_states: Dict[FolderKey, LoadState] = {}
        self.current_folder: FolderKey = FolderKey.INBOX
        self.messages: List[Message] = []

        selector.subscribe(self._on_account_changed)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def active_connection(self) -> Optional[MailAccountConnection]:
        return self.selector.active_connection

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def polling(self) -> bool:
        return self._poller is not None and self._poller.running

    def folder_state(self, key: FolderKey) -> LoadState:
        with self._lock:
            return self.folder_states.get(key, IDLE)

    def _current_provider(self) -> MailProvider:
        with self._lock:
            connection = self.active_connection
            if connection is None:
                raise AccountError(NO_ACCOUNT_MESSAGE)
            if self._provider is None or self._provider.email_address != connection.email_address:
                self._provider = self._provider_factory(connection)
            return self._provider

    # ------------------------------------------------------------------
    # Folders and messages
    # ------------------------------------------------------------------

    def load_folders(self) -> Dict[FolderKey, Folder]:
        """Fetch the folder list and rebuild the canonical folder map."""
        with self._lock:
            generation = self._generation
            if self.active_connection is None:
                self.folder_list_state = Failed(NO_ACCOUNT_MESSAGE)
                return {}
            self.folder_list_state = LOADING

        try:
            folders = self._current_provider().list_folders()
        except InboxError as e:
            logger.error(f"Loading folders failed: {e}")
            with self._lock:
                if generation == self._generation:
                    self.folder_list_state = _failed(e)
            return {}

        folder_map = resolve_folder_map(folders)
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding folder list for a previous account")
                return {}
            self.folder_map = folder_map
            self.folder_list_state = Loaded(folder_map)
        return folder_map

    def open_folder(self, key: FolderKey, force_refresh: bool = False) -> Optional[List[Message]]:
        """
        Show a folder, from cache while valid unless force_refresh is set.

        Returns:
            The folder's messages, or None when loading failed or the result
            belonged to an account that is no longer active.
        """
        with self._lock:
            self.current_folder = key
        return self._load_folder(key, force_refresh)

    def refresh(self) -> Optional[List[Message]]:
        """Force a re-fetch of the current folder."""
        return self._load_folder(self.current_folder, force_refresh=True)

    def load_all_folders(self) -> Dict[FolderKey, LoadState]:
        """Load every resolved folder; one failure does not stop the others."""
        if not self.folder_map:
            self.load_folders()
        for key in list(self.folder_map):
            self._load_folder(key, force_refresh=False)
        with self._lock:
            return dict(self.folder_states)

    def _load_folder(self, key: FolderKey, force_refresh: bool) -> Optional[List[Message]]:
        if not force_refresh:
            entry = self.cache.get(key)
            if entry is not None:
                with self._lock:
                    self.folder_states[key] = Loaded(entry.messages)
                    if key == self.current_folder:
                        self.messages = list(entry.messages)
                return list(entry.messages)

        with self._lock:
            generation = self._generation
            if self.active_connection is None:
                self.folder_states[key] = Failed(NO_ACCOUNT_MESSAGE)
                return None
            self.folder_states[key] = LOADING

        try:
            folder = self._resolve(key)
            messages = self._current_provider().list_messages(folder.id, self.page_size)
        except InboxError as e:
            logger.error(f"Loading folder '{key.value}' failed: {e}")
            with self._lock:
                if generation == self._generation:
                    self.folder_states[key] = _failed(e)
            return None

        with self._lock:
            if generation != self._generation:
                logger.debug(f"Discarding '{key.value}' messages for a previous account")
                return None
            self.cache.set(key, messages)
            self.folder_states[key] = Loaded(messages)
            if key == self.current_folder:
                self.messages = list(messages)
        return list(messages)

    def _resolve(self, key: FolderKey) -> Folder:
        if not self.folder_map:
            self.load_folders()
        folder = self.folder_map.get(key)
        if folder is None:
            raise FolderError(f"The {key.value} folder is not available for this account.")
        return folder

    def filtered_messages(self, term: str = "", mode: str = search.FILTER_ALL) -> List[Message]:
        with self._lock:
            messages = list(self.messages)
        return search.filter_messages(messages, term, mode)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def start_polling(self) -> None:
        """Poll the active account's inbox until stopped or the account changes."""
        with self._lock:
            self._polling_wanted = True
            if self.active_connection is None or self.polling:
                return
            generation = self._generation
            connection = self.active_connection

            def fetch_inbox() -> Optional[List[Message]]:
                if generation != self._generation:
                    return None
                return self._load_folder(FolderKey.INBOX, force_refresh=True)

            poller = InboxPoller(
                fetch_inbox,
                partial(self._on_new_mail, connection, generation),
                self.poll_interval_seconds,
            )
            cached = self.cache.get(FolderKey.INBOX)
            if cached is not None:
                poller.prime(len(cached.messages))
            self._poller = poller
        poller.start()

    def poll_now(self) -> Optional[NewMailEvent]:
        """Run one poll immediately on the calling thread."""
        poller = self._poller
        if poller is None:
            return None
        return poller.tick()

    def stop_polling(self) -> None:
        with self._lock:
            self._polling_wanted = False
        self._stop_poller()

    def _stop_poller(self) -> None:
        with self._lock:
            poller, self._poller = self._poller, None
        if poller is not None:
            poller.stop(timeout=1.0)

    def _on_new_mail(
        self, connection: MailAccountConnection, generation: int, event: NewMailEvent
    ) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping new-mail event for previous account {connection.email_address}")
            return
        self.notifications.notify_new_mail(event.delta)
        if self.handoff is None:
            return
        try:
            self.handoff.hand_off_new_mail(connection, event.messages, agent_id=self.agent_id)
        except InboxError as e:
            logger.warning(f"AI hand-off for new mail failed: {e}")

    # ------------------------------------------------------------------
    # Account switching
    # ------------------------------------------------------------------

    def _on_account_changed(
        self,
        previous: Optional[MailAccountConnection],
        current: Optional[MailAccountConnection],
    ) -> None:
        self._stop_poller()
        with self._lock:
            self._generation += 1
            self.cache.invalidate()
            self.messages = []
            self.folder_map = {}
            self.folder_states = {}
            self.folder_list_state = IDLE
            self.current_folder = FolderKey.INBOX
            self._provider = None
            restart = self._polling_wanted

        if current is None:
            return
        self.load_folders()
        if restart:
            self.start_polling()

    # ------------------------------------------------------------------
    # Compose
    # ------------------------------------------------------------------

    def compose(self, mode: ComposeMode = ComposeMode.COMPOSE, message: Optional[Message] = None) -> ComposeSession:
        return ComposeSession(build_draft(mode, message))

    def send(self, session: ComposeSession) -> bool:
        """Send a compose session's draft from the active account."""
        try:
            provider = self._current_provider()
        except InboxError as e:
            session.send_error = human_friendly_message(e)
            return False
        return session.send(provider)

    def close(self) -> None:
        self.stop_polling()
        self.notifications.dismiss()
