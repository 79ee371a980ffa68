"""
Base class for mail provider adapters.

An adapter translates one third-party mail API into the normalized
list_folders / list_messages / send_message interface. This base class owns
the shared HTTP behavior: bearer authorization, one refresh-and-retry on 401,
and mapping of transport and status failures onto the error hierarchy.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import requests

from unified_inbox import config
from unified_inbox.models import Folder, MailAccountConnection, Message, OutgoingMessage
from unified_inbox.utils.errors import (
    AuthenticationError,
    ProviderError,
    TokenRefreshError,
    TransportError,
)

logger = logging.getLogger(__name__)

TokenRefresher = Callable[[MailAccountConnection], MailAccountConnection]


class MailProvider(ABC):
    """Abstract mail provider adapter."""

    BASE_URL: str = ""

    def __init__(
        self,
        connection: MailAccountConnection,
        token_refresher: Optional[TokenRefresher] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            connection: The account whose tokens authorize every call.
            token_refresher: Called once when a request comes back 401; must
                return the connection with a fresh access token.
            session: requests session (injectable for tests).
            timeout: Per-request timeout in seconds.
        """
        self.connection = connection
        self.token_refresher = token_refresher
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT_SECONDS

    @property
    def email_address(self) -> str:
        return self.connection.email_address

    @abstractmethod
    def list_folders(self) -> List[Folder]:
        """Return the account's folders, well-known ones flagged with their FolderKey."""

    @abstractmethod
    def list_messages(self, folder_id: str, page_size: int = config.DEFAULT_PAGE_SIZE) -> List[Message]:
        """Return the newest messages of a folder, newest first."""

    @abstractmethod
    def send_message(self, payload: OutgoingMessage) -> None:
        """Send a message from this account."""

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {self.connection.access_token}"
        try:
            return self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Request to {url} timed out") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

    def _refresh_token(self) -> None:
        if self.token_refresher is None:
            raise AuthenticationError(
                f"Access token rejected for {self.email_address}; reconnect required"
            )
        try:
            self.connection = self.token_refresher(self.connection)
        except AuthenticationError:
            raise
        except Exception as e:
            raise TokenRefreshError(f"Token refresh failed: {e}") from e

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Perform an authorized request.

        A 401 triggers one token refresh and one retry; a second 401 raises
        AuthenticationError. Other failures are never retried.

        Raises:
            AuthenticationError: Missing, rejected or unrefreshable token.
            TransportError: No response was received.
            ProviderError: Any other non-2xx response.
        """
        if not self.connection.access_token:
            raise AuthenticationError(
                f"No access token for {self.email_address}; reconnect required"
            )

        url = path if path.startswith("http") else f"{self.BASE_URL}{path}"
        response = self._send(method, url, **kwargs)

        if response.status_code == 401:
            logger.info(f"Access token rejected for {self.email_address}, refreshing")
            self._refresh_token()
            response = self._send(method, url, **kwargs)
            if response.status_code == 401:
                raise AuthenticationError(
                    f"Access token rejected for {self.email_address} after refresh"
                )

        if response.status_code >= 400:
            logger.warning(
                f"{method} {url} failed with HTTP {response.status_code}: {response.text[:200]}"
            )
            raise ProviderError(
                f"{method} {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("GET", path, params=params).json()
