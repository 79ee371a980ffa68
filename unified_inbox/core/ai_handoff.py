"""
Hand-off of message content to the external AI endpoint.

AIHandoffClient posts prompts and maps timeouts and usage limits onto the
error hierarchy. ChatSession keeps the transcript and a small status machine
(ready, waiting, rate_limited) for the chat surface. AutomationClient drives
the remote email-processing agent.
"""
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import requests

from unified_inbox import config
from unified_inbox.models import MailAccountConnection, Message
from unified_inbox.storage import repository
from unified_inbox.utils.debounce import Debouncer
from unified_inbox.utils.errors import (
    HandoffError,
    HandoffTimeoutError,
    RateLimitError,
    StorageError,
)

logger = logging.getLogger(__name__)

LIMIT_MARKER = "limit reached"
RATE_LIMITED_MESSAGE = (
    "You have reached the daily limit of assistant prompts. "
    "New messages can be sent once the limit resets."
)


@dataclass(slots=True)
class HandoffReply:
    text: str
    usage: Dict[str, Any] = field(default_factory=dict)


def _is_limit_error(data: Dict[str, Any]) -> bool:
    for key in ("error", "message"):
        value = data.get(key)
        if isinstance(value, str) and LIMIT_MARKER in value.lower():
            return True
    return False


def _safe_json(response: requests.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class AIHandoffClient:
    """HTTP client for the AI text-generation endpoint."""

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        timeout_seconds: float = config.AI_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint_url = endpoint_url or config.AI_ENDPOINT_URL
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def request_reply(
        self,
        message: str,
        session_id: str,
        agent_id: Optional[str] = None,
        user_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> HandoffReply:
        """
        Send a prompt and return the generated text.

        Raises:
            HandoffTimeoutError: No answer within the timeout.
            RateLimitError: HTTP 429, or an error saying a limit was reached.
            HandoffError: Any other failure or an empty answer.
        """
        payload: Dict[str, Any] = {"message": message, "session_id": session_id}
        if agent_id:
            payload["agent_id"] = agent_id
        if user_id:
            payload["user_id"] = user_id
        if context:
            payload.update(context)

        try:
            response = self.session.post(
                self.endpoint_url, json=payload, timeout=self.timeout_seconds
            )
        except requests.exceptions.Timeout as e:
            logger.warning(f"AI endpoint timed out after {self.timeout_seconds}s")
            raise HandoffTimeoutError("AI endpoint timed out") from e
        except requests.exceptions.RequestException as e:
            raise HandoffError(f"AI endpoint unreachable: {e}") from e

        data = _safe_json(response)
        if response.status_code == 429 or _is_limit_error(data):
            logger.warning("AI endpoint reported the usage limit")
            raise RateLimitError(data.get("message") or RATE_LIMITED_MESSAGE, usage=data.get("usage"))
        if response.status_code >= 400:
            raise HandoffError(
                f"AI endpoint failed with HTTP {response.status_code}: {data.get('error', '')}"
            )

        text = data.get("response")
        if not isinstance(text, str) or not text.strip():
            raise HandoffError("AI endpoint returned an empty response")
        return HandoffReply(text=text, usage=data.get("usage") or {})

    def hand_off_new_mail(
        self,
        connection: MailAccountConnection,
        messages: List[Message],
        agent_id: Optional[str] = None,
    ) -> HandoffReply:
        """Summarize newly arrived messages in one request."""
        lines = [f"{len(messages)} new email(s) for {connection.email_address}:"]
        for msg in messages:
            lines.append(f"- From: {msg.sender} | Subject: {msg.subject} | {msg.body_preview}")
        return self.request_reply(
            "\n".join(lines),
            session_id=f"inbox-{connection.email_address}",
            agent_id=agent_id,
            context={
                "email_address": connection.email_address,
                "provider": connection.provider.value,
                "message_ids": [msg.id for msg in messages],
            },
        )


class ChatStatus(str, Enum):
    READY = "ready"
    WAITING = "waiting"
    RATE_LIMITED = "rate_limited"


@dataclass(slots=True)
class ChatEntry:
    role: str
    text: str
    created_at: float
    is_fallback: bool = False


class ChatSession:
    """
    Chat transcript with the assistant.

    RATE_LIMITED is sticky: submissions are refused until reset() is called.
    A timeout appends a fallback reply instead of failing the chat.
    """

    def __init__(
        self,
        client: AIHandoffClient,
        agent_id: Optional[str] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        log_turns: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.agent_id = agent_id
        self.user_id = user_id
        self.session_id = session_id or uuid.uuid4().hex
        self.log_turns = log_turns
        self._clock = clock
        self.status = ChatStatus.READY
        self.entries: List[ChatEntry] = []
        self.error: Optional[str] = None
        self.usage: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def can_submit(self) -> bool:
        return self.status == ChatStatus.READY

    def submit(self, text: str) -> Optional[ChatEntry]:
        """
        Send a user message and append the assistant reply.

        Returns:
            The assistant entry, or None when nothing was sent (empty text,
            busy, or rate limited) or the request failed.
        """
        text = (text or "").strip()
        with self._lock:
            if not text or not self.can_submit:
                return None
            self.status = ChatStatus.WAITING
            self.error = None
        self._append("user", text)

        try:
            reply = self.client.request_reply(
                text, self.session_id, agent_id=self.agent_id, user_id=self.user_id
            )
        except RateLimitError as e:
            self.usage = e.usage
            self.error = str(e) or RATE_LIMITED_MESSAGE
            self._append("system", self.error)
            with self._lock:
                self.status = ChatStatus.RATE_LIMITED
            return None
        except HandoffTimeoutError:
            entry = self._append("assistant", config.AI_FALLBACK_REPLY, is_fallback=True)
            with self._lock:
                self.status = ChatStatus.READY
            return entry
        except HandoffError as e:
            logger.error(f"Chat request failed: {e}")
            self.error = "The assistant could not answer. Please try again."
            with self._lock:
                self.status = ChatStatus.READY
            return None

        self.usage = reply.usage
        entry = self._append("assistant", reply.text)
        with self._lock:
            self.status = ChatStatus.READY
        return entry

    def reset(self) -> None:
        """Leave the rate-limited state and clear the error."""
        with self._lock:
            self.status = ChatStatus.READY
            self.error = None

    def _append(self, role: str, text: str, is_fallback: bool = False) -> ChatEntry:
        entry = ChatEntry(role=role, text=text, created_at=self._clock(), is_fallback=is_fallback)
        self.entries.append(entry)
        if self.log_turns:
            try:
                repository.insert(
                    "conversation_logs",
                    {"session_id": self.session_id, "role": role, "content": text},
                )
            except StorageError as e:
                logger.warning(f"Could not log conversation turn: {e}")
        return entry


class AutomationClient:
    """
    Controls for the remote email-processing agent.

    status() is debounced so rapid UI refreshes hit the endpoint at most once
    per window.
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        timeout_seconds: float = config.AUTOMATION_TIMEOUT_SECONDS,
        debounce_seconds: float = config.STATUS_CHECK_DEBOUNCE_SECONDS,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.endpoint_url = endpoint_url or config.AUTOMATION_ENDPOINT_URL
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self._status = Debouncer(self._fetch_status, debounce_seconds, clock=clock)

    def _call(self, method: str, user_id: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.session.request(
                method,
                self.endpoint_url,
                params={"user_id": user_id},
                timeout=self.timeout_seconds,
                **kwargs,
            )
        except requests.exceptions.Timeout as e:
            raise HandoffTimeoutError("Automation endpoint timed out") from e
        except requests.exceptions.RequestException as e:
            raise HandoffError(f"Automation endpoint unreachable: {e}") from e

        data = _safe_json(response)
        if response.status_code >= 400:
            raise HandoffError(
                f"Automation {method} failed with HTTP {response.status_code}: {data.get('error', '')}"
            )
        return data

    def _fetch_status(self, user_id: str) -> Dict[str, Any]:
        return self._call("GET", user_id)

    def status(self, user_id: str) -> Dict[str, Any]:
        return self._status(user_id)

    def start(self, user_id: str) -> Dict[str, Any]:
        self._status.reset()
        return self._call("POST", user_id, json={"user_id": user_id})

    def stop(self, user_id: str) -> Dict[str, Any]:
        self._status.reset()
        return self._call("DELETE", user_id)

    def test(self, user_id: str) -> Dict[str, Any]:
        return self._call("PUT", user_id, json={"user_id": user_id})
