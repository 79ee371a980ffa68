"""
Core domain models for the unified inbox.

This module contains pure domain models (dataclasses and enums) without any
network, database or UI dependencies. Both provider adapters produce the same
Message type, so nothing downstream branches on provider wire formats.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Provider(str, Enum):
    """Supported mail providers."""
    GMAIL = "gmail"
    MICROSOFT = "microsoft"


class FolderKey(str, Enum):
    """Canonical folder labels, independent of provider folder ids."""
    INBOX = "inbox"
    SENT = "sent"
    DRAFTS = "drafts"
    ARCHIVE = "archive"
    SPAM = "spam"
    TRASH = "trash"


class ComposeMode(str, Enum):
    """Entry modes of the compose surface."""
    COMPOSE = "compose"
    REPLY = "reply"
    FORWARD = "forward"


@dataclass(slots=True)
class MailAccountConnection:
    """A connected mail account and its OAuth token pair."""
    provider: Provider
    email_address: str
    access_token: str = ""
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    display_name: str = ""
    id: Optional[int] = None


@dataclass(slots=True)
class Folder:
    """A provider folder (Graph mail folder or Gmail label)."""
    id: str
    name: str
    folder_key: Optional[FolderKey] = None
    well_known: bool = False  # True when the provider itself identified the folder
    unread_count: int = 0
    total_count: int = 0


@dataclass(slots=True)
class Message:
    """Normalized message shape shared by every provider adapter."""
    id: str
    subject: str = ""
    sender: str = ""
    received_at: Optional[datetime] = None
    is_read: bool = False
    is_starred: bool = False
    body_preview: str = ""
    body: Optional[str] = None
    thread_id: Optional[str] = None
    internet_message_id: Optional[str] = None


@dataclass(slots=True)
class FolderCacheEntry:
    """Cached message list of one folder and the time it was fetched."""
    folder_key: FolderKey
    messages: List[Message]
    fetched_at: float


@dataclass(slots=True)
class ComposeDraft:
    """User input of the compose surface; never persisted."""
    to: str = ""
    cc: str = ""
    bcc: str = ""
    subject: str = ""
    body: str = ""
    mode: ComposeMode = ComposeMode.COMPOSE
    reply_to_id: Optional[str] = None
    thread_id: Optional[str] = None
    in_reply_to: Optional[str] = None


@dataclass(slots=True)
class OutgoingMessage:
    """Send payload handed to a provider adapter."""
    to: List[str]
    subject: str
    body: str
    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)
    reply_to_id: Optional[str] = None
    thread_id: Optional[str] = None
    in_reply_to: Optional[str] = None
