"""
Shared fixtures: a temporary SQLite database and key file per test, a
controllable clock and an in-memory mail provider.
"""
import os

from cryptography.fernet import Fernet

# Encryption helpers read the key from the environment when set
os.environ.setdefault("UNIFIED_INBOX_ENCRYPTION_KEY", Fernet.generate_key().decode())

import pytest
from datetime import datetime, timezone
from typing import Dict, List

from unified_inbox import config
from unified_inbox.models import (
    Folder,
    FolderKey,
    MailAccountConnection,
    Message,
    OutgoingMessage,
    Provider,
)
from unified_inbox.providers.base import MailProvider
from unified_inbox.storage import db


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(MailProvider):
    """In-memory adapter that records every call."""

    def __init__(self, connection: MailAccountConnection, folders=None, messages=None):
        super().__init__(connection, token_refresher=None, session=object())
        self.folders: List[Folder] = folders if folders is not None else default_folders()
        self.messages: Dict[str, List[Message]] = messages or {}
        self.list_folders_calls = 0
        self.list_messages_calls: List[str] = []
        self.sent: List[OutgoingMessage] = []
        self.fail_with = None

    def list_folders(self) -> List[Folder]:
        self.list_folders_calls += 1
        if self.fail_with:
            raise self.fail_with
        return [Folder(f.id, f.name, f.folder_key, f.well_known) for f in self.folders]

    def list_messages(self, folder_id: str, page_size: int = config.DEFAULT_PAGE_SIZE) -> List[Message]:
        self.list_messages_calls.append(folder_id)
        if self.fail_with:
            raise self.fail_with
        return list(self.messages.get(folder_id, []))[:page_size]

    def send_message(self, payload: OutgoingMessage) -> None:
        if self.fail_with:
            raise self.fail_with
        self.sent.append(payload)


def default_folders() -> List[Folder]:
    return [
        Folder("INBOX", "INBOX", FolderKey.INBOX, True),
        Folder("SENT", "SENT", FolderKey.SENT, True),
        Folder("DRAFT", "DRAFT", FolderKey.DRAFTS, True),
        Folder("SPAM", "SPAM", FolderKey.SPAM, True),
        Folder("TRASH", "TRASH", FolderKey.TRASH, True),
        Folder("Label_7", "Archive", None, False),
    ]


def make_message(index: int, **overrides) -> Message:
    values = dict(
        id=f"msg-{index}",
        subject=f"Subject {index}",
        sender=f"Sender {index} <sender{index}@example.com>",
        received_at=datetime(2024, 5, 1, 12, index % 60, tzinfo=timezone.utc),
        is_read=False,
        is_starred=False,
        body_preview=f"Preview {index}",
    )
    values.update(overrides)
    return Message(**values)


def make_connection(email: str = "alice@example.com", provider: Provider = Provider.GMAIL) -> MailAccountConnection:
    return MailAccountConnection(
        provider=provider,
        email_address=email,
        access_token="access-" + email,
        refresh_token="refresh-" + email,
        display_name=email,
    )


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the database and key file at a temporary directory."""
    monkeypatch.setattr(config, "SQLITE_DB_PATH", tmp_path / "test.db")
    monkeypatch.setattr(config, "SECRET_KEY_FILE", tmp_path / "secret.key")
    monkeypatch.setattr(config, "BASE_DIR", tmp_path)
    db.init_db()
    return tmp_path / "test.db"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def connection():
    return make_connection()


@pytest.fixture
def fake_provider(connection):
    return FakeProvider(connection)
