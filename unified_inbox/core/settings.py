"""
Application settings management.

Key-value settings persisted in the settings table, plus the typed
UserSettings view and helpers for the remembered active account.
"""
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

from unified_inbox import config
from unified_inbox.storage import repository

logger = logging.getLogger(__name__)

USER_SETTINGS_KEY = "user_settings"
ACTIVE_ACCOUNT_KEY = "active_account_email"


@dataclass
class UserSettings:
    """User application settings."""
    poll_interval_seconds: int = config.POLL_INTERVAL_SECONDS
    page_size: int = config.DEFAULT_PAGE_SIZE
    show_notifications: bool = True
    agent_id: Optional[str] = None


def get_setting(key: str) -> Optional[str]:
    row = repository.select_one("settings", {"key": key})
    return row["value"] if row else None


def set_setting(key: str, value: str) -> None:
    repository.insert(
        "settings",
        {"key": key, "value": value, "updated_at": datetime.now().isoformat()},
        replace=True,
    )


def delete_setting(key: str) -> None:
    repository.delete("settings", {"key": key})


def load_settings() -> UserSettings:
    """
    Load user settings from storage.

    Returns:
        UserSettings object. Returns default settings if none are stored
        or the stored value cannot be parsed.
    """
    raw = get_setting(USER_SETTINGS_KEY)
    if not raw:
        return UserSettings()
    try:
        data = json.loads(raw)
        defaults = UserSettings()
        return UserSettings(
            poll_interval_seconds=int(data.get("poll_interval_seconds", defaults.poll_interval_seconds)),
            page_size=int(data.get("page_size", defaults.page_size)),
            show_notifications=bool(data.get("show_notifications", defaults.show_notifications)),
            agent_id=data.get("agent_id"),
        )
    except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
        logger.warning("Stored user settings are unreadable, using defaults")
        return UserSettings()


def save_settings(settings: UserSettings) -> None:
    set_setting(USER_SETTINGS_KEY, json.dumps(asdict(settings)))


def load_active_account() -> Optional[str]:
    """Return the email address of the remembered active account, if any."""
    return get_setting(ACTIVE_ACCOUNT_KEY)


def save_active_account(email_address: Optional[str]) -> None:
    if email_address:
        set_setting(ACTIVE_ACCOUNT_KEY, email_address)
    else:
        delete_setting(ACTIVE_ACCOUNT_KEY)
