"""
Global settings and constants for the unified inbox.

This module provides configuration constants and helpers. It is
framework-agnostic and designed to be easily unit-testable: values are plain
module attributes that load_env() may override from the environment.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Application paths
APP_NAME: str = "UnifiedInbox"
BASE_DIR: Path = Path.home() / ".unified_inbox"
SQLITE_DB_PATH: Path = BASE_DIR / "unified_inbox.db"
SECRET_KEY_FILE: Path = BASE_DIR / "secret.key"
LOG_DIR: Path = BASE_DIR / "logs"

# Polling and caching
POLL_INTERVAL_SECONDS: int = 300  # 5 minutes
FOLDER_CACHE_TTL_SECONDS: int = 600  # 10 minutes
DEFAULT_PAGE_SIZE: int = 50
NOTIFICATION_DISMISS_SECONDS: float = 5.0

# HTTP
HTTP_TIMEOUT_SECONDS: int = 30

# AI hand-off
AI_ENDPOINT_URL: str = "http://localhost:3001/api/ai-email-response"
AI_TIMEOUT_SECONDS: int = 30
AUTOMATION_ENDPOINT_URL: str = "http://localhost:3001/api/polling-user"
AUTOMATION_TIMEOUT_SECONDS: int = 10
STATUS_CHECK_DEBOUNCE_SECONDS: float = 5.0
AI_FALLBACK_REPLY: str = (
    "Sorry, the assistant is taking too long to answer. "
    "Please try again in a moment."
)

# Knowledge document uploads
MAX_KNOWLEDGE_FILE_BYTES: int = 10 * 1024 * 1024
ALLOWED_KNOWLEDGE_EXTENSIONS = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
}

# OAuth
OAUTH_REDIRECT_PORT: int = 8080
OAUTH_REDIRECT_URI: str = f"http://localhost:{OAUTH_REDIRECT_PORT}/callback"

GMAIL_CLIENT_ID: Optional[str] = None
GMAIL_CLIENT_SECRET: Optional[str] = None
GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",
]

MICROSOFT_CLIENT_ID: Optional[str] = None
MICROSOFT_CLIENT_SECRET: Optional[str] = None
MICROSOFT_TENANT: str = "common"
MICROSOFT_SCOPES = [
    "offline_access",
    "https://graph.microsoft.com/User.Read",
    "https://graph.microsoft.com/Mail.Read",
    "https://graph.microsoft.com/Mail.Send",
    "https://graph.microsoft.com/Mail.ReadWrite",
]


def load_env(env_file: Optional[Path] = None) -> None:
    """
    Load environment variables and apply sensible defaults.

    Reads a .env file (if present) with python-dotenv, then pulls OAuth
    credentials, endpoint URLs and path overrides from the environment.
    It should be called once at application startup.

    Args:
        env_file: Optional explicit path to a .env file.
    """
    global GMAIL_CLIENT_ID, GMAIL_CLIENT_SECRET
    global MICROSOFT_CLIENT_ID, MICROSOFT_CLIENT_SECRET, MICROSOFT_TENANT
    global AI_ENDPOINT_URL, AUTOMATION_ENDPOINT_URL
    global SQLITE_DB_PATH, SECRET_KEY_FILE, LOG_DIR

    load_dotenv(dotenv_path=env_file)

    GMAIL_CLIENT_ID = os.environ.get("GMAIL_CLIENT_ID")
    GMAIL_CLIENT_SECRET = os.environ.get("GMAIL_CLIENT_SECRET")
    MICROSOFT_CLIENT_ID = os.environ.get("MICROSOFT_CLIENT_ID")
    MICROSOFT_CLIENT_SECRET = os.environ.get("MICROSOFT_CLIENT_SECRET")
    MICROSOFT_TENANT = os.environ.get("MICROSOFT_TENANT", MICROSOFT_TENANT)

    AI_ENDPOINT_URL = os.environ.get("AI_ENDPOINT_URL", AI_ENDPOINT_URL)
    AUTOMATION_ENDPOINT_URL = os.environ.get("AUTOMATION_ENDPOINT_URL", AUTOMATION_ENDPOINT_URL)

    db_path_env = os.environ.get("UNIFIED_INBOX_DB_PATH")
    if db_path_env:
        SQLITE_DB_PATH = Path(db_path_env)

    key_file_env = os.environ.get("UNIFIED_INBOX_KEY_FILE")
    if key_file_env:
        SECRET_KEY_FILE = Path(key_file_env)

    log_dir_env = os.environ.get("UNIFIED_INBOX_LOG_DIR")
    if log_dir_env:
        LOG_DIR = Path(log_dir_env)

    SQLITE_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
