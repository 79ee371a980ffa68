"""
Logging setup for the unified inbox.

One rotating app.log under the data directory plus a quiet console. The
poller and UI workers log from their own threads, so file records carry the
thread name.
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from unified_inbox import config

LOG_FILE_NAME = "app.log"
MAX_LOG_SIZE = 10 * 1024 * 1024
BACKUP_COUNT = 5

FILE_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s - %(message)s"

# HTTP and OAuth libraries log every request at DEBUG
NOISY_LOGGERS = ("urllib3", "requests", "google", "google_auth_oauthlib", "PyQt5")


def setup_logging(debug: bool = False, log_dir: Optional[Path] = None) -> Path:
    """
    Install the file and console handlers on the root logger.

    Calling it again replaces the handlers instead of stacking them.

    Args:
        debug: Log at DEBUG to both handlers; otherwise the file gets INFO
            and the console only WARNING.
        log_dir: Where app.log lives (defaults to config.LOG_DIR).

    Returns:
        Path of the log file.
    """
    log_dir = log_dir or config.LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    level = logging.DEBUG if debug else logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    file_handler = logging.handlers.RotatingFileHandler(
        filename=str(log_file),
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Unified Inbox logging at {logging.getLevelName(level)} to {log_file}"
    )
    return log_file
