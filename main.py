"""
Main application entry point
"""
import logging
import sys

from PyQt5.QtCore import Qt
from PyQt5.QtWidgets import QApplication

from unified_inbox.auth.connections import list_connections
from unified_inbox.config import load_env
from unified_inbox.core.account_selector import AccountSelector
from unified_inbox.core.ai_handoff import AIHandoffClient
from unified_inbox.core.inbox import InboxSession
from unified_inbox.core.settings import load_settings
from unified_inbox.storage.db import init_db
from unified_inbox.ui.main_window import InboxWindow
from unified_inbox.utils.logging_cfg import setup_logging

logger = logging.getLogger(__name__)


def main():
    """Main function"""
    load_env()
    setup_logging(debug="--debug" in sys.argv)
    init_db()

    user_settings = load_settings()
    handoff = AIHandoffClient()
    selector = AccountSelector(list_connections)
    # Folders are loaded by the window on a worker thread
    selector.load()
    session = InboxSession(
        selector,
        handoff=handoff,
        poll_interval_seconds=user_settings.poll_interval_seconds,
        page_size=user_settings.page_size,
        agent_id=user_settings.agent_id,
    )

    QApplication.setAttribute(Qt.AA_EnableHighDpiScaling, True)
    QApplication.setAttribute(Qt.AA_UseHighDpiPixmaps, True)

    app = QApplication(sys.argv)
    app.setApplicationName("Unified Inbox")
    app.setOrganizationName("UnifiedInbox")

    window = InboxWindow(session, handoff)
    window.show()
    logger.info("Main window shown")

    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
