"""
Main inbox window.

Presentation only: every operation goes through InboxSession, and anything
that touches the network runs on a TaskThread.
"""
import logging
import uuid
import webbrowser
from typing import Optional

from PyQt5.QtCore import Qt
from PyQt5.QtWidgets import (
    QAction, QComboBox, QFileDialog, QHBoxLayout, QInputDialog, QLabel, QLineEdit,
    QListWidget, QListWidgetItem, QMainWindow, QMessageBox, QPushButton,
    QSplitter, QStatusBar, QTextEdit, QVBoxLayout, QWidget,
)

from unified_inbox.auth import connections
from unified_inbox.auth.oauth import extract_authorization_code, get_oauth_provider
from unified_inbox.core import knowledge, search
from unified_inbox.core.ai_handoff import AIHandoffClient, AutomationClient, ChatSession
from unified_inbox.core.inbox import InboxSession
from unified_inbox.core.state import Failed, Loaded, Loading
from unified_inbox.models import ComposeMode, FolderKey, Message, Provider
from unified_inbox.ui.chat_window import ChatDialog
from unified_inbox.ui.compose_window import ComposeDialog
from unified_inbox.ui.notifications import NotificationBridge
from unified_inbox.ui.workers import TaskThread
from unified_inbox.utils.errors import InboxError, human_friendly_message
from unified_inbox.utils.helpers import truncate_text

logger = logging.getLogger(__name__)

FOLDER_LABELS = {
    FolderKey.INBOX: "Inbox",
    FolderKey.SENT: "Sent",
    FolderKey.DRAFTS: "Drafts",
    FolderKey.ARCHIVE: "Archive",
    FolderKey.SPAM: "Spam",
    FolderKey.TRASH: "Trash",
}


class InboxWindow(QMainWindow):
    """Account selector, folder list, message list and preview."""

    def __init__(self, session: InboxSession, handoff: AIHandoffClient):
        super().__init__()
        self.session = session
        self.handoff = handoff
        self.automation = AutomationClient()
        self._threads = []
        self.setWindowTitle("Unified Inbox")
        self.setMinimumSize(1000, 640)

        self.setup_ui()
        self.setup_menu()
        self.bridge = NotificationBridge(session.notifications, self)
        self.bridge.notification_received.connect(lambda *_: self._after_folder_load(None))

        self.reload_accounts()
        self.run_task(self._initial_load, self._after_folder_load)
        self.session.start_polling()

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def setup_ui(self):
        central = QWidget()
        layout = QVBoxLayout()

        top_bar = QHBoxLayout()
        self.account_combo = QComboBox()
        self.account_combo.activated.connect(self.on_account_activated)
        top_bar.addWidget(QLabel("Account:"))
        top_bar.addWidget(self.account_combo)

        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search emails...")
        self.search_input.textChanged.connect(self.render_messages)
        top_bar.addWidget(self.search_input, 1)

        self.filter_combo = QComboBox()
        for mode in search.FILTER_MODES:
            self.filter_combo.addItem(mode.capitalize(), mode)
        self.filter_combo.currentIndexChanged.connect(self.render_messages)
        top_bar.addWidget(self.filter_combo)

        refresh_button = QPushButton("Refresh")
        refresh_button.clicked.connect(self.on_refresh_clicked)
        top_bar.addWidget(refresh_button)
        compose_button = QPushButton("Compose")
        compose_button.clicked.connect(lambda: self.open_compose(ComposeMode.COMPOSE))
        top_bar.addWidget(compose_button)
        layout.addLayout(top_bar)

        splitter = QSplitter(Qt.Horizontal)
        self.folder_list = QListWidget()
        self.folder_list.itemClicked.connect(self.on_folder_clicked)
        splitter.addWidget(self.folder_list)

        self.message_list = QListWidget()
        self.message_list.currentRowChanged.connect(self.on_message_selected)
        splitter.addWidget(self.message_list)

        preview = QWidget()
        preview_layout = QVBoxLayout()
        self.preview = QTextEdit()
        self.preview.setReadOnly(True)
        preview_layout.addWidget(self.preview)
        actions = QHBoxLayout()
        for label, handler in (
            ("Reply", lambda: self.open_compose(ComposeMode.REPLY)),
            ("Forward", lambda: self.open_compose(ComposeMode.FORWARD)),
            ("Ask Assistant", self.open_chat),
        ):
            button = QPushButton(label)
            button.clicked.connect(handler)
            actions.addWidget(button)
        preview_layout.addLayout(actions)
        preview.setLayout(preview_layout)
        splitter.addWidget(preview)
        splitter.setSizes([180, 420, 400])

        layout.addWidget(splitter, 1)
        central.setLayout(layout)
        self.setCentralWidget(central)

        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

    def setup_menu(self):
        accounts_menu = self.menuBar().addMenu("Accounts")
        for label, provider in (("Connect Gmail...", Provider.GMAIL), ("Connect Outlook...", Provider.MICROSOFT)):
            action = QAction(label, self)
            action.triggered.connect(lambda _=False, p=provider: self.connect_account(p))
            accounts_menu.addAction(action)
        disconnect = QAction("Disconnect Current Account", self)
        disconnect.triggered.connect(self.disconnect_account)
        accounts_menu.addAction(disconnect)

        assistant_menu = self.menuBar().addMenu("Assistant")
        upload = QAction("Upload Knowledge Document...", self)
        upload.triggered.connect(self.upload_knowledge)
        assistant_menu.addAction(upload)
        for label, handler in (
            ("Automation Status", self.automation_status),
            ("Start Automation", self.start_automation),
            ("Stop Automation", self.stop_automation),
        ):
            action = QAction(label, self)
            action.triggered.connect(handler)
            assistant_menu.addAction(action)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def run_task(self, func, on_success=None):
        thread = TaskThread(func, self)
        if on_success is not None:
            thread.succeeded.connect(on_success)
        thread.failed.connect(lambda msg: self.status_bar.showMessage(msg, 8000))
        thread.finished.connect(lambda: self._threads.remove(thread))
        self._threads.append(thread)
        thread.start()

    def selected_message(self) -> Optional[Message]:
        item = self.message_list.currentItem()
        return item.data(Qt.UserRole) if item else None

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def reload_accounts(self):
        self.account_combo.clear()
        active = self.session.active_connection
        for index, connection in enumerate(self.session.selector.connections):
            self.account_combo.addItem(
                f"{connection.display_name} ({connection.provider.value})",
                connection.email_address,
            )
            if active and connection.email_address == active.email_address:
                self.account_combo.setCurrentIndex(index)

    def on_account_activated(self, index: int):
        email_address = self.account_combo.itemData(index)
        if not email_address:
            return
        self.message_list.clear()
        self.preview.clear()
        self.run_task(lambda: self._switch_account(email_address), self._after_folder_load)

    def _switch_account(self, email_address: str):
        self.session.selector.select_account(email_address)
        return self.session.open_folder(FolderKey.INBOX)

    def connect_account(self, provider: Provider):
        try:
            oauth = get_oauth_provider(provider)
        except InboxError as e:
            QMessageBox.warning(self, "Connect Account", human_friendly_message(e))
            return
        webbrowser.open(oauth.get_authorization_url(uuid.uuid4().hex))
        redirect, ok = QInputDialog.getText(
            self,
            "Connect Account",
            "After signing in, paste the address your browser was redirected to:",
        )
        if not ok or not redirect.strip():
            return

        def complete():
            code = extract_authorization_code(redirect)
            connection = connections.complete_oauth_callback(provider, code)
            self.session.selector.add_connection(connection)
            self._initial_load()
            return connection

        self.run_task(complete, self._on_account_connected)

    def _on_account_connected(self, connection):
        self.reload_accounts()
        self._after_folder_load(None)
        self.status_bar.showMessage(f"Connected {connection.email_address}", 5000)

    def disconnect_account(self):
        connection = self.session.active_connection
        if connection is None:
            return
        answer = QMessageBox.question(
            self, "Disconnect", f"Disconnect {connection.email_address}?"
        )
        if answer != QMessageBox.Yes:
            return
        try:
            connections.delete_connection(connection.id)
        except InboxError as e:
            QMessageBox.warning(self, "Disconnect", human_friendly_message(e))
            return
        self.run_task(
            lambda: self.session.selector.remove_connection(connection.email_address),
            self._on_account_removed,
        )

    def _on_account_removed(self, _active):
        self.reload_accounts()
        self.message_list.clear()
        self.preview.clear()
        self._after_folder_load(None)

    # ------------------------------------------------------------------
    # Folders and messages
    # ------------------------------------------------------------------

    def _initial_load(self):
        if self.session.active_connection is None:
            return None
        if not self.session.folder_map:
            self.session.load_folders()
        return self.session.open_folder(FolderKey.INBOX)

    def _after_folder_load(self, _result):
        self.render_folders()
        self.render_messages()

    def render_folders(self):
        self.folder_list.clear()
        state = self.session.folder_list_state
        if isinstance(state, Failed):
            item = QListWidgetItem(f"⚠ {state.error}")
            item.setFlags(Qt.NoItemFlags)
            self.folder_list.addItem(item)
            if state.reconnect_required:
                self.status_bar.showMessage("Please reconnect this account.", 8000)
            return
        for key, label in FOLDER_LABELS.items():
            if key not in self.session.folder_map:
                continue
            folder = self.session.folder_map[key]
            text = f"{label} ({folder.unread_count})" if folder.unread_count else label
            if isinstance(self.session.folder_state(key), Failed):
                text += "  ⚠"
            item = QListWidgetItem(text)
            item.setData(Qt.UserRole, key)
            self.folder_list.addItem(item)

    def render_messages(self, *_):
        self.message_list.clear()
        state = self.session.folder_state(self.session.current_folder)
        if isinstance(state, Loading):
            self.status_bar.showMessage("Loading...")
        elif isinstance(state, Failed):
            self.status_bar.showMessage(state.error, 8000)
        elif isinstance(state, Loaded):
            self.status_bar.clearMessage()

        messages = self.session.filtered_messages(
            self.search_input.text(), self.filter_combo.currentData() or search.FILTER_ALL
        )
        for message in messages:
            marker = "" if message.is_read else "● "
            star = " ★" if message.is_starred else ""
            text = f"{marker}{truncate_text(message.sender, 30)}{star}\n{truncate_text(message.subject, 60)}"
            item = QListWidgetItem(text)
            item.setData(Qt.UserRole, message)
            self.message_list.addItem(item)

    def on_folder_clicked(self, item: QListWidgetItem):
        key = item.data(Qt.UserRole)
        if key is None:
            return
        self.run_task(lambda: self.session.open_folder(key), self._after_folder_load)

    def on_refresh_clicked(self):
        self.run_task(self.session.refresh, self._after_folder_load)

    def on_message_selected(self, _row: int):
        message = self.selected_message()
        if message is None:
            self.preview.clear()
            return
        received = message.received_at.strftime("%Y-%m-%d %H:%M") if message.received_at else ""
        self.preview.setPlainText(
            f"From: {message.sender}\nDate: {received}\nSubject: {message.subject}\n\n"
            f"{message.body or message.body_preview}"
        )

    # ------------------------------------------------------------------
    # Compose and assistant
    # ------------------------------------------------------------------

    def open_compose(self, mode: ComposeMode):
        original = self.selected_message()
        if mode != ComposeMode.COMPOSE and original is None:
            self.status_bar.showMessage("Select a message first.", 4000)
            return
        dialog = ComposeDialog(self.session.compose(mode, original), self.session.send, self)
        if dialog.exec_():
            self.status_bar.showMessage("Message sent.", 5000)

    def upload_knowledge(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Upload Knowledge Document", "", "Documents (*.pdf *.doc *.docx *.txt)"
        )
        if not path:
            return
        try:
            doc = knowledge.register_document(path, agent_id=self.session.agent_id)
        except InboxError as e:
            QMessageBox.warning(self, "Upload", human_friendly_message(e))
            return
        self.status_bar.showMessage(f"Uploaded {doc.filename}; processing is pending.", 5000)

    def _automation_user(self) -> Optional[str]:
        connection = self.session.active_connection
        if connection is None:
            self.status_bar.showMessage("Connect an account first.", 4000)
            return None
        return connection.email_address

    def _run_automation(self, call):
        user_id = self._automation_user()
        if user_id is None:
            return
        self.run_task(
            lambda: call(user_id),
            lambda data: self.status_bar.showMessage(
                "Automation is running." if data.get("active") else "Automation is stopped.", 5000
            ),
        )

    def automation_status(self):
        self._run_automation(self.automation.status)

    def start_automation(self):
        self._run_automation(self.automation.start)

    def stop_automation(self):
        self._run_automation(self.automation.stop)

    def open_chat(self):
        message = self.selected_message()
        initial = ""
        if message is not None:
            initial = f"Suggest a reply to: {message.subject}\n{message.body or message.body_preview}"
        chat = ChatSession(self.handoff, agent_id=self.session.agent_id)
        ChatDialog(chat, self, initial_text=initial).exec_()

    def closeEvent(self, event):
        self.session.close()
        for thread in list(self._threads):
            thread.requestInterruption()
            thread.wait(2000)
        super().closeEvent(event)
