"""
Chat dialog for the AI assistant.
"""
import html

from PyQt5.QtWidgets import QDialog, QHBoxLayout, QLabel, QLineEdit, QPushButton, QTextEdit, QVBoxLayout

from unified_inbox.core.ai_handoff import ChatSession, ChatStatus
from unified_inbox.ui.workers import TaskThread

ROLE_LABELS = {"user": "You", "assistant": "Assistant", "system": "Notice"}


class ChatDialog(QDialog):
    """Transcript view plus input; input stays disabled while rate limited."""

    def __init__(self, chat: ChatSession, parent=None, initial_text: str = ""):
        super().__init__(parent)
        self.chat = chat
        self._thread = None
        self.setWindowTitle("Assistant")
        self.setMinimumSize(520, 460)
        self.setup_ui()
        self.input.setText(initial_text)
        self.render()

    def setup_ui(self):
        layout = QVBoxLayout()
        self.transcript = QTextEdit()
        self.transcript.setReadOnly(True)
        layout.addWidget(self.transcript)

        self.status_label = QLabel("")
        self.status_label.setWordWrap(True)
        layout.addWidget(self.status_label)

        row = QHBoxLayout()
        self.input = QLineEdit()
        self.input.setPlaceholderText("Ask the assistant...")
        self.input.returnPressed.connect(self.on_submit)
        self.send_button = QPushButton("Send")
        self.send_button.clicked.connect(self.on_submit)
        self.reset_button = QPushButton("Reset")
        self.reset_button.clicked.connect(self.on_reset)
        row.addWidget(self.input)
        row.addWidget(self.send_button)
        row.addWidget(self.reset_button)
        layout.addLayout(row)
        self.setLayout(layout)

    def render(self):
        lines = []
        for entry in self.chat.entries:
            label = ROLE_LABELS.get(entry.role, entry.role)
            lines.append(f"<p><b>{label}:</b> {html.escape(entry.text)}</p>")
        self.transcript.setHtml("".join(lines))

        status = self.chat.status
        self.input.setEnabled(status == ChatStatus.READY)
        self.send_button.setEnabled(status == ChatStatus.READY)
        self.reset_button.setVisible(status == ChatStatus.RATE_LIMITED)
        if status == ChatStatus.WAITING:
            self.status_label.setText("Waiting for the assistant...")
        elif self.chat.error:
            self.status_label.setText(self.chat.error)
        else:
            self.status_label.setText("")

    def on_submit(self):
        text = self.input.text().strip()
        if not text or not self.chat.can_submit:
            return
        self.input.clear()
        self._thread = TaskThread(lambda: self.chat.submit(text), self)
        self._thread.succeeded.connect(lambda _: self.render())
        self._thread.failed.connect(lambda _: self.render())
        self._thread.start()
        self.render()

    def on_reset(self):
        self.chat.reset()
        self.render()
