"""
Compose dialog for new messages, replies and forwards.
"""
from typing import Callable, Dict

from PyQt5.QtWidgets import (
    QDialog, QFormLayout, QHBoxLayout, QLabel, QLineEdit, QPushButton,
    QTextEdit, QVBoxLayout, QWidget,
)

from unified_inbox.core.compose import ComposeSession, validate_draft
from unified_inbox.models import ComposeMode
from unified_inbox.ui.workers import TaskThread

TITLES = {
    ComposeMode.COMPOSE: "New Message",
    ComposeMode.REPLY: "Reply",
    ComposeMode.FORWARD: "Forward",
}

ERROR_STYLE = "QLabel { color: #d32f2f; font-size: 11px; }"


class ComposeDialog(QDialog):
    """
    Edits a ComposeSession's draft and sends it.

    Field errors are shown inline next to the field and nothing is sent.
    The dialog closes only after a successful send.
    """

    def __init__(self, session: ComposeSession, send: Callable[[ComposeSession], bool], parent=None):
        super().__init__(parent)
        self.session = session
        self._send = send
        self._thread = None
        self.setWindowTitle(TITLES.get(session.draft.mode, "New Message"))
        self.setMinimumSize(600, 480)
        self.setup_ui()

    def setup_ui(self):
        draft = self.session.draft
        layout = QVBoxLayout()
        form = QFormLayout()

        self.to_input = QLineEdit(draft.to)
        self.cc_input = QLineEdit(draft.cc)
        self.bcc_input = QLineEdit(draft.bcc)
        self.subject_input = QLineEdit(draft.subject)
        self.body_input = QTextEdit()
        self.body_input.setPlainText(draft.body)

        self.error_labels: Dict[str, QLabel] = {}
        for name, label, widget in (
            ("to", "To:", self.to_input),
            ("cc", "Cc:", self.cc_input),
            ("bcc", "Bcc:", self.bcc_input),
            ("subject", "Subject:", self.subject_input),
        ):
            form.addRow(label, self._with_error(name, widget))
        layout.addLayout(form)
        layout.addWidget(self.body_input)
        body_error = QLabel("")
        body_error.setStyleSheet(ERROR_STYLE)
        self.error_labels["body"] = body_error
        layout.addWidget(body_error)

        self.send_error_label = QLabel("")
        self.send_error_label.setStyleSheet(ERROR_STYLE)
        self.send_error_label.setWordWrap(True)
        layout.addWidget(self.send_error_label)

        buttons = QHBoxLayout()
        buttons.addStretch()
        cancel = QPushButton("Cancel")
        cancel.clicked.connect(self.reject)
        self.send_button = QPushButton("Send")
        self.send_button.setDefault(True)
        self.send_button.clicked.connect(self.on_send_clicked)
        buttons.addWidget(cancel)
        buttons.addWidget(self.send_button)
        layout.addLayout(buttons)
        self.setLayout(layout)

        if draft.mode == ComposeMode.REPLY:
            self.body_input.setFocus()

    def _with_error(self, name: str, widget: QWidget) -> QWidget:
        container = QWidget()
        box = QVBoxLayout()
        box.setContentsMargins(0, 0, 0, 0)
        box.addWidget(widget)
        error = QLabel("")
        error.setStyleSheet(ERROR_STYLE)
        error.hide()
        box.addWidget(error)
        container.setLayout(box)
        self.error_labels[name] = error
        return container

    def _collect(self):
        draft = self.session.draft
        draft.to = self.to_input.text()
        draft.cc = self.cc_input.text()
        draft.bcc = self.bcc_input.text()
        draft.subject = self.subject_input.text()
        draft.body = self.body_input.toPlainText()

    def _show_errors(self, errors: Dict[str, str]):
        for name, label in self.error_labels.items():
            label.setText(errors.get(name, ""))
            label.setVisible(name in errors)

    def on_send_clicked(self):
        self._collect()
        errors = validate_draft(self.session.draft)
        self._show_errors(errors)
        if errors:
            return

        self.send_button.setEnabled(False)
        self.send_error_label.setText("Sending...")
        self._thread = TaskThread(lambda: self._send(self.session), self)
        self._thread.succeeded.connect(self._on_send_finished)
        self._thread.failed.connect(self._on_send_failed)
        self._thread.start()

    def _on_send_finished(self, sent: bool):
        self.send_button.setEnabled(True)
        if sent:
            self.accept()
            return
        self._show_errors(self.session.errors)
        self.send_error_label.setText(self.session.send_error or "")

    def _on_send_failed(self, message: str):
        self.send_button.setEnabled(True)
        self.send_error_label.setText(message)
