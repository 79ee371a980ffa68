"""
Toast notifications for the inbox window.

NotificationBridge forwards NotificationCenter pushes (which may come from the
poller thread) onto the GUI thread through a Qt signal, where they are shown
as ToastWidget popups.
"""
from typing import Optional

from PyQt5.QtCore import QEasingCurve, QObject, QPropertyAnimation, Qt, QTimer, pyqtSignal
from PyQt5.QtWidgets import QApplication, QHBoxLayout, QLabel, QVBoxLayout, QWidget

from unified_inbox.core.notifications import ERROR, Notification, NotificationCenter


class ToastWidget(QWidget):
    """
    A transient toast notification widget.

    Fades in, stays for the given duration, then fades out and closes.
    """

    def __init__(self, parent: Optional[QWidget], message: str, duration_ms: int = 5000, error: bool = False):
        super().__init__(parent)
        self.message = message
        self.duration_ms = duration_ms
        self.error = error

        self.setup_ui()
        self.setup_animations()
        self.fade_in_animation.start()

    def setup_ui(self):
        self.setWindowFlags(Qt.FramelessWindowHint | Qt.WindowStaysOnTopHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground)

        border = "#d32f2f" if self.error else "#3e3e42"
        container = QWidget(self)
        container.setStyleSheet(f"""
            QWidget {{
                background-color: #2d2d30;
                border: 1px solid {border};
                border-radius: 6px;
                padding: 12px 16px;
            }}
        """)

        layout = QHBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        label = QLabel(self.message)
        label.setStyleSheet("QLabel { color: #cccccc; font-size: 13px; background-color: transparent; }")
        layout.addWidget(label)
        container.setLayout(layout)

        main_layout = QVBoxLayout()
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.addWidget(container)
        self.setLayout(main_layout)

        self.adjustSize()
        self._position_window()
        self.setWindowOpacity(0.0)

    def _position_window(self):
        """Bottom-center of the parent, or of the screen without a parent."""
        if self.parent():
            area = self.parent().geometry()
        else:
            screen = QApplication.primaryScreen()
            if screen is None:
                return
            area = screen.availableGeometry()
        rect = self.geometry()
        x = area.x() + (area.width() - rect.width()) // 2
        y = area.y() + area.height() - rect.height() - 50
        self.move(x, y)

    def setup_animations(self):
        self.fade_in_animation = QPropertyAnimation(self, b"windowOpacity")
        self.fade_in_animation.setDuration(300)
        self.fade_in_animation.setStartValue(0.0)
        self.fade_in_animation.setEndValue(1.0)
        self.fade_in_animation.setEasingCurve(QEasingCurve.OutCubic)
        self.fade_in_animation.finished.connect(self._start_display_timer)

        self.fade_out_animation = QPropertyAnimation(self, b"windowOpacity")
        self.fade_out_animation.setDuration(300)
        self.fade_out_animation.setStartValue(1.0)
        self.fade_out_animation.setEndValue(0.0)
        self.fade_out_animation.setEasingCurve(QEasingCurve.InCubic)
        self.fade_out_animation.finished.connect(self.close)

    def _start_display_timer(self):
        QTimer.singleShot(self.duration_ms, self.fade_out_animation.start)

    def show(self):
        super().show()
        self.raise_()


class NotificationBridge(QObject):
    """Shows NotificationCenter pushes as toasts on the GUI thread."""

    notification_received = pyqtSignal(str, str)  # kind, message

    def __init__(self, center: NotificationCenter, parent_widget: QWidget):
        super().__init__(parent_widget)
        self.center = center
        self.parent_widget = parent_widget
        self._toast: Optional[ToastWidget] = None
        self.notification_received.connect(self._show_toast)
        center.subscribe(self._on_notification)

    def _on_notification(self, notification: Notification) -> None:
        # May run on the poller thread; the signal queues onto the GUI thread
        self.notification_received.emit(notification.kind, notification.message)

    def _show_toast(self, kind: str, message: str) -> None:
        if self._toast is not None:
            self._toast.close()
        duration_ms = int(self.center.dismiss_after * 1000)
        self._toast = ToastWidget(self.parent_widget, message, duration_ms, error=(kind == ERROR))
        self._toast.show()
