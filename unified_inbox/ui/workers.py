"""
Background task runner for the UI.
"""
import logging
from typing import Any, Callable

from PyQt5.QtCore import QThread, pyqtSignal

from unified_inbox.utils.errors import human_friendly_message

logger = logging.getLogger(__name__)


class TaskThread(QThread):
    """Run one callable off the GUI thread and report the result by signal."""
    succeeded = pyqtSignal(object)
    failed = pyqtSignal(str)

    def __init__(self, func: Callable[[], Any], parent=None):
        super().__init__(parent)
        self.func = func

    def run(self):
        try:
            result = self.func()
        except Exception as e:
            logger.exception("Background task failed")
            if not self.isInterruptionRequested():
                self.failed.emit(human_friendly_message(e))
            return
        if not self.isInterruptionRequested():
            self.succeeded.emit(result)
