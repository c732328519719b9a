import logging
from typing import Callable, Optional

from PyQt5 import QtCore

_logger = logging.getLogger(__name__)

_LEVELS = {'INFO': logging.INFO, 'WARN': logging.WARNING, 'ERROR': logging.ERROR}


class BaseWorker(QtCore.QObject):
    """Device job hosted on its own QThread.

    ``log`` carries (message, level) with level one of INFO/WARN/ERROR.
    Subclasses emit exactly one of ``result`` or ``error`` per run.
    """
    progress = QtCore.pyqtSignal(int, str)
    result = QtCore.pyqtSignal(object)
    error = QtCore.pyqtSignal(str)
    log = QtCore.pyqtSignal(str, str)

    def run(self):
        raise NotImplementedError

    def thread_name(self) -> str:
        return type(self).__name__


def forward_log(worker: BaseWorker, logger: Optional[logging.Logger] = None) -> None:
    target = logger or _logger
    worker.log.connect(lambda message, level: target.log(_LEVELS.get(level, logging.INFO), message))


_ACTIVE_THREADS = set()


def run_in_thread(worker: BaseWorker, on_finished: Optional[Callable[[], None]] = None) -> QtCore.QThread:
    """Start ``worker`` on a QThread named after its device endpoint.

    ``on_finished`` is connected before the thread starts, so a job that
    completes immediately still reaches it.
    """
    thread = QtCore.QThread()
    thread.setObjectName(worker.thread_name())
    worker.moveToThread(thread)
    thread.started.connect(worker.run)

    worker.result.connect(lambda _: thread.quit())
    worker.error.connect(lambda _: thread.quit())
    forward_log(worker)

    _ACTIVE_THREADS.add(thread)

    def _cleanup():
        _logger.debug("Worker thread %s finished", thread.objectName())
        try:
            worker.deleteLater()
        finally:
            _ACTIVE_THREADS.discard(thread)
            thread.deleteLater()

    thread.finished.connect(_cleanup)
    if on_finished is not None:
        thread.finished.connect(on_finished)
    _logger.debug("Starting worker thread %s", thread.objectName())
    thread.start()
    return thread
