"""
Background job dispatch.

Blocking work (HTTP requests, device queries) runs off the owning
thread and its result is delivered back through a Qt signal. When the
callback is a slot of a QObject living on the main thread, Qt queues
the delivery onto that thread, so component state is only ever touched
from one place.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, QThread, Signal, Slot


logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    """Outcome of a dispatched job."""

    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _run_job(job: Callable[[], Any]) -> JobResult:
    try:
        return JobResult(value=job())
    except Exception as e:
        logger.debug("Background job failed: %s", e, exc_info=True)
        return JobResult(error=e)


class JobWorker(QObject):
    """Worker that runs a single job on a QThread."""

    finished = Signal(object)  # JobResult
    done = Signal(object)  # this worker, after finished

    def __init__(self, job: Callable[[], Any]):
        super().__init__()
        self._job = job

    @Slot()
    def run(self) -> None:
        """Run the job."""
        self.finished.emit(_run_job(self._job))
        self.done.emit(self)


class ThreadDispatcher(QObject):
    """Runs every job on its own QThread; jobs are never cancelled."""

    def __init__(self):
        super().__init__()
        self._active: list[tuple[QThread, JobWorker]] = []

    @property
    def active_count(self) -> int:
        return len(self._active)

    def submit(self, job: Callable[[], Any], callback: Callable[[JobResult], None]) -> None:
        """
        Run a job in the background.

        Args:
            job: Blocking callable; its return value or exception is captured
            callback: Slot receiving the JobResult on its owner's thread
        """
        thread = QThread()
        worker = JobWorker(job)
        worker.moveToThread(thread)

        thread.started.connect(worker.run)
        worker.finished.connect(callback)
        worker.done.connect(self._release)

        # Keep references until the worker is released
        self._active.append((thread, worker))
        thread.start()

    @Slot(object)
    def _release(self, worker: JobWorker) -> None:
        """Stop the thread that ran ``worker`` and drop both."""
        for entry in self._active:
            thread, owner = entry
            if owner is worker:
                thread.quit()
                thread.wait()
                self._active.remove(entry)
                return

    def shutdown(self, timeout_ms: int = 2000) -> None:
        """Wait for running jobs before exit."""
        for thread, _worker in self._active:
            thread.quit()
            thread.wait(timeout_ms)
        self._active.clear()


class ImmediateDispatcher:
    """Runs jobs inline on the calling thread."""

    def submit(self, job: Callable[[], Any], callback: Callable[[JobResult], None]) -> None:
        callback(_run_job(job))

    def shutdown(self, timeout_ms: int = 0) -> None:
        pass
