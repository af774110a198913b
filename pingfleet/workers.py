"""Worker classes for background probe I/O."""

import logging
import time
from typing import Callable

from PySide6.QtCore import QRunnable, QThreadPool

logger = logging.getLogger(__name__)

_probe_pool: QThreadPool | None = None


class ProbeTask(QRunnable):
    """Worker that runs one blocking probe step in a pool thread.

    Probers use this to keep subprocess calls and simulated delays off the
    thread that owns the monitors. Results are delivered by the callable
    itself through the prober's observers.
    """

    def __init__(self, host: str, fn: Callable[[], None], delay: float = 0.0):
        super().__init__()
        self.host = host
        self.fn = fn
        self.delay = delay
        self.setAutoDelete(True)

    def run(self):
        """Execute the probe step in a background thread."""
        try:
            if self.delay > 0:
                time.sleep(self.delay)
            self.fn()
        except Exception as e:
            logger.exception("Probe task exception: host=%s, error=%s", self.host, str(e))


def probe_pool() -> QThreadPool:
    """Return the pool probe tasks run on by default.

    Kept apart from QThreadPool.globalInstance() so that slow pings never
    hold threads other Qt code relies on.
    """
    global _probe_pool
    if _probe_pool is None:
        _probe_pool = QThreadPool()
        _probe_pool.setObjectName("pingfleet-probes")
    return _probe_pool


def submit(task: ProbeTask, thread_pool: QThreadPool | None = None):
    """Start a task right away on the given pool, or on the probe pool.

    The pool grows by one thread when every thread is busy, so a probe is
    never queued behind another host's slow probe and its reply window
    measures only its own I/O.
    """
    if thread_pool is None:
        thread_pool = probe_pool()
    if thread_pool.activeThreadCount() >= thread_pool.maxThreadCount():
        thread_pool.setMaxThreadCount(thread_pool.activeThreadCount() + 1)
        logger.debug("Probe pool grown: max_threads=%d", thread_pool.maxThreadCount())
    thread_pool.start(task)
