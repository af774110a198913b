"""Shared fixtures for pingfleet tests."""

import pytest
from PySide6.QtCore import QCoreApplication
from PySide6.QtTest import QTest

from pingfleet.workers import probe_pool


@pytest.fixture(scope="session")
def qapp():
    """Create QCoreApplication instance for tests."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


@pytest.fixture(autouse=True)
def drain_thread_pool(qapp):
    """Let background probe tasks finish between tests."""
    yield
    probe_pool().waitForDone(2000)
    QCoreApplication.processEvents()


def wait_until(predicate, timeout_ms=2000, step_ms=10):
    """Process Qt events until predicate() is true or timeout_ms elapses.

    Returns:
        Final value of predicate()
    """
    waited = 0
    while not predicate() and waited < timeout_ms:
        QTest.qWait(step_ms)
        waited += step_ms
    return predicate()
