"""Shared test fixtures and configuration for Credit Book tests."""
import time

import pytest

from helpers import NOW, RecordingSink


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def kolkata_local_time(monkeypatch):
    """Run with the host's local zone set to Asia/Kolkata (UTC+05:30)."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "Asia/Kolkata")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
