import time

import pytest


@pytest.fixture
def local_tz(monkeypatch):
    # Switch the process time zone, restored at teardown.
    if not hasattr(time, "tzset"):  # pragma: nocover
        pytest.skip("time.tzset() not available")

    def set_tz(name):
        monkeypatch.setenv("TZ", name)
        time.tzset()

    yield set_tz
    monkeypatch.undo()
    time.tzset()
