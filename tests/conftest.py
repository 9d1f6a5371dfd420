import sys
import textwrap
import time

import pytest

from writerproxy.core.configmanager import config
from writerproxy.core.constants import (
    RUN_AS_WORKER_ENVIRONMENT_VARIABLE,
    TEMPORARY_LOG_FILE_ENVIRONMENT_VARIABLE,
)

SCENARIO = """
emit("PROGRESS 10 5.0 30")
time.sleep(0.05)
emit("PROGRESS 55 5.2 12")
emit("Validating partition table")
emit("DONE abc123")
"""


@pytest.fixture(autouse=True)
def fast_config(monkeypatch, tmp_path):
    """Quick polling, log files under tmp_path and no inherited relaunch state."""
    overrides = {
        ("Tail", "pollinterval"): 0.02,
        ("Tail", "missinggrace"): 1.0,
        ("General", "tempdirectory"): str(tmp_path / "logs"),
        ("Api", "callbackurl"): "",
    }
    saved = {key: config.get(*key) for key in overrides}
    for (section, key), value in overrides.items():
        config.set(section, key, value)

    for name in (
        TEMPORARY_LOG_FILE_ENVIRONMENT_VARIABLE,
        RUN_AS_WORKER_ENVIRONMENT_VARIABLE,
        "APPIMAGE",
        "APPDIR",
    ):
        monkeypatch.delenv(name, raising=False)

    yield

    for (section, key), value in saved.items():
        config.set(section, key, value)


@pytest.fixture
def make_worker(tmp_path):
    """Write a small Python stand-in for the image writer and return its argv."""
    counter = {"n": 0}

    def _make(body: str):
        counter["n"] += 1
        script = tmp_path / f"worker_{counter['n']}.py"
        script.write_text(
            "import os, sys, time\n"
            "def emit(line):\n"
            "    sys.stdout.write(line + '\\n')\n"
            "    sys.stdout.flush()\n"
            + textwrap.dedent(body)
        )
        return [sys.executable, str(script)]

    return _make


@pytest.fixture
def scenario_worker(make_worker):
    return make_worker(SCENARIO)


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
