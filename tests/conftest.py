"""Root pytest configuration and shared fixtures."""

import os
import sys
import time
import tempfile
import textwrap
import threading

import pytest

# Keep generated files (options, server.properties, log database) out of the project tree.
_TEST_ROOT = tempfile.mkdtemp(prefix="serverwrap-tests-")
os.environ.setdefault("SERVERWRAP_BIN_DIR", os.path.join(_TEST_ROOT, "bin"))
os.environ.setdefault("SERVERWRAP_LOGS_DIR", os.path.join(_TEST_ROOT, "logs"))

from src.local.options import Options  # noqa: E402


class RecordingSink:
    """Log sink keeping every (tag, line) it receives."""

    def __init__(self):
        self.lines = []
        self._lock = threading.Lock()

    def write(self, tag, line):
        with self._lock:
            self.lines.append((tag, line))

    def texts(self):
        with self._lock:
            return [line for _, line in self.lines]


FAKE_SERVER = """
    import sys
    print("Starting fake server", flush=True)
    print('[Server thread/INFO]: Done (0.01s)! For help, type "help"', file=sys.stderr, flush=True)
    for line in sys.stdin:
        line = line.rstrip("\\n")
        print("received: " + line, flush=True)
        if line.strip() == "stop":
            print("Stopping the server", flush=True)
            break
        if line.strip() == "crash":
            sys.exit(5)
"""


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def options(tmp_path):
    return Options(path=tmp_path / "serverwrap.json")


@pytest.fixture
def server_command(tmp_path):
    """Writes a Python script standing in for the server and returns its argument vector."""
    def _write(body=FAKE_SERVER, name="fake_server.py"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(body))
        return [sys.executable, "-u", str(path)]
    return _write


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout=10.0, interval=0.02):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait
