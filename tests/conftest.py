"""
pytest configuration and fixtures.
"""

import io
import socket
import threading
import time
from datetime import datetime
from typing import Generator, List, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from residentserver import ResidencyController, ServerConfig
from residentserver.config import (
    ENV_HOST,
    ENV_LISTEN_PORT,
    ENV_LOG_DIR,
    ENV_LOG_FORMAT,
    ENV_LOG_LEVEL,
    ENV_LOG_NAME,
    ENV_STOP_TIME,
)


class FakeClock:
    """
    Clock that returns a scripted sequence of HHMM times.

    Each call consumes one entry; the last entry repeats forever.
    ResidencyController calls the clock exactly once per continuation
    check, so the script reads as "check 1, check 2, ...".
    """

    def __init__(self, *times: str):
        self._times: List[str] = list(times)
        self.calls = 0

    def __call__(self) -> datetime:
        index = min(self.calls, len(self._times) - 1)
        self.calls += 1
        hhmm = self._times[index]
        return datetime(2026, 10, 19, int(hhmm[:2]), int(hhmm[2:]))


class FakeSocket:
    """Stands in for a client socket whose reads or writes can fail."""

    def __init__(self, text: str = "", fail_read: bool = False, fail_send: bool = False):
        self.text = text
        self.fail_read = fail_read
        self.fail_send = fail_send
        self.sent = b""
        self.shutdown_called = False
        self.closed = False

    def makefile(self, *args, **kwargs):
        if self.fail_read:
            return BrokenReader()
        return io.StringIO(self.text, newline=None)

    def sendall(self, data: bytes):
        if self.fail_send:
            raise BrokenPipeError("Broken pipe")
        self.sent += data

    def shutdown(self, how):
        self.shutdown_called = True
        raise OSError("Transport endpoint is not connected")

    def close(self):
        self.closed = True


class BrokenReader:
    def __iter__(self):
        raise ConnectionResetError("Connection reset by peer")

    def close(self):
        pass


class RecordingHandler:
    """Handler that remembers every request it was given."""

    def __init__(self, reply: Optional[str] = None):
        self.reply = reply
        self.requests: List[str] = []

    def __call__(self, request: str) -> str:
        self.requests.append(request)
        return request if self.reply is None else self.reply


def connect(port: int, timeout: float = 5.0) -> socket.socket:
    """Open a client connection to the local test server."""
    return socket.create_connection(("127.0.0.1", port), timeout=timeout)


def read_until_eof(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def send_lines(port: int, payload: bytes, timeout: float = 5.0) -> bytes:
    """
    Act as a well-behaved client: send payload, half-close, read the reply.

    Returns everything the server sent before closing the connection.
    """
    with connect(port, timeout) as sock:
        sock.sendall(payload)
        sock.shutdown(socket.SHUT_WR)
        try:
            return read_until_eof(sock)
        except ConnectionResetError:
            return b""


class ControllerThread:
    """Runs a ResidencyController in a background thread."""

    def __init__(self, controller: ResidencyController):
        self.controller = controller
        self.exit_code: Optional[int] = None
        self._thread: Optional[threading.Thread] = None

    def _run(self):
        self.exit_code = self.controller.run()

    def start(self) -> "ControllerThread":
        """Start the controller and wait until its socket is listening."""
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

        for _ in range(50):  # 5 seconds max
            server = self.controller.socket_server
            if server is not None and server.wait_until_ready(timeout=0.1):
                return self
            if not self._thread.is_alive():
                return self
            time.sleep(0.1)

        raise RuntimeError("Controller failed to start")

    def join(self, timeout: float = 5.0) -> Optional[int]:
        """Wait for the controller to stop and return its exit code."""
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise RuntimeError("Controller did not stop")
        return self.exit_code


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep socket_server.* variables from the host out of the tests."""
    for name in (
        ENV_LISTEN_PORT, ENV_STOP_TIME, ENV_LOG_DIR, ENV_LOG_NAME,
        ENV_HOST, ENV_LOG_LEVEL, ENV_LOG_FORMAT,
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def config(free_port: int, tmp_path: Path) -> ServerConfig:
    """Test server configuration on localhost with logs under tmp_path."""
    return ServerConfig(
        host="127.0.0.1",
        listen_port=free_port,
        stop_time="2200",
        log_dir=str(tmp_path / "log"),
    )


@pytest.fixture
def occupied_port() -> Generator[int, None, None]:
    """A port that another socket is already listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        s.listen(1)
        yield s.getsockname()[1]
