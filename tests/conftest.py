"""
pytest configuration and fixtures.
"""

import logging
import socket
import threading
import time
from typing import Generator, List, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from replserver import ReplServer, ServerConfig, Session
from replserver.core import ClientConnection, Reactor


class RecordingSession(Session):
    """Session that records every capability call, in order."""

    def __init__(self, reply: bool = False):
        self.reply = reply
        self.events: List[tuple] = []
        self.clones: List["RecordingSession"] = []

    def clone(self) -> "RecordingSession":
        child = RecordingSession(reply=self.reply)
        self.clones.append(child)
        return child

    def consume_line(self, line: str) -> None:
        self.events.append(("line", line))
        if self.reply:
            self.send(f"got {line}\n")

    def prompt_for_more(self) -> None:
        self.events.append(("prompt",))

    def connection_made(self) -> None:
        self.events.append(("made",))

    def connection_lost(self) -> None:
        self.events.append(("lost",))

    @property
    def lines(self) -> List[str]:
        return [event[1] for event in self.events if event[0] == "line"]


class FakeReactor(Reactor):
    """Reactor that only records registrations; tests fire callbacks by hand."""

    def __init__(self):
        self.callbacks = {}
        self.unregistered = []

    def register(self, fileobj, callback) -> None:
        self.callbacks[fileobj] = callback

    def unregister(self, fileobj) -> None:
        if self.callbacks.pop(fileobj, None) is not None:
            self.unregistered.append(fileobj)

    def is_registered(self, fileobj) -> bool:
        return fileobj in self.callbacks

    def fire(self, fileobj) -> None:
        self.callbacks[fileobj]()


def recv_until(sock: socket.socket, expected: bytes, timeout: float = 5.0) -> bytes:
    """Read from `sock` until `expected` appears in the data (or timeout)."""
    sock.settimeout(timeout)
    data = b""
    deadline = time.time() + timeout
    while expected not in data and time.time() < deadline:
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


def wait_for(predicate, timeout: float = 5.0) -> bool:
    """Poll `predicate` until it is true or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        poll_interval=0.05,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture(autouse=True)
def restore_package_log_level():
    """configure_logging() changes the replserver logger level; undo it."""
    logger = logging.getLogger("replserver")
    level = logger.level
    yield
    logger.setLevel(level)


@pytest.fixture
def recording_session() -> RecordingSession:
    return RecordingSession()


@pytest.fixture
def fake_reactor() -> FakeReactor:
    return FakeReactor()


@pytest.fixture
def socket_pair() -> Generator[tuple, None, None]:
    """(server_side, client_side) connected sockets."""
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for s in (server_side, client_side):
        try:
            s.close()
        except OSError:
            pass


@pytest.fixture
def make_connection(socket_pair, fake_reactor):
    """Build an ACTIVE, registered ClientConnection over a socket pair."""

    def factory(session: Optional[Session] = None, **kwargs) -> ClientConnection:
        server_side, _ = socket_pair
        conn = ClientConnection(
            socket=server_side,
            address=("127.0.0.1", 50000),
            session=session if session is not None else RecordingSession(),
            reactor=fake_reactor,
            **kwargs,
        )
        conn.activate()
        return conn

    return factory


class RunningServer:
    """Test server helper that runs the reactor in a background thread."""

    def __init__(self, server: ReplServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self):
        return self.server.address

    def start(self):
        """Bind in this thread, dispatch events in a background thread."""
        self.server.start()
        self._thread = threading.Thread(target=self.server.reactor.run, daemon=True)
        self._thread.start()
        wait_for(lambda: self.server.reactor.is_running)

    def connect(self) -> socket.socket:
        sock = socket.create_connection(self.address, timeout=5.0)
        return sock

    def stop(self):
        """Stop the reactor thread, then release every socket."""
        self.server.reactor.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        self.server.stop()
        self.server.reactor.close()


@pytest.fixture
def running_server(config: ServerConfig):
    """Start a ReplServer around a template session; stops it afterwards."""
    started = []

    def factory(session: Session) -> RunningServer:
        srv = RunningServer(ReplServer(session, config))
        srv.start()
        started.append(srv)
        return srv

    yield factory

    for srv in started:
        srv.stop()
