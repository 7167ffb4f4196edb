"""
=============================================================================
CLIENT CONNECTION
=============================================================================

One ClientConnection exists per accepted client. It owns three things and
releases all of them together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    ClientConnection owns                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   socket      the accepted client socket                            │
    │   buffer      a LineBuffer (partial lines between reads)            │
    │   session     a clone of the template Session                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STATE MACHINE
=============================================================================

    ┌──────────┐   EOF / read error /     ┌──────────┐          ┌──────────┐
    │  ACTIVE  │ ───────────────────────► │ CLOSING  │ ───────► │  CLOSED  │
    └──────────┘   growth failure /       └──────────┘          └──────────┘
         │  ▲      close()                 releasing             terminal
         │  │                              resources
         └──┘
      readable: read → extract lines → dispatch

There is no "writing" state: output is a synchronous, best-effort sendall()
issued while the session handles a line.

=============================================================================
ONE READINESS EVENT
=============================================================================

    handle_readable()
        │
        ├──► recv(buffer.spare)
        │       ├── b""        → close (EOF)
        │       └── OSError    → close (ReadError)
        │
        ├──► buffer.append(data)
        │
        ├──► for line in buffer.extract_lines():
        │        session.consume_line(line)
        │        session.prompt_for_more()
        │
        └──► buffer full?      → buffer.grow()
             buffer small?     → buffer.shrink()

=============================================================================
TEARDOWN ORDER
=============================================================================

On every exit path, close() runs the same sequence exactly once:

    1. unregister from the reactor     (no more events for this socket)
    2. close the socket
    3. session.connection_lost(), detach the session
    4. release the line buffer
    5. tell the owner (the server drops it from its live set)

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..errors import BufferGrowthFailure, ReadError, WriteFailure
from ..session import Session
from .line_buffer import DEFAULT_INLINE_SIZE, LineBuffer
from .reactor import Reactor


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    ACTIVE = "active"      # Registered with the reactor, reading lines
    CLOSING = "closing"    # Releasing socket, session and buffer
    CLOSED = "closed"      # Terminal, nothing left to release


@dataclass(eq=False)
class ClientConnection:
    """
    Converts raw reads on one client socket into line dispatches.

    Created by the Listener in ACTIVE state; activate() registers it with
    the reactor.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        session: The session clone owned by this connection.
        reactor: Reactor the socket is registered with.
        id: Short identifier used in log lines.
        state: Current lifecycle state.
        lines_handled: Lines dispatched to the session so far.
        write_failures: Number of failed sends.
    """

    # Required parameters
    socket: socket.socket
    address: Any
    session: Optional[Session]
    reactor: Reactor

    # Generated/default parameters
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.ACTIVE
    created_at: float = field(default_factory=time.time)
    lines_handled: int = 0
    write_failures: int = 0
    registered: bool = False

    # Configuration (passed from ServerConfig)
    inline_buffer_size: int = DEFAULT_INLINE_SIZE
    max_buffer_size: Optional[int] = None
    close_on_write_failure: bool = False

    # Owner callbacks
    on_close: Optional[Callable[["ClientConnection"], None]] = field(default=None, repr=False)
    on_write_failure: Optional[Callable[["ClientConnection", WriteFailure], None]] = field(
        default=None, repr=False
    )

    buffer: Optional[LineBuffer] = field(default=None, repr=False)

    def __post_init__(self):
        if self.buffer is None:
            self.buffer = LineBuffer(self.inline_buffer_size, self.max_buffer_size)
        if self.session is not None:
            self.session.attach(self)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def client_port(self) -> int:
        """Get the client port."""
        return self.address[1]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    @property
    def is_active(self) -> bool:
        return self.state is ConnectionState.ACTIVE

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def activate(self) -> None:
        """Register for read readiness."""
        if not self.is_active or self.registered:
            return
        self.reactor.register(self.socket, self.handle_readable)
        self.registered = True

    # =========================================================================
    # READING: bytes in, lines out
    # =========================================================================

    def handle_readable(self) -> None:
        """
        Reactor callback: the socket has data (or EOF) for us.

        Reads at most what fits in the buffer without filling it, then
        dispatches every complete line. Errors here only ever close THIS
        connection.
        """
        if not self.is_active:
            return

        try:
            data = self.socket.recv(self.buffer.spare)
        except (BlockingIOError, InterruptedError):
            return  # Spurious wakeup, try again on the next event
        except OSError as e:
            error = ReadError(str(e), connection_id=self.id)
            logger.warning(f"[{self.id}] Read error: {error}")
            self.close("read error")
            return

        if not data:
            logger.debug(f"[{self.id}] Client closed the connection")
            self.close("eof")
            return

        try:
            self.buffer.append(data)
            self._dispatch_lines()

            if not self.is_active:
                return  # The session closed us while handling a line

            if self.buffer.should_grow():
                self.buffer.grow()
            elif self.buffer.should_shrink():
                self.buffer.shrink()
        except BufferGrowthFailure as e:
            logger.error(f"[{self.id}] Line buffer growth failed: {e}")
            self.close("buffer growth failure")

    def _dispatch_lines(self) -> None:
        """Feed every complete line to the session, strictly in order."""
        lines = self.buffer.extract_lines()
        try:
            for raw in lines:
                line = raw.decode("utf-8", errors="replace")
                self.lines_handled += 1

                self._call_session("consume_line", line)
                if not self.is_active:
                    break

                self._call_session("prompt_for_more")
                if not self.is_active:
                    break
        finally:
            lines.close()

    def _call_session(self, method: str, *args) -> None:
        # A misbehaving session must not take the reactor down with it
        try:
            getattr(self.session, method)(*args)
        except Exception as e:
            logger.exception(f"[{self.id}] Session error in {method}(): {e}")

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: Any) -> bool:
        """
        Write `data` to the client exactly as given (no framing added).

        One best-effort sendall(); failures are not retried. A failure is
        logged, counted and reported to on_write_failure. The connection is
        only closed when close_on_write_failure is set.

        Args:
            data: bytes, or str (encoded as UTF-8).

        Returns:
            True if sent, False otherwise.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        if not self.is_active:
            logger.debug(f"[{self.id}] Dropping {len(data)} bytes sent after close")
            return False

        try:
            self.socket.sendall(data)
        except OSError as e:
            self.write_failures += 1
            error = WriteFailure(str(e), connection_id=self.id)
            logger.warning(f"[{self.id}] Send failed: {error}")
            if self.on_write_failure is not None:
                self.on_write_failure(self, error)
            if self.close_on_write_failure:
                self.close("write failure")
            return False

        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self, reason: str = "closed") -> None:
        """
        Tear the connection down. Idempotent.

        Args:
            reason: Short description for the log line.
        """
        if not self.is_active:
            return  # Already closing or closed

        self.state = ConnectionState.CLOSING

        # ─────────────────────────────────────────────────────────────────
        # STEP 1: No more readiness events
        # ─────────────────────────────────────────────────────────────────
        self.reactor.unregister(self.socket)
        self.registered = False

        # ─────────────────────────────────────────────────────────────────
        # STEP 2: Release the file descriptor
        # ─────────────────────────────────────────────────────────────────
        try:
            self.socket.close()
        except OSError:
            pass  # Already gone

        # ─────────────────────────────────────────────────────────────────
        # STEP 3: Release the session
        # ─────────────────────────────────────────────────────────────────
        session, self.session = self.session, None
        if session is not None:
            try:
                session.connection_lost()
            except Exception as e:
                logger.exception(f"[{self.id}] Session error in connection_lost(): {e}")
            finally:
                session.detach()

        # ─────────────────────────────────────────────────────────────────
        # STEP 4: Release the buffer
        # ─────────────────────────────────────────────────────────────────
        self.buffer.release()

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed ({reason}) after {self.lines_handled} lines, "
            f"{self.age:.1f}s"
        )

        # ─────────────────────────────────────────────────────────────────
        # STEP 5: Tell the owner
        # ─────────────────────────────────────────────────────────────────
        if self.on_close is not None:
            self.on_close(self)

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensure connection is closed."""
        self.close()
        return False  # Don't suppress exceptions
