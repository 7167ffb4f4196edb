"""
=============================================================================
LISTENER
=============================================================================

The Listener owns the listening socket. It is registered with the reactor
like any other socket; "readable" on a listening socket means "a
connection is waiting in the accept queue".

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       Listener Internals                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(host, port)                                                 │
    │        ├──► inet_aton(host)     AddressParseError if malformed      │
    │        ├──► socket()            SocketCreationError                  │
    │        ├──► bind()              BindError                            │
    │        ├──► listen(backlog)     ListenError                          │
    │        └──► reactor.register(listening socket)                      │
    │                                                                      │
    │    handle_readable()            one call = one accept()             │
    │        ├──► accept()            AcceptError: log, keep listening    │
    │        ├──► template.clone()    failure: log, drop this client      │
    │        ├──► ClientConnection()  ACTIVE, inline buffer               │
    │        ├──► conn.activate()     register with the reactor           │
    │        └──► on_accept(conn)     server adds it to its live set      │
    │                                                                      │
    │    stop()                                                            │
    │        └──► unregister + close the listening socket                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The listener holds no per-client state. A failed accept() never tears
it down.

=============================================================================
"""

import socket
import logging
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from ..errors import (
    AcceptError,
    AddressParseError,
    BindError,
    ListenError,
    SocketCreationError,
)
from ..session import Session
from .connection import ClientConnection
from .reactor import Reactor


logger = logging.getLogger(__name__)


def parse_address(host: str, port: int) -> Tuple[str, int]:
    """
    Validate an IPv4 dotted-quad address and a port.

    Uses inet_aton(), so the short forms the C library accepts are valid
    too ("127.1" is 127.0.0.1).

    Raises:
        AddressParseError: If the address or port is invalid.
    """
    try:
        socket.inet_aton(host)
    except (OSError, TypeError) as e:
        raise AddressParseError(f"Unable to parse address {host!r}: {e}", (host, port)) from e

    if not isinstance(port, int) or not 0 <= port < 65536:
        raise AddressParseError(f"Invalid port: {port!r}", (host, port))

    return host, port


class Listener:
    """
    Accepts clients and builds a ClientConnection for each one.

    Args:
        template: Session that is cloned for every accepted client.
        reactor: Reactor to register the listening and client sockets with.
        config: Backlog and per-connection buffer settings.
        on_accept: Called with each new connection.
        on_close: Passed to each connection, called when it closes.
    """

    def __init__(
        self,
        template: Session,
        reactor: Reactor,
        config: ServerConfig,
        on_accept: Optional[Callable[[ClientConnection], None]] = None,
        on_close: Optional[Callable[[ClientConnection], None]] = None,
        on_write_failure: Optional[Callable] = None,
    ):
        self.template = template
        self.reactor = reactor
        self.config = config
        self.on_accept = on_accept
        self.on_close = on_close
        self.on_write_failure = on_write_failure

        self._socket: Optional[socket.socket] = None
        self.accept_failures = 0

    @property
    def is_listening(self) -> bool:
        return self._socket is not None

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """The bound (host, port), with the real port when 0 was requested."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[:2]

    # =========================================================================
    # STARTUP
    # =========================================================================

    def start(self, host: str, port: int) -> Tuple[str, int]:
        """
        Bind, listen and register with the reactor.

        Returns:
            The bound (host, port).

        Raises:
            AddressParseError, SocketCreationError, BindError, ListenError
        """
        if self._socket is not None:
            raise RuntimeError("Listener already started")

        address = parse_address(host, port)

        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            raise SocketCreationError(f"Unable to create socket: {e}", address) from e

        try:
            # Restarting the server must not fail on sockets in TIME_WAIT
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

            try:
                sock.bind(address)
            except OSError as e:
                raise BindError(f"Unable to bind to {host}:{port}: {e}", address) from e

            try:
                sock.listen(self.config.backlog)
            except OSError as e:
                raise ListenError(f"Unable to listen on {host}:{port}: {e}", address) from e

            # A readiness event with nothing left to accept must not block
            # the reactor
            sock.setblocking(False)
        except Exception:
            sock.close()
            raise

        self._socket = sock
        self.reactor.register(sock, self.handle_readable)

        bound = self.address
        logger.info(f"Listening on {bound[0]}:{bound[1]} (backlog {self.config.backlog})")
        return bound

    # =========================================================================
    # ACCEPTING
    # =========================================================================

    def handle_readable(self) -> Optional[ClientConnection]:
        """
        Reactor callback: accept ONE pending connection.

        Returns:
            The new connection, or None if nothing was accepted.
        """
        if self._socket is None:
            return None

        try:
            client_socket, client_address = self._socket.accept()
        except (BlockingIOError, InterruptedError):
            return None  # Another wakeup already took it
        except OSError as e:
            # The listener stays registered; the next readiness event
            # simply tries again
            self.accept_failures += 1
            error = AcceptError(f"accept() failed: {e}")
            logger.error(f"Accept error: {error}")
            return None

        # Client sockets stay blocking: they are only read after readiness
        client_socket.setblocking(True)

        try:
            session = self.template.clone()
        except Exception as e:
            logger.exception(f"Could not clone session for {client_address}: {e}")
            client_socket.close()
            return None

        try:
            conn = ClientConnection(
                socket=client_socket,
                address=client_address,
                session=session,
                reactor=self.reactor,
                inline_buffer_size=self.config.inline_buffer_size,
                max_buffer_size=self.config.max_buffer_size,
                close_on_write_failure=self.config.close_on_write_failure,
                on_close=self.on_close,
                on_write_failure=self.on_write_failure,
            )
            conn.activate()
        except Exception as e:
            logger.exception(f"Could not set up connection for {client_address}: {e}")
            self.reactor.unregister(client_socket)
            session.detach()
            client_socket.close()
            return None

        logger.info(f"[{conn.id}] Accepted connection from {conn.client_ip}:{conn.client_port}")

        if self.on_accept is not None:
            self.on_accept(conn)

        try:
            session.connection_made()
        except Exception as e:
            logger.exception(f"[{conn.id}] Session error in connection_made(): {e}")

        return conn

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def stop(self) -> None:
        """Stop accepting and close the listening socket. Idempotent."""
        if self._socket is None:
            return

        self.reactor.unregister(self._socket)
        try:
            self._socket.close()
        except OSError:
            pass  # Already closed
        self._socket = None
        logger.info("Listener stopped")
