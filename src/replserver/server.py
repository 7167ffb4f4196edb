"""
=============================================================================
REPL SERVER
=============================================================================

The orchestrator that ties the components together. A ReplServer is a
plain value: build as many as you like, each with its own listener,
template session and set of live connections.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REPL SERVER ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   ReplServer    │                          │
    │                        │  (Orchestrator) │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            │                    │                    │              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │   Listener   │    │   Reactor    │    │   Template   │        │
    │    │ (Accepting)  │    │ (Dispatching)│    │   Session    │        │
    │    └──────┬───────┘    └──────────────┘    └──────────────┘        │
    │           │                                                         │
    │           ▼                                                         │
    │    ┌──────────────────────────────────────┐                        │
    │    │  live ClientConnections (one each:   │                        │
    │    │  socket + LineBuffer + Session clone)│                        │
    │    └──────────────────────────────────────┘                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    server = ReplServer(EchoSession())
    server.start("127.0.0.1", 7000)   # bind + listen + register
    server.reactor.run()              # or: server.serve_forever()
    ...
    server.stop()                     # listener + every connection closed

serve_forever() is the blocking convenience used by the launcher: it sets
up logging and signal handling, runs the reactor until shutdown(), and
always finishes with stop().

=============================================================================
"""

import signal
import logging
import threading
from typing import Dict, Optional, Tuple

from .config import ServerConfig
from .core import ClientConnection, Listener, Reactor, SelectorReactor
from .errors import SessionTemplateError, WriteFailure
from .log import configure_logging
from .session import Session


logger = logging.getLogger(__name__)


class ReplServer:
    """
    Line-protocol front end for an interactive session.

    Args:
        session: Template session, cloned once per client.
        config: Server configuration. Uses defaults if not provided.
        reactor: Event loop to register sockets with. A SelectorReactor is
                 created when omitted.

    Raises:
        SessionTemplateError: If `session` is not a Session.
        ValueError: If the configuration is invalid.
    """

    def __init__(
        self,
        session: Session,
        config: Optional[ServerConfig] = None,
        reactor: Optional[Reactor] = None,
    ):
        if not isinstance(session, Session):
            raise SessionTemplateError(
                f"Template session must be a Session, got {type(session).__name__}"
            )

        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        self.template = session
        self.reactor = reactor or SelectorReactor(poll_interval=self.config.poll_interval)

        self._connections: Dict[str, ClientConnection] = {}
        self._listener = Listener(
            template=session,
            reactor=self.reactor,
            config=self.config,
            on_accept=self._on_accept,
            on_close=self._on_close,
            on_write_failure=self._on_write_failure,
        )

        self._started = threading.Event()
        self._original_handlers: dict = {}

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._listener.is_listening

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """The bound (host, port), or None before start()."""
        return self._listener.address

    @property
    def connections(self) -> Tuple[ClientConnection, ...]:
        """Snapshot of the live connections."""
        return tuple(self._connections.values())

    @property
    def listener(self) -> Listener:
        return self._listener

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, host: Optional[str] = None, port: Optional[int] = None) -> Tuple[str, int]:
        """
        Bind, listen and register the listener with the reactor.

        Args:
            host: Override config host.
            port: Override config port.

        Returns:
            The bound (host, port).

        Raises:
            StartupError: AddressParseError, SocketCreationError, BindError
                          or ListenError.
        """
        host = self.config.host if host is None else host
        port = self.config.port if port is None else port

        address = self._listener.start(host, port)
        self._started.set()
        return address

    def stop(self) -> None:
        """Stop listening and close every live connection. Idempotent."""
        was_running = self.is_running
        self._listener.stop()

        for conn in list(self._connections.values()):
            conn.close("server stopping")
        self._connections.clear()

        self._started.clear()
        if was_running:
            logger.info("Server stopped")

    def serve_forever(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Start the server and run the reactor until shutdown() (blocking).

        Requires the default SelectorReactor (or any reactor with
        run()/stop()).
        """
        configure_logging(self.config.log_level, self.config.log_format)

        self.start(host, port)
        self._setup_signals()
        try:
            self.reactor.run()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._restore_signals()
            self.stop()

    def shutdown(self) -> None:
        """Ask serve_forever() to return. Safe from signal handlers."""
        logger.info("Shutting down...")
        stop = getattr(self.reactor, "stop", None)
        if stop is not None:
            stop()

    def wait_until_started(self, timeout: Optional[float] = None) -> bool:
        """Wait until start() has bound the listener (for tests and threads)."""
        return self._started.wait(timeout)

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self):
        """
        Turn SIGINT/SIGTERM into a graceful shutdown.

        Python only allows installing handlers from the main thread, so a
        server running in a worker thread skips this.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # CONNECTION BOOKKEEPING
    # =========================================================================

    def _on_accept(self, conn: ClientConnection) -> None:
        self._connections[conn.id] = conn
        logger.debug(f"[{conn.id}] {len(self._connections)} live connection(s)")

    def _on_close(self, conn: ClientConnection) -> None:
        self._connections.pop(conn.id, None)

    def _on_write_failure(self, conn: ClientConnection, error: WriteFailure) -> None:
        logger.debug(f"[{conn.id}] {conn.write_failures} write failure(s) so far")


def create_server(session: Session, config: Optional[ServerConfig] = None) -> ReplServer:
    """
    Create a REPL server.

    Example:
        server = create_server(PythonSession(), ServerConfig(port=7001))
        server.serve_forever()
    """
    return ReplServer(session, config)


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# ReplServer owns one Listener, one template Session, one Reactor and the
# set of live ClientConnections:
#
# 1. start(): bind + listen + register (errors propagate to the caller)
# 2. Reactor dispatches accept and read events serially
# 3. Connections remove themselves from the live set when they close
# 4. stop(): listener and every connection released
# =============================================================================
