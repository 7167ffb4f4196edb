"""
=============================================================================
REACTOR: READINESS-DRIVEN EVENT DISPATCH
=============================================================================

The server never blocks waiting on one client. Instead, every socket is
REGISTERED with a reactor together with a callback, and the reactor calls
that callback whenever the socket becomes readable:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         REACTOR LOOP                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   while running:                                                     │
    │       ready = select(registered sockets, timeout)                   │
    │       for sock in ready:                                             │
    │           callback(sock)      ← Listener: accept one connection     │
    │                               ← ClientConnection: read + dispatch   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The core only needs two operations from a reactor: register interest in
read readiness, and unregister it. Reactor is the abstract contract; any
multiplexing strategy (select, poll, epoll, an existing application event
loop) can drive the server by implementing it.

SelectorReactor is the default implementation, built on the standard
library's `selectors` module (which picks epoll/kqueue/poll/select for the
platform).

=============================================================================
ORDERING
=============================================================================

Events are delivered one at a time from a single thread. A connection's
callback finishes before the next event is handled, so lines from one
client are always processed in arrival order.

=============================================================================
"""

import logging
import selectors
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional


logger = logging.getLogger(__name__)


# ReadyCallback is what the reactor invokes when a registered socket
# becomes readable. It takes no arguments: the owner already knows its socket.
ReadyCallback = Callable[[], None]


class Reactor(ABC):
    """
    Abstract interest-registration contract.

    Implementations must deliver callbacks serially (never two at once)
    and must not deliver a callback after its socket was unregistered.
    """

    @abstractmethod
    def register(self, fileobj, callback: ReadyCallback) -> None:
        """Call `callback` whenever `fileobj` is readable."""

    @abstractmethod
    def unregister(self, fileobj) -> None:
        """Stop watching `fileobj`. Unknown objects are ignored."""

    @abstractmethod
    def is_registered(self, fileobj) -> bool:
        """Check whether `fileobj` is currently watched."""


class SelectorReactor(Reactor):
    """
    Reactor built on selectors.DefaultSelector.

    Usage:
        reactor = SelectorReactor()
        reactor.register(sock, on_readable)
        reactor.run()            # Blocks until reactor.stop()

    run() polls with a timeout (poll_interval) so that stop() can be called
    from another thread or a signal handler and take effect promptly.
    """

    def __init__(self, poll_interval: float = 0.5):
        self.poll_interval = poll_interval
        self._selector: Optional[selectors.BaseSelector] = selectors.DefaultSelector()
        self._running = False
        self._stopped = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, fileobj, callback: ReadyCallback) -> None:
        self._selector.register(fileobj, selectors.EVENT_READ, callback)

    def unregister(self, fileobj) -> None:
        try:
            self._selector.unregister(fileobj)
        except (KeyError, ValueError):
            # Never registered, or the socket is already closed
            pass

    def is_registered(self, fileobj) -> bool:
        try:
            self._selector.get_key(fileobj)
        except (KeyError, ValueError):
            return False
        return True

    def __len__(self) -> int:
        return len(self._selector.get_map())

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def run_once(self, timeout: Optional[float] = None) -> int:
        """
        Wait for readiness once and dispatch the ready callbacks.

        Args:
            timeout: Seconds to wait. None = block until something is ready.

        Returns:
            Number of callbacks invoked.
        """
        if not self._selector.get_map():
            # select() with nothing registered raises on some platforms
            if timeout:
                self._stopped.wait(timeout)
            return 0

        dispatched = 0
        for key, _ in self._selector.select(timeout):
            # An earlier callback in this batch may have unregistered
            # this socket (or closed it and had its fd reused)
            if self._selector.get_map().get(key.fd) is not key:
                continue
            try:
                key.data()
            except Exception as e:
                logger.exception(f"Unhandled error in reactor callback: {e}")
            dispatched += 1
        return dispatched

    def run(self) -> None:
        """Dispatch events until stop() is called."""
        self._running = True
        self._stopped.clear()
        logger.debug("Reactor loop started")
        try:
            while self._running:
                self.run_once(self.poll_interval)
        finally:
            self._running = False
            logger.debug("Reactor loop stopped")

    def stop(self) -> None:
        """Ask run() to return. Safe from other threads and signal handlers."""
        self._running = False
        self._stopped.set()

    def close(self) -> None:
        """Release the underlying selector."""
        self.stop()
        if self._selector is not None:
            self._selector.close()
            self._selector = None
