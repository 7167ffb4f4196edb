"""
=============================================================================
SESSION CAPABILITY INTERFACE
=============================================================================

A Session is the interactive command handler supplied by the embedding
application (a language interpreter, a debug console, an admin shell...).
The server never looks inside it. It only uses this small contract:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHO CALLS WHAT                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   CORE → SESSION                                                     │
    │     clone()              once per accepted connection (template)    │
    │     connection_made()    after the clone is attached                │
    │     consume_line(line)   once per received line, in order           │
    │     prompt_for_more()    right after every consume_line()           │
    │     connection_lost()    once, when the connection is torn down     │
    │                                                                      │
    │   SESSION → CORE                                                     │
    │     send(text)           write bytes to THIS session's client       │
    │     display_result(*v)   format values, then send()                 │
    │     display_error(text)  format an error, then send()               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ONE TEMPLATE, ONE CLONE PER CLIENT
=============================================================================

The application builds ONE template session. For every accepted client
the listener calls template.clone() and attaches the clone to the new
connection:

    template ──clone()──► session A ◄──attached──► connection A
             └─clone()──► session B ◄──attached──► connection B

A clone must not share mutable state with the template or its siblings:
client A defining a variable must not affect client B.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, TYPE_CHECKING

from .errors import SessionDetachedError

if TYPE_CHECKING:
    from .core.connection import ClientConnection


class Session(ABC):
    """
    Abstract base class for interactive sessions.

    Subclasses implement clone(), consume_line() and prompt_for_more().
    The output helpers (send, display_result, display_error) are provided.

    Example:
        class ShoutSession(Session):
            def clone(self):
                return ShoutSession()

            def consume_line(self, line):
                self.send(line.upper() + "\\n")

            def prompt_for_more(self):
                self.send("> ")
    """

    # The connection this session writes to (set by the core on accept)
    client: Optional["ClientConnection"] = None

    # =========================================================================
    # REQUIRED CAPABILITIES
    # =========================================================================

    @abstractmethod
    def clone(self) -> "Session":
        """Return a new, independent session for one client."""

    @abstractmethod
    def consume_line(self, line: str) -> None:
        """
        Process one input line (newline already stripped).

        Output is produced by calling send()/display_result()/display_error().
        """

    @abstractmethod
    def prompt_for_more(self) -> None:
        """Emit the next prompt. Called once after every consumed line."""

    # =========================================================================
    # LIFECYCLE HOOKS (optional)
    # =========================================================================

    def connection_made(self) -> None:
        """Called once the session is attached to its new connection."""

    def connection_lost(self) -> None:
        """Called once when the connection ends. The client is gone."""

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def attach(self, client: "ClientConnection") -> None:
        """Bind this session to the connection its output goes to."""
        self.client = client

    def detach(self) -> None:
        self.client = None

    @property
    def is_attached(self) -> bool:
        return self.client is not None

    def send(self, text: Any) -> bool:
        """
        Write `text` to this session's client, unmodified.

        Args:
            text: str (encoded as UTF-8) or bytes.

        Returns:
            True if the bytes were handed to the socket, False if the write
            failed (the failure is already logged by the connection).

        Raises:
            SessionDetachedError: If the session has no connection.
        """
        if self.client is None:
            raise SessionDetachedError(f"{type(self).__name__} is not attached to a client")
        return self.client.send(text)

    def display_result(self, *values: Any) -> bool:
        """
        Send a result line: the values, tab separated, newline terminated.

        Nothing is sent when called without values.
        """
        if not values:
            return True
        return self.send("\t".join(str(value) for value in values) + "\n")

    def display_error(self, text: str) -> bool:
        """Send an error message, newline terminated."""
        if not text.endswith("\n"):
            text += "\n"
        return self.send(text)
