"""
=============================================================================
ERROR KINDS
=============================================================================

Every failure the server can report has its own exception class. The
hierarchy mirrors WHO is affected by the failure:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         ERROR SCOPES                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   StartupError         Fatal to start(), reported to the caller     │
    │   ├── AddressParseError     bind address is not dotted-quad IPv4    │
    │   ├── SocketCreationError   socket() failed                          │
    │   ├── BindError             port unavailable / permission denied     │
    │   ├── ListenError           listen() backlog could not be set       │
    │   └── SessionTemplateError  template session could not be built     │
    │                                                                      │
    │   AcceptError          Logged, the listener keeps listening         │
    │                                                                      │
    │   ConnectionFailure    Scoped to ONE client connection              │
    │   ├── ReadError             recv() failed, connection torn down     │
    │   └── WriteFailure          send failed, reported but non-fatal     │
    │                                                                      │
    │   BufferGrowthFailure  Line buffer could not grow (one connection)  │
    │   └── CapacityExceeded      data would not fit even after growth    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

No error raised while serving one connection is allowed to reach another
connection or the listener.

=============================================================================
"""

from typing import Optional, Tuple


class ReplServerError(Exception):
    """Base class for every error raised by replserver."""


# =============================================================================
# STARTUP
# =============================================================================

class StartupError(ReplServerError):
    """
    Raised when the server cannot start.

    Carries the address the server tried to use so the launcher can print
    a useful message.
    """

    def __init__(self, message: str, address: Optional[Tuple[str, int]] = None):
        super().__init__(message)
        self.address = address


class AddressParseError(StartupError):
    """The bind address is not a valid IPv4 address (or the port is out of range)."""


class SocketCreationError(StartupError):
    """The listening socket could not be created."""


class BindError(StartupError):
    """The listening socket could not be bound to the address."""


class ListenError(StartupError):
    """The kernel refused to put the socket into listening mode."""


class SessionTemplateError(StartupError):
    """The template session could not be constructed."""


# =============================================================================
# PER-CONNECTION
# =============================================================================

class AcceptError(ReplServerError):
    """accept() failed on the listening socket."""


class ConnectionFailure(ReplServerError):
    """
    Base class for I/O failures on one client connection.

    Args:
        message: Human readable description.
        connection_id: Short id of the affected connection (for logs).
    """

    def __init__(self, message: str, connection_id: Optional[str] = None):
        super().__init__(message)
        self.connection_id = connection_id


class ReadError(ConnectionFailure):
    """recv() on a client socket failed."""


class WriteFailure(ConnectionFailure):
    """sendall() on a client socket failed."""


class BufferGrowthFailure(ReplServerError):
    """The line buffer could not allocate more storage."""


class CapacityExceeded(BufferGrowthFailure):
    """
    Appended data would not fit even after growing the buffer.

    Attributes:
        requested: Capacity that would have been needed.
        limit: The configured maximum (None when the limit was memory).
    """

    def __init__(self, message: str, requested: int = 0, limit: Optional[int] = None):
        super().__init__(message)
        self.requested = requested
        self.limit = limit


class BufferReleasedError(ReplServerError):
    """The line buffer was used after its connection released it."""


class SessionDetachedError(ReplServerError):
    """A session tried to send output while not attached to a connection."""
