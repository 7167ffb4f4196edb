"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing of the REPL server, leaves first:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          LINE BUFFER                                 │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Accumulates bytes from one client                                │
    │  • Hands out complete lines, keeps the partial one                  │
    │  • Small inline storage, grows by doubling, shrinks back           │
    └─────────────────────────────────────────────────────────────────────┘
                                    ▲
                                    │ owned by
    ┌─────────────────────────────────────────────────────────────────────┐
    │                       CLIENT CONNECTION                              │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Wraps one client socket + one session clone                      │
    │  • Readable → read → lines → session                               │
    │  • ACTIVE → CLOSING → CLOSED                                        │
    └─────────────────────────────────────────────────────────────────────┘
                                    ▲
                                    │ created by
    ┌─────────────────────────────────────────────────────────────────────┐
    │                           LISTENER                                   │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Binds and listens on one IPv4 address                           │
    │  • Readable → accept one client → clone session                    │
    └─────────────────────────────────────────────────────────────────────┘

All of them are driven by a REACTOR: the only thing the core asks of it is
"call me back when this socket is readable".

=============================================================================
"""

from .line_buffer import LineBuffer
from .connection import ClientConnection, ConnectionState
from .listener import Listener, parse_address
from .reactor import Reactor, SelectorReactor

__all__ = [
    "LineBuffer",        # Growable per-connection line buffer
    "ClientConnection",  # One client socket + session
    "ConnectionState",   # Connection lifecycle states
    "Listener",          # Listening socket, accepts clients
    "parse_address",     # IPv4 + port validation
    "Reactor",           # Abstract readiness-dispatch contract
    "SelectorReactor",   # Default reactor (selectors module)
]
