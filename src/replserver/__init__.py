"""
=============================================================================
REPLSERVER - Interactive Sessions Over a TCP Line Protocol
=============================================================================

replserver puts an interactive session (a language REPL, a debug console,
an admin shell) behind a plain TCP socket. Clients send newline-terminated
commands; every client gets its own clone of the session; whatever the
session sends goes straight back to that client.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    replserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m replserver)
    ├── server.py            # ReplServer: listener + connections + template
    ├── session.py           # Session capability interface
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Error kinds
    ├── log.py               # Logging setup (text / JSON)
    ├── core/                # Networking plumbing
    │   ├── line_buffer.py   # Growable per-connection line buffer
    │   ├── connection.py    # One client: socket + buffer + session
    │   ├── listener.py      # Listening socket, accept + clone
    │   └── reactor.py       # Readiness dispatch (selectors)
    └── sessions/            # Bundled sessions
        ├── echo.py          # Echo every line
        └── python_repl.py   # Interactive Python interpreter

=============================================================================
QUICK START
=============================================================================

    from replserver import ReplServer, ServerConfig
    from replserver.sessions import PythonSession

    server = ReplServer(PythonSession(), ServerConfig(port=7000))
    server.serve_forever()

    # In another terminal:
    #   $ nc 127.0.0.1 7000
    #   >>> 1 + 1
    #   2

=============================================================================
WIRE PROTOCOL
=============================================================================

    client → server   bytes terminated by "\\n" (no CR stripping)
    server → client   exactly the bytes the session sends, no framing

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .errors import (
    ReplServerError,
    StartupError,
    AddressParseError,
    SocketCreationError,
    BindError,
    ListenError,
    SessionTemplateError,
)
from .server import ReplServer, create_server
from .session import Session

__all__ = [
    "ReplServer",
    "create_server",
    "ServerConfig",
    "Session",
    "ReplServerError",
    "StartupError",
    "AddressParseError",
    "SocketCreationError",
    "BindError",
    "ListenError",
    "SessionTemplateError",
    "__version__",
]
