"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the REPL server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m replserver --port 7001                          │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── REPL_PORT=7001 python -m replserver                       │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The core itself never reads the environment; only the launcher calls
ServerConfig.from_env().

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for the REPL server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog

    LINE BUFFERING
    - inline_buffer_size, max_buffer_size

    EVENT LOOP
    - poll_interval

    POLICY
    - close_on_write_failure

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    IPv4 address (dotted quad) to bind to.
    - "127.0.0.1" - Localhost only
    - "0.0.0.0" - All interfaces (an open REPL, think twice!)
    """

    port: int = 7000
    """Port to listen on. 0 lets the OS pick a free one."""

    backlog: int = 5
    """
    Pending-connection queue depth passed to listen().
    Interactive sessions arrive slowly, a small queue is plenty.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LINE BUFFERING
    # ─────────────────────────────────────────────────────────────────────

    inline_buffer_size: int = 256
    """
    Size of the small per-connection buffer used before any growth.
    Most command lines fit, so most connections never allocate more.
    """

    max_buffer_size: Optional[int] = None
    """
    Upper bound for a grown line buffer in bytes.
    None = grow until memory runs out (the connection is then closed).
    """

    # ─────────────────────────────────────────────────────────────────────
    # EVENT LOOP
    # ─────────────────────────────────────────────────────────────────────

    poll_interval: float = 0.5
    """
    Maximum time the reactor blocks in select() before re-checking
    whether it was asked to stop.
    """

    # ─────────────────────────────────────────────────────────────────────
    # POLICY
    # ─────────────────────────────────────────────────────────────────────

    close_on_write_failure: bool = False
    """
    Close a client connection when a send to it fails.
    False keeps writes best-effort: the failure is logged and counted.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Log format: 'text' for humans, 'json' for log aggregators."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        REPL_HOST         Bind address (default: 127.0.0.1)
        REPL_PORT         Port (default: 7000)
        REPL_BACKLOG      listen() backlog (default: 5)
        REPL_BUFFER_SIZE  Inline line-buffer size (default: 256)
        REPL_LOG_LEVEL    Logging level (default: INFO)
        REPL_LOG_FORMAT   text or json (default: text)

        =====================================================================
        """
        return cls(
            host=os.getenv("REPL_HOST", "127.0.0.1"),
            port=int(os.getenv("REPL_PORT", "7000")),
            backlog=int(os.getenv("REPL_BACKLOG", "5")),
            inline_buffer_size=int(os.getenv("REPL_BUFFER_SIZE", "256")),
            log_level=os.getenv("REPL_LOG_LEVEL", "INFO"),
            log_format=os.getenv("REPL_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by ReplServer.__init__ so bad values fail at startup, not
        on the first connection.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 0:
            raise ValueError("backlog must be >= 0")

        if self.inline_buffer_size < 2:
            raise ValueError("inline_buffer_size must be >= 2")

        if self.max_buffer_size is not None and self.max_buffer_size < self.inline_buffer_size:
            raise ValueError("max_buffer_size must be >= inline_buffer_size")

        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Unknown log_format: {self.log_format}")
