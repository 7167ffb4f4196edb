"""
=============================================================================
REPL SERVER CLI ENTRY POINT
=============================================================================

    # Python REPL on localhost:7000
    python -m replserver

    # Echo server on another port
    python -m replserver --session echo --port 7001

    # Verbose, machine-readable logs
    python -m replserver --log-level DEBUG --log-format json

Then connect with any line-oriented client:

    nc 127.0.0.1 7000

Environment variables (REPL_HOST, REPL_PORT, ...) provide the defaults,
command-line arguments override them.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig
from .errors import ReplServerError
from .server import ReplServer
from .sessions import SESSIONS, load_session


def build_parser(defaults: Optional[ServerConfig] = None) -> argparse.ArgumentParser:
    """Build the argument parser, using `defaults` for unset options."""
    defaults = defaults or ServerConfig()

    parser = argparse.ArgumentParser(
        prog="replserver",
        description="Serve an interactive session over a TCP line protocol",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m replserver                          # Python REPL on 127.0.0.1:7000
  python -m replserver --session echo           # Echo every line back
  python -m replserver --port 7001              # Custom port
  python -m replserver --log-level DEBUG        # Verbose logging
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"IPv4 address to bind to (default: {defaults.host})",
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})",
    )

    parser.add_argument(
        "--backlog",
        type=int,
        default=defaults.backlog,
        help=f"Pending connection queue depth (default: {defaults.backlog})",
    )

    parser.add_argument(
        "--buffer-size",
        type=int,
        default=defaults.inline_buffer_size,
        help=f"Inline line-buffer size in bytes (default: {defaults.inline_buffer_size})",
    )

    # ─────────────────────────────────────────────────────────────────────
    # SESSION
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--session", "-s",
        choices=sorted(SESSIONS),
        default="python",
        help="Session served to each client (default: python)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})",
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=defaults.log_format,
        help=f"Log output format (default: {defaults.log_format})",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"replserver {__version__}",
    )

    return parser


def config_from_args(args: argparse.Namespace, base: Optional[ServerConfig] = None) -> ServerConfig:
    """Translate parsed arguments into a ServerConfig."""
    base = base or ServerConfig()
    return ServerConfig(
        host=args.host,
        port=args.port,
        backlog=args.backlog,
        inline_buffer_size=args.buffer_size,
        max_buffer_size=base.max_buffer_size,
        poll_interval=base.poll_interval,
        close_on_write_failure=base.close_on_write_failure,
        log_level=args.log_level,
        log_format=args.log_format,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit status.
    """
    try:
        env_config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid environment configuration: {e}", file=sys.stderr)
        return 1

    args = build_parser(env_config).parse_args(argv)

    try:
        config = config_from_args(args, env_config)
        server = ReplServer(load_session(args.session), config)
        server.serve_forever()
    except (ReplServerError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================
# This allows running: python -m replserver

if __name__ == "__main__":
    sys.exit(main())
