"""
Bundled session implementations.

    echo     EchoSession    - sends every line back
    python   PythonSession  - an interactive Python interpreter per client

Embedding applications usually bring their own Session subclass; these
exist for the launcher, for trying the server out, and for tests.
"""

from typing import Callable, Dict

from ..errors import SessionTemplateError
from ..session import Session
from .echo import EchoSession
from .python_repl import PythonSession


SESSIONS: Dict[str, Callable[[], Session]] = {
    "echo": EchoSession,
    "python": PythonSession,
}


def load_session(name: str) -> Session:
    """
    Build the template session registered under `name`.

    Raises:
        SessionTemplateError: If the name is unknown or construction fails.
    """
    try:
        factory = SESSIONS[name]
    except KeyError:
        known = ", ".join(sorted(SESSIONS))
        raise SessionTemplateError(f"Unknown session {name!r} (choose from: {known})") from None

    try:
        return factory()
    except Exception as e:
        raise SessionTemplateError(f"Could not construct {name!r} session: {e}") from e


__all__ = ["EchoSession", "PythonSession", "SESSIONS", "load_session"]
