"""
=============================================================================
PYTHON REPL SESSION
=============================================================================

An interactive Python interpreter per client, speaking the same prompts
as the `python` shell:

    $ nc 127.0.0.1 7000
    Python 3.12.1 REPL (type Python statements)
    >>> x = 21
    >>> x * 2
    42
    >>> def double(n):
    ...     return n * 2
    ...
    >>> double(x)
    42

=============================================================================
HOW A LINE IS HANDLED
=============================================================================

    consume_line("x * 2")
        │
        ├──► append to pending source
        │
        ├──► CommandCompiler(source)
        │       ├── None          → incomplete, wait for more ("... ")
        │       ├── SyntaxError   → display_error(), drop pending source
        │       └── code          → run it
        │
        └──► run
                ├── exec(code)    → compiled in "single" mode, like the shell
                ├── expression    → display_result(repr(value)), via sys.displayhook
                ├── print() output captured and sent to the client
                └── exception     → display_error(traceback)

Each clone gets its own namespace: a variable defined by one client is
invisible to every other client.

=============================================================================
"""

import io
import sys
import codeop
import builtins
import traceback
from contextlib import redirect_stdout
from typing import Dict, List, Optional

from ..session import Session


PS1 = ">>> "
PS2 = "... "

DEFAULT_BANNER = "Python {version} REPL (type Python statements)"


class PythonSession(Session):
    """
    Evaluate Python source line by line.

    Args:
        banner: Sent when a client connects. "{version}" is replaced with
                the interpreter version. None disables it.
        namespace: Initial globals copied into every clone.
        filename: Name shown in tracebacks.
    """

    def __init__(
        self,
        banner: Optional[str] = DEFAULT_BANNER,
        namespace: Optional[Dict] = None,
        filename: str = "<repl>",
    ):
        self.banner = banner
        self.initial_namespace = dict(namespace or {})
        self.filename = filename

        self.namespace: Dict = {"__name__": "__repl__", "__builtins__": builtins}
        self.namespace.update(self.initial_namespace)

        self._pending: List[str] = []
        self._compile = codeop.CommandCompiler()

    def clone(self) -> "PythonSession":
        return PythonSession(
            banner=self.banner,
            namespace=self.initial_namespace,
            filename=self.filename,
        )

    # =========================================================================
    # SESSION CAPABILITIES
    # =========================================================================

    @property
    def needs_more(self) -> bool:
        """True while a multi-line statement is being entered."""
        return bool(self._pending)

    def connection_made(self) -> None:
        if self.banner:
            version = sys.version.split()[0]
            self.send(self.banner.format(version=version) + "\n")
        self.prompt_for_more()

    def connection_lost(self) -> None:
        self._pending.clear()
        self.namespace.clear()

    def consume_line(self, line: str) -> None:
        self._pending.append(line)
        source = "\n".join(self._pending)

        try:
            code = self._compile(source, self.filename, "single")
        except (OverflowError, SyntaxError, ValueError):
            self._pending.clear()
            self._show_syntax_error()
            return

        if code is None:
            return  # Incomplete, keep collecting lines

        self._pending.clear()
        self._run(code)

    def prompt_for_more(self) -> None:
        self.send(PS2 if self.needs_more else PS1)

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def _run(self, code) -> None:
        output = io.StringIO()
        saved_hook = sys.displayhook
        sys.displayhook = lambda value: self._display(value, output)
        try:
            with redirect_stdout(output):
                exec(code, self.namespace)
        except SystemExit:
            self._flush(output)
            self.display_error("SystemExit ignored; close the connection to quit")
            return
        except Exception:
            self._flush(output)
            self._show_traceback()
            return
        finally:
            sys.displayhook = saved_hook

        self._flush(output)

    def _display(self, value, output: io.StringIO) -> None:
        # Expression statements compiled in "single" mode land here
        if value is None:
            return
        self._flush(output)
        self.namespace["_"] = value
        self.display_result(repr(value))

    def _flush(self, output: io.StringIO) -> None:
        text = output.getvalue()
        if text:
            self.send(text)
            output.seek(0)
            output.truncate()

    def _show_syntax_error(self) -> None:
        exc_type, exc_value, _ = sys.exc_info()
        self.display_error("".join(traceback.format_exception_only(exc_type, exc_value)))

    def _show_traceback(self) -> None:
        exc_type, exc_value, tb = sys.exc_info()
        # Drop our own _run frame from the traceback
        lines = traceback.format_exception(exc_type, exc_value, tb.tb_next)
        self.display_error("".join(lines))
