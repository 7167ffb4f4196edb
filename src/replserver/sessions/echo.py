"""
Echo session: sends every line straight back.

Handy for trying the server with netcat and for tests:

    $ nc 127.0.0.1 7000
    hello
    hello
    >
"""

from ..session import Session


class EchoSession(Session):
    """Echo each line back, followed by a prompt."""

    def __init__(self, prompt: str = "> "):
        self.prompt = prompt

    def clone(self) -> "EchoSession":
        return EchoSession(self.prompt)

    def consume_line(self, line: str) -> None:
        self.send(line + "\n")

    def prompt_for_more(self) -> None:
        if self.prompt:
            self.send(self.prompt)
