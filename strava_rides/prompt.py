from __future__ import annotations

import sys
from typing import Protocol, TextIO

from .errors import AuthError


class OperatorInput(Protocol):
    def ask(self, question: str) -> str: ...


class ConsolePrompt:
    """Reads operator answers from a text stream; closed once by the CLI."""

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.closed = False

    def ask(self, question: str) -> str:
        if self.closed:
            raise AuthError("Operator prompt is closed")
        self.stdout.write(question)
        self.stdout.flush()
        line = self.stdin.readline()
        if not line:
            raise AuthError("No operator input available (stdin closed)")
        return line.rstrip("\n")

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "ConsolePrompt":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()
