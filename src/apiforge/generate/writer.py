from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator


class CodeWriter:
    """Line-oriented text buffer with indentation bookkeeping."""

    def __init__(self, indent: str = "  ") -> None:
        self._lines: list[str] = []
        self._level = 0
        self._indent = indent

    def line(self, text: str = "") -> None:
        if not text:
            self._lines.append("")
            return
        self._lines.append(self._indent * self._level + text)

    def lines(self, text: str) -> None:
        for ln in text.splitlines():
            self.line(ln)

    def empty_line(self) -> None:
        self._lines.append("")

    def indent(self) -> None:
        self._level += 1

    def dedent(self) -> None:
        self._level = max(0, self._level - 1)

    @contextmanager
    def block(self, opening: str, closing: str = "}", trailing_newline: bool = False) -> Iterator["CodeWriter"]:
        self.line(opening)
        self.indent()
        yield self
        self.dedent()
        self.line(closing)
        if trailing_newline:
            self.empty_line()

    def getvalue(self) -> str:
        return "\n".join(self._lines) + ("\n" if self._lines else "")
