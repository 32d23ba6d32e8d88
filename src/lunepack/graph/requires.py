"""Extraction of ``require`` calls from Luau source.

This is a best-effort lexer, not a parser: it understands enough of the
language (comments, quoted strings, long brackets, interpolated strings)
to avoid false positives, and recognizes ``require("x")``,
``require 'x'`` and ``require [[x]]``. Any other argument form is reported
as a dynamic require.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_IDENT_START = re.compile(r"[A-Za-z_]")
_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_LONG_OPEN = re.compile(r"\[(=*)\[")
_NUMBER = re.compile(r"[0-9][0-9A-Za-z_.]*")

_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "a": "\a", "b": "\b",
    "f": "\f", "v": "\v", "\\": "\\", '"': '"', "'": "'", "\n": "\n",
}


@dataclass(frozen=True)
class RequireCall:
    """One ``require`` call site.

    Attributes:
        target: The literal argument, or None for a dynamic require.
        line: 1-based line of the ``require`` keyword.
        expression: Source text of the argument (for diagnostics).
    """

    target: str | None
    line: int
    expression: str = ""

    @property
    def is_dynamic(self) -> bool:
        return self.target is None


class _Scanner:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1
        self.calls: list[RequireCall] = []

    # -- low level ----------------------------------------------------------

    def _peek(self, offset: int = 0) -> str:
        i = self.pos + offset
        return self.text[i] if i < len(self.text) else ""

    def _advance(self, n: int = 1) -> str:
        chunk = self.text[self.pos:self.pos + n]
        self.line += chunk.count("\n")
        self.pos += n
        return chunk

    def _skip_long_bracket(self) -> str | None:
        """Consume ``[=*[ ... ]=*]`` at the cursor and return its body."""
        m = _LONG_OPEN.match(self.text, self.pos)
        if not m:
            return None
        close = "]" + m.group(1) + "]"
        start = m.end()
        end = self.text.find(close, start)
        if end < 0:
            end = len(self.text)
            body = self.text[start:]
            self._advance(end - self.pos)
        else:
            body = self.text[start:end]
            self._advance(end + len(close) - self.pos)
        # A newline directly after the opening bracket is not part of the string.
        if body.startswith("\r\n"):
            body = body[2:]
        elif body.startswith("\n"):
            body = body[1:]
        return body

    def _skip_comment(self) -> None:
        self._advance(2)
        if self._peek() == "[" and _LONG_OPEN.match(self.text, self.pos):
            self._skip_long_bracket()
            return
        end = self.text.find("\n", self.pos)
        self._advance((len(self.text) if end < 0 else end) - self.pos)

    def _read_quoted(self) -> str:
        quote = self._advance()
        out: list[str] = []
        while self.pos < len(self.text):
            ch = self._advance()
            if ch == quote:
                break
            if ch == "\n" and quote != "`":
                break
            if ch == "\\":
                nxt = self._advance()
                out.append(_ESCAPES.get(nxt, nxt))
                continue
            out.append(ch)
        return "".join(out)

    def _skip_trivia(self) -> None:
        while self.pos < len(self.text):
            ch = self._peek()
            if ch.isspace():
                self._advance()
            elif ch == "-" and self._peek(1) == "-":
                self._skip_comment()
            else:
                return

    def _read_literal(self) -> str | None:
        ch = self._peek()
        if ch in ("'", '"'):
            return self._read_quoted()
        if ch == "[" and _LONG_OPEN.match(self.text, self.pos):
            return self._skip_long_bracket()
        return None

    def _skip_balanced(self) -> str:
        """Consume up to the parenthesis closing an already-opened one."""
        depth = 1
        start = self.pos
        while self.pos < len(self.text):
            ch = self._peek()
            if ch in ("'", '"', "`"):
                self._read_quoted()
                continue
            if ch == "-" and self._peek(1) == "-":
                self._skip_comment()
                continue
            if ch == "[" and _LONG_OPEN.match(self.text, self.pos):
                self._skip_long_bracket()
                continue
            self._advance()
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    return self.text[start:self.pos - 1].strip()
        return self.text[start:].strip()

    # -- require recognition ------------------------------------------------

    def _preceded_by_accessor(self, start: int) -> bool:
        i = start - 1
        while i >= 0 and self.text[i] in " \t":
            i -= 1
        return i >= 0 and self.text[i] in ".:"

    def _handle_require(self, line: int) -> None:
        self._skip_trivia()
        if self._peek() == "(":
            self._advance()
            self._skip_trivia()
            mark = (self.pos, self.line)
            literal = self._read_literal()
            if literal is not None:
                self._skip_trivia()
                if self._peek() == ")":
                    self._advance()
                    expression = self.text[mark[0]:self.pos - 1].strip()
                    self.calls.append(RequireCall(literal, line, expression))
                    return
            self.pos, self.line = mark
            self.calls.append(RequireCall(None, line, self._skip_balanced()))
            return
        literal = self._read_literal()
        if literal is not None:
            self.calls.append(RequireCall(literal, line, repr(literal)))

    def scan(self) -> list[RequireCall]:
        text = self.text
        previous_word = ""
        while self.pos < len(text):
            ch = text[self.pos]
            if ch == "-" and self._peek(1) == "-":
                self._skip_comment()
            elif ch in ("'", '"', "`"):
                self._read_quoted()
            elif ch == "[" and _LONG_OPEN.match(text, self.pos):
                self._skip_long_bracket()
            elif _IDENT_START.match(ch):
                m = _IDENT.match(text, self.pos)
                assert m is not None
                word = m.group(0)
                start = self.pos
                self._advance(len(word))
                if (
                    word == "require"
                    and previous_word != "function"
                    and not self._preceded_by_accessor(start)
                ):
                    self._handle_require(self.line)
                previous_word = word
            elif ch.isdigit():
                # Numerals, so hex digits are not read as identifiers.
                m = _NUMBER.match(text, self.pos)
                self._advance(len(m.group(0)) if m else 1)
            else:
                self._advance()
        return self.calls


def extract_requires(source: str | bytes) -> list[RequireCall]:
    """Return the ``require`` calls in *source*, in source order."""
    if isinstance(source, bytes):
        source = source.decode("utf-8", errors="replace")
    return _Scanner(source).scan()
