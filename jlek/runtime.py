"""Scan text into tokens with a compiled lexer table.

The table is a flat list of DFA states: one DFA per token spec, laid end to
end, each with its own initial state. All of the DFAs run at the same time,
so the scanner tracks a *frontier*, the set of states that are alive after
each character. It keeps consuming characters for as long as any state in the
frontier can move, and then walks back through the frontiers it saw until it
finds one that accepts. That gives the longest match; if more than one token
accepts at the same length, the one declared first wins.

NOTE: This module is copied as-is into generated lexers, so it must only ever
import from the standard library.
"""

import bisect
import dataclasses
import logging
import pathlib
import typing


@dataclasses.dataclass(frozen=True)
class Span:
    start_pos: int  # inclusive
    end_pos: int  # exclusive

    def __len__(self) -> int:
        return self.end_pos - self.start_pos

    def __str__(self) -> str:
        return f"[{self.start_pos}, {self.end_pos})"


@dataclasses.dataclass(frozen=True)
class TerminalClass:
    """A kind of token. When several kinds accept the same text, the one with
    the lowest priority wins; the priority is the declaration index of the
    token spec."""

    name: str
    priority: int


# The end of input. It never competes with the other classes.
END = TerminalClass("End", -1)


@dataclasses.dataclass(frozen=True)
class Terminal:
    kind: TerminalClass
    span: Span


# One entry per state: the class it accepts (if any), and its transitions.
LexerTable = list[tuple[TerminalClass | None, dict[str, int]]]


class LexicalError(Exception):
    """No token can be matched at a position in the source.

    `line` is 1-based and `column` is 0-based, both measured in bytes.
    `character` is the byte that could not be matched, written as a `\\xNN`
    escape unless it is printable ASCII, or None at the end of the input.
    """

    span: Span
    character: str | None
    line: int
    column: int

    def __init__(self, message: str, span: Span, character: str | None, line: int, column: int):
        super().__init__(message)
        self.span = span
        self.character = character
        self.line = line
        self.column = column


scan_log = logging.getLogger("jlek.scan")

_NEWLINE = ord("\n")
_WHITESPACE = frozenset(b" \t\n\r\x0b\x0c")


class Lexer:
    chars: bytes
    line_start_indices: list[int]
    table: LexerTable
    initial_states: frozenset[int]

    start_pos: int
    current_pos: int
    current_token: Terminal | None
    states_stack: list[frozenset[int]]

    def __init__(
        self,
        source: str | bytes,
        table: LexerTable,
        initial_states: typing.Iterable[int],
    ):
        if isinstance(source, str):
            source = source.encode("utf-8")

        self.chars = bytes(source)
        self.line_start_indices = [0] + [
            i + 1 for i, c in enumerate(self.chars) if c == _NEWLINE
        ]
        self.table = table
        self.initial_states = frozenset(initial_states)

        self.start_pos = 0
        self.current_pos = 0
        self.current_token = None
        self.states_stack = [self.initial_states]

    @classmethod
    def from_path(
        cls,
        path: pathlib.Path | str,
        table: LexerTable,
        initial_states: typing.Iterable[int],
    ) -> "Lexer":
        return cls(pathlib.Path(path).read_bytes(), table, initial_states)

    def next_token(self) -> Terminal:
        """Return the next token and move past it."""
        token = self.peek_token()
        self.start_pos = self.current_pos
        self.current_token = None
        return token

    def peek_token(self) -> Terminal:
        """Return the next token without moving past it.

        At the end of the input this returns an empty `End` token, as many
        times as you like. Raises LexicalError if no token matches.
        """
        if self.current_token is None:
            self._skip_whitespace()
            if self._peek_char() is None:
                self.current_token = Terminal(END, self._current_span())
            else:
                self.current_token = self._get()
                del self.states_stack[1:]
        return self.current_token

    def tokens(self) -> typing.Iterator[Terminal]:
        """Iterate over the rest of the tokens, not including `End`."""
        while True:
            token = self.next_token()
            if token.kind == END:
                return
            yield token

    def get_lexeme(self, token: Terminal) -> str:
        lexeme = self.chars[token.span.start_pos : token.span.end_pos]
        return lexeme.decode("utf-8", errors="replace")

    def line_and_column(self, pos: int) -> tuple[int, int]:
        line_number = bisect.bisect_right(self.line_start_indices, pos)
        return line_number, pos - self.line_start_indices[line_number - 1]

    def show_span(self, span: Span) -> str:
        """Render the line that contains the span, and mark the span under it."""
        line_number, column = self.line_and_column(span.start_pos)
        line_start = self.line_start_indices[line_number - 1]
        if line_number < len(self.line_start_indices):
            line_end = self.line_start_indices[line_number] - 1
        else:
            line_end = len(self.chars)

        line = self.chars[line_start:line_end].decode("utf-8", errors="replace")
        span_marker = " " * column + "^" + "-" * max(len(span) - 1, 0)
        return f"Line {line_number:3}|{line}\n         {span_marker}"

    def _get(self) -> Terminal:
        while True:
            c = self._peek_char()
            if c is None or not self._move_states_on_stack(c):
                return self._evaluate_stack()
            self.current_pos += 1

    def _move_states_on_stack(self, c: str) -> bool:
        new_states = set()
        for state in self.states_stack[-1]:
            target = self.table[state][1].get(c)
            if target is not None:
                new_states.add(target)

        if len(new_states) == 0:
            return False

        self.states_stack.append(frozenset(new_states))
        if scan_log.isEnabledFor(logging.DEBUG):
            scan_log.debug(f"{self.current_pos}: {c!r} -> {sorted(new_states)}")
        return True

    def _evaluate_stack(self) -> Terminal:
        sl = scan_log
        while True:
            accepted: TerminalClass | None = None
            for state in self.states_stack[-1]:
                kind = self.table[state][0]
                if kind is not None and (accepted is None or kind.priority < accepted.priority):
                    accepted = kind

            if accepted is not None:
                token = Terminal(accepted, self._current_span())
                if sl.isEnabledFor(logging.DEBUG):
                    sl.debug(f"ACCEPT {accepted.name} {token.span}")
                return token

            if len(self.states_stack) == 1:
                raise self._lexical_error()

            # Nothing accepts this far in, so give the last character back
            # and try the shorter match.
            self.states_stack.pop()
            self.current_pos -= 1
            if sl.isEnabledFor(logging.DEBUG):
                sl.debug(f"BACKTRACK to {self.current_pos}")

    def _lexical_error(self) -> LexicalError:
        span = self._current_span()
        c = self._peek_char()
        line, column = self.line_and_column(span.start_pos)
        if c is not None and not (c.isascii() and c.isprintable()):
            # A byte of a multi-byte character, or a control character.
            c = f"\\x{ord(c):02x}"
        found = c if c is not None else "EOF"
        message = f"{self.show_span(span)}\nerror: unexpected character found: {found}"
        return LexicalError(message, span=span, character=c, line=line, column=column)

    def _peek_char(self) -> str | None:
        if self.current_pos >= len(self.chars):
            return None
        return chr(self.chars[self.current_pos])

    def _skip_whitespace(self):
        while self.current_pos < len(self.chars) and self.chars[self.current_pos] in _WHITESPACE:
            self.current_pos += 1
        self.start_pos = self.current_pos
        del self.states_stack[1:]

    def _current_span(self) -> Span:
        return Span(self.start_pos, self.current_pos)


def format_tokens(lexer: Lexer, tokens: typing.Sequence[Terminal]) -> list[str]:
    """One line per token: offset, line, column, class and lexeme."""
    if len(tokens) == 0:
        return []

    max_terminal_name = max(len(token.kind.name) for token in tokens)
    max_offset_len = len(str(len(lexer.chars)))

    prev_line = None
    lines = []
    for token in tokens:
        start = token.span.start_pos
        line_number, column_index = lexer.line_and_column(start)
        if line_number != prev_line:
            line_part = f"{line_number:4}"
            prev_line = line_number
        else:
            line_part = "   |"

        value = lexer.get_lexeme(token)
        lines.append(
            f"{start:{max_offset_len}} {line_part} {column_index:3} "
            f"{token.kind.name:{max_terminal_name}} {repr(value)}"
        )
    return lines
