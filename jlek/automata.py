"""Turn token patterns into DFAs, and merge the DFAs into one flat table.

The construction goes straight from the syntax tree to a DFA, without ever
building an NFA. It's the one in the dragon book (section 3.9, "From a
Regular Expression to a DFA"): compute nullable, firstpos and lastpos for
every node of the augmented tree, use those to compute followpos for every
leaf position, and then each DFA state is just a set of positions. A state
containing the position of the sentinel leaf accepts.

Each token spec gets its own DFA. They are concatenated into one big array of
states with one initial state per token spec; the runtime runs all of them at
the same time and uses declaration order to break ties.
"""

import dataclasses
import json
import logging
import pathlib
import typing

from . import runtime
from .regex import (
    Cat,
    Kleene,
    Or,
    Parenthesized,
    PatternError,
    RegexNode,
    Terminal,
    parse_regex,
    post_order,
)

compile_log = logging.getLogger("jlek.compile")


@dataclasses.dataclass(frozen=True)
class TokenSpec:
    """A token specification: the name of a token and the pattern for it."""

    name: str
    pattern: str

    def __post_init__(self):
        if not self.name.isidentifier():
            raise ValueError(f"Token name {self.name!r} is not an identifier")
        if self.name == runtime.END.name:
            raise ValueError(f"Token name {self.name!r} is reserved for the end of input")


def load_token_specs(path: pathlib.Path | str) -> list[TokenSpec]:
    """Load token specs from a JSON file.

    The file is either a list of {"name": ..., "pattern": ...} objects, or an
    object that maps names to patterns. Either way the order in the file is
    the declaration order.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    match data:
        case dict():
            items = list(data.items())
        case list():
            items = []
            for entry in data:
                match entry:
                    case {"name": name, "pattern": pattern}:
                        items.append((name, pattern))
                    case _:
                        raise ValueError(f"{path}: bad token spec {entry!r}")
        case _:
            raise ValueError(f"{path}: expected a list or an object of token specs")

    specs = []
    for name, pattern in items:
        if not isinstance(name, str) or not isinstance(pattern, str):
            raise ValueError(f"{path}: token spec {name!r} must map a string to a string")
        specs.append(TokenSpec(name, pattern))
    return specs


###############################################################################
# Position tables
###############################################################################


class PositionTables:
    """nullable, firstpos and lastpos for every node of a tree, and followpos
    for every leaf position.

    All four are computed up front, bottom-up, in that order: followpos needs
    the firstpos and lastpos of the children to already be there. Each pass
    walks the nodes in post-order from an explicit list; a long pattern is a
    very deep chain of `Cat` nodes.
    """

    nullable_table: dict[RegexNode, bool]
    first_pos_table: dict[RegexNode, frozenset[int]]
    last_pos_table: dict[RegexNode, frozenset[int]]
    follow_pos_table: dict[int, set[int]]

    chars: dict[int, str]
    sentinel: int | None

    def __init__(self, root: RegexNode):
        self.nullable_table = {}
        self.first_pos_table = {}
        self.last_pos_table = {}
        self.follow_pos_table = {}
        self.chars = {}
        self.sentinel = None

        order = post_order(root)
        self._calculate_nullable(order)
        self._calculate_first_pos(order)
        self._calculate_last_pos(order)
        self._calculate_follow_pos(order)

    def nullable(self, node: RegexNode) -> bool:
        result = self.nullable_table.get(node)
        assert result is not None, f"nullable was never computed for {type(node).__name__} node"
        return result

    def first_pos(self, node: RegexNode) -> frozenset[int]:
        result = self.first_pos_table.get(node)
        assert result is not None, f"firstpos was never computed for {type(node).__name__} node"
        return result

    def last_pos(self, node: RegexNode) -> frozenset[int]:
        result = self.last_pos_table.get(node)
        assert result is not None, f"lastpos was never computed for {type(node).__name__} node"
        return result

    def follow_pos(self, position: int) -> frozenset[int]:
        return frozenset(self.follow_pos_table.get(position, ()))

    def _calculate_nullable(self, order: list[RegexNode]):
        for node in order:
            match node:
                case Cat(left=left, right=right):
                    nullable = self.nullable(left) and self.nullable(right)

                case Or(left=left, right=right):
                    nullable = self.nullable(left) or self.nullable(right)

                case Parenthesized(child=child):
                    nullable = self.nullable(child)

                case Kleene():
                    nullable = True

                case Terminal(char=char, position=position):
                    self.chars[position] = char
                    if node.is_sentinel:
                        self.sentinel = position
                    nullable = False

                case _:
                    raise TypeError(f"Unknown regex node {node!r}")

            self.nullable_table[node] = nullable

    def _calculate_first_pos(self, order: list[RegexNode]):
        for node in order:
            match node:
                case Cat(left=left, right=right):
                    if self.nullable(left):
                        first_pos = self.first_pos(left) | self.first_pos(right)
                    else:
                        first_pos = self.first_pos(left)

                case Or(left=left, right=right):
                    first_pos = self.first_pos(left) | self.first_pos(right)

                case Parenthesized(child=child) | Kleene(child=child):
                    first_pos = self.first_pos(child)

                case Terminal(position=position):
                    first_pos = frozenset([position])

                case _:
                    raise TypeError(f"Unknown regex node {node!r}")

            self.first_pos_table[node] = first_pos

    def _calculate_last_pos(self, order: list[RegexNode]):
        for node in order:
            match node:
                case Cat(left=left, right=right):
                    if self.nullable(right):
                        last_pos = self.last_pos(left) | self.last_pos(right)
                    else:
                        last_pos = self.last_pos(right)

                case Or(left=left, right=right):
                    last_pos = self.last_pos(left) | self.last_pos(right)

                case Parenthesized(child=child) | Kleene(child=child):
                    last_pos = self.last_pos(child)

                case Terminal(position=position):
                    last_pos = frozenset([position])

                case _:
                    raise TypeError(f"Unknown regex node {node!r}")

            self.last_pos_table[node] = last_pos

    def _calculate_follow_pos(self, order: list[RegexNode]):
        for node in order:
            match node:
                case Cat(left=left, right=right):
                    self._add_follow_pos(self.last_pos(left), self.first_pos(right))

                case Kleene(child=child):
                    self._add_follow_pos(self.last_pos(child), self.first_pos(child))

                case Or() | Parenthesized() | Terminal():
                    pass

                case _:
                    raise TypeError(f"Unknown regex node {node!r}")

    def _add_follow_pos(self, positions: typing.Iterable[int], follows: frozenset[int]):
        for position in positions:
            existing = self.follow_pos_table.get(position)
            if existing is None:
                existing = set()
                self.follow_pos_table[position] = existing
            existing.update(follows)


###############################################################################
# DFA construction
###############################################################################


@dataclasses.dataclass
class DFAState:
    positions: frozenset[int]
    accepting: bool
    next: dict[str, int] = dataclasses.field(default_factory=dict)


def build_dfa(root: RegexNode, alphabet: typing.Iterable[str]) -> list[DFAState]:
    """Build the DFA for one augmented tree.

    State 0 is firstpos(root). States are explored in the order they are
    discovered, and the alphabet is walked in sorted order, so the same tree
    always produces exactly the same list of states.
    """
    tables = PositionTables(root)
    assert tables.sentinel is not None, "The tree was not augmented with a sentinel"
    sentinel = tables.sentinel
    letters = sorted(alphabet)

    def new_state(positions: frozenset[int]) -> int:
        index = len(states)
        states.append(DFAState(positions=positions, accepting=sentinel in positions))
        indices[positions] = index
        if compile_log.isEnabledFor(logging.DEBUG):
            compile_log.debug(f"  state {index}: {sorted(positions)}")
        return index

    states: list[DFAState] = []
    indices: dict[frozenset[int], int] = {}
    new_state(tables.first_pos(root))

    visited = 0
    while visited < len(states):
        state = states[visited]
        for c in letters:
            follow: set[int] = set()
            for position in state.positions:
                if tables.chars[position] == c:
                    follow.update(tables.follow_pos(position))

            if len(follow) == 0:
                continue

            target = frozenset(follow)
            index = indices.get(target)
            if index is None:
                index = new_state(target)
            state.next[c] = index

        visited += 1

    return states


###############################################################################
# Lexer spec
###############################################################################


@dataclasses.dataclass
class State:
    """A state in the flat lexer table."""

    accepts: str | None
    next: dict[str, int]


class LexerSpec:
    """The DFAs of a list of token specs, merged into one flat array.

    `initial_states[i]` is the index of the first state of the DFA for
    `token_specs[i]`. Transitions never cross from one DFA into another.
    """

    token_specs: list[TokenSpec]
    states: list[State]
    initial_states: list[int]

    def __init__(self, token_specs: typing.Iterable[TokenSpec]):
        self.token_specs = list(token_specs)
        self.states = []
        self.initial_states = []

        for token_spec in self.token_specs:
            dfa = self._create_dfa(token_spec)

            root = len(self.states)
            self.initial_states.append(root)
            compile_log.info(f"{token_spec.name}: {len(dfa)} states starting at {root}")

            for dfa_state in dfa:
                self.states.append(
                    State(
                        accepts=token_spec.name if dfa_state.accepting else None,
                        next={c: target + root for c, target in dfa_state.next.items()},
                    )
                )

    @staticmethod
    def _create_dfa(token_spec: TokenSpec) -> list[DFAState]:
        try:
            root, alphabet = parse_regex(token_spec.pattern)
        except PatternError as e:
            e.token_name = token_spec.name
            raise

        dfa = build_dfa(root, alphabet)
        if dfa[0].accepting:
            raise PatternError(
                "Pattern matches the empty string",
                token_spec.pattern,
                len(token_spec.pattern),
                token_name=token_spec.name,
            )
        return dfa

    def terminal_classes(self) -> dict[str, runtime.TerminalClass]:
        """One terminal class per distinct token name, in declaration order.

        A name that is declared more than once takes the priority of its first
        declaration.
        """
        classes: dict[str, runtime.TerminalClass] = {}
        for index, token_spec in enumerate(self.token_specs):
            if token_spec.name not in classes:
                classes[token_spec.name] = runtime.TerminalClass(token_spec.name, index)
        return classes

    def to_table(self) -> runtime.LexerTable:
        classes = self.terminal_classes()
        return [
            (classes[state.accepts] if state.accepts is not None else None, dict(state.next))
            for state in self.states
        ]

    def lexer(self, source: str | bytes) -> runtime.Lexer:
        return runtime.Lexer(source, self.to_table(), self.initial_states)


def dump_lexer_spec(spec: LexerSpec, name: pathlib.Path | str = "lexer.dot"):
    """Write the flat state table out as a graphviz digraph."""
    with open(name, "w", encoding="utf-8") as f:
        f.write("digraph G {\n")
        for index, state in enumerate(spec.states):
            label = state.accepts if state.accepts is not None else ""
            shape = "doublecircle" if state.accepts is not None else "circle"
            style = " style=bold" if index in spec.initial_states else ""
            f.write(f'  {index} [label="{label}" shape={shape}{style}];\n')
            for c, target in sorted(state.next.items()):
                label = json.dumps(c)[1:-1]
                f.write(f'  {index} -> {target} [label="{label}"];\n')
        f.write("}\n")
