"""Parsing of token patterns into regex syntax trees.

The pattern language is deliberately tiny:

    \\d      decimal digit (0-9).
    \\w      lowercase character (a-z).
    \\       escape for matching the special characters `\\`, `*`, `|`, `(` and
            `)`, e.g. `\\*` matches "*".
    xy      concatenation; match x followed by y.
    x|y     disjunction; match either x or y.
    x*      kleene; match one or more occurrences of x.
    (x)     parenthesis; groups an expression for overriding precedence.

Every leaf of the tree gets a unique integer *position*, which is what the
DFA construction in `automata` works with. The tree that comes out of
`parse_regex` is augmented with a sentinel leaf at the very end; a DFA state
that contains the sentinel's position is an accepting state.
"""

import dataclasses
import enum
import string
import typing


class PatternError(Exception):
    """A token pattern could not be parsed.

    These are not recoverable: token patterns are written ahead of time, and
    a bad one means the lexer cannot be generated at all.
    """

    message: str
    pattern: str
    position: int
    token_name: str | None

    def __init__(self, message: str, pattern: str, position: int, token_name: str | None = None):
        super().__init__(message)
        self.message = message
        self.pattern = pattern
        self.position = position
        self.token_name = token_name

    def __str__(self) -> str:
        where = f"at offset {self.position} in pattern {self.pattern!r}"
        if self.token_name is not None:
            where = f"{where} of token {self.token_name}"
        return f"{self.message} ({where})"


###############################################################################
# Pattern tokens
###############################################################################


class Special(enum.Enum):
    Number = "d"
    Lowercase = "w"


class Kind(enum.Enum):
    Star = "*"
    Or = "|"
    LeftParen = "("
    RightParen = ")"
    Char = "char"
    Special = "special"
    End = "end"


@dataclasses.dataclass(frozen=True)
class Token:
    kind: Kind
    value: str | Special | None = None


STAR = Token(Kind.Star)
OR = Token(Kind.Or)
LEFT_PAREN = Token(Kind.LeftParen)
RIGHT_PAREN = Token(Kind.RightParen)
END = Token(Kind.End)

_OPERATORS = {
    "*": STAR,
    "|": OR,
    "(": LEFT_PAREN,
    ")": RIGHT_PAREN,
}

_ESCAPABLE = frozenset("*|()\\")

SPECIAL_CHARACTERS: dict[Special, str] = {
    Special.Number: string.digits,
    Special.Lowercase: string.ascii_lowercase,
}


class PatternLexer:
    """Splits a pattern into tokens, with one token of lookahead."""

    pattern: str
    current_pos: int
    current_token: Token | None

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.current_pos = 0
        self.current_token = None

    def next(self) -> Token:
        token = self.peek()
        self.current_token = None
        return token

    def peek(self) -> Token:
        if self.current_token is None:
            self.current_token = self._get()
        return self.current_token

    def _get(self) -> Token:
        c = self._char()
        if c is None:
            return END
        if c == "\\":
            return self._special_character()

        operator = _OPERATORS.get(c)
        if operator is not None:
            return operator
        return Token(Kind.Char, c)

    def _special_character(self) -> Token:
        c = self._char()
        if c is not None and c in _ESCAPABLE:
            return Token(Kind.Char, c)

        for special in Special:
            if c == special.value:
                return Token(Kind.Special, special)

        raise PatternError(
            "Error while parsing special character",
            self.pattern,
            self.current_pos,
        )

    def _char(self) -> str | None:
        if self.current_pos >= len(self.pattern):
            return None
        c = self.pattern[self.current_pos]
        self.current_pos += 1
        return c


###############################################################################
# Syntax tree
###############################################################################

# The sentinel is the empty string so that it can never be equal to a
# character in any alphabet.
SENTINEL = ""


# Nodes compare and hash by identity. Tree walks that must handle long
# patterns go through `post_order`, which does not recurse.
class RegexNode:
    def __str__(self) -> str:
        raise NotImplementedError()


@dataclasses.dataclass(frozen=True, eq=False)
class Cat(RegexNode):
    left: RegexNode
    right: RegexNode

    def __str__(self) -> str:
        return f"{self.left}{self.right}"


@dataclasses.dataclass(frozen=True, eq=False)
class Or(RegexNode):
    left: RegexNode
    right: RegexNode

    def __str__(self) -> str:
        return f"{self.left}|{self.right}"


@dataclasses.dataclass(frozen=True, eq=False)
class Parenthesized(RegexNode):
    child: RegexNode

    def __str__(self) -> str:
        return f"({self.child})"


@dataclasses.dataclass(frozen=True, eq=False)
class Kleene(RegexNode):
    child: RegexNode

    def __str__(self) -> str:
        return f"{self.child}*"


@dataclasses.dataclass(frozen=True, eq=False)
class Terminal(RegexNode):
    char: str
    position: int

    @property
    def is_sentinel(self) -> bool:
        return self.char == SENTINEL

    def __str__(self) -> str:
        if self.is_sentinel:
            return "#"
        if self.char in _ESCAPABLE:
            return "\\" + self.char
        return self.char


def children(node: RegexNode) -> tuple[RegexNode, ...]:
    match node:
        case Cat(left=left, right=right) | Or(left=left, right=right):
            return (left, right)
        case Parenthesized(child=child) | Kleene(child=child):
            return (child,)
        case Terminal():
            return ()
        case _:
            raise TypeError(f"Unknown regex node {node!r}")


def post_order(root: RegexNode) -> list[RegexNode]:
    """Every node of the tree, each one after all of its children, left
    subtrees before right ones."""
    order = []
    stack = [root]
    while len(stack) > 0:
        node = stack.pop()
        order.append(node)
        stack.extend(children(node))

    # `order` is a pre-order walk that visits right before left; reversed,
    # that is a post-order walk that visits left before right.
    order.reverse()
    return order


###############################################################################
# Parser
###############################################################################

# P1 -> P2 ('|' P2)*      alternation
# P2 -> P3+               concatenation
# P3 -> P4 '*'?           kleene
# P4 -> '(' P1 ')' | P5   parenthesized
# P5 -> Char | Special    leaf


class RegexParser:
    lexer: PatternLexer
    current_pos: int
    alphabet: set[str]

    def __init__(self, pattern: str):
        self.lexer = PatternLexer(pattern)
        self.current_pos = 0
        self.alphabet = set()

    def parse(self) -> tuple[RegexNode, set[str]]:
        p1 = self.p1()
        if self.lexer.peek() != END:
            self._fail("Expected EOF")
        return self.augment(p1), self.alphabet

    def p1(self) -> RegexNode:
        p1 = self.p2()
        while self.lexer.peek() == OR:
            self.lexer.next()
            p1 = Or(p1, self.p2())
        return p1

    def p2(self) -> RegexNode:
        p2 = self.p3()
        while not self.is_in_follow_p2(self.lexer.peek()):
            p2 = Cat(p2, self.p3())
        return p2

    def p3(self) -> RegexNode:
        p3 = self.p4()
        if self.lexer.peek() == STAR:
            self.lexer.next()
            p3 = Kleene(p3)
        return p3

    def p4(self) -> RegexNode:
        if self.lexer.peek() != LEFT_PAREN:
            return self.p5()

        self.lexer.next()
        p1 = self.p1()
        if self.lexer.peek() != RIGHT_PAREN:
            self._fail("Expected closing right parenthesis")
        self.lexer.next()
        return Parenthesized(p1)

    def p5(self) -> RegexNode:
        token = self.lexer.next()
        match token:
            case Token(kind=Kind.Char, value=str(c)):
                return self.single_char(c)
            case Token(kind=Kind.Special, value=Special() as special):
                return self.special(special)
            case _:
                self._fail("Expected (special) character")

    @staticmethod
    def is_in_follow_p2(token: Token) -> bool:
        return token in (OR, END, RIGHT_PAREN)

    def augment(self, node: RegexNode) -> RegexNode:
        sentinel = Terminal(SENTINEL, self.current_pos)
        self.current_pos += 1
        return Cat(node, sentinel)

    def special(self, special: Special) -> RegexNode:
        leaves = [self.single_char(c) for c in SPECIAL_CHARACTERS[special]]
        return self._balanced_or(leaves)

    def _balanced_or(self, nodes: list[RegexNode]) -> RegexNode:
        if len(nodes) == 1:
            return nodes[0]
        half = len(nodes) // 2
        return Or(self._balanced_or(nodes[:half]), self._balanced_or(nodes[half:]))

    def single_char(self, c: str) -> Terminal:
        terminal = Terminal(c, self.current_pos)
        self.current_pos += 1
        self.alphabet.add(c)
        return terminal

    def _fail(self, message: str) -> typing.NoReturn:
        raise PatternError(message, self.lexer.pattern, self.lexer.current_pos)


def parse_regex(pattern: str) -> tuple[RegexNode, set[str]]:
    """Parse a pattern into an augmented syntax tree and its alphabet.

    The alphabet is the set of every character that the pattern can match,
    with `\\d` and `\\w` expanded into the characters they stand for.
    """
    return RegexParser(pattern).parse()
