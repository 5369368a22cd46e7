"""Generate lexers from token specifications.

A token specification is a name and a pattern. Give an ordered list of them
to `LexerSpec` and you get a flat DFA table that recognizes all of them at
once; give the same list to `generate` and you get a standalone Python module
that scans text with that table.

    specs = [
        TokenSpec("Number", "\\\\d\\\\d*"),
        TokenSpec("Ident", "\\\\w\\\\w*"),
    ]
    lexer = LexerSpec(specs).lexer("foo 42")
    token = lexer.next_token()
    token.kind.name  # "Ident"
    token.span  # Span(start_pos=0, end_pos=3)

The scanner always takes the longest match. If two tokens match the same
text, the one that was declared first wins.

See `jlek.regex` for the (small) pattern syntax.
"""

from .automata import (
    DFAState,
    LexerSpec,
    PositionTables,
    State,
    TokenSpec,
    build_dfa,
    dump_lexer_spec,
    load_token_specs,
)
from .code_gen import generate, generate_source
from .regex import PatternError, parse_regex
from .runtime import (
    END,
    Lexer,
    LexerTable,
    LexicalError,
    Span,
    Terminal,
    TerminalClass,
    format_tokens,
)
