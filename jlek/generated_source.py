"""The header line of a generated lexer module.

The first line of every generated module records two digests: one of the
token specs the module was generated from, and one of everything after the
header. The second tells us whether somebody edited the module by hand
since it was written; together they tell us whether the module is still
current for a given list of token specs.

    # @generated by jlek specs=<sha256> body=<sha256>
"""

import dataclasses
import hashlib
import json
import re
import typing

from .automata import TokenSpec

_HEADER_PATTERN = re.compile(r"# @generated by jlek specs=([0-9a-f]{64}) body=([0-9a-f]{64})")


@dataclasses.dataclass(frozen=True)
class Stamp:
    specs: str
    body: str

    def header(self) -> str:
        return f"# @generated by jlek specs={self.specs} body={self.body}"


def specs_digest(token_specs: typing.Iterable[TokenSpec]) -> str:
    """A digest of the names and patterns of the token specs, in order."""
    digest = hashlib.sha256()
    for token_spec in token_specs:
        digest.update(json.dumps([token_spec.name, token_spec.pattern]).encode("utf-8"))
        digest.update(b"\n")
    return digest.hexdigest()


def body_digest(body: str) -> str:
    # Line endings don't count: a module checked out with CRLF line endings
    # has not been edited.
    normalized = "\n".join(body.splitlines())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def stamp(body: str, token_specs: typing.Iterable[TokenSpec]) -> str:
    """Put a header line on top of the body of a generated module."""
    header = Stamp(specs=specs_digest(token_specs), body=body_digest(body)).header()
    return f"{header}\n{body}"


def read_stamp(source: str) -> tuple[Stamp | None, str]:
    """Split a module into its header and its body.

    If the first line is not a header, the stamp is None and the body is the
    whole source.
    """
    header, _, body = source.partition("\n")
    match = _HEADER_PATTERN.fullmatch(header.rstrip("\r"))
    if match is None:
        return None, source
    return Stamp(specs=match.group(1), body=match.group(2)), body


def is_unmodified(source: str) -> bool:
    """Whether the module has a header, and its body still matches it."""
    stamp, body = read_stamp(source)
    return stamp is not None and stamp.body == body_digest(body)


def is_current(source: str, token_specs: typing.Iterable[TokenSpec]) -> bool:
    """Whether the module is unmodified and was generated from exactly these
    token specs."""
    stamp, _ = read_stamp(source)
    return (
        stamp is not None
        and is_unmodified(source)
        and stamp.specs == specs_digest(token_specs)
    )
