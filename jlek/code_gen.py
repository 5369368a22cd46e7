"""Generate standalone Python lexer modules.

A generated module is the source of `jlek.runtime` followed by the compiled
tables, so it has no dependency on jlek at all:

    import lexer

    tokens = lexer.from_source_str("123 456")
    tokens.next_token()
"""

import inspect
import logging
import pathlib
import typing

from . import generated_source
from . import runtime
from .automata import LexerSpec, TokenSpec

codegen_log = logging.getLogger("jlek.codegen")

_BANNER = "#" * 79


def _format_transitions(transitions: dict[str, int]) -> str:
    return "{" + ", ".join(f"{c!r}: {target}" for c, target in sorted(transitions.items())) + "}"


def generate_source(spec: LexerSpec) -> str:
    """The text of a standalone lexer module for the given spec, header included."""
    lines = [
        "#",
        "# This lexer was generated from the following token specs. Do not edit it",
        "# by hand; change the specs and generate it again instead.",
        "#",
    ]
    for token_spec in spec.token_specs:
        lines.append(f"#   {token_spec.name}: {token_spec.pattern!r}")
    lines.append("#")
    lines.append(inspect.getsource(runtime).rstrip("\n"))
    lines.append("")
    lines.append("")
    lines.append(_BANNER)
    lines.append("# Tables")
    lines.append(_BANNER)
    lines.append("")

    classes = spec.terminal_classes()
    lines.append("TERMINAL_CLASSES = {")
    for name, kind in classes.items():
        lines.append(f"    {name!r}: TerminalClass({name!r}, {kind.priority}),")
    lines.append("}")
    lines.append("")

    lines.append("LEXER_TABLE: LexerTable = [")
    for index, state in enumerate(spec.states):
        accepts = f"TERMINAL_CLASSES[{state.accepts!r}]" if state.accepts is not None else "None"
        lines.append(f"    ({accepts}, {_format_transitions(state.next)}),  # {index}")
    lines.append("]")
    lines.append("")
    lines.append(f"INITIAL_STATES = {spec.initial_states!r}")
    lines.append("")
    lines.append("")
    lines.append("def from_source_str(source: str | bytes) -> Lexer:")
    lines.append("    return Lexer(source, LEXER_TABLE, INITIAL_STATES)")
    lines.append("")
    lines.append("")
    lines.append("def from_path(path: pathlib.Path | str) -> Lexer:")
    lines.append("    return Lexer.from_path(path, LEXER_TABLE, INITIAL_STATES)")
    lines.append("")

    return generated_source.stamp("\n".join(lines), spec.token_specs)


def generate(
    token_specs: typing.Iterable[TokenSpec],
    output_directory: pathlib.Path | str,
    *,
    module_name: str = "lexer",
    force: bool = False,
) -> pathlib.Path:
    """Compile the token specs and write `<module_name>.py` into the output
    directory, returning the path of the module.

    An existing module is only replaced if its header says nobody has edited
    it since it was generated. Pass `force=True` to replace it anyway.
    """
    if not module_name.isidentifier():
        raise ValueError(f"Module name {module_name!r} is not an identifier")

    spec = LexerSpec(token_specs)
    source = generate_source(spec)

    output_directory = pathlib.Path(output_directory)
    path = output_directory / f"{module_name}.py"
    if path.exists():
        existing = path.read_text(encoding="utf-8")
        if existing == source:
            codegen_log.info(f"{path} is up to date")
            return path
        if not force and not generated_source.is_unmodified(existing):
            raise ValueError(
                f"{path} has been edited since it was generated (or was never generated); "
                "refusing to overwrite it"
            )

    if not output_directory.exists():
        output_directory.mkdir(parents=True)

    path.write_text(source, encoding="utf-8")
    codegen_log.info(f"Wrote {len(spec.states)} states to {path}")
    return path


def check(token_specs: typing.Iterable[TokenSpec], path: pathlib.Path | str) -> str | None:
    """Why the module at `path` is out of date with the token specs, or None
    if it is current.

    The generated code itself is not compared, so an unedited module from an
    older jlek, generated from the same specs, is still current.
    """
    token_specs = list(token_specs)
    source = pathlib.Path(path).read_text(encoding="utf-8")
    if generated_source.is_current(source, token_specs):
        return None

    stamp, _ = generated_source.read_stamp(source)
    if stamp is None:
        return f"{path} was not generated by jlek"
    if not generated_source.is_unmodified(source):
        return f"{path} has been edited since it was generated"
    return f"{path} was generated from different token specs"
