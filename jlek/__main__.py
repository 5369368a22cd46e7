import argparse
import logging
import sys

from . import automata
from . import code_gen
from .regex import PatternError
from .runtime import LexicalError, format_tokens


def _generate(parsed: argparse.Namespace) -> int:
    specs = automata.load_token_specs(parsed.specs)
    path = code_gen.generate(
        specs,
        parsed.output_directory,
        module_name=parsed.module_name,
        force=parsed.force,
    )
    print(path)
    return 0


def _check(parsed: argparse.Namespace) -> int:
    problem = code_gen.check(automata.load_token_specs(parsed.specs), parsed.module_path)
    if problem is not None:
        print(problem, file=sys.stderr)
        return 1
    return 0


def _tokenize(parsed: argparse.Namespace) -> int:
    spec = automata.LexerSpec(automata.load_token_specs(parsed.specs))
    with open(parsed.source_path, "rb") as f:
        lexer = spec.lexer(f.read())

    # Collect everything first: if there is an error we still want to see
    # the tokens that came before it.
    tokens = []
    try:
        for token in lexer.tokens():
            tokens.append(token)
    finally:
        for line in format_tokens(lexer, tokens):
            print(line)
    return 0


def _graph(parsed: argparse.Namespace) -> int:
    spec = automata.LexerSpec(automata.load_token_specs(parsed.specs))
    automata.dump_lexer_spec(spec, parsed.output)
    return 0


def main(args: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="jlek",
        description="Generate lexers from token specifications",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log more about what is going on. Pass twice for debug output.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Write a standalone lexer module")
    generate.add_argument("specs", help="Path to a JSON file with the token specs")
    generate.add_argument("output_directory", help="Directory to write the lexer module into")
    generate.add_argument(
        "--module-name",
        default="lexer",
        help="The name of the generated module, without the .py. The default is 'lexer'.",
    )
    generate.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the module even if it has been edited since it was generated.",
    )
    generate.set_defaults(handler=_generate)

    check = subparsers.add_parser(
        "check", help="Check that a generated module is unedited and up to date with the specs"
    )
    check.add_argument("specs", help="Path to a JSON file with the token specs")
    check.add_argument("module_path", help="Path to the generated lexer module")
    check.set_defaults(handler=_check)

    tokenize = subparsers.add_parser("tokenize", help="Scan a file and print the tokens")
    tokenize.add_argument("specs", help="Path to a JSON file with the token specs")
    tokenize.add_argument("source_path", help="Path to an input file to scan")
    tokenize.set_defaults(handler=_tokenize)

    graph = subparsers.add_parser("graph", help="Dump the lexer states as a graphviz file")
    graph.add_argument("specs", help="Path to a JSON file with the token specs")
    graph.add_argument("--output", default="lexer.dot", help="Where to write the graph.")
    graph.set_defaults(handler=_graph)

    parsed = parser.parse_args(args)

    if parsed.verbose >= 2:
        level = logging.DEBUG
    elif parsed.verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(name)s: %(message)s")

    try:
        return parsed.handler(parsed)
    except (PatternError, LexicalError, ValueError, OSError) as e:
        print(f"{e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
