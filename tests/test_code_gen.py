import importlib.util
import logging
import sys

import pytest

import jlek.generated_source as generated_source
from jlek.automata import LexerSpec, TokenSpec
from jlek.code_gen import check, generate, generate_source

SPECS = [
    TokenSpec("Number", "\\d\\d*"),
    TokenSpec("Ident", "\\w\\w*"),
    TokenSpec("If", "if"),
    TokenSpec("LParen", "\\("),
    TokenSpec("RParen", "\\)"),
    TokenSpec("Quote", "'"),
]


def _load(path, monkeypatch):
    name = f"generated_{path.stem}"
    spec = importlib.util.spec_from_file_location(name, path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    monkeypatch.setitem(sys.modules, name, module)
    spec.loader.exec_module(module)
    return module


def test_generated_lexer(tmp_path, monkeypatch):
    path = generate(SPECS, tmp_path)
    assert path == tmp_path / "lexer.py"

    lexer = _load(path, monkeypatch)
    assert lexer.INITIAL_STATES == LexerSpec(SPECS).initial_states
    assert list(lexer.TERMINAL_CLASSES) == ["Number", "Ident", "If", "LParen", "RParen", "Quote"]

    scanner = lexer.from_source_str("if (x12) 'iffy'")
    tokens = list(scanner.tokens())
    assert [(t.kind.name, scanner.get_lexeme(t)) for t in tokens] == [
        ("Ident", "if"),
        ("LParen", "("),
        ("Ident", "x"),
        ("Number", "12"),
        ("RParen", ")"),
        ("Quote", "'"),
        ("Ident", "iffy"),
        ("Quote", "'"),
    ]
    assert scanner.next_token().kind == lexer.END


def test_generated_lexer_matches_runtime(tmp_path, monkeypatch):
    lexer = _load(generate(SPECS, tmp_path), monkeypatch)
    spec = LexerSpec(SPECS)

    for source in ["", "abc 123", "(((", "if\n  iff 0 ) '", "a1b2c3"]:
        generated = lexer.from_source_str(source)
        expected = spec.lexer(source)
        assert [(t.kind.name, t.span.start_pos, t.span.end_pos) for t in generated.tokens()] == [
            (t.kind.name, t.span.start_pos, t.span.end_pos) for t in expected.tokens()
        ]


def test_generated_lexer_errors(tmp_path, monkeypatch):
    lexer = _load(generate(SPECS, tmp_path), monkeypatch)
    scanner = lexer.from_source_str("12 ?")
    scanner.next_token()
    with pytest.raises(lexer.LexicalError) as exc_info:
        scanner.next_token()
    assert str(exc_info.value) == "Line   1|12 ?\n            ^\nerror: unexpected character found: ?"


def test_generated_lexer_from_path(tmp_path, monkeypatch):
    lexer = _load(generate(SPECS, tmp_path, module_name="my_lexer"), monkeypatch)
    source = tmp_path / "input.txt"
    source.write_text("abc\n42", encoding="utf-8")
    scanner = lexer.from_path(source)
    assert [t.kind.name for t in scanner.tokens()] == ["Ident", "Number"]


def test_generated_source_has_a_header(tmp_path):
    path = generate(SPECS, tmp_path)
    source = path.read_text(encoding="utf-8")
    assert source.startswith("# @generated by jlek specs=")
    assert generated_source.is_current(source, SPECS)
    assert check(SPECS, path) is None


def test_generated_source_is_deterministic():
    assert generate_source(LexerSpec(SPECS)) == generate_source(LexerSpec(SPECS))


def test_generated_source_lists_the_specs():
    source = generate_source(LexerSpec(SPECS))
    assert "#   Number: '\\\\d\\\\d*'\n" in source
    assert "INITIAL_STATES = [0, 2, 4, 7, 9, 11]" in source


def test_regenerate_over_generated_file(tmp_path):
    generate(SPECS, tmp_path)
    generate(SPECS[:1], tmp_path)
    assert "'Ident'" not in (tmp_path / "lexer.py").read_text(encoding="utf-8")


def test_refuse_to_overwrite_edited_file(tmp_path):
    path = generate(SPECS, tmp_path)
    path.write_text(path.read_text(encoding="utf-8") + "\n# edited\n", encoding="utf-8")

    with pytest.raises(ValueError):
        generate(SPECS, tmp_path)

    generate(SPECS, tmp_path, force=True)
    assert generated_source.is_unmodified(path.read_text(encoding="utf-8"))


def test_refuse_to_overwrite_foreign_file(tmp_path):
    (tmp_path / "lexer.py").write_text("print('hello')\n", encoding="utf-8")
    with pytest.raises(ValueError):
        generate(SPECS, tmp_path)


def test_creates_output_directory(tmp_path):
    path = generate(SPECS, tmp_path / "a" / "b")
    assert path.exists()


def test_bad_module_name(tmp_path):
    with pytest.raises(ValueError):
        generate(SPECS, tmp_path, module_name="not-a-module")


def test_regenerate_unchanged_leaves_the_file_alone(tmp_path, caplog):
    path = generate(SPECS, tmp_path)
    mtime = path.stat().st_mtime_ns
    with caplog.at_level(logging.INFO, logger="jlek.codegen"):
        generate(SPECS, tmp_path)
    assert path.stat().st_mtime_ns == mtime
    assert f"{path} is up to date" in caplog.messages


def test_check_stale_module(tmp_path):
    path = generate(SPECS, tmp_path)
    assert check(SPECS[:2], path) == f"{path} was generated from different token specs"


def test_check_edited_module(tmp_path):
    path = generate(SPECS, tmp_path)
    edited = path.read_text(encoding="utf-8").replace("# Tables", "# Tablez")
    path.write_text(edited, encoding="utf-8")
    assert check(SPECS, path) == f"{path} has been edited since it was generated"


def test_check_foreign_module(tmp_path):
    path = tmp_path / "lexer.py"
    path.write_text("print('hello')\n", encoding="utf-8")
    assert check(SPECS, path) == f"{path} was not generated by jlek"
