"""Tests for tool-call extraction from model responses."""

from __future__ import annotations

from codeassist.models.edits import SearchReplace, WholeBlock
from codeassist.services.tool_call_parser import (
    extract_code_blocks,
    parse_tool_calls,
    strip_tool_calls,
)


def _fix(search: str, replace: str, explanation: str | None = None) -> str:
    block = f"<tool>fix_code</tool>\n<search>{search}</search>\n<replace>{replace}</replace>"
    if explanation is not None:
        block += f"\n<explanation>{explanation}</explanation>"
    return block


def test_single_fix_block():
    edits = parse_tool_calls("<tool>fix_code</tool><search>foo(x)</search><replace>foo(x, y)</replace>")
    assert edits == [SearchReplace(search="foo(x)", replace="foo(x, y)", explanation="")]


def test_blocks_in_document_order_with_prose_between():
    text = "\n\n".join(
        [
            "Here are the fixes:",
            _fix("  a = 1;\n", "a = 2;", " first "),
            "And also this one, which matters more.",
            _fix("b()", "b(0)"),
            _fix("c", "d", "third"),
            "Done.",
        ]
    )
    edits = parse_tool_calls(text)
    assert [e.search for e in edits] == ["a = 1;", "b()", "c"]
    assert [e.replace for e in edits] == ["a = 2;", "b(0)", "d"]
    assert [e.explanation for e in edits] == ["first", "", "third"]


def test_malformed_block_is_skipped():
    broken = "<tool>fix_code</tool><search>x</search><replac>y</replace>"
    text = _fix("a", "b") + "\n" + broken + "\n" + _fix("c", "d")
    assert [e.search for e in parse_tool_calls(text)] == ["a", "c"]


def test_unclosed_search_does_not_swallow_next_block():
    text = "<tool>fix_code</tool><search>a\n" + _fix("b", "c")
    edits = parse_tool_calls(text)
    assert [(e.search, e.replace) for e in edits] == [("b", "c")]


def test_empty_spans_pass_through():
    [edit] = parse_tool_calls(_fix("", ""))
    assert edit.search == "" and edit.replace == ""


def test_refactor_block():
    text = "Rewritten:\n<tool>refactor_code</tool><mode>replace</mode><code>\nint f() { return 1; }\n</code><explanation>simpler</explanation>"
    assert parse_tool_calls(text) == [WholeBlock(mode="replace", code="int f() { return 1; }", explanation="simpler")]


def test_refactor_mode_defaults_to_replace():
    [edit] = parse_tool_calls("<tool>refactor_code</tool>\n<code>x</code>")
    assert edit.mode == "replace"
    assert edit.explanation == ""


def test_only_first_refactor_block():
    text = "<tool>refactor_code</tool><code>one</code> <tool>refactor_code</tool><code>two</code>"
    edits = parse_tool_calls(text)
    assert len(edits) == 1 and edits[0].code == "one"


def test_fix_blocks_win_over_refactor():
    text = "<tool>refactor_code</tool><code>all new</code>\n" + _fix("a", "b")
    edits = parse_tool_calls(text)
    assert all(isinstance(e, SearchReplace) for e in edits)
    assert len(edits) == 1


def test_prose_yields_nothing():
    assert parse_tool_calls("Just use a pointer.\n```cpp\nint *p;\n```") == []
    assert parse_tool_calls("") == []


def test_strip_tool_calls_leaves_prose():
    text = "Intro.\n\n" + _fix("a", "b") + "\n\n\n\nOutro."
    assert strip_tool_calls(text) == "Intro.\n\nOutro."


def test_extract_code_blocks():
    blocks = extract_code_blocks("Try:\n```cpp\nint x = 0;\n```\nor\n```\nplain\n```")
    assert [(b.language, b.code) for b in blocks] == [("cpp", "int x = 0;"), ("text", "plain")]
