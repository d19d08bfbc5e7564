"""
Tool-Call Grammar Parser - Extracts edit descriptors from a model response

Two tag grammars are recognized anywhere in the text:

    <tool>fix_code</tool><search>...</search><replace>...</replace>[<explanation>...</explanation>]
    <tool>refactor_code</tool>[<mode>...</mode>]<code>...</code>[<explanation>...</explanation>]

A response yields either fix descriptors or a single refactor descriptor,
never both. No match means the response is plain prose.
"""

from __future__ import annotations

import re

from ..models.chat import CodeBlock
from ..models.edits import SearchReplace, WholeBlock


def _span(tag: str) -> str:
    """Contents of <tag>...</tag> that cannot run past its closing tag or the next <tool> header"""
    return rf"<{tag}>(?P<{tag}>(?:(?!</{tag}>|<tool>)[\s\S])*)</{tag}>"


FIX_CODE_RE = re.compile(
    r"<tool>\s*fix_code\s*</tool>\s*"
    + _span("search")
    + r"\s*"
    + _span("replace")
    + rf"(?:\s*{_span('explanation')})?"
)

REFACTOR_CODE_RE = re.compile(
    r"<tool>\s*refactor_code\s*</tool>\s*"
    + rf"(?:{_span('mode')}\s*)?"
    + _span("code")
    + rf"(?:\s*{_span('explanation')})?"
)

CODE_FENCE_RE = re.compile(r"```([\w+#-]*)[ \t]*\n(.*?)```", re.DOTALL)


def parse_fix_blocks(text: str) -> list[SearchReplace]:
    """Every well-formed fix block, in document order"""
    return [
        SearchReplace(
            search=m.group("search").strip(),
            replace=m.group("replace").strip(),
            explanation=(m.group("explanation") or "").strip(),
        )
        for m in FIX_CODE_RE.finditer(text)
    ]


def parse_refactor_block(text: str) -> WholeBlock | None:
    """The first well-formed refactor block, if any"""
    m = REFACTOR_CODE_RE.search(text)
    if not m:
        return None
    return WholeBlock(
        mode=(m.group("mode") or "").strip() or "replace",
        code=m.group("code").strip(),
        explanation=(m.group("explanation") or "").strip(),
    )


def parse_tool_calls(response_text: str) -> list[SearchReplace] | list[WholeBlock]:
    """Extract edit descriptors; an empty list means render as prose"""
    if not response_text:
        return []
    fixes = parse_fix_blocks(response_text)
    if fixes:
        return fixes
    refactor = parse_refactor_block(response_text)
    return [refactor] if refactor else []


def strip_tool_calls(response_text: str) -> str:
    """Response text with tool blocks removed, for display next to a preview"""
    text = FIX_CODE_RE.sub("", response_text)
    text = REFACTOR_CODE_RE.sub("", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def extract_code_blocks(content: str) -> list[CodeBlock]:
    """Extract fenced code blocks from a prose response"""
    return [
        CodeBlock(language=lang or "text", code=code.strip(), file_hint=None)
        for lang, code in CODE_FENCE_RE.findall(content)
    ]
