"""
Patch Application Engine - Merges edit descriptors into a selection

Search/replace descriptors are applied in order against the running text,
each trying three tiers before being skipped:

    exact    first literal occurrence
    pattern  escaped search with flexible whitespace, every occurrence
    trimmed  literal match of the whitespace-trimmed search
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Protocol

from ..models.edits import PatchResult, SearchReplace, WholeBlock

logger = logging.getLogger(__name__)


class EditorHost(Protocol):
    """Editor surface the engine writes through"""

    def get_selection_text(self, text_range: Any) -> str: ...

    def replace_range(self, text_range: Any, text: str) -> None: ...


def _escape_search(search: str) -> str:
    """Literal pattern where each whitespace run matches any whitespace run"""
    return "".join(r"\s+" if part.isspace() else re.escape(part) for part in re.split(r"(\s+)", search) if part)


def _compile_search(search: str) -> re.Pattern[str] | None:
    try:
        return re.compile(_escape_search(search))
    except re.error:
        pass
    try:
        return re.compile(search)
    except re.error:
        return None


def apply_search_replace(text: str, edit: SearchReplace) -> tuple[str, str | None]:
    """Apply one descriptor; returns (new_text, tier) with tier None when unmatched"""
    search, replace = edit.search, edit.replace
    if not search.strip():
        return text, None

    if search in text:
        return text.replace(search, replace, 1), "exact"

    pattern = _compile_search(search)
    if pattern is not None and pattern.search(text):
        return pattern.sub(lambda _m: replace, text), "pattern"

    trimmed_search, trimmed_replace = search.strip(), replace.strip()
    if trimmed_search and trimmed_search in text:
        return text.replace(trimmed_search, trimmed_replace, 1), "trimmed"

    return text, None


def apply_patch_with_report(
    selection_text: str,
    descriptors: Iterable[SearchReplace | WholeBlock],
) -> PatchResult:
    text = selection_text
    applied: list[str] = []
    skipped: list[SearchReplace] = []

    for descriptor in descriptors:
        if isinstance(descriptor, WholeBlock):
            text = descriptor.code
            applied.append("whole_block")
            continue
        text, tier = apply_search_replace(text, descriptor)
        if tier is None:
            logger.warning("Edit not applied, search text not found: %.60r", descriptor.search)
            skipped.append(descriptor)
        else:
            applied.append(tier)

    return PatchResult(text=text, applied=applied, skipped=skipped)


def apply_patch(selection_text: str, descriptors: Iterable[SearchReplace | WholeBlock]) -> str:
    """Final selection text after applying every descriptor that matches"""
    return apply_patch_with_report(selection_text, descriptors).text


def apply_to_editor(
    editor: EditorHost,
    text_range: Any,
    descriptors: Iterable[SearchReplace | WholeBlock],
) -> PatchResult:
    """Apply descriptors to `text_range` as a single undoable edit"""
    original = editor.get_selection_text(text_range)
    result = apply_patch_with_report(original, descriptors)
    if result.text != original:
        editor.replace_range(text_range, result.text)
    return result
