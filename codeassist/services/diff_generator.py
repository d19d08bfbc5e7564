"""
Diff Generator Service - Preview of a patch before the user accepts it
"""

from __future__ import annotations

from difflib import SequenceMatcher, unified_diff
from typing import Iterable

from ..models.diff import DiffHunk, DiffResult, PatchPreview
from ..models.edits import SearchReplace, WholeBlock
from .patch_engine import apply_patch_with_report


def _lines(text: str) -> list[str]:
    lines = text.splitlines(keepends=True)
    # Ensure last lines have newlines for proper diff
    if lines and not lines[-1].endswith("\n"):
        lines[-1] += "\n"
    return lines


class DiffGenerator:
    """Generate unified diffs between a selection and its patched text"""

    def generate_diff(self, original_content: str, new_content: str, label: str = "selection") -> DiffResult:
        """Generate structured diff from original and new content"""
        original_lines = _lines(original_content)
        new_lines = _lines(new_content)

        unified = unified_diff(original_lines, new_lines, fromfile=f"a/{label}", tofile=f"b/{label}")

        return DiffResult(
            file_path=label,
            hunks=self._extract_hunks(original_lines, new_lines),
            unified_diff="".join(unified),
            preview_content=new_content,
        )

    def _extract_hunks(self, original: list[str], modified: list[str]) -> list[DiffHunk]:
        """Extract individual change hunks from diff"""
        matcher = SequenceMatcher(None, original, modified, autojunk=False)
        hunks = []

        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag == "equal":
                continue

            change_type = "add" if tag == "insert" else "delete" if tag == "delete" else "modify"
            hunks.append(
                DiffHunk(
                    start_line=i1 + 1,  # 1-indexed for the editor
                    end_line=i2,
                    original_content="".join(original[i1:i2]),
                    new_content="".join(modified[j1:j2]),
                    change_type=change_type,
                )
            )

        return hunks

    def preview(
        self,
        selection_text: str,
        descriptors: Iterable[SearchReplace | WholeBlock],
        label: str = "selection",
    ) -> PatchPreview:
        """Patched text plus its diff; nothing outside the return value changes"""
        result = apply_patch_with_report(selection_text, descriptors)
        return PatchPreview(
            final_text=result.text,
            applied=result.applied,
            skipped=result.skipped,
            diff=self.generate_diff(selection_text, result.text, label),
        )
