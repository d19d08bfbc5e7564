"""Edit descriptor models extracted from model responses"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class SearchReplace(BaseModel):
    """Replace the first occurrence of `search` with `replace`"""

    kind: Literal["search_replace"] = "search_replace"
    search: str
    replace: str
    explanation: str = ""


class WholeBlock(BaseModel):
    """Replace the entire selection with `code`"""

    kind: Literal["whole_block"] = "whole_block"
    mode: str = "replace"
    code: str
    explanation: str = ""


EditDescriptor = Annotated[Union[SearchReplace, WholeBlock], Field(discriminator="kind")]


class PatchResult(BaseModel):
    """Outcome of applying a descriptor list to a selection"""

    text: str
    applied: list[str] = []  # matching tier per applied descriptor
    skipped: list[SearchReplace] = []

    @property
    def fully_applied(self) -> bool:
        return not self.skipped
