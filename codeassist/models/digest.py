"""Context digest model"""

from __future__ import annotations

from pydantic import BaseModel


class ContextDigest(BaseModel):
    """Bounded summary of project declarations"""

    text: str
    built_at: float
    files_scanned: int = 0

    model_config = {"frozen": True}
