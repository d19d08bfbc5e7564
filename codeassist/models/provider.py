"""Provider configuration and wire request models"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ProviderFamily(str, Enum):
    """Closed set of request/response envelope shapes"""

    A_STYLE = "a-style"
    OPENAI_COMPATIBLE = "openai-compatible"


class ProviderConfig(BaseModel):
    """Per-request provider settings, passed by value into the adapter"""

    family: ProviderFamily = ProviderFamily.OPENAI_COMPATIBLE
    endpoint: str
    api_key: str = ""
    model: str
    system_prompt_extra: str = ""
    max_tokens: int = 4096

    model_config = {"frozen": True}


class ProviderRequest(BaseModel):
    """Fully built HTTP request for one provider call"""

    family: ProviderFamily
    url: str
    headers: dict[str, str]
    body: dict[str, Any]
    # False when streaming was requested but the family answers in one piece
    streaming: bool = False
    streaming_requested: bool = False

    def __repr__(self) -> str:
        # Headers carry credentials
        return f"ProviderRequest(family={self.family.value!r}, url={self.url!r}, streaming={self.streaming})"

    __str__ = __repr__
