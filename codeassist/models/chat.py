"""Chat mode data models"""

from __future__ import annotations

import time
import uuid
from enum import Enum

from pydantic import BaseModel, Field

from .edits import EditDescriptor


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageFinalizedError(RuntimeError):
    """Raised when content is appended to a finalized message"""


class Message(BaseModel):
    """A single conversation turn.

    Assistant messages may be created empty and grown while streaming; once
    `finalize()` is called the content no longer changes.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    content: str = ""
    timestamp: float = Field(default_factory=time.time)
    finalized: bool = True

    def append(self, delta: str) -> None:
        if self.finalized:
            raise MessageFinalizedError(f"Message {self.id} is finalized")
        self.content += delta

    def finalize(self, content: str | None = None) -> None:
        if self.finalized:
            return
        if content is not None:
            self.content = content
        self.finalized = True

    @classmethod
    def partial(cls, role: Role = Role.ASSISTANT) -> "Message":
        return cls(role=role, content="", finalized=False)


class ChatRequest(BaseModel):
    """Request for chat message"""

    message: str
    conversation_id: str | None = None
    context: str | None = None  # Optional inline code from editor
    project_root: str | None = None


class CodeBlock(BaseModel):
    """Extracted code block from response"""

    language: str
    code: str
    file_hint: str | None = None  # Suggested filename


class ChatResponse(BaseModel):
    """Response for chat message"""

    conversation_id: str
    message_id: str
    content: str
    edits: list[EditDescriptor] = []
    code_blocks: list[CodeBlock] = []
    metadata: dict = {}


class CancelRequest(BaseModel):
    conversation_id: str


class StreamEvent(BaseModel):
    """SSE stream event"""

    type: str  # "token", "done", "error", "cancelled"
    chunk: str | None = None
    content: str | None = None
    edits: list[EditDescriptor] | None = None
    code_blocks: list[CodeBlock] | None = None
    metadata: dict | None = None
    done: bool = False
    error: str | None = None
    status: int | None = None
