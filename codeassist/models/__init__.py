"""Models module - Pydantic data models"""

from .chat import (
    CancelRequest,
    ChatRequest,
    ChatResponse,
    CodeBlock,
    Message,
    MessageFinalizedError,
    Role,
    StreamEvent,
)
from .diff import DiffHunk, DiffResult, PatchPreview
from .digest import ContextDigest
from .edits import EditDescriptor, PatchResult, SearchReplace, WholeBlock
from .provider import ProviderConfig, ProviderFamily, ProviderRequest

__all__ = [
    # Chat models
    "CancelRequest",
    "ChatRequest",
    "ChatResponse",
    "CodeBlock",
    "Message",
    "MessageFinalizedError",
    "Role",
    "StreamEvent",
    # Edit models
    "EditDescriptor",
    "PatchResult",
    "SearchReplace",
    "WholeBlock",
    # Diff models
    "DiffHunk",
    "DiffResult",
    "PatchPreview",
    # Provider models
    "ProviderConfig",
    "ProviderFamily",
    "ProviderRequest",
    "ContextDigest",
]
