"""Services module - Business logic layer"""

from .completion import complete_once
from .config_manager import ConfigManager, provider_config
from .context_digest import ContextDigestBuilder
from .diff_generator import DiffGenerator
from .errors import (
    AssistError,
    ConfigurationError,
    ProtocolError,
    StreamTimeoutError,
    TransportError,
)
from .llm_service import LLMService, QueuedStream
from .patch_engine import apply_patch, apply_patch_with_report, apply_to_editor
from .request_adapter import build_request
from .stream_decoder import SSEDecoder, StreamSession, StreamState, start_stream
from .tool_call_parser import parse_tool_calls

__all__ = [
    "LLMService",
    "QueuedStream",
    "ConfigManager",
    "provider_config",
    "ContextDigestBuilder",
    "DiffGenerator",
    "AssistError",
    "ConfigurationError",
    "ProtocolError",
    "StreamTimeoutError",
    "TransportError",
    "build_request",
    "start_stream",
    "StreamSession",
    "StreamState",
    "SSEDecoder",
    "complete_once",
    "parse_tool_calls",
    "apply_patch",
    "apply_patch_with_report",
    "apply_to_editor",
]
