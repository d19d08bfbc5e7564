"""Routers module - FastAPI route handlers"""

from . import assist, chat, config

__all__ = ["assist", "chat", "config"]
