"""
Error taxonomy for the assistant pipeline
"""

from __future__ import annotations

BODY_EXCERPT_LIMIT = 200


class AssistError(Exception):
    """Base class for pipeline errors"""


class ConfigurationError(AssistError):
    """No usable credential or endpoint; raised before any network call"""


class TransportError(AssistError):
    """Connection failure, non-success status, or timeout.

    `partial_text` holds whatever the stream delivered before the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body_excerpt: str = "",
        partial_text: str = "",
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body_excerpt = body_excerpt
        self.partial_text = partial_text

    @classmethod
    def from_status(cls, provider: str, status: int, body: str) -> "TransportError":
        excerpt = truncate_excerpt(body)
        return cls(f"{provider} API error ({status}): {excerpt}", status=status, body_excerpt=excerpt)


class StreamTimeoutError(TransportError):
    """The request exceeded its fixed time budget"""


class ProtocolError(AssistError):
    """A single malformed stream envelope; recovered by skipping the line"""


def truncate_excerpt(body: str, limit: int = BODY_EXCERPT_LIMIT) -> str:
    body = body.strip()
    if len(body) <= limit:
        return body
    return body[:limit] + "..."
