"""
Provider Request Adapter - Converts a unified message list into a
provider-specific request and extracts text from provider responses.

Each envelope family is one adapter class; nothing outside this module
branches on the family.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

from ..models.chat import Message, Role
from ..models.provider import ProviderConfig, ProviderFamily, ProviderRequest
from .errors import ConfigurationError, ProtocolError
from .prompts import compose_system_prompt

logger = logging.getLogger(__name__)

A_STYLE_VERSION = "2023-06-01"
LOCAL_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}


def is_local_endpoint(endpoint: str) -> bool:
    host = urlparse(endpoint).hostname or ""
    return host in LOCAL_HOSTS


def _coerce_messages(messages: Iterable[Message | Mapping[str, Any]]) -> list[Message]:
    return [m if isinstance(m, Message) else Message.model_validate(m) for m in messages]


def split_system(messages: Iterable[Message], extra: str = "") -> tuple[str, list[Message]]:
    """Separate system-role content from the user/assistant turns"""
    system_parts: list[str] = []
    turns: list[Message] = []
    for m in messages:
        if m.role == Role.SYSTEM:
            if m.content.strip():
                system_parts.append(m.content)
        else:
            turns.append(m)
    if extra and extra.strip():
        system_parts.append(extra.strip())
    return "\n\n".join(system_parts), turns


class ProviderAdapter:
    """Envelope shape for one provider family"""

    family: ProviderFamily
    supports_streaming: bool = False

    def check_credentials(self, config: ProviderConfig) -> None:
        raise NotImplementedError

    def build_headers(self, config: ProviderConfig) -> dict[str, str]:
        raise NotImplementedError

    def build_body(self, system: str, turns: list[Message], config: ProviderConfig, stream: bool) -> dict[str, Any]:
        raise NotImplementedError

    def extract_text(self, data: dict[str, Any]) -> str:
        """Full text of a non-streaming response"""
        raise NotImplementedError

    def extract_delta(self, data: dict[str, Any]) -> str | None:
        """Incremental text of one streaming envelope"""
        return None

    def build_request(
        self,
        messages: Iterable[Message | Mapping[str, Any]],
        config: ProviderConfig,
        streaming: bool = False,
    ) -> ProviderRequest:
        self.check_credentials(config)
        system, turns = split_system(_coerce_messages(messages), config.system_prompt_extra)
        stream = streaming and self.supports_streaming
        if streaming and not stream:
            logger.debug("%s does not stream; request will be answered in one piece", self.family.value)
        body = self.build_body(system, turns, config, stream)
        logger.debug(
            "Built %s request: model=%s, %d turns, stream=%s",
            self.family.value,
            config.model,
            len(turns),
            stream,
        )
        return ProviderRequest(
            family=self.family,
            url=config.endpoint,
            headers=self.build_headers(config),
            body=body,
            streaming=stream,
            streaming_requested=streaming,
        )

    @staticmethod
    def _turns(turns: list[Message]) -> list[dict[str, str]]:
        return [{"role": m.role.value, "content": m.content} for m in turns]


class AStyleAdapter(ProviderAdapter):
    """Dedicated `system` field, key in a custom header"""

    family = ProviderFamily.A_STYLE
    supports_streaming = False

    def check_credentials(self, config: ProviderConfig) -> None:
        if not config.api_key:
            raise ConfigurationError("API key not configured for a-style provider")

    def build_headers(self, config: ProviderConfig) -> dict[str, str]:
        return {
            "x-api-key": config.api_key,
            "anthropic-version": A_STYLE_VERSION,
            "Content-Type": "application/json",
        }

    def build_body(self, system: str, turns: list[Message], config: ProviderConfig, stream: bool) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": config.model,
            "max_tokens": config.max_tokens,
            "messages": self._turns(turns),
        }
        if system:
            body["system"] = system
        return body

    def extract_text(self, data: dict[str, Any]) -> str:
        blocks = data.get("content")
        if isinstance(blocks, list):
            parts = [
                b["text"]
                for b in blocks
                if isinstance(b, dict) and b.get("type") == "text" and isinstance(b.get("text"), str)
            ]
            if parts:
                return "".join(parts)
        raise ProtocolError("No text content in a-style response")


class OpenAICompatibleAdapter(ProviderAdapter):
    """Leading system message, bearer auth when a key is present"""

    family = ProviderFamily.OPENAI_COMPATIBLE
    supports_streaming = True

    def check_credentials(self, config: ProviderConfig) -> None:
        if not config.api_key and not is_local_endpoint(config.endpoint):
            raise ConfigurationError(f"API key not configured for {config.endpoint}")

    def build_headers(self, config: ProviderConfig) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        return headers

    def build_body(self, system: str, turns: list[Message], config: ProviderConfig, stream: bool) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(self._turns(turns))
        return {
            "model": config.model,
            "messages": messages,
            "max_tokens": config.max_tokens,
            "stream": stream,
        }

    def extract_text(self, data: dict[str, Any]) -> str:
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            choice = choices[0]
            message = choice.get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return message["content"]
            if isinstance(choice.get("text"), str):
                return choice["text"]
        raise ProtocolError("No valid choices in response")

    def extract_delta(self, data: dict[str, Any]) -> str | None:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        choice = choices[0]
        if not isinstance(choice, dict):
            return None
        delta = choice.get("delta")
        if isinstance(delta, dict):
            content = delta.get("content")
            if isinstance(content, str) and content:
                return content
        text = choice.get("text")
        if isinstance(text, str) and text:
            return text
        return None


ADAPTERS: dict[ProviderFamily, ProviderAdapter] = {
    ProviderFamily.A_STYLE: AStyleAdapter(),
    ProviderFamily.OPENAI_COMPATIBLE: OpenAICompatibleAdapter(),
}


def get_adapter(family: ProviderFamily | str) -> ProviderAdapter:
    return ADAPTERS[ProviderFamily(family)]


def build_request(
    messages: Iterable[Message | Mapping[str, Any]],
    config: ProviderConfig,
    streaming: bool = False,
) -> ProviderRequest:
    """Build the wire request for `config.family`"""
    return get_adapter(config.family).build_request(messages, config, streaming)


def build_chat_messages(
    history: Iterable[Message],
    digest: str = "",
    code_context: str | None = None,
) -> list[Message]:
    """Prepend the composed system prompt to a conversation history"""
    system = compose_system_prompt(digest=digest, code_context=code_context)
    return [Message(role=Role.SYSTEM, content=system), *history]
