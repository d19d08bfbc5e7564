"""Tests for provider request construction."""

from __future__ import annotations

import pytest

from codeassist.models.chat import Message, Role
from codeassist.models.provider import ProviderConfig, ProviderFamily
from codeassist.services.errors import ConfigurationError
from codeassist.services.prompts import compose_system_prompt
from codeassist.services.request_adapter import build_chat_messages, build_request, is_local_endpoint

CONVERSATION = [
    Message(role=Role.SYSTEM, content="You are helpful."),
    Message(role=Role.USER, content="What does foo do?"),
    Message(role=Role.ASSISTANT, content="It adds."),
    Message(role=Role.USER, content="Fix it."),
]

TURNS = [
    {"role": "user", "content": "What does foo do?"},
    {"role": "assistant", "content": "It adds."},
    {"role": "user", "content": "Fix it."},
]


def test_a_style_envelope(a_style_config):
    request = build_request(CONVERSATION, a_style_config)

    assert request.url == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "ak-test-secret"
    assert request.headers["anthropic-version"] == "2023-06-01"
    assert "Authorization" not in request.headers
    assert request.body == {
        "model": "claude-sonnet-4-20250514",
        "max_tokens": 512,
        "system": "You are helpful.",
        "messages": TURNS,
    }


def test_openai_envelope(openai_config):
    request = build_request(CONVERSATION, openai_config, streaming=True)

    assert request.headers["Authorization"] == "Bearer sk-test-secret"
    assert "x-api-key" not in request.headers
    assert request.streaming is True
    assert request.body["model"] == "gpt-4o"
    assert request.body["max_tokens"] == 512
    assert request.body["stream"] is True
    assert request.body["messages"][0] == {"role": "system", "content": "You are helpful."}
    assert request.body["messages"][1:] == TURNS


def test_families_carry_the_same_conversation(a_style_config, openai_config):
    a_style = build_request(CONVERSATION, a_style_config)
    openai = build_request(CONVERSATION, openai_config)

    assert a_style.body["messages"] == openai.body["messages"][1:]
    assert a_style.body["system"] == openai.body["messages"][0]["content"]


def test_system_prompt_extra_is_appended(openai_config):
    config = openai_config.model_copy(update={"system_prompt_extra": "Prefer C89."})
    request = build_request(CONVERSATION, config)
    assert request.body["messages"][0]["content"] == "You are helpful.\n\nPrefer C89."


def test_no_system_entry_without_system_prompt(openai_config):
    request = build_request(CONVERSATION[1:], openai_config)
    assert [m["role"] for m in request.body["messages"]] == ["user", "assistant", "user"]


def test_accepts_plain_dict_messages(a_style_config):
    request = build_request(TURNS, a_style_config)
    assert request.body["messages"] == TURNS
    assert "system" not in request.body


def test_a_style_requires_key(a_style_config):
    with pytest.raises(ConfigurationError):
        build_request(CONVERSATION, a_style_config.model_copy(update={"api_key": ""}))


def test_remote_openai_requires_key(openai_config):
    with pytest.raises(ConfigurationError):
        build_request(CONVERSATION, openai_config.model_copy(update={"api_key": ""}))


def test_local_endpoint_omits_authorization():
    config = ProviderConfig(
        family=ProviderFamily.OPENAI_COMPATIBLE,
        endpoint="http://localhost:11434/v1/chat/completions",
        model="qwen2.5-coder:7b",
    )
    request = build_request(CONVERSATION, config)
    assert "Authorization" not in request.headers
    assert is_local_endpoint(config.endpoint)
    assert not is_local_endpoint("https://api.openai.com/v1/chat/completions")


def test_repr_hides_credentials(openai_config, a_style_config):
    for config in (openai_config, a_style_config):
        request = build_request(CONVERSATION, config)
        assert config.api_key not in repr(request)
        assert config.api_key not in str(request)


def test_chat_messages_carry_digest_and_code():
    history = [Message(role=Role.USER, content="Why does this crash?")]
    messages = build_chat_messages(history, digest="// src/main.cpp\n  int main()", code_context="int *p = 0;")

    assert messages[0].role == Role.SYSTEM
    assert "Project declarations:\n// src/main.cpp" in messages[0].content
    assert "int *p = 0;" in messages[0].content
    assert "fix_code" in messages[0].content
    assert messages[1:] == history


def test_compose_system_prompt_skips_empty_parts():
    assert compose_system_prompt(base="Base.") == "Base."
    assert compose_system_prompt(extra="  ", base="Base.") == "Base."
