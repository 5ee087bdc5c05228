"""Tests for the completion gateway."""

import httpx
import pytest

from conftest import RecordingTransport, completion_body
from neurosci_ai.errors import ConfigurationError, GatewayError, TransportError, UpstreamError
from neurosci_ai.services.completion import (
    MAX_TOKENS,
    MODEL,
    SYSTEM_PROMPT,
    CompletionGateway,
    build_prompt,
)


def make_gateway(transport, api_key="test-key"):
    return CompletionGateway(api_key=api_key, client=httpx.AsyncClient(transport=transport))


@pytest.mark.asyncio
async def test_complete_sends_single_stateless_exchange(gateway, transport):
    result = await gateway.complete("What is theta rhythm?")

    assert result.text == "Hello from the model"
    assert result.files == []
    request = transport.requests[0]
    assert str(request.url) == "https://api.openai.com/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer test-key"
    payload = transport.sent_payload()
    assert payload["model"] == MODEL == "gpt-3.5-turbo"
    assert payload["temperature"] == 0.7
    assert payload["max_tokens"] == MAX_TOKENS == 1000
    assert payload["messages"] == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "What is theta rhythm?"},
    ]


@pytest.mark.asyncio
async def test_complete_lists_attachment_names(gateway, transport):
    result = await gateway.complete("Check these", ["a.csv", "b.mp4"])

    assert result.files == ["a.csv", "b.mp4"]
    user_turn = transport.sent_payload()["messages"][1]["content"]
    assert user_turn == (
        "Check these\n\nThe user has uploaded the following files:\n- a.csv\n- b.mp4"
        "\n\nPlease acknowledge these files."
    )


def test_system_prompt_mentions_file_limitation():
    assert "cannot directly analyze their contents" in SYSTEM_PROMPT


def test_build_prompt_without_files():
    assert build_prompt("plain", []) == "plain"


@pytest.mark.asyncio
async def test_missing_credential_fails_before_network():
    transport = RecordingTransport()
    gateway = make_gateway(transport, api_key=None)

    with pytest.raises(ConfigurationError):
        await gateway.complete("hello")
    assert transport.requests == []


@pytest.mark.asyncio
async def test_upstream_error_carries_status_and_message():
    transport = RecordingTransport(429, {"error": {"message": "Rate limit reached"}})

    with pytest.raises(UpstreamError) as info:
        await make_gateway(transport).complete("hello")

    assert info.value.status_code == 429
    assert info.value.message == "Error from OpenAI: Rate limit reached"


@pytest.mark.asyncio
async def test_upstream_error_without_body():
    transport = RecordingTransport(503, b"<html>unavailable</html>")

    with pytest.raises(UpstreamError) as info:
        await make_gateway(transport).complete("hello")

    assert info.value.status_code == 503
    assert info.value.message == "Error from OpenAI: Unknown error"


@pytest.mark.asyncio
async def test_transport_failure():
    transport = RecordingTransport(raise_error=True)

    with pytest.raises(TransportError):
        await make_gateway(transport).complete("hello")


@pytest.mark.asyncio
async def test_malformed_success_body():
    transport = RecordingTransport(200, {"choices": []})

    with pytest.raises(GatewayError):
        await make_gateway(transport).complete("hello")


@pytest.mark.asyncio
async def test_custom_base_url():
    transport = RecordingTransport(200, completion_body("ok"))
    gateway = CompletionGateway(
        api_key="k",
        base_url="http://localhost:8080/v1/",
        client=httpx.AsyncClient(transport=transport),
    )

    await gateway.complete("hi")

    assert str(transport.requests[0].url) == "http://localhost:8080/v1/chat/completions"
