from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from pydantic import AnyHttpUrl, SecretStr

from avatar_chat.anthropic_client import AnthropicClient, AnthropicError
from avatar_chat.config import Settings
from avatar_chat.schemas.chat import ChatMessage


def sse(*events: tuple[str, dict[str, Any]]) -> bytes:
    lines = []
    for name, data in events:
        lines.append(f"event: {name}\ndata: {json.dumps(data)}\n\n")
    return "".join(lines).encode("utf-8")


def delta(text: str) -> tuple[str, dict[str, Any]]:
    return (
        "content_block_delta",
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}},
    )


def install_transport(
    monkeypatch: pytest.MonkeyPatch,
    client: AnthropicClient,
    handler: Any,
) -> None:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def _get_http_client() -> httpx.AsyncClient:
        return http_client

    monkeypatch.setattr(client, "_get_http_client", _get_http_client)


async def collect(client: AnthropicClient, prompt: str, history: Any = None) -> list[str]:
    return [text async for text in client.stream_text(prompt, history)]


def test_parse_event_supports_multiple_data_lines(settings: Settings) -> None:
    client = AnthropicClient(settings)

    event = client._parse_event(  # type: ignore[attr-defined]
        [
            "event: content_block_delta",
            "id: evt-1",
            "data: part one",
            "data: part two",
        ]
    )

    assert event.event == "content_block_delta"
    assert event.event_id == "evt-1"
    assert event.data == "part one\npart two"


def test_headers_carry_key_and_version(settings: Settings) -> None:
    headers = AnthropicClient(settings)._headers  # type: ignore[attr-defined]

    assert headers["x-api-key"] == "anthropic-test"
    assert headers["anthropic-version"] == "2023-06-01"
    assert headers["Accept"] == "text/event-stream"


def test_missing_api_key_is_service_unavailable() -> None:
    settings = Settings(
        anthropic_api_key=None,
        anthropic_base_url=AnyHttpUrl("https://anthropic.example.com/v1"),
    )

    with pytest.raises(AnthropicError) as excinfo:
        AnthropicClient(settings)._headers  # type: ignore[attr-defined]

    assert excinfo.value.status_code == 503


def test_build_payload_merges_system_entries_and_trims_history(
    settings: Settings,
) -> None:
    history = [ChatMessage(role="system", content="Speak like a pirate.")] + [
        ChatMessage(role="user" if i % 2 == 0 else "assistant", content=f"m{i}")
        for i in range(6)
    ]

    payload = AnthropicClient(settings).build_payload("And now?", history)

    assert payload["model"] == "test-model"
    assert payload["stream"] is True
    assert payload["max_tokens"] == settings.chat_max_tokens
    assert payload["system"] == "Be brief.\n\nSpeak like a pirate."
    assert payload["messages"] == [
        {"role": "user", "content": "m2"},
        {"role": "assistant", "content": "m3"},
        {"role": "user", "content": "m4"},
        {"role": "assistant", "content": "m5"},
        {"role": "user", "content": "And now?"},
    ]


def test_build_payload_without_system_prompt() -> None:
    settings = Settings(anthropic_api_key=SecretStr("k"), chat_system_prompt="")

    payload = AnthropicClient(settings).build_payload("Hi")

    assert "system" not in payload
    assert payload["messages"] == [{"role": "user", "content": "Hi"}]


def test_extract_error_detail_prefers_error_message() -> None:
    raw = json.dumps(
        {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}
    ).encode()

    assert AnthropicClient._extract_error_detail(raw) == "Overloaded"
    assert AnthropicClient._extract_error_detail(b"plain failure") == "plain failure"
    assert "empty" in AnthropicClient._extract_error_detail(b"")


@pytest.mark.asyncio
async def test_stream_text_yields_deltas(
    monkeypatch: pytest.MonkeyPatch, settings: Settings
) -> None:
    captured: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        body = sse(
            ("message_start", {"type": "message_start", "message": {"id": "msg_1"}}),
            ("ping", {"type": "ping"}),
            delta("Hello"),
            delta(" world."),
            ("content_block_stop", {"type": "content_block_stop", "index": 0}),
            ("message_stop", {"type": "message_stop"}),
            delta("ignored"),
        )
        return httpx.Response(
            200, content=body, headers={"content-type": "text/event-stream"}
        )

    client = AnthropicClient(settings)
    install_transport(monkeypatch, client, handler)

    texts = await collect(client, "Hi")

    assert texts == ["Hello", " world."]
    assert captured["url"] == "https://anthropic.example.com/v1/messages"
    assert captured["body"]["messages"][-1] == {"role": "user", "content": "Hi"}


@pytest.mark.asyncio
async def test_stream_text_raises_on_error_status(
    monkeypatch: pytest.MonkeyPatch, settings: Settings
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401,
            json={"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}},
        )

    client = AnthropicClient(settings)
    install_transport(monkeypatch, client, handler)

    with pytest.raises(AnthropicError) as excinfo:
        await collect(client, "Hi")

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "invalid x-api-key"


@pytest.mark.asyncio
async def test_stream_text_raises_on_error_event(
    monkeypatch: pytest.MonkeyPatch, settings: Settings
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = sse(
            delta("Partial"),
            ("error", {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}),
        )
        return httpx.Response(200, content=body)

    client = AnthropicClient(settings)
    install_transport(monkeypatch, client, handler)

    received: list[str] = []
    with pytest.raises(AnthropicError) as excinfo:
        async for text in client.stream_text("Hi"):
            received.append(text)

    assert received == ["Partial"]
    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
async def test_stream_text_rejects_malformed_event(
    monkeypatch: pytest.MonkeyPatch, settings: Settings
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"data: {not json\n\n")

    client = AnthropicClient(settings)
    install_transport(monkeypatch, client, handler)

    with pytest.raises(AnthropicError) as excinfo:
        await collect(client, "Hi")

    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
async def test_transport_failure_is_bad_gateway(
    monkeypatch: pytest.MonkeyPatch, settings: Settings
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = AnthropicClient(settings)
    install_transport(monkeypatch, client, handler)

    with pytest.raises(AnthropicError) as excinfo:
        await collect(client, "Hi")

    assert excinfo.value.status_code == 502
