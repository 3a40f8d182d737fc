"""Tests for :mod:`clearwrite.grammar.client`."""

from __future__ import annotations

import json
from typing import Any, Callable
from urllib.parse import parse_qs

import httpx
import pytest

from clearwrite.grammar.client import GrammarClient, GrammarClientSettings, GrammarServiceError
from tests.helpers import make_match


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    **overrides: Any,
) -> GrammarClient:
    options: dict[str, Any] = {
        "endpoint": "https://grammar.test/v2/check",
        "retry_min_seconds": 0.0,
        "retry_max_seconds": 0.0,
    }
    options.update(overrides)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GrammarClient(GrammarClientSettings(**options), client=http_client)


def _form(request: httpx.Request) -> dict[str, str]:
    parsed = parse_qs(request.content.decode("utf-8"))
    return {key: values[0] for key, values in parsed.items()}


@pytest.mark.asyncio
async def test_form_request_carries_languagetool_fields() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"matches": [make_match(0, 3)]})

    client = _client(handler, level="picky", disabled_rules=("UPPERCASE_SENTENCE_START", "WHITESPACE_RULE"))

    matches = await client.check("Teh cat", language="en-GB")

    assert len(matches) == 1
    assert matches[0]["offset"] == 0
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://grammar.test/v2/check"
    form = _form(request)
    assert form["text"] == "Teh cat"
    assert form["language"] == "en-GB"
    assert form["enabledOnly"] == "false"
    assert form["level"] == "picky"
    assert form["disabledRules"] == "UPPERCASE_SENTENCE_START,WHITESPACE_RULE"
    assert "username" not in form


@pytest.mark.asyncio
async def test_form_request_includes_credentials_when_both_set() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"matches": []})

    client = _client(handler, username="writer@example.com", api_key="k-123")

    await client.check("Some text")

    form = _form(seen[0])
    assert form["username"] == "writer@example.com"
    assert form["apiKey"] == "k-123"
    assert form["language"] == "en-US"


@pytest.mark.asyncio
async def test_json_request_format_posts_text_and_language() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"matches": []})

    client = _client(handler, request_format="json", level="picky")

    await client.check("Some text")

    assert json.loads(seen[0].content) == {"text": "Some text", "language": "en-US"}


@pytest.mark.asyncio
async def test_unexpected_shape_is_treated_as_no_matches() -> None:
    client = _client(lambda request: httpx.Response(200, json={"matches": "nope"}))

    assert await client.check("text") == []


@pytest.mark.asyncio
async def test_non_mapping_matches_are_skipped() -> None:
    client = _client(lambda request: httpx.Response(200, json={"matches": [1, make_match(2, 1), "x"]}))

    matches = await client.check("text")

    assert [match["offset"] for match in matches] == [2]


@pytest.mark.asyncio
async def test_retries_transient_status_then_succeeds() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) == 1:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json={"matches": [make_match(1, 1)]})

    client = _client(handler, max_retries=3)

    matches = await client.check("text")

    assert len(calls) == 2
    assert len(matches) == 1


@pytest.mark.asyncio
async def test_retries_transport_errors() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"matches": []})

    client = _client(handler, max_retries=3)

    assert await client.check("text") == []
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(400, text="bad language")

    client = _client(handler, max_retries=3)

    with pytest.raises(GrammarServiceError) as excinfo:
        await client.check("text")

    assert len(calls) == 1
    assert excinfo.value.status_code == 400
    assert excinfo.value.body == "bad language"
    assert not excinfo.value.retryable


@pytest.mark.asyncio
async def test_gives_up_after_max_retries() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(429, text="slow down")

    client = _client(handler, max_retries=2)

    with pytest.raises(GrammarServiceError) as excinfo:
        await client.check("text")

    assert len(calls) == 2
    assert excinfo.value.retryable


@pytest.mark.asyncio
async def test_non_json_body_raises_service_error() -> None:
    client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(GrammarServiceError):
        await client.check("text")


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open() -> None:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    client = GrammarClient(client=http_client)

    await client.aclose()

    assert not http_client.is_closed
    await http_client.aclose()


@pytest.mark.asyncio
async def test_context_manager_closes_owned_client() -> None:
    async with GrammarClient() as client:
        owned = client._client

    assert owned.is_closed
