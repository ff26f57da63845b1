from __future__ import annotations

import httpx
import pytest

from src.services.verse_source import BibleApiClient
from src.study.references import resolve_reference


def _client(handler) -> BibleApiClient:
    transport = httpx.MockTransport(handler)
    return BibleApiClient("https://bible.test/", client=httpx.AsyncClient(transport=transport))


@pytest.mark.asyncio
async def test_fetch_verse_returns_normalized_text() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"reference": "John 3:16", "text": "For God so loved\nthe world, \n"})

    client = _client(handler)
    passage = await client.fetch_verse(resolve_reference("John 3:16"), "kjv")
    await client.aclose()

    assert passage is not None
    assert passage.text == "For God so loved the world,"
    assert passage.translation == "KJV"
    assert requests[0].url.host == "bible.test"
    assert requests[0].url.path == "/John 3:16"
    assert requests[0].url.params["translation"] == "kjv"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, json={"error": "not found"}),
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json={"text": "   "}),
    ],
)
async def test_fetch_verse_returns_none_for_unusable_responses(response: httpx.Response) -> None:
    client = _client(lambda request: response)

    assert await client.fetch_verse(resolve_reference("Romans 6:23"), "web") is None


@pytest.mark.asyncio
async def test_fetch_verse_returns_none_on_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    client = _client(handler)

    assert await client.fetch_verse(resolve_reference("Romans 6:23"), "web") is None
