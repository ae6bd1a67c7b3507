import json

import httpx
import pytest

from gatekeeper.services.messaging import MessagingClient, mention_ids

BASE = "http://gateway.test/api"


def client_for(handler) -> MessagingClient:
    return MessagingClient(base_url=BASE + "/", token="secret", transport=httpx.MockTransport(handler))


def test_mentions_only_for_person_ids():
    assert mention_ids("34600111222@c.us") == ["34600111222@c.us"]
    assert mention_ids("120363@g.us") == []
    assert mention_ids(None) == []


@pytest.mark.asyncio
async def test_stub_mode_never_touches_network():
    client = MessagingClient()
    assert client.is_stub
    result = await client.send_to_group("g@g.us", "hello", mention="p@c.us")
    assert result.status == "stubbed"
    assert result.ok
    assert await client.remove_from_group("g@g.us", "p@c.us") is True
    assert await client.resolve_display_name("p@c.us", "g@g.us") == ""


@pytest.mark.asyncio
async def test_group_message_payload_and_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "msg-1", "status": "queued"})

    result = await client_for(handler).send_to_group("120363@g.us", "Welcome", mention="346@c.us")
    assert result.ok
    assert result.status == "queued"
    assert result.message_id == "msg-1"
    assert seen["path"] == "/api/groups/120363@g.us/messages"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == {"text": "Welcome", "mentions": ["346@c.us"]}


@pytest.mark.asyncio
async def test_private_message_failure_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "down"})

    result = await client_for(handler).send_private("346@c.us", "hi")
    assert not result.ok
    assert result.status == "error"
    assert "503" in result.error


@pytest.mark.asyncio
async def test_transport_error_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    result = await client_for(handler).send_private("346@c.us", "hi")
    assert result.status == "error"


@pytest.mark.asyncio
async def test_removal_treats_missing_participant_as_done():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        return httpx.Response(404)

    assert await client_for(handler).remove_from_group("g@g.us", "p@c.us") is True
    assert calls == [("DELETE", "/api/groups/g@g.us/participants/p@c.us")]


@pytest.mark.asyncio
async def test_removal_failure_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403)

    assert await client_for(handler).remove_from_group("g@g.us", "p@c.us") is False


@pytest.mark.asyncio
async def test_display_name_prefers_contact_then_participant():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/api/contacts/"):
            return httpx.Response(200, json={"pushname": " . ", "name": ""})
        return httpx.Response(200, json={"notifyName": "Lucía"})

    name = await client_for(handler).resolve_display_name("p@c.us", "g@g.us")
    assert name == "Lucía"


@pytest.mark.asyncio
async def test_display_name_from_contact():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"pushname": "  Marta  "})

    assert await client_for(handler).resolve_display_name("p@c.us") == "Marta"


@pytest.mark.asyncio
async def test_display_name_empty_when_lookups_fail():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/api/contacts/"):
            return httpx.Response(500)
        return httpx.Response(200, json=["not", "a", "dict"])

    assert await client_for(handler).resolve_display_name("p@c.us", "g@g.us") == ""
