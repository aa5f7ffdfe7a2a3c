"""Tests for the OpenClaw hooks client."""

import json

import httpx
import pytest

from clawbridge.chat.models import ChatMessage
from clawbridge.errors import AgentError
from clawbridge.providers.openclaw import NO_REPLY, OpenClawClient, extract_reply

TRIGGER = ChatMessage(sender="bob.pub", recipient="me.pub", when=100, text="hi there")


def make_client(handler, base_url: str = "http://openclaw.local/") -> OpenClawClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenClawClient(base_url, "s3cret", agent_id="helper", http=http)


@pytest.mark.asyncio
async def test_request_contract():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"reply": "hello bob"})

    client = make_client(handler)
    reply = await client.generate_reply("t1", TRIGGER)
    await client.aclose()

    assert reply == "hello bob"
    request = captured[0]
    assert request.method == "POST"
    assert str(request.url) == "http://openclaw.local/hooks/agent"
    assert request.headers["authorization"] == "Bearer s3cret"
    assert request.headers["content-type"] == "application/json"
    body = json.loads(request.content)
    assert body["agentId"] == "helper"
    assert body["wakeMode"] == "now"
    assert "t1" in body["prompt"]
    assert "bob.pub" in body["prompt"]
    assert "hi there" in body["prompt"]


@pytest.mark.asyncio
async def test_non_success_status_raises():
    client = make_client(lambda request: httpx.Response(503, text="agent asleep"))

    with pytest.raises(AgentError) as info:
        await client.generate_reply("t1", TRIGGER)

    assert info.value.status == 503
    assert info.value.body == "agent asleep"
    assert "503" in str(info.value)


@pytest.mark.asyncio
async def test_transport_error_raises_agent_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = make_client(handler)
    with pytest.raises(AgentError, match="request failed"):
        await client.generate_reply("t1", TRIGGER)


@pytest.mark.asyncio
async def test_invalid_json_raises():
    client = make_client(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(AgentError, match="invalid JSON"):
        await client.generate_reply("t1", TRIGGER)


@pytest.mark.asyncio
async def test_missing_reply_fields_use_placeholder():
    client = make_client(lambda request: httpx.Response(200, json={"status": "queued"}))
    assert await client.generate_reply("t1", TRIGGER) == NO_REPLY


class TestExtractReply:
    @pytest.mark.parametrize("data,expected", [
        ({"reply": "a", "response": "b", "output": "c"}, "a"),
        ({"reply": "", "response": "b"}, "b"),
        ({"reply": None, "response": "  ", "output": "c"}, "c"),
        ({"output": "c"}, "c"),
        ({"reply": 42}, NO_REPLY),
        ({}, NO_REPLY),
        (["reply"], NO_REPLY),
        (None, NO_REPLY),
    ])
    def test_first_non_empty_field_wins(self, data, expected):
        assert extract_reply(data) == expected
