"""Tests for the JSON-RPC client."""

import json

import httpx
import pytest

from agentpay.core.exceptions import CollaboratorError
from agentpay.core.rpc import JsonRpcClient, from_hex, to_hex


def make_client(handler) -> JsonRpcClient:
    return JsonRpcClient(
        "http://node", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


def test_hex_quantities():
    assert to_hex(21000) == "0x5208"
    assert from_hex("0x5208") == 21000
    assert from_hex(None) == 0
    assert from_hex("0x") == 0


@pytest.mark.asyncio
async def test_call_returns_result():
    def handler(request):
        body = json.loads(request.content)
        assert body["jsonrpc"] == "2.0"
        assert body["method"] == "eth_gasPrice"
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x1"})

    assert await make_client(handler).call("eth_gasPrice") == "0x1"


@pytest.mark.asyncio
async def test_rpc_error_raises():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601}})

    with pytest.raises(CollaboratorError) as exc_info:
        await make_client(handler).call("eth_nope")

    assert exc_info.value.details["error"] == {"code": -32601}


@pytest.mark.asyncio
async def test_transient_errors_are_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 2:
            return httpx.Response(503)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x2"})

    assert await make_client(handler).call("eth_blockNumber") == "0x2"
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_no_retry_when_disabled():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(503)

    with pytest.raises(CollaboratorError):
        await make_client(handler).call("eth_sendTransaction", [{}], retry=False)

    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(400)

    with pytest.raises(CollaboratorError):
        await make_client(handler).call("eth_call")

    assert len(attempts) == 1
