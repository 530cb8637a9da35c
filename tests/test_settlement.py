"""Tests for settlement backends."""

import json
import random
import re
from unittest.mock import AsyncMock

import httpx
import pytest

from agentpay.core.exceptions import SettlementError
from agentpay.core.rpc import JsonRpcClient
from agentpay.core.types import Token, TransactionData
from agentpay.settlement.rpc import JsonRpcSettlement
from agentpay.settlement.simulated import SimulatedSettlement

TX_HASH = "0x" + "cd" * 32


def make_tx(token=Token.ETH) -> TransactionData:
    return TransactionData(
        destination="0xabc",
        token=token,
        value_minor_units=10**17,
        gas_limit=21000,
        fee_rate=20_000_000_000,
        estimated_fee=21000 * 20_000_000_000,
    )


class TestSimulatedSettlement:
    @pytest.mark.asyncio
    async def test_returns_hash_after_delay(self):
        sleep = AsyncMock()
        settlement = SimulatedSettlement(rng=random.Random(3), sleep=sleep)

        reference = await settlement.submit(make_tx())

        assert re.fullmatch(r"0x[0-9a-f]{64}", reference)
        (delay,), _ = sleep.call_args
        assert 2 <= delay <= 5

    @pytest.mark.asyncio
    async def test_deterministic_with_seed(self):
        a = SimulatedSettlement(rng=random.Random(9), sleep=AsyncMock())
        b = SimulatedSettlement(rng=random.Random(9), sleep=AsyncMock())
        assert await a.submit(make_tx()) == await b.submit(make_tx())

    def test_invalid_delays(self):
        with pytest.raises(ValueError):
            SimulatedSettlement(min_delay=5, max_delay=2)


class FakeNode:
    """JSON-RPC node double for httpx.MockTransport."""

    def __init__(self, receipts, send_error=None, accounts=("0xnode",)):
        self.receipts = list(receipts)
        self.send_error = send_error
        self.accounts = list(accounts)
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append(body)
        method = body["method"]
        if method == "eth_sendTransaction" and self.send_error:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": body["id"], "error": self.send_error}
            )
        results = {
            "eth_accounts": self.accounts,
            "eth_sendTransaction": TX_HASH,
        }
        if method == "eth_getTransactionReceipt":
            result = self.receipts.pop(0)
        else:
            result = results[method]
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def methods(self):
        return [c["method"] for c in self.calls]


def make_settlement(node: FakeNode, sender=None):
    http = httpx.AsyncClient(transport=httpx.MockTransport(node))
    return JsonRpcSettlement(
        JsonRpcClient("http://node", http_client=http), sender=sender, sleep=AsyncMock()
    )


class TestJsonRpcSettlement:
    @pytest.mark.asyncio
    async def test_send_and_poll_receipt(self):
        node = FakeNode([None, None, {"status": "0x1", "blockNumber": "0x10"}])
        reference = await make_settlement(node).submit(make_tx())

        assert reference == TX_HASH
        assert node.methods() == [
            "eth_accounts",
            "eth_sendTransaction",
            "eth_getTransactionReceipt",
            "eth_getTransactionReceipt",
            "eth_getTransactionReceipt",
        ]
        sent = node.calls[1]["params"][0]
        assert sent == {
            "from": "0xnode",
            "to": "0xabc",
            "value": hex(10**17),
            "gas": hex(21000),
            "gasPrice": hex(20_000_000_000),
        }

    @pytest.mark.asyncio
    async def test_configured_sender_skips_account_lookup(self):
        node = FakeNode([{"status": "0x1"}])
        await make_settlement(node, sender="0xme").submit(make_tx())

        assert node.methods()[0] == "eth_sendTransaction"
        assert node.calls[0]["params"][0]["from"] == "0xme"

    @pytest.mark.asyncio
    async def test_reverted_transaction(self):
        node = FakeNode([{"status": "0x0"}])
        with pytest.raises(SettlementError) as exc_info:
            await make_settlement(node).submit(make_tx())

        assert exc_info.value.reference == TX_HASH

    @pytest.mark.asyncio
    async def test_rejected_send_is_not_retried(self):
        node = FakeNode([], send_error={"code": -32000, "message": "insufficient funds"})
        with pytest.raises(SettlementError):
            await make_settlement(node).submit(make_tx())

        assert node.methods().count("eth_sendTransaction") == 1

    @pytest.mark.asyncio
    async def test_no_accounts(self):
        with pytest.raises(SettlementError):
            await make_settlement(FakeNode([], accounts=())).submit(make_tx())

    @pytest.mark.asyncio
    async def test_token_transfers_rejected(self):
        node = FakeNode([])
        with pytest.raises(SettlementError):
            await make_settlement(node).submit(make_tx(Token.USDC))
        assert node.calls == []
