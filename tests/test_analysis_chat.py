"""Tests for the chat-completions analysis client."""

import json
from decimal import Decimal

import httpx
import pytest

from agentpay.analysis.chat import ChatCompletionAnalysisClient
from agentpay.core.config import Config
from agentpay.core.exceptions import CollaboratorError
from agentpay.core.types import PaymentRequest, Token


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_client(handler, api_key="sk-test") -> ChatCompletionAnalysisClient:
    return ChatCompletionAnalysisClient(
        api_key=api_key,
        api_url="https://llm.example/v1/",
        model="test-model",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_parse_payment_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=completion('{"amount": 0.5, "token": "ETH"}'))

    result = await make_client(handler).parse_payment_request("pay 0.5 ETH to 0xabc")

    assert result == {"amount": 0.5, "token": "ETH"}
    assert seen["url"] == "https://llm.example/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert "pay 0.5 ETH to 0xabc" in seen["body"]["messages"][-1]["content"]


@pytest.mark.asyncio
async def test_assess_payment_risk_prompt_includes_request():
    prompts = []

    def handler(request: httpx.Request) -> httpx.Response:
        prompts.append(json.loads(request.content)["messages"][-1]["content"])
        return httpx.Response(200, json=completion('{"riskScore": 35}'))

    request = PaymentRequest(amount=Decimal("2"), token=Token.CRO, recipient="0xdef")
    result = await make_client(handler).assess_payment_risk(request)

    assert result == {"riskScore": 35}
    assert "2 CRO" in prompts[0]
    assert "0xdef" in prompts[0]


@pytest.mark.asyncio
async def test_missing_api_key():
    def handler(request):
        raise AssertionError("must not be called")

    with pytest.raises(CollaboratorError):
        await make_client(handler, api_key=None).parse_payment_request("pay")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"error": "bad key"}),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json=completion("not json")),
        httpx.Response(200, json=completion("[1, 2]")),
    ],
)
async def test_bad_replies_raise_collaborator_error(response):
    with pytest.raises(CollaboratorError):
        await make_client(lambda request: response).parse_payment_request("pay")


def test_from_config():
    client = ChatCompletionAnalysisClient.from_config(
        Config(analysis_api_key="k", analysis_model="m", analysis_api_url="http://x/v1")
    )
    assert client._model == "m"
    assert client._api_url == "http://x/v1"
