"""
Chat-completions analysis client.

Talks to any OpenAI-compatible `/chat/completions` endpoint (DeepSeek by
default) in JSON mode. Transient HTTP failures are retried; everything else
surfaces as CollaboratorError so the pipeline can fall back.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx

from agentpay.analysis.base import AnalysisClient
from agentpay.core.exceptions import CollaboratorError
from agentpay.core.logging import get_logger
from agentpay.resilience.retry import execute_with_retry

if TYPE_CHECKING:
    from agentpay.core.config import Config
    from agentpay.core.types import PaymentRequest

logger = get_logger("analysis.chat")

PARSE_PROMPT = """Parse this payment request into structured data:
"{text}"

Return a JSON object with:
- amount: numeric value
- token: currency symbol (ETH, CRO, USDC, USDT)
- recipient: wallet address
- conditions: array of execution conditions
- urgency: low/medium/high
- description: simplified purpose
"""

RISK_PROMPT = """Assess risk for this payment:
Amount: {amount} {token}
Recipient: {recipient}
Conditions: {conditions}
Urgency: {urgency}

Analyze transaction pattern anomalies, recipient risk factors, amount-related
risks and condition complexity.

Return a JSON object with:
- riskScore: integer 0-100
- factors: array of short snake_case tags
- recommendation: approve/hold/reject
- reasoning: one or two sentences
"""


class ChatCompletionAnalysisClient(AnalysisClient):
    """
    Analysis collaborator backed by an LLM chat-completions API.

    Usage:
        client = ChatCompletionAnalysisClient(api_key="sk-...")
        fields = await client.parse_payment_request("pay 0.5 ETH to 0xabc")
    """

    name = "analysis"
    REQUEST_TIMEOUT = 30.0

    def __init__(
        self,
        api_key: str | None,
        api_url: str = "https://api.deepseek.com/v1",
        model: str = "deepseek-chat",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            api_key: Bearer token for the API
            api_url: Base URL (the client appends /chat/completions)
            model: Model name
            http_client: Shared httpx client (for connection pooling)
        """
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self._model = model
        self._http_client = http_client
        self._owns_client = False

    @classmethod
    def from_config(cls, config: Config) -> ChatCompletionAnalysisClient:
        return cls(
            api_key=config.analysis_api_key,
            api_url=config.analysis_api_url,
            model=config.analysis_model,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy-init HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.REQUEST_TIMEOUT)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.post(
            f"{self._api_url}/chat/completions",
            json=body,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        response.raise_for_status()
        return response.json()

    async def _complete_json(self, prompt: str) -> dict[str, Any]:
        """Send one prompt and decode the JSON object in the reply."""
        if not self._api_key:
            raise CollaboratorError("Analysis API key is not configured", self.name)

        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": "You are a payment analysis assistant. Reply with JSON only."},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": 0,
        }

        try:
            data = await execute_with_retry(self._post, body)
        except httpx.HTTPStatusError as e:
            raise CollaboratorError(
                f"Analysis API returned HTTP {e.response.status_code}", self.name
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CollaboratorError(f"Analysis API request failed: {e}", self.name) from e

        try:
            content = data["choices"][0]["message"]["content"]
            parsed = json.loads(content)
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
            raise CollaboratorError("Analysis API returned a malformed completion", self.name) from e

        if not isinstance(parsed, dict):
            raise CollaboratorError("Analysis API did not return a JSON object", self.name)

        logger.debug(f"Analysis reply: {parsed}")
        return parsed

    async def parse_payment_request(self, text: str) -> dict[str, Any]:
        return await self._complete_json(PARSE_PROMPT.format(text=text))

    async def assess_payment_risk(self, request: PaymentRequest) -> dict[str, Any]:
        prompt = RISK_PROMPT.format(
            amount=request.amount,
            token=request.token.value,
            recipient=request.recipient,
            conditions=", ".join(request.conditions),
            urgency=request.urgency.value,
        )
        return await self._complete_json(prompt)
