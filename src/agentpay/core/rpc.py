"""
Lightweight Ethereum JSON-RPC client over httpx.

Shared by the market data source, the fee model and the settlement backend.
No web3.py dependency.
"""

from __future__ import annotations

import itertools
from typing import Any

import httpx

from agentpay.core.exceptions import CollaboratorError
from agentpay.core.logging import get_logger
from agentpay.resilience.retry import execute_with_retry

logger = get_logger("rpc")


def to_hex(value: int) -> str:
    """Encode a non-negative integer as a JSON-RPC quantity."""
    return hex(value)


def from_hex(value: str | None) -> int:
    """Decode a JSON-RPC quantity."""
    if not value or value == "0x":
        return 0
    return int(value, 16)


class JsonRpcClient:
    """
    Minimal JSON-RPC 2.0 client.

    Usage:
        rpc = JsonRpcClient("http://127.0.0.1:8545")
        gas_price = from_hex(await rpc.call("eth_gasPrice"))
    """

    RPC_TIMEOUT = 10.0  # seconds per JSON-RPC call

    def __init__(
        self,
        rpc_url: str,
        http_client: httpx.AsyncClient | None = None,
        collaborator: str = "rpc",
    ) -> None:
        """
        Args:
            rpc_url: Node endpoint URL
            http_client: Shared httpx client (for connection pooling)
            collaborator: Name used in errors and logs
        """
        self._rpc_url = rpc_url
        self._http_client = http_client
        self._owns_client = False
        self._collaborator = collaborator
        self._ids = itertools.count(1)

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy-init HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.RPC_TIMEOUT)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.post(self._rpc_url, json=payload)
        response.raise_for_status()
        return response.json()

    async def call(
        self,
        method: str,
        params: list[Any] | None = None,
        retry: bool = True,
    ) -> Any:
        """
        Execute a JSON-RPC request.

        Args:
            method: RPC method name (e.g. "eth_gasPrice")
            params: Positional params
            retry: Retry transient transport errors. Must be False for
                non-idempotent calls such as eth_sendTransaction.

        Returns:
            The "result" member of the response

        Raises:
            CollaboratorError: On transport, HTTP or RPC-level errors
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }

        try:
            if retry:
                result = await execute_with_retry(self._post, payload)
            else:
                result = await self._post(payload)
        except httpx.TimeoutException as e:
            raise CollaboratorError(
                f"{method} timed out", self._collaborator, {"url": self._rpc_url}
            ) from e
        except httpx.HTTPStatusError as e:
            raise CollaboratorError(
                f"{method} failed with HTTP {e.response.status_code}",
                self._collaborator,
                {"url": self._rpc_url},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CollaboratorError(f"{method} failed: {e}", self._collaborator) from e

        if "error" in result:
            logger.debug(f"{method} RPC error from {self._rpc_url}: {result['error']}")
            raise CollaboratorError(
                f"{method} returned an error",
                self._collaborator,
                {"error": result["error"]},
            )

        return result.get("result")
