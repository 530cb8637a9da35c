"""
Market Data Feed.

Polls a MarketDataSource on a fixed interval and publishes each sample as an
immutable MarketSnapshot. Readers always see a complete snapshot: publishing
is a single reference swap.
"""

from __future__ import annotations

import asyncio
import contextlib
import math
import random
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

import httpx

from agentpay.core.exceptions import CollaboratorError
from agentpay.core.logging import get_logger
from agentpay.core.rpc import from_hex
from agentpay.core.types import Congestion, MarketSnapshot, Provenance
from agentpay.utils.units import wei_to_gwei

if TYPE_CHECKING:
    from agentpay.core.rpc import JsonRpcClient

logger = get_logger("market.feed")

Clock = Callable[[], datetime]

FALLBACK_PRICE = Decimal("2200")
FALLBACK_FEE_RATE = Decimal("20")  # gwei
FALLBACK_CONGESTION = Congestion.NORMAL


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def fallback_snapshot(clock: Clock = utc_now) -> MarketSnapshot:
    """Documented default used before the feed has produced a sample."""
    return MarketSnapshot(
        price=FALLBACK_PRICE,
        fee_rate=FALLBACK_FEE_RATE,
        congestion=FALLBACK_CONGESTION,
        timestamp=clock(),
        source=Provenance.FALLBACK,
    )


class MarketDataSource(ABC):
    """External market feed."""

    name: str = "market"

    @abstractmethod
    async def fetch(self) -> MarketSnapshot:
        """
        Sample current market conditions.

        Raises:
            CollaboratorError: If the source is unavailable
        """
        ...

    async def close(self) -> None:
        return None


class SimulatedMarketDataSource(MarketDataSource):
    """
    Synthetic market: slow sinusoidal price around 2200, fee rate uniformly
    in [20, 35) gwei, and high congestion one sample in five.
    """

    name = "simulated_market"

    def __init__(self, rng: random.Random | None = None, clock: Clock = utc_now) -> None:
        self._rng = rng or random.Random()
        self._clock = clock

    async def fetch(self) -> MarketSnapshot:
        now = self._clock()
        price = 2200 + math.sin(now.timestamp() / 10) * 50
        fee_rate = 20 + self._rng.random() * 15
        congestion = Congestion.HIGH if self._rng.random() > 0.8 else Congestion.NORMAL
        return MarketSnapshot(
            price=Decimal(f"{price:.2f}"),
            fee_rate=Decimal(f"{fee_rate:.2f}"),
            congestion=congestion,
            timestamp=now,
            source=Provenance.FEED,
        )


class JsonRpcMarketDataSource(MarketDataSource):
    """
    Market sample from an Ethereum node.

    - fee rate: eth_gasPrice
    - congestion: gasUsed / gasLimit of the latest block
    - price: optional JSON endpoint returning {"<price_field>": <number>}
    """

    name = "rpc_market"
    HIGH_UTILIZATION = Decimal("0.9")
    LOW_UTILIZATION = Decimal("0.3")

    def __init__(
        self,
        rpc: JsonRpcClient,
        price_url: str | None = None,
        price_field: str = "price",
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._rpc = rpc
        self._price_url = price_url
        self._price_field = price_field
        self._http_client = http_client
        self._owns_client = False
        self._clock = clock
        self._last_price = Decimal("0")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=10.0)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        await self._rpc.close()

    async def _fetch_price(self) -> Decimal:
        if not self._price_url:
            return self._last_price
        client = await self._get_client()
        try:
            response = await client.get(self._price_url)
            response.raise_for_status()
            price = Decimal(str(response.json()[self._price_field]))
        except (httpx.HTTPError, KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise CollaboratorError(f"Price lookup failed: {e}", self.name) from e
        self._last_price = price
        return price

    @classmethod
    def congestion_for(cls, gas_used: int, gas_limit: int) -> Congestion:
        if gas_limit <= 0:
            return Congestion.NORMAL
        utilization = Decimal(gas_used) / Decimal(gas_limit)
        if utilization >= cls.HIGH_UTILIZATION:
            return Congestion.HIGH
        if utilization < cls.LOW_UTILIZATION:
            return Congestion.LOW
        return Congestion.NORMAL

    async def fetch(self) -> MarketSnapshot:
        fee_rate = wei_to_gwei(from_hex(await self._rpc.call("eth_gasPrice")))
        block = await self._rpc.call("eth_getBlockByNumber", ["latest", False])
        if not isinstance(block, dict):
            raise CollaboratorError("Node returned no latest block", self.name)
        congestion = self.congestion_for(
            from_hex(block.get("gasUsed")), from_hex(block.get("gasLimit"))
        )
        return MarketSnapshot(
            price=await self._fetch_price(),
            fee_rate=fee_rate,
            congestion=congestion,
            timestamp=self._clock(),
            source=Provenance.FEED,
        )


class MarketDataFeed:
    """
    Periodic sampler with an explicit lifecycle.

    Usage:
        feed = MarketDataFeed(SimulatedMarketDataSource(), interval=5.0)
        await feed.start()
        snapshot = feed.current()
        await feed.stop()
    """

    def __init__(
        self,
        source: MarketDataSource,
        interval: float = 5.0,
        clock: Clock = utc_now,
    ) -> None:
        """
        Args:
            source: Where samples come from
            interval: Seconds between samples
            clock: Time source for fallback snapshots
        """
        self._source = source
        self._interval = interval
        self._clock = clock
        self._snapshot: MarketSnapshot | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def snapshot(self) -> MarketSnapshot | None:
        """Latest published sample, or None before the first one."""
        return self._snapshot

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def current(self) -> MarketSnapshot:
        """Latest sample, or the documented fallback snapshot."""
        return self._snapshot or fallback_snapshot(self._clock)

    async def refresh(self) -> MarketSnapshot | None:
        """
        Take one sample now.

        On failure the previous snapshot stays published.
        """
        try:
            snapshot = await asyncio.wait_for(self._source.fetch(), self._interval)
        except Exception as e:
            logger.warning(f"Market data refresh failed, keeping previous snapshot: {e!r}")
            return self._snapshot

        self._snapshot = snapshot
        logger.debug(
            f"Market snapshot: price={snapshot.price} fee_rate={snapshot.fee_rate} "
            f"congestion={snapshot.congestion.value}"
        )
        return snapshot

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.refresh()

    async def start(self) -> None:
        """Take a first sample and start polling in the background."""
        if self.is_running:
            return
        await self.refresh()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Market data monitoring started (every {self._interval}s)")

    async def stop(self) -> None:
        """Stop polling. The last snapshot stays readable."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Market data monitoring stopped")

    async def close(self) -> None:
        await self.stop()
        await self._source.close()
