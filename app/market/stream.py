"""Optional Binance futures WebSocket stream for live ticker or kline updates.

Reconnects with exponential backoff capped at 30 s and gives up after five
failed attempts.  After giving up it emits synthetic updates every 30 s for
five minutes so the dashboard keeps moving.
"""

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

import websockets

from app.market import synthetic
from app.market.models import Candle, Ticker, normalize_symbol

logger = logging.getLogger("btcdash.stream")

WS_BASE_URL = "wss://fstream.binance.com/ws"

MAX_RECONNECT_ATTEMPTS = 5
BASE_DELAY_MS = 1000
MAX_DELAY_MS = 30000
SYNTHETIC_INTERVAL_SECONDS = 30
SYNTHETIC_DURATION_SECONDS = 300


def reconnect_delay(attempt: int) -> float:
    """Seconds to wait before reconnect *attempt* (0-based)."""
    return min(BASE_DELAY_MS * 2 ** attempt, MAX_DELAY_MS) / 1000


def parse_ticker_message(msg: dict) -> Ticker:
    """Ticker from a ``24hrTicker`` event."""
    return Ticker(
        symbol=msg["s"],
        price=float(msg["c"]),
        price_change_percent=float(msg.get("P", 0.0)),
        volume=float(msg.get("v", 0.0)),
        high=float(msg.get("h", 0.0)),
        low=float(msg.get("l", 0.0)),
        source="binance-ws",
    )


def parse_kline_message(msg: dict) -> Candle:
    """Candle from a ``kline`` event; open time converted to seconds."""
    k = msg["k"]
    return Candle(
        time=int(k["t"]) // 1000,
        open=float(k["o"]),
        high=float(k["h"]),
        low=float(k["l"]),
        close=float(k["c"]),
        volume=float(k["v"]),
    )


@dataclass(frozen=True)
class StreamUpdate:
    """One update delivered to the stream callback."""

    kind: str  # "ticker" or "kline"
    data: Union[Ticker, Candle]
    synthetic: bool = False


UpdateCallback = Callable[[StreamUpdate], Optional[Awaitable[None]]]


class MarketStream:
    """Best-effort live feed for one symbol.

    Args:
        symbol: Pair or base asset, e.g. ``"BTC"`` or ``"BTCUSDT"``.
        on_update: Called with each ``StreamUpdate``; may be a coroutine.
        channel: ``"ticker"`` or ``"kline"``.
        interval: Kline interval when ``channel == "kline"``.
        connect: WebSocket connect factory (``websockets.connect``).
        sleep: Awaitable sleep used for backoff and synthetic pacing.
    """

    def __init__(
        self,
        symbol: str,
        on_update: UpdateCallback,
        channel: str = "ticker",
        interval: str = "1m",
        connect: Callable[..., Any] = websockets.connect,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        if channel not in ("ticker", "kline"):
            raise ValueError(f"Unknown stream channel: {channel}")
        self.symbol = normalize_symbol(symbol)
        self.channel = channel
        self.interval = interval
        self._on_update = on_update
        self._connect = connect
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._running = False
        self.connected = False
        self.attempts = 0

    @property
    def url(self) -> str:
        name = self.symbol.lower()
        if self.channel == "kline":
            return f"{WS_BASE_URL}/{name}@kline_{self.interval}"
        return f"{WS_BASE_URL}/{name}@ticker"

    @property
    def running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Signal the stream to stop after the current message."""
        self._running = False

    async def run(self) -> None:
        """Connect and deliver updates until stopped or reconnects run out."""
        self._running = True
        self.attempts = 0
        while self._running:
            try:
                async with self._connect(self.url, ping_interval=20) as ws:
                    logger.info("Connected to %s", self.url)
                    self.connected = True
                    self.attempts = 0
                    async for raw in ws:
                        await self._dispatch(raw)
                        if not self._running:
                            break
            except Exception as exc:
                logger.warning("Stream %s error: %s", self.url, exc)
            finally:
                self.connected = False

            if not self._running:
                break
            if self.attempts >= MAX_RECONNECT_ATTEMPTS:
                logger.error(
                    "Stream %s gave up after %d attempts, switching to synthetic updates",
                    self.url, self.attempts,
                )
                await self._run_synthetic()
                break

            delay = reconnect_delay(self.attempts)
            self.attempts += 1
            logger.info("Reconnecting to %s in %.1fs (attempt %d)", self.url, delay, self.attempts)
            await self._sleep(delay)

        self._running = False

    async def _dispatch(self, raw: Union[str, bytes]) -> None:
        try:
            msg = json.loads(raw)
            if self.channel == "kline":
                update = StreamUpdate("kline", parse_kline_message(msg))
            else:
                update = StreamUpdate("ticker", parse_ticker_message(msg))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Skipping malformed stream message: %s", exc)
            return
        await self._emit(update)

    async def _emit(self, update: StreamUpdate) -> None:
        try:
            result = self._on_update(update)
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            logger.error("Stream %s callback failed: %s", self.url, exc)

    def _synthetic_update(self) -> StreamUpdate:
        candle = synthetic.generate_candles(
            self.symbol, self.interval, 1, int(time.time()), rng=self._rng
        )[-1]
        if self.channel == "kline":
            return StreamUpdate("kline", candle, synthetic=True)
        change = (candle.close - candle.open) / candle.open * 100 if candle.open else 0.0
        ticker = Ticker(
            symbol=self.symbol,
            price=candle.close,
            price_change_percent=round(change, 2),
            volume=candle.volume,
            high=candle.high,
            low=candle.low,
            source="synthetic",
        )
        return StreamUpdate("ticker", ticker, synthetic=True)

    async def _run_synthetic(self) -> None:
        ticks = SYNTHETIC_DURATION_SECONDS // SYNTHETIC_INTERVAL_SECONDS
        for _ in range(ticks):
            if not self._running:
                break
            await self._emit(self._synthetic_update())
            await self._sleep(SYNTHETIC_INTERVAL_SECONDS)
