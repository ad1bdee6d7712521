"""Binance REST client — spot klines/tickers and USDT-M futures market data."""

import logging
import time
from typing import Optional

from app.market.http_client import get_json
from app.market.models import Candle, Ticker

logger = logging.getLogger("btcdash.market")

SPOT_BASE_URL = "https://api.binance.com/api/v3"
FUTURES_BASE_URL = "https://fapi.binance.com/fapi/v1"

_STABLE_PAIRS = {"USDCUSDT", "BUSDUSDT", "TUSDUSDT", "USDTUSDT", "DAIUSDT"}


class BinanceClient:
    """Async client wrapping the public Binance endpoints we need."""

    def __init__(
        self,
        spot_base_url: str = SPOT_BASE_URL,
        futures_base_url: str = FUTURES_BASE_URL,
    ) -> None:
        self._spot = spot_base_url
        self._futures = futures_base_url

    # ── Candles ──────────────────────────────────────────────────────────

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        limit: int = 100,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
    ) -> list[Candle]:
        """Fetch klines for *symbol*.

        Args:
            symbol: Exchange pair, e.g. ``"BTCUSDT"``.
            interval: Binance interval string, e.g. ``"30m"``.
            limit: Number of bars (Binance caps at 1000).
            start_time: Optional range start in unix **seconds**.
            end_time: Optional range end in unix **seconds**.

        Returns:
            Candles ordered oldest-first.
        """
        params: dict = {"symbol": symbol, "interval": interval, "limit": limit}
        # Binance expects milliseconds
        if start_time is not None:
            params["startTime"] = start_time * 1000
        if end_time is not None:
            params["endTime"] = end_time * 1000

        rows = await get_json(f"{self._spot}/klines", params=params, timeout=5.0)
        if not isinstance(rows, list):
            raise ValueError("Unexpected klines payload from Binance")

        return [
            Candle(
                time=int(row[0]) // 1000,
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]),
            )
            for row in rows
        ]

    # ── Tickers ──────────────────────────────────────────────────────────

    async def fetch_ticker(self, symbol: str) -> Ticker:
        """Return a 24h ticker combining ``ticker/price`` and ``ticker/24hr``.

        The price call is required.  When the 24hr call fails the ticker
        carries only the price, with source ``"binance-price"``.
        """
        price_data = await get_json(
            f"{self._spot}/ticker/price", params={"symbol": symbol}, timeout=2.0
        )
        price = float(price_data["price"])

        try:
            stats = await get_json(
                f"{self._spot}/ticker/24hr", params={"symbol": symbol}, timeout=2.0
            )
        except Exception as exc:
            logger.warning("Binance 24hr stats failed for %s: %s", symbol, exc)
            return Ticker(
                symbol=symbol,
                price=price,
                price_change_percent=0.0,
                volume=0.0,
                high=price,
                low=price,
                source="binance-price",
            )

        return Ticker(
            symbol=symbol,
            price=price,
            price_change_percent=float(stats["priceChangePercent"]),
            volume=float(stats["volume"]),
            high=float(stats["highPrice"]),
            low=float(stats["lowPrice"]),
            source="binance-combined",
        )

    # ── Futures ──────────────────────────────────────────────────────────

    async def fetch_top_perpetuals(self, limit: int = 10) -> list[dict]:
        """Most-traded USDT perpetuals by quote volume, stablecoins excluded."""
        data = await get_json(f"{self._futures}/ticker/24hr", timeout=5.0)
        if not isinstance(data, list):
            raise ValueError("Unexpected futures ticker payload from Binance")

        rows = [
            {
                "symbol": item["symbol"][: -len("USDT")],
                "lastPrice": float(item["lastPrice"]),
                "priceChangePercent": float(item["priceChangePercent"]),
                "volume": float(item["volume"]),
                "quoteVolume": float(item["quoteVolume"]),
            }
            for item in data
            if item.get("symbol", "").endswith("USDT")
            and item["symbol"] not in _STABLE_PAIRS
        ]
        rows.sort(key=lambda r: r["quoteVolume"], reverse=True)
        return rows[:limit]

    async def ping(self) -> float:
        """Ping the futures API and return the round-trip latency in ms."""
        started = time.perf_counter()
        await get_json(f"{self._futures}/ping", timeout=5.0)
        return round((time.perf_counter() - started) * 1000, 1)
