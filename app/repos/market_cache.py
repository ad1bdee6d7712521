"""Market cache — typed cache-aside access to tickers, candles and S/R levels.

Every method swallows backend errors after logging them: a broken cache
behaves like an empty one.
"""

import json
import logging
import time
from typing import Callable, Optional

from app.market.models import Candle, Ticker
from app.repos.cache_store import CacheStore

logger = logging.getLogger("btcdash.cache")

TICKER_TTL = 60
LEVELS_TTL = 3600
DEFAULT_CANDLE_TTL = 60
CANDLE_TTLS: dict[str, int] = {"1h": 300, "4h": 900, "1d": 3600}


def candle_ttl(interval: str) -> int:
    """Seconds to keep candles of *interval* cached."""
    return CANDLE_TTLS.get(interval, DEFAULT_CANDLE_TTL)


def ticker_key(symbol: str) -> str:
    return f"ticker:{symbol}"


def candles_key(symbol: str, interval: str, limit: int) -> str:
    return f"candles:{symbol}:{interval}:{limit}"


def levels_key(symbol: str) -> str:
    return f"levels:{symbol}"


def refresh_key(kind: str, params: Optional[dict] = None) -> str:
    return f"{kind}:lastUpdated:{json.dumps(params or {}, sort_keys=True)}"


class MarketCache:
    """Cache-aside wrapper over a ``CacheStore``.

    Args:
        store: Backend (Redis or in-memory).
        clock: Wall-clock source in seconds, injectable for tests.
    """

    def __init__(self, store: CacheStore, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock

    @property
    def backend(self) -> str:
        return self._store.name

    async def close(self) -> None:
        try:
            await self._store.close()
        except Exception as exc:
            logger.warning("Cache close failed: %s", exc)

    # ── Raw JSON helpers ─────────────────────────────────────────────────

    async def _get_json(self, key: str):
        try:
            raw = await self._store.get(key)
        except Exception as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding malformed cache entry %s", key)
            return None

    async def _set_json(self, key: str, value, ttl: Optional[int]) -> bool:
        try:
            await self._store.set(key, json.dumps(value), ttl)
        except Exception as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
            return False
        return True

    # ── Ticker ───────────────────────────────────────────────────────────

    async def get_ticker(self, symbol: str) -> Optional[Ticker]:
        data = await self._get_json(ticker_key(symbol))
        if not data:
            return None
        try:
            return Ticker.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding malformed cached ticker for %s", symbol)
            return None

    async def set_ticker(self, symbol: str, ticker: Ticker) -> bool:
        return await self._set_json(ticker_key(symbol), ticker.to_dict(), TICKER_TTL)

    # ── Candles ──────────────────────────────────────────────────────────

    async def get_candles(
        self, symbol: str, interval: str, limit: int
    ) -> Optional[list[Candle]]:
        data = await self._get_json(candles_key(symbol, interval, limit))
        if data is None:
            return None
        try:
            return [Candle.from_dict(row) for row in data]
        except (KeyError, TypeError, ValueError):
            logger.warning(
                "Discarding malformed cached candles for %s:%s:%d", symbol, interval, limit
            )
            return None

    async def set_candles(
        self, symbol: str, interval: str, limit: int, candles: list[Candle]
    ) -> bool:
        return await self._set_json(
            candles_key(symbol, interval, limit),
            [c.to_dict() for c in candles],
            candle_ttl(interval),
        )

    # ── Support / resistance levels ─────────────────────────────────────

    async def get_levels(self, symbol: str) -> Optional[list[dict]]:
        data = await self._get_json(levels_key(symbol))
        if not isinstance(data, list):
            return None
        return data

    async def set_levels(self, symbol: str, levels: list[dict]) -> bool:
        return await self._set_json(levels_key(symbol), levels, LEVELS_TTL)

    # ── Refresh bookkeeping ─────────────────────────────────────────────

    async def needs_refresh(
        self, kind: str, max_age: int, params: Optional[dict] = None
    ) -> bool:
        """``True`` when *kind* was never refreshed or is older than *max_age* seconds."""
        last = await self._get_json(refresh_key(kind, params))
        if last is None:
            return True
        try:
            return self._clock() - float(last) > max_age
        except (TypeError, ValueError):
            return True

    async def mark_refreshed(self, kind: str, params: Optional[dict] = None) -> bool:
        return await self._set_json(refresh_key(kind, params), self._clock(), None)
