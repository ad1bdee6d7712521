"""CryptoCompare client — price snapshots, historical bars and news."""

from typing import Optional

from app.market.http_client import get_json
from app.market.models import Candle, Ticker, base_asset

BASE_URL = "https://min-api.cryptocompare.com/data"

_MAX_HISTO_LIMIT = 2000

# interval → (endpoint suffix, limit multiplier, aggregate)
_HISTO_PARAMS: dict[str, tuple[str, int, int]] = {
    "5m": ("minute", 1, 1),
    "30m": ("minute", 6, 30),
    "1h": ("hour", 1, 1),
    "4h": ("hour", 4, 4),
    "1d": ("day", 1, 1),
}


def histo_request(interval: str, limit: int) -> tuple[str, int, int]:
    """Map a dashboard interval to ``(endpoint, limit, aggregate)``.

    Unknown intervals fall back to hourly bars.
    """
    endpoint, multiplier, aggregate = _HISTO_PARAMS.get(interval, ("hour", 1, 1))
    return endpoint, min(limit * multiplier, _MAX_HISTO_LIMIT), aggregate


class CryptoCompareClient:
    """Async client for the CryptoCompare min-api."""

    def __init__(self, base_url: str = BASE_URL) -> None:
        self._base_url = base_url

    async def fetch_ticker(self, symbol: str) -> Optional[Ticker]:
        """Return a USD ticker from ``pricemultifull`` or ``None`` if absent."""
        coin = base_asset(symbol)
        data = await get_json(
            f"{self._base_url}/pricemultifull",
            params={"fsyms": coin, "tsyms": "USD"},
            timeout=3.0,
        )
        raw = data.get("RAW", {}).get(coin, {}).get("USD")
        if not raw:
            return None
        return Ticker(
            symbol=symbol,
            price=float(raw["PRICE"]),
            price_change_percent=float(raw["CHANGEPCT24HOUR"]),
            volume=float(raw["VOLUME24HOUR"]),
            high=float(raw["HIGH24HOUR"]),
            low=float(raw["LOW24HOUR"]),
            source="cryptocompare",
        )

    async def fetch_candles(
        self, symbol: str, interval: str, limit: int = 100
    ) -> list[Candle]:
        """Fetch historical bars quoted in USDT, trimmed to *limit* rows."""
        endpoint, request_limit, aggregate = histo_request(interval, limit)
        data = await get_json(
            f"{self._base_url}/v2/histo{endpoint}",
            params={
                "fsym": base_asset(symbol),
                "tsym": "USDT",
                "limit": request_limit,
                "aggregate": aggregate,
            },
            timeout=5.0,
        )
        rows = (data.get("Data") or {}).get("Data")
        if not isinstance(rows, list):
            return []

        candles = [
            Candle(
                time=int(row["time"]),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row["volumefrom"]),
            )
            for row in rows
        ]
        return candles[-limit:]

    async def fetch_news(self, category: str = "BTC") -> list[dict]:
        """Raw news items from ``v2/news``."""
        data = await get_json(
            f"{self._base_url}/v2/news/",
            params={"lang": "EN", "categories": category},
            timeout=5.0,
        )
        items = data.get("Data")
        if not isinstance(items, list):
            raise ValueError("Unexpected news payload from CryptoCompare")
        return items
