"""CoinGecko client — market snapshots, global dominance and news."""

from typing import Optional

from app.market.http_client import get_json
from app.market.models import Ticker, base_asset

BASE_URL = "https://api.coingecko.com/api/v3"

COIN_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
}


class CoinGeckoClient:
    """Async client for the public CoinGecko API."""

    def __init__(self, base_url: str = BASE_URL) -> None:
        self._base_url = base_url

    async def fetch_ticker(self, symbol: str) -> Optional[Ticker]:
        """Ticker from ``coins/markets``; ``None`` for coins we don't map."""
        coin_id = COIN_IDS.get(base_asset(symbol))
        if coin_id is None:
            return None
        data = await get_json(
            f"{self._base_url}/coins/markets",
            params={"vs_currency": "usd", "ids": coin_id},
            timeout=3.0,
        )
        if not isinstance(data, list) or not data:
            return None
        item = data[0]
        return Ticker(
            symbol=symbol,
            price=float(item["current_price"]),
            price_change_percent=float(item.get("price_change_percentage_24h") or 0.0),
            volume=float(item.get("total_volume") or 0.0),
            high=float(item.get("high_24h") or item["current_price"]),
            low=float(item.get("low_24h") or item["current_price"]),
            source="coingecko",
        )

    async def fetch_btc_dominance(self) -> float:
        """Bitcoin's share of total market cap, in percent."""
        data = await get_json(f"{self._base_url}/global", timeout=5.0)
        return float(data["data"]["market_cap_percentage"]["btc"])

    async def fetch_news(self) -> list[dict]:
        """Raw news items; the endpoint answers either a list or ``{"data": [...]}``."""
        data = await get_json(f"{self._base_url}/news", timeout=5.0)
        if isinstance(data, dict):
            data = data.get("data")
        if not isinstance(data, list):
            raise ValueError("Unexpected news payload from CoinGecko")
        return data
