"""Sentiment sources — Alternative.me Fear & Greed and Coinpaprika global stats."""

from app.market.http_client import get_json

FEAR_GREED_URL = "https://api.alternative.me/fng/"
COINPAPRIKA_GLOBAL_URL = "https://api.coinpaprika.com/v1/global"


def classify_fear_greed(value: int) -> str:
    """Map a 0-100 index value to its label."""
    if value <= 25:
        return "Extreme Fear"
    if value <= 40:
        return "Fear"
    if value <= 60:
        return "Neutral"
    if value <= 80:
        return "Greed"
    return "Extreme Greed"


def index_from_volatility(volatility_24h: float) -> int:
    """Derive a fear/greed proxy from 24h market volatility.

    Higher volatility reads as fear: ``100 - vol × 10`` clamped to [1, 99].
    """
    return int(max(1, min(99, round(100 - volatility_24h * 10))))


class SentimentClient:
    """Async client for the fear/greed and global-market endpoints."""

    def __init__(
        self,
        fear_greed_url: str = FEAR_GREED_URL,
        global_url: str = COINPAPRIKA_GLOBAL_URL,
    ) -> None:
        self._fear_greed_url = fear_greed_url
        self._global_url = global_url

    async def fetch_fear_greed(self) -> dict:
        """Current and previous index values from Alternative.me."""
        data = await get_json(self._fear_greed_url, params={"limit": 2}, timeout=5.0)
        entries = data.get("data") or []
        if not entries:
            raise ValueError("Empty fear & greed payload")
        current = entries[0]
        previous = entries[1] if len(entries) > 1 else entries[0]
        return {
            "value": int(current["value"]),
            "classification": current["value_classification"],
            "previousValue": int(previous["value"]),
            "previousClassification": previous["value_classification"],
        }

    async def fetch_global(self) -> dict:
        """Raw Coinpaprika ``/v1/global`` payload."""
        data = await get_json(self._global_url, timeout=5.0)
        if not isinstance(data, dict):
            raise ValueError("Unexpected global payload from Coinpaprika")
        return data

    async def fetch_fear_greed_from_volatility(self) -> dict:
        """Fear & Greed proxy derived from Coinpaprika ``volatility_24h``."""
        data = await self.fetch_global()
        value = index_from_volatility(float(data["volatility_24h"]))
        previous = max(1, value - 2)
        return {
            "value": value,
            "classification": classify_fear_greed(value),
            "previousValue": previous,
            "previousClassification": classify_fear_greed(previous),
        }

    async def fetch_btc_dominance(self) -> float:
        """Bitcoin dominance percentage from Coinpaprika."""
        data = await self.fetch_global()
        return float(data["bitcoin_dominance_percentage"])
