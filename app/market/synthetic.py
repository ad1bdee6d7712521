"""Locally fabricated market data — the last link of every provider chain.

Nothing here touches the network.  Pass a seeded ``random.Random`` for
reproducible output.
"""

import random
import time
from typing import Optional

from app.market.models import Candle, Ticker, base_asset, interval_seconds

_BASE_PRICES: dict[str, float] = {"BTC": 65000.0, "ETH": 3500.0, "SOL": 150.0}

_VOLATILITY_FRACTION: dict[str, float] = {"5m": 0.005, "30m": 0.01, "4h": 0.02}

# symbol → (price, change %, volume, high, low)
HARDCODED_TICKERS: dict[str, tuple[float, float, float, float, float]] = {
    "BTCUSDT": (65000.00, 0.50, 15000.0, 66000.0, 64000.0),
    "ETHUSDT": (3500.00, 0.75, 8000.0, 3550.0, 3450.0),
    "SOLUSDT": (150.00, 1.20, 5000.0, 155.0, 145.0),
}

FALLBACK_PERPETUALS: list[dict] = [
    {"symbol": "BTC", "lastPrice": 86500.0, "priceChangePercent": 1.5, "volume": 10000.0, "quoteVolume": 865000000.0},
    {"symbol": "ETH", "lastPrice": 3500.0, "priceChangePercent": 2.1, "volume": 50000.0, "quoteVolume": 175000000.0},
    {"symbol": "SOL", "lastPrice": 150.0, "priceChangePercent": 3.2, "volume": 200000.0, "quoteVolume": 30000000.0},
    {"symbol": "BNB", "lastPrice": 600.0, "priceChangePercent": 0.8, "volume": 30000.0, "quoteVolume": 18000000.0},
    {"symbol": "AVAX", "lastPrice": 35.0, "priceChangePercent": 2.5, "volume": 500000.0, "quoteVolume": 17500000.0},
    {"symbol": "DOT", "lastPrice": 7.0, "priceChangePercent": 1.1, "volume": 2000000.0, "quoteVolume": 14000000.0},
    {"symbol": "MATIC", "lastPrice": 0.8, "priceChangePercent": -1.2, "volume": 4000000.0, "quoteVolume": 3200000.0},
    {"symbol": "XRP", "lastPrice": 0.5, "priceChangePercent": -0.5, "volume": 5000000.0, "quoteVolume": 2500000.0},
    {"symbol": "DOGE", "lastPrice": 0.15, "priceChangePercent": 1.2, "volume": 10000000.0, "quoteVolume": 1500000.0},
    {"symbol": "ADA", "lastPrice": 0.4, "priceChangePercent": -0.3, "volume": 3000000.0, "quoteVolume": 1200000.0},
]

FALLBACK_FEAR_GREED: dict = {
    "value": 45,
    "classification": "Fear",
    "previousValue": 42,
    "previousClassification": "Fear",
}

FALLBACK_BTC_DOMINANCE = (58.65, 58.2)


def base_price(symbol: str) -> float:
    """Reference price used to anchor synthetic series for *symbol*."""
    return _BASE_PRICES.get(base_asset(symbol), 1000.0)


def generate_candles(
    symbol: str,
    interval: str,
    limit: int,
    end_time: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> list[Candle]:
    """Generate a trending random-walk candle series.

    The trend direction (±1) and strength (up to 1 % of the base price per
    bar) are redrawn every 5-14 bars.  Price never drops below half the base
    price.  Volume grows with the bar body.

    Args:
        symbol: Pair or coin; selects the base price.
        interval: Bar interval; selects the time step and body scale.
        limit: Number of candles.
        end_time: Unix seconds the series ends at.  Defaults to now.
        rng: Random source.  Defaults to the module-level generator.

    Returns:
        *limit* candles ordered oldest-first.
    """
    rng = rng or random.Random()
    base = base_price(symbol)
    step = interval_seconds(interval)
    end = end_time if end_time is not None else int(time.time())
    volatility = base * _VOLATILITY_FRACTION.get(interval, 0.03)

    candles: list[Candle] = []
    price = base
    trend = 0
    trend_strength = 0.0
    trend_remaining = 0

    for i in range(limit):
        if trend_remaining <= 0:
            trend = 1 if rng.random() > 0.5 else -1
            trend_strength = rng.random() * 0.01
            trend_remaining = rng.randint(5, 14)
        trend_remaining -= 1

        price += trend * trend_strength * base + base * 0.01 * (rng.random() * 2 - 1)
        price = max(price, base * 0.5)

        open_ = price
        close = price * (1 + (rng.random() * 0.02 - 0.01) + trend * 0.005)
        high = max(open_, close) * (1 + rng.random() * 0.01)
        low = min(open_, close) * (1 - rng.random() * 0.01)
        volume = abs(close - open_) / volatility * 1000 + rng.random() * 500

        candles.append(
            Candle(
                time=end - (limit - i) * step,
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=volume,
            )
        )
        price = close

    return candles


def hardcoded_ticker(symbol: str) -> Optional[Ticker]:
    """Static ticker for the majors, ``None`` for anything else."""
    row = HARDCODED_TICKERS.get(symbol)
    if row is None:
        return None
    price, change, volume, high, low = row
    return Ticker(
        symbol=symbol,
        price=price,
        price_change_percent=change,
        volume=volume,
        high=high,
        low=low,
        source="hardcoded",
    )


def fallback_ticker(symbol: str) -> Ticker:
    """Last-resort ticker returned under the requested symbol."""
    return Ticker(
        symbol=symbol,
        price=65000.00,
        price_change_percent=0.00,
        volume=10000.00,
        high=65500.00,
        low=64500.00,
        source="fallback",
    )
