"""Market condition scores — trend, volatility, momentum and volume from recent candles."""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from app.market.models import Candle
from app.strategy.indicators import calculate_rsi

_TREND_THRESHOLD_PCT = 0.5


@dataclass(frozen=True)
class MarketCondition:
    """Dashboard gauge values.  Scores are integers in [0, 100]."""

    trend: str  # "bullish", "bearish" or "neutral"
    trend_strength: float  # % change of recent vs older average close
    volatility: int
    momentum: int
    volume: int

    def to_dict(self) -> dict:
        return {
            "trend": self.trend,
            "trendStrength": round(self.trend_strength, 2),
            "volatility": self.volatility,
            "momentum": self.momentum,
            "volume": self.volume,
        }


def _trend(hourly: Sequence[Candle]) -> tuple[str, float]:
    closes = np.array([c.close for c in hourly[-12:]], dtype=float)
    if len(closes) < 12:
        return "neutral", 0.0
    older, recent = closes[:6].mean(), closes[6:].mean()
    if older == 0:
        return "neutral", 0.0
    strength = float((recent - older) / older * 100)
    if strength > _TREND_THRESHOLD_PCT:
        return "bullish", strength
    if strength < -_TREND_THRESHOLD_PCT:
        return "bearish", strength
    return "neutral", strength


def _volatility(hourly: Sequence[Candle]) -> int:
    closes = np.array([c.close for c in hourly], dtype=float)
    if len(closes) < 2:
        return 0
    returns = np.abs(np.diff(closes) / closes[:-1] * 100)
    return int(min(round(float(returns.mean()) * 20), 100))


def _volume(half_hourly: Sequence[Candle]) -> int:
    volumes = np.array([c.volume for c in half_hourly[-24:]], dtype=float)
    if len(volumes) < 24:
        return 50
    older, recent = volumes[:12].mean(), volumes[12:].mean()
    if older == 0:
        return 50
    change = (recent - older) / older * 100
    return int(max(0, min(100, round(50 + change))))


def analyze_market_condition(
    hourly: Sequence[Candle], half_hourly: Sequence[Candle]
) -> MarketCondition:
    """Score the market from the last 24 hourly and 24 half-hourly candles.

    - trend: mean of the last 6 hourly closes against the 6 before, ±0.5 %.
    - volatility: mean absolute hourly return (%) × 20, capped at 100.
    - momentum: RSI(14) of the hourly closes.
    - volume: 50 + % change of the last 12 half-hour volumes against the
      12 before, clamped to [0, 100].

    Short inputs degrade to neutral readings instead of raising.
    """
    trend, strength = _trend(hourly)
    momentum = round(calculate_rsi([c.close for c in hourly], 14))
    return MarketCondition(
        trend=trend,
        trend_strength=strength,
        volatility=_volatility(hourly),
        momentum=int(momentum),
        volume=_volume(half_hourly),
    )
