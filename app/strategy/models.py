"""Strategy data models — typed representations for derived-metric outputs."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SRZone:
    """A support or resistance price band."""

    zone_type: str  # "support" or "resistance"
    min_price: float
    max_price: float
    strength: float = 0.0  # accumulated volume, or a relative weight for manual levels
    description: str = ""

    @property
    def midpoint(self) -> float:
        return (self.min_price + self.max_price) / 2

    def contains(self, price: float, tolerance: float = 0.005) -> bool:
        """``True`` if *price* is inside the band widened by *tolerance*."""
        return self.min_price * (1 - tolerance) <= price <= self.max_price * (1 + tolerance)

    def to_dict(self) -> dict:
        return {
            "type": self.zone_type,
            "min": self.min_price,
            "max": self.max_price,
            "strength": self.strength,
            "description": self.description,
        }


_STRENGTH_LABELS = {"strong": 1.0, "medium": 0.5, "weak": 0.25}


def zone_from_dict(data: dict) -> Optional[SRZone]:
    """Parse a stored or user-posted level; ``None`` when it is malformed.

    ``strength`` may be numeric or one of ``strong``/``medium``/``weak``.
    """
    try:
        zone_type = str(data["type"])
        low, high = float(data["min"]), float(data["max"])
    except (KeyError, TypeError, ValueError):
        return None
    if zone_type not in ("support", "resistance"):
        return None

    raw_strength = data.get("strength", 0.0)
    if isinstance(raw_strength, str):
        strength = _STRENGTH_LABELS.get(raw_strength.lower(), 0.0)
    else:
        try:
            strength = float(raw_strength)
        except (TypeError, ValueError):
            strength = 0.0

    return SRZone(
        zone_type=zone_type,
        min_price=min(low, high),
        max_price=max(low, high),
        strength=strength,
        description=str(data.get("description", "")),
    )


DEFAULT_SR_LEVELS: list[dict] = [
    {"type": "support", "min": 63500, "max": 64000, "description": "Strong support zone", "strength": "strong"},
    {"type": "resistance", "min": 68000, "max": 68500, "description": "Key resistance level", "strength": "medium"},
    {"type": "support", "min": 60500, "max": 61000, "description": "Previous ATH support", "strength": "medium"},
]


@dataclass(frozen=True)
class Signal:
    """A per-timeframe trading signal derived from price action and zones."""

    timeframe: str
    signal: str  # "buy", "sell" or "neutral"
    strength: int  # 0-10
    reason: str
    price_level: float
    stop_loss: float
    take_profit: float
    risk_reward_ratio: float
    win_rate: float

    @property
    def expected_value(self) -> float:
        """Expected return in R multiples: ``p × RR − (1 − p)``."""
        p = self.win_rate / 100
        return p * self.risk_reward_ratio - (1 - p)

    def to_dict(self) -> dict:
        return {
            "timeframe": self.timeframe,
            "signal": self.signal,
            "strength": self.strength,
            "reason": self.reason,
            "priceLevel": self.price_level,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "riskRewardRatio": round(self.risk_reward_ratio, 2),
            "winRate": self.win_rate,
            "expectedValue": round(self.expected_value, 2),
        }


@dataclass(frozen=True)
class TechnicalSignal:
    """An indicator-triggered signal (RSI, MACD, Bollinger, volume)."""

    id: str
    time: str  # "HH:MM" UTC
    timestamp: int  # ms
    direction: str  # "up" or "down"
    strength: int
    probability: int
    entry: float
    stop_loss: float
    take_profit: float
    status: str  # "active" or "pending"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "time": self.time,
            "timestamp": self.timestamp,
            "direction": self.direction,
            "strength": self.strength,
            "probability": self.probability,
            "entry": self.entry,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "status": self.status,
        }


@dataclass(frozen=True)
class EntryPoint:
    """A concrete trade plan derived from a ``TechnicalSignal``."""

    id: str
    time: str
    timestamp: int
    price: float
    direction: str  # "long" or "short"
    stop_loss: float
    take_profit: float
    risk_reward: float
    probability: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "time": self.time,
            "timestamp": self.timestamp,
            "price": self.price,
            "direction": self.direction,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "riskReward": self.risk_reward,
            "probability": self.probability,
        }
