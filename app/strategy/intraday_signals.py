"""Intraday signal generation — zone-aware price action per timeframe. Pure functions, no I/O."""

from typing import Mapping, Optional, Sequence

from app.market.models import Candle
from app.strategy.models import Signal, SRZone

SIGNAL_TIMEFRAMES: tuple[str, ...] = ("5m", "30m", "4h")

# Fraction of the base stop distance kept per timeframe
TIMEFRAME_STOP_MULTIPLIERS: dict[str, float] = {"5m": 0.4, "30m": 0.7, "4h": 1.2}

_LOOKBACK = 10
_CONFIRMING_CANDLES = 6
_TREND_THRESHOLD_PCT = 1.0
_BASE_STOP_PCT = 0.02
_REWARD_MULTIPLE = 2.0


def _nearest(zones: Sequence[SRZone], zone_type: str, price: float) -> Optional[SRZone]:
    """Closest zone of *zone_type* whose stop side lies beyond *price*.

    Supports must start below the price and resistances must end above it,
    so a zone on the wrong side of a stale or default level set is ignored.
    """
    if zone_type == "support":
        candidates = [z for z in zones if z.zone_type == zone_type and z.min_price < price]
    else:
        candidates = [z for z in zones if z.zone_type == zone_type and z.max_price > price]
    if not candidates:
        return None
    return min(candidates, key=lambda z: abs(z.midpoint - price))


def _zone_label(zone: SRZone) -> str:
    return f"{zone.min_price:.0f}-{zone.max_price:.0f}"


def _classify(
    recent: Sequence[Candle], zones: Sequence[SRZone], price: float
) -> tuple[str, int, str]:
    """Return ``(signal, strength, reason)`` for the last candles."""
    near_support = next(
        (z for z in zones if z.zone_type == "support" and z.contains(price)), None
    )
    near_resistance = next(
        (z for z in zones if z.zone_type == "resistance" and z.contains(price)), None
    )

    if near_support is not None:
        bullish = sum(1 for c in recent if c.is_bullish)
        if bullish >= _CONFIRMING_CANDLES:
            return (
                "buy",
                7,
                f"Price bounced off support zone ({_zone_label(near_support)}) with "
                f"bullish momentum. {bullish}/{_LOOKBACK} recent candles are bullish.",
            )
        return (
            "neutral",
            5,
            f"Price is at support zone ({_zone_label(near_support)}) but lacks "
            "strong bullish confirmation.",
        )

    if near_resistance is not None:
        bearish = sum(1 for c in recent if c.is_bearish)
        if bearish >= _CONFIRMING_CANDLES:
            return (
                "sell",
                7,
                f"Price rejected at resistance zone ({_zone_label(near_resistance)}) with "
                f"bearish momentum. {bearish}/{_LOOKBACK} recent candles are bearish.",
            )
        return (
            "neutral",
            5,
            f"Price is at resistance zone ({_zone_label(near_resistance)}) but lacks "
            "strong bearish confirmation.",
        )

    first_close = recent[0].close
    change_pct = (recent[-1].close - first_close) / first_close * 100 if first_close else 0.0
    if change_pct > _TREND_THRESHOLD_PCT:
        return (
            "buy",
            6,
            f"Price is in an uptrend ({change_pct:.2f}% increase) and not near major resistance.",
        )
    if change_pct < -_TREND_THRESHOLD_PCT:
        return (
            "sell",
            6,
            f"Price is in a downtrend ({change_pct:.2f}% decrease) and not near major support.",
        )
    return "neutral", 5, "Price is consolidating with no clear direction."


def calculate_stop_and_target(
    signal: str,
    timeframe: str,
    zones: Sequence[SRZone],
    price: float,
) -> tuple[float, float]:
    """Stop-loss and take-profit for a signal.

    The base stop sits just below the nearest support under the price (buy)
    or just above the nearest resistance over it (sell), else 2 % away.
    The distance to that base stop is scaled by the timeframe multiplier,
    and the target is placed at 1:2 risk:reward.  Neutral signals get a
    symmetric ``2 % × multiplier`` band.
    """
    scale = TIMEFRAME_STOP_MULTIPLIERS.get(timeframe, 1.0)

    if signal == "buy":
        support = _nearest(zones, "support", price)
        base = support.min_price * 0.995 if support else price * (1 - _BASE_STOP_PCT)
        distance = (price - base) * scale
        return price - distance, price + distance * _REWARD_MULTIPLE

    if signal == "sell":
        resistance = _nearest(zones, "resistance", price)
        base = resistance.max_price * 1.005 if resistance else price * (1 + _BASE_STOP_PCT)
        distance = (base - price) * scale
        return price + distance, price - distance * _REWARD_MULTIPLE

    band = _BASE_STOP_PCT * scale
    return price * (1 - band), price * (1 + band)


def generate_intraday_signal(
    timeframe: str,
    candles: Sequence[Candle],
    zones: Sequence[SRZone],
    price: float,
) -> Optional[Signal]:
    """Build one signal from the last 10 candles of *timeframe*.

    Returns ``None`` when fewer than 10 candles are available.
    """
    if len(candles) < _LOOKBACK:
        return None

    recent = list(candles[-_LOOKBACK:])
    signal, strength, reason = _classify(recent, zones, price)
    stop_loss, take_profit = calculate_stop_and_target(signal, timeframe, zones, price)

    risk = abs(price - stop_loss)
    reward = abs(price - take_profit)
    risk_reward = reward / risk if risk > 0 else 0.0

    return Signal(
        timeframe=timeframe,
        signal=signal,
        strength=strength,
        reason=reason,
        price_level=price,
        stop_loss=stop_loss,
        take_profit=take_profit,
        risk_reward_ratio=risk_reward,
        win_rate=50 + strength * 3,
    )


def generate_intraday_signals(
    candles_by_timeframe: Mapping[str, Sequence[Candle]],
    zones: Sequence[SRZone],
    price: float,
) -> list[Signal]:
    """One signal per timeframe, in 5m → 30m → 4h order.

    Returns an empty list when *price* is not positive or there are no
    zones to anchor against.  Timeframes with too little data are skipped.
    """
    if price <= 0 or not zones:
        return []

    signals: list[Signal] = []
    for timeframe in SIGNAL_TIMEFRAMES:
        candles = candles_by_timeframe.get(timeframe)
        if not candles:
            continue
        sig = generate_intraday_signal(timeframe, candles, zones, price)
        if sig is not None:
            signals.append(sig)
    return signals
