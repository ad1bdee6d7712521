"""Indicator-driven signals — RSI, MACD, Bollinger and volume-spike rules. Pure functions, no I/O."""

from datetime import datetime, timezone
from typing import Sequence

from app.market.models import Candle
from app.strategy.indicators import calculate_bollinger, calculate_macd, calculate_rsi
from app.strategy.models import EntryPoint, TechnicalSignal

MIN_CANDLES = 50

# Fixed confidence per rule
_PROBABILITY = {"rsi": 75, "macd": 72, "bb": 68, "vol": 65}


def _format_time(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%H:%M")


def _make_signal(
    rule: str,
    timeframe: str,
    candle: Candle,
    direction: str,
    strength: int,
    stop_loss: float,
    take_profit: float,
    status: str,
) -> TechnicalSignal:
    return TechnicalSignal(
        id=f"{rule}-{timeframe}-{candle.time}",
        time=_format_time(candle.time),
        timestamp=candle.time * 1000,
        direction=direction,
        strength=strength,
        probability=_PROBABILITY[rule],
        entry=candle.close,
        stop_loss=stop_loss,
        take_profit=take_profit,
        status=status,
    )


def generate_trading_signals(
    candles: Sequence[Candle], timeframe: str
) -> list[TechnicalSignal]:
    """Evaluate every indicator rule against the latest candle.

    Rules:
        - RSI(14) < 30 → up, > 70 → down.  1 % stop, 2 % target.
        - MACD(12, 26, 9) histogram crossing zero.  Status ``pending``.
        - Close outside Bollinger(20, 2).  Target the middle band.
        - Volume > 1.5 × mean of the previous 9 bars, direction from the
          close change.  Stop beyond the two-candle extreme.

    Returns an empty list with fewer than 50 candles.  Signals are sorted
    newest first.
    """
    if len(candles) < MIN_CANDLES:
        return []

    closes = [c.close for c in candles]
    volumes = [c.volume for c in candles]
    last = candles[-1]
    prev = candles[-2]
    entry = last.close
    signals: list[TechnicalSignal] = []

    # ── RSI ──────────────────────────────────────────────────────────────
    rsi = calculate_rsi(closes)
    rsi_strength = round(abs(rsi - 50) * 2)
    if rsi < 30:
        signals.append(
            _make_signal("rsi", timeframe, last, "up", rsi_strength, entry * 0.99, entry * 1.02, "active")
        )
    elif rsi > 70:
        signals.append(
            _make_signal("rsi", timeframe, last, "down", rsi_strength, entry * 1.01, entry * 0.98, "active")
        )

    # ── MACD ─────────────────────────────────────────────────────────────
    _, _, histogram = calculate_macd(closes)
    macd_strength = round(abs(histogram[-1] / entry * 5000)) if entry else 0
    if histogram[-1] > 0 and histogram[-2] <= 0:
        signals.append(
            _make_signal("macd", timeframe, last, "up", macd_strength, entry * 0.99, entry * 1.02, "pending")
        )
    elif histogram[-1] < 0 and histogram[-2] >= 0:
        signals.append(
            _make_signal("macd", timeframe, last, "down", macd_strength, entry * 1.01, entry * 0.98, "pending")
        )

    # ── Bollinger Bands ──────────────────────────────────────────────────
    upper, middle, lower = calculate_bollinger(closes)
    if entry < lower[-1]:
        strength = round(abs((entry - lower[-1]) / entry * 100))
        signals.append(
            _make_signal("bb", timeframe, last, "up", strength, entry * 0.99, middle[-1], "active")
        )
    elif entry > upper[-1]:
        strength = round(abs((entry - upper[-1]) / entry * 100))
        signals.append(
            _make_signal("bb", timeframe, last, "down", strength, entry * 1.01, middle[-1], "active")
        )

    # ── Volume spike ─────────────────────────────────────────────────────
    avg_volume = sum(volumes[-10:-1]) / 9
    if avg_volume > 0 and volumes[-1] > avg_volume * 1.5:
        strength = round(volumes[-1] / avg_volume * 30)
        if last.close > prev.close:
            signals.append(
                _make_signal(
                    "vol", timeframe, last, "up", strength,
                    min(last.low, prev.low) * 0.99, entry * 1.02, "pending",
                )
            )
        elif last.close < prev.close:
            signals.append(
                _make_signal(
                    "vol", timeframe, last, "down", strength,
                    max(last.high, prev.high) * 1.01, entry * 0.98, "pending",
                )
            )

    signals.sort(key=lambda s: s.timestamp, reverse=True)
    return signals


def generate_entry_exit_points(signals: Sequence[TechnicalSignal]) -> list[EntryPoint]:
    """Translate signals into long/short trade plans, newest first.

    Risk:reward is rounded to 2 decimals; a plan with zero risk gets 0.
    """
    points: list[EntryPoint] = []
    for sig in signals:
        direction = "short" if sig.direction == "down" else "long"
        if direction == "long":
            reward = sig.take_profit - sig.entry
            risk = sig.entry - sig.stop_loss
        else:
            reward = sig.entry - sig.take_profit
            risk = sig.stop_loss - sig.entry
        risk_reward = round(reward / risk, 2) if risk else 0.0

        points.append(
            EntryPoint(
                id=f"entry-{sig.id}",
                time=sig.time,
                timestamp=sig.timestamp,
                price=sig.entry,
                direction=direction,
                stop_loss=sig.stop_loss,
                take_profit=sig.take_profit,
                risk_reward=risk_reward,
                probability=sig.probability,
            )
        )

    points.sort(key=lambda p: p.timestamp, reverse=True)
    return points
