"""Technical indicators — RSI, EMA, SMA, MACD, Bollinger Bands. Pure functions, no I/O.

All functions take a plain sequence of prices (usually closes) ordered
oldest-first.
"""

import math
from typing import Sequence


def calculate_sma(values: Sequence[float], period: int) -> list[float]:
    """Simple Moving Average series.

    Returns a list the same length as *values*.  Entries before the first
    full window are ``float('nan')``.

    Raises ``ValueError`` if fewer than *period* values are provided.
    """
    if period <= 0:
        raise ValueError(f"period must be positive, got {period}")
    if len(values) < period:
        raise ValueError(
            f"Need at least {period} values for SMA({period}), got {len(values)}"
        )

    sma: list[float] = [float("nan")] * len(values)
    window_sum = sum(values[:period])
    sma[period - 1] = window_sum / period
    for i in range(period, len(values)):
        window_sum += values[i] - values[i - period]
        sma[i] = window_sum / period
    return sma


def calculate_ema(values: Sequence[float], period: int) -> list[float]:
    """Exponential Moving Average series seeded with the first value.

        ``EMA_i = value_i × k + EMA_{i-1} × (1 - k)``,  ``k = 2 / (period + 1)``

    Seeding with ``values[0]`` (rather than an SMA) yields a value for every
    input, which MACD relies on.

    Raises ``ValueError`` on empty input.
    """
    if not values:
        raise ValueError("Need at least 1 value for EMA")

    k = 2.0 / (period + 1)
    ema: list[float] = []
    prev = values[0]
    for v in values:
        prev = v * k + prev * (1 - k)
        ema.append(prev)
    return ema


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(values: Sequence[float], period: int = 14) -> float:
    """Latest Wilder-smoothed Relative Strength Index.

    Algorithm:
        1. delta = value[i] - value[i-1]
        2. Seed average gain/loss = SMA of first *period* deltas.
        3. Subsequent: avg = (prev_avg × (period-1) + current) / period
        4. RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    Returns ``50.0`` (neutral) when fewer than ``period + 1`` values are
    available and ``100.0`` when there were no losses.
    """
    if len(values) < period + 1:
        return 50.0

    deltas = [values[i] - values[i - 1] for i in range(1, len(values))]
    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    values: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[list[float], list[float], list[float]]:
    """Moving Average Convergence Divergence.

    Returns ``(macd_line, signal_line, histogram)``, each the same length as
    *values*.
    """
    fast = calculate_ema(values, fast_period)
    slow = calculate_ema(values, slow_period)
    macd_line = [f - s for f, s in zip(fast, slow)]
    signal_line = calculate_ema(macd_line, signal_period)
    histogram = [m - s for m, s in zip(macd_line, signal_line)]
    return macd_line, signal_line, histogram


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    values: Sequence[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[list[float], list[float], list[float]]:
    """Calculate Bollinger Bands.

    Middle = SMA(values, *period*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ

    Requires at least *period* values.

    Returns ``(upper, middle, lower)``; each list has the same length
    as *values*.  Entries before the seed period are ``float('nan')``.
    """
    if len(values) < period:
        raise ValueError(
            f"Need at least {period} values for Bollinger({period}), "
            f"got {len(values)}"
        )

    n = len(values)
    upper: list[float] = [float("nan")] * n
    middle: list[float] = [float("nan")] * n
    lower: list[float] = [float("nan")] * n

    for i in range(period - 1, n):
        window = values[i - period + 1 : i + 1]
        sma = sum(window) / period
        variance = sum((x - sma) ** 2 for x in window) / period
        sigma = math.sqrt(variance)

        middle[i] = sma
        upper[i] = sma + std_dev * sigma
        lower[i] = sma - std_dev * sigma

    return upper, middle, lower
