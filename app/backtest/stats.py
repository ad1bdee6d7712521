"""Trade-series statistics — pure functions over per-trade percentage returns."""

import math
from typing import Optional, Sequence


def calculate_stats(trades: Sequence[dict], periods_per_year: int = 365) -> dict:
    """Summarise a list of closed trades.

    Each trade dict must have a ``"return"`` key: the trade's return in
    percent (``1.2`` for +1.2 %).

    Returns:
        Dict with ``totalTrades``, ``winningTrades``, ``losingTrades``,
        ``winRate`` (%), ``profitFactor``, ``sharpeRatio``, ``maxDrawdown``
        (% points) and ``netReturn`` (% compounded).
    """
    if not trades:
        return {
            "totalTrades": 0,
            "winningTrades": 0,
            "losingTrades": 0,
            "winRate": 0.0,
            "profitFactor": None,
            "sharpeRatio": 0.0,
            "maxDrawdown": 0.0,
            "netReturn": 0.0,
        }

    returns = [float(t["return"]) for t in trades]
    total = len(returns)
    winners = [r for r in returns if r > 0]
    losers = [r for r in returns if r <= 0]

    gross_profit = sum(winners)
    gross_loss = abs(sum(losers))
    profit_factor: Optional[float] = (
        gross_profit / gross_loss if gross_loss > 0 else None
    )

    return {
        "totalTrades": total,
        "winningTrades": len(winners),
        "losingTrades": len(losers),
        "winRate": round(len(winners) / total * 100, 2),
        "profitFactor": round(profit_factor, 4) if profit_factor is not None else None,
        "sharpeRatio": round(_sharpe(returns, periods_per_year), 4),
        "maxDrawdown": round(_max_drawdown(returns), 4),
        "netReturn": round(_compound(returns), 2),
    }


# ── Helpers ──────────────────────────────────────────────────────────────


def _compound(returns: Sequence[float]) -> float:
    """Total compounded return in percent."""
    equity = 1.0
    for r in returns:
        equity *= 1 + r / 100
    return (equity - 1) * 100


def _sharpe(returns: Sequence[float], periods_per_year: int) -> float:
    """Annualised Sharpe ratio from a return series.

    Uses sample standard deviation (n − 1).  Returns 0.0 when the series
    has fewer than 2 observations or zero variance.
    """
    n = len(returns)
    if n < 2:
        return 0.0
    mean = sum(returns) / n
    variance = sum((r - mean) ** 2 for r in returns) / (n - 1)
    std = math.sqrt(variance)
    if std == 0:
        return 0.0
    return (mean / std) * math.sqrt(periods_per_year)


def _max_drawdown(returns: Sequence[float]) -> float:
    """Largest peak-to-trough decline of the cumulative return curve.

    Returned as a positive number of percentage points.
    """
    cumulative = 0.0
    peak = 0.0
    max_dd = 0.0
    for r in returns:
        cumulative += r
        peak = max(peak, cumulative)
        max_dd = max(max_dd, peak - cumulative)
    return max_dd
