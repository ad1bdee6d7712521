"""Position sizing and trade risk — pure math, no I/O.

Calculates position size, margin, fees and the profit/loss at the target
and stop for a planned trade.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PositionResult:
    """Outcome of a position calculation.  Money values are in quote currency."""

    position_type: str  # "long", "short" or "neutral"
    position_size: float
    margin_required: float
    total_fees: float
    potential_profit: float
    potential_loss: float
    risk_reward_ratio: float

    def to_dict(self) -> dict:
        return {
            "positionType": self.position_type,
            "positionSize": round(self.position_size, 2),
            "marginRequired": round(self.margin_required, 2),
            "totalFees": round(self.total_fees, 2),
            "potentialProfit": round(self.potential_profit, 2),
            "potentialLoss": round(self.potential_loss, 2),
            "riskRewardRatio": round(self.risk_reward_ratio, 2),
        }


def determine_position_type(
    entry_price: float, stop_loss_price: float, take_profit_price: float
) -> str:
    """``long`` when stop < entry < target, ``short`` when target < entry < stop."""
    if entry_price > stop_loss_price and take_profit_price > entry_price:
        return "long"
    if entry_price < stop_loss_price and take_profit_price < entry_price:
        return "short"
    return "neutral"


def levels_from_percent(
    entry_price: float, stop_loss_pct: float, take_profit_pct: float, direction: str = "long"
) -> tuple[float, float]:
    """Stop and target prices *stop_loss_pct* / *take_profit_pct* away from entry.

    Returns ``(stop_loss_price, take_profit_price)``.

    Raises:
        ValueError: If *direction* is not ``long`` or ``short``.
    """
    if direction == "long":
        return (
            entry_price * (1 - stop_loss_pct / 100),
            entry_price * (1 + take_profit_pct / 100),
        )
    if direction == "short":
        return (
            entry_price * (1 + stop_loss_pct / 100),
            entry_price * (1 - take_profit_pct / 100),
        )
    raise ValueError(f"direction must be 'long' or 'short', got {direction!r}")


def calculate_position(
    entry_price: float,
    stop_loss_price: float,
    take_profit_price: float,
    capital: float,
    leverage: float = 1.0,
    trading_fee_pct: float = 0.0,
    risk_pct: Optional[float] = None,
) -> PositionResult:
    """Size a trade and compute its outcome at stop and target.

    Formula::

        size (fixed)  = capital × leverage
        size (risk)   = capital × risk_pct% / (1 + 2 × fee%) / (|entry − stop| / entry)
        margin        = size / leverage
        fees          = size × fee% × 2          (entry and exit)
        profit (long) = size × (target − entry) / entry − fees
        loss   (long) = size × (entry − stop) / entry + fees

    Shorts mirror the long formulas.  A neutral setup (stop and target on
    the same side of entry) has zero fees, profit and loss.

    Args:
        entry_price: Planned entry (e.g. 50_000.0).
        stop_loss_price: Stop-loss price.
        take_profit_price: Take-profit price.
        capital: Account capital committed.
        leverage: Leverage multiplier (1 = spot).
        trading_fee_pct: Fee per side in percent (0.04 → 0.04 %).
        risk_pct: When given, size from this percentage of *capital*,
            discounted for the round-trip fee, over the stop distance.

    Returns:
        A ``PositionResult``.

    Raises:
        ValueError: For non-positive prices, capital, leverage or risk, a
            negative fee, or risk-based sizing on a neutral setup.
    """
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")
    if stop_loss_price <= 0:
        raise ValueError(f"stop_loss_price must be positive, got {stop_loss_price}")
    if take_profit_price <= 0:
        raise ValueError(f"take_profit_price must be positive, got {take_profit_price}")
    if capital <= 0:
        raise ValueError(f"capital must be positive, got {capital}")
    if leverage <= 0:
        raise ValueError(f"leverage must be positive, got {leverage}")
    if trading_fee_pct < 0:
        raise ValueError(f"trading_fee_pct must not be negative, got {trading_fee_pct}")
    if risk_pct is not None and risk_pct <= 0:
        raise ValueError(f"risk_pct must be positive, got {risk_pct}")

    position_type = determine_position_type(entry_price, stop_loss_price, take_profit_price)
    fee_rate = trading_fee_pct / 100

    if risk_pct is None:
        size = capital * leverage
    else:
        if position_type == "neutral":
            raise ValueError("risk_pct sizing needs a long or short setup")
        risk_amount = capital * (risk_pct / 100)
        adjusted_risk = risk_amount / (1 + fee_rate * 2)
        stop_fraction = abs(entry_price - stop_loss_price) / entry_price
        size = adjusted_risk / stop_fraction

    margin = size / leverage

    if position_type == "long":
        fees = size * fee_rate * 2
        profit = size * (take_profit_price - entry_price) / entry_price - fees
        loss = size * (entry_price - stop_loss_price) / entry_price + fees
    elif position_type == "short":
        fees = size * fee_rate * 2
        profit = size * (entry_price - take_profit_price) / entry_price - fees
        loss = size * (stop_loss_price - entry_price) / entry_price + fees
    else:
        fees = profit = loss = 0.0

    return PositionResult(
        position_type=position_type,
        position_size=size,
        margin_required=margin,
        total_fees=fees,
        potential_profit=profit,
        potential_loss=loss,
        risk_reward_ratio=profit / loss if loss > 0 else 0.0,
    )
