"""Hourly volatility profile split into Sunday, Monday and the rest of the week."""

from typing import Sequence

import pandas as pd

from app.market.models import Candle

DAY_GROUPS: tuple[str, ...] = ("sunday", "monday", "weekday")


def baseline_volatility(hour: int) -> float:
    """Typical range % used for hours without data: busier 08-16 UTC."""
    return 1.5 if 8 <= hour <= 16 else 1.0


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """Candles as a DataFrame with a UTC ``time`` column."""
    df = pd.DataFrame([c.to_dict() for c in candles])
    if df.empty:
        return pd.DataFrame(columns=["time", "open", "high", "low", "close", "volume"])
    df["time"] = pd.to_datetime(df["time"], unit="s", utc=True)
    return df


def _day_group(weekday: int) -> str:
    if weekday == 6:
        return "sunday"
    if weekday == 0:
        return "monday"
    return "weekday"


def hourly_volatility(candles: Sequence[Candle]) -> dict[str, list[dict]]:
    """Average ``(high − low) / low`` in % per UTC hour for each day group.

    Returns ``{"sunday": [...], "monday": [...], "weekday": [...]}`` where
    each list holds 24 ``{"hour": "H:00", "volatility": float}`` entries.
    Hours with no candles get the baseline value.
    """
    df = candles_to_frame(candles)
    df = df[df["low"] > 0] if not df.empty else df

    means: dict[tuple[str, int], float] = {}
    if not df.empty:
        df = df.assign(
            group=df["time"].dt.weekday.map(_day_group),
            hour=df["time"].dt.hour,
            range_pct=(df["high"] - df["low"]) / df["low"] * 100,
        )
        grouped = df.groupby(["group", "hour"])["range_pct"].mean()
        means = {(str(g), int(h)): float(v) for (g, h), v in grouped.items()}

    result: dict[str, list[dict]] = {}
    for group in DAY_GROUPS:
        result[group] = [
            {
                "hour": f"{hour}:00",
                "volatility": round(means.get((group, hour), baseline_volatility(hour)), 2),
            }
            for hour in range(24)
        ]
    return result
