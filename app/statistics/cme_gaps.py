"""CME weekend-gap detection over daily candles — pure functions."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from app.market.models import Candle

MIN_GAP_PCT = 0.5
BREAKOUT_GAP_PCT = 2.0
FILL_WINDOW_DAYS = 14
MIN_CANDLES = 7

_FRIDAY, _SUNDAY, _MONDAY = 4, 6, 0  # datetime.weekday()


@dataclass(frozen=True)
class CMEGap:
    """A price gap across the CME weekend close."""

    date: str  # YYYY-MM-DD of the reopening candle
    timestamp: int  # ms
    direction: str  # "up" or "down"
    size: float  # % of the previous close
    filled: bool
    time_to_fill: Optional[float]
    trading_strategy: str  # "Fade" or "Breakout"

    @property
    def id(self) -> str:
        return f"gap-{self.timestamp}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "timestamp": self.timestamp,
            "direction": self.direction,
            "size": self.size,
            "filled": self.filled,
            "timeToFill": self.time_to_fill,
            "tradingStrategy": self.trading_strategy,
        }


def _weekday(ts: int) -> int:
    return datetime.fromtimestamp(ts, tz=timezone.utc).weekday()


def is_weekend_transition(prev_time: int, curr_time: int) -> bool:
    """Friday → Sunday/Monday, or Sunday → Monday, in UTC."""
    prev_day, curr_day = _weekday(prev_time), _weekday(curr_time)
    if prev_day == _FRIDAY and curr_day in (_SUNDAY, _MONDAY):
        return True
    return prev_day == _SUNDAY and curr_day == _MONDAY


def _report_size(raw: float) -> float:
    rounded = round(raw, 1)
    return rounded if rounded > MIN_GAP_PCT else raw


def detect_cme_gaps(candles: Sequence[Candle]) -> list[CMEGap]:
    """Find weekend gaps larger than 0.5 % and whether they filled.

    For each weekend transition the gap is ``|open − prev_close| / prev_close``.
    A gap fills once a candle within the next 14 days trades back through
    the previous close (low for up gaps, high for down gaps).  Fill time is
    reported as ``days × 24 / 10`` rounded to 1 decimal.

    Returns gaps sorted newest first.
    """
    gaps: list[CMEGap] = []

    for i in range(1, len(candles)):
        prev, curr = candles[i - 1], candles[i]
        if not is_weekend_transition(prev.time, curr.time) or prev.close <= 0:
            continue

        raw_size = abs((curr.open - prev.close) / prev.close * 100)
        if raw_size <= MIN_GAP_PCT:
            continue

        direction = "up" if curr.open > prev.close else "down"
        fill_days: Optional[int] = None
        for j in range(i, min(i + FILL_WINDOW_DAYS, len(candles))):
            crossed = (
                candles[j].low <= prev.close if direction == "up"
                else candles[j].high >= prev.close
            )
            if crossed:
                fill_days = j - i + 1
                break

        size = _report_size(raw_size)
        gaps.append(
            CMEGap(
                date=datetime.fromtimestamp(curr.time, tz=timezone.utc).strftime("%Y-%m-%d"),
                timestamp=curr.time * 1000,
                direction=direction,
                size=size,
                filled=fill_days is not None,
                time_to_fill=round(fill_days * 24 / 10, 1) if fill_days is not None else None,
                trading_strategy="Breakout" if size > BREAKOUT_GAP_PCT else "Fade",
            )
        )

    gaps.sort(key=lambda g: g.timestamp, reverse=True)
    return gaps


def sample_gaps(now: Optional[datetime] = None) -> list[CMEGap]:
    """Illustrative gaps served when too few daily candles are available."""
    now = now or datetime.now(timezone.utc)
    rows = [
        (2, "up", 1.8, 12.4, "Fade"),
        (9, "down", 2.3, 24.6, "Breakout"),
        (16, "up", 1.2, 8.2, "Fade"),
        (23, "down", 2.7, None, "Breakout"),
        (30, "up", 1.5, 16.8, "Fade"),
    ]
    gaps = []
    for days_ago, direction, size, fill, strategy in rows:
        when = now - timedelta(days=days_ago)
        gaps.append(
            CMEGap(
                date=when.strftime("%Y-%m-%d"),
                timestamp=int(when.timestamp() * 1000),
                direction=direction,
                size=size,
                filled=fill is not None,
                time_to_fill=fill,
                trading_strategy=strategy,
            )
        )
    return gaps
