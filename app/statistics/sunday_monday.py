"""Sunday → Monday gap analysis over daily candles."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from app.market.models import Candle

GAP_THRESHOLD_PCT = 0.1

_SUNDAY, _MONDAY = 6, 0


@dataclass(frozen=True)
class SundayMondayRow:
    """One weekend: Sunday's close against Monday's open and close."""

    date: str  # Sunday, YYYY-MM-DD
    sunday_close: float
    monday_open: float
    monday_close: float
    gap_percent: float
    gap_direction: str  # "up", "down" or "none"
    gap_filled: bool

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "sundayClose": self.sunday_close,
            "mondayOpen": self.monday_open,
            "mondayClose": self.monday_close,
            "gapPercent": round(self.gap_percent, 3),
            "gapDirection": self.gap_direction,
            "gapFilled": self.gap_filled,
        }


def _utc(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def build_sunday_monday_rows(candles: Sequence[Candle]) -> list[SundayMondayRow]:
    """Pair each Sunday candle with the Monday that follows it.

    A gap is up/down when Monday opens more than 0.1 % away from Sunday's
    close.  It counts as filled when Monday's range trades back through
    Sunday's close.  Rows are returned newest first.
    """
    rows: list[SundayMondayRow] = []
    for prev, curr in zip(candles, candles[1:]):
        if _utc(prev.time).weekday() != _SUNDAY or _utc(curr.time).weekday() != _MONDAY:
            continue
        if prev.close <= 0:
            continue

        gap = (curr.open - prev.close) / prev.close * 100
        if gap > GAP_THRESHOLD_PCT:
            direction = "up"
            filled = curr.low <= prev.close
        elif gap < -GAP_THRESHOLD_PCT:
            direction = "down"
            filled = curr.high >= prev.close
        else:
            direction = "none"
            filled = False

        rows.append(
            SundayMondayRow(
                date=_utc(prev.time).strftime("%Y-%m-%d"),
                sunday_close=prev.close,
                monday_open=curr.open,
                monday_close=curr.close,
                gap_percent=gap,
                gap_direction=direction,
                gap_filled=filled,
            )
        )

    rows.sort(key=lambda r: r.date, reverse=True)
    return rows


def calculate_sunday_monday_stats(rows: Sequence[SundayMondayRow]) -> dict:
    """Summarise gap counts, average sizes and fill rates.

    Fill percentages are over weeks that actually gapped.
    """
    ups = [r for r in rows if r.gap_direction == "up"]
    downs = [r for r in rows if r.gap_direction == "down"]
    gapped = len(ups) + len(downs)
    filled_up = sum(1 for r in ups if r.gap_filled)
    filled_down = sum(1 for r in downs if r.gap_filled)

    def _pct(part: int, whole: int) -> float:
        return round(part / whole * 100, 1) if whole else 0.0

    return {
        "totalWeeks": len(rows),
        "gapUpCount": len(ups),
        "gapDownCount": len(downs),
        "noGapCount": len(rows) - gapped,
        "gapUpAvgSize": round(sum(r.gap_percent for r in ups) / len(ups), 3) if ups else 0.0,
        "gapDownAvgSize": round(abs(sum(r.gap_percent for r in downs)) / len(downs), 3) if downs else 0.0,
        "gapFilledCount": filled_up + filled_down,
        "gapFilledPercent": _pct(filled_up + filled_down, gapped),
        "gapUpFilledPercent": _pct(filled_up, len(ups)),
        "gapDownFilledPercent": _pct(filled_down, len(downs)),
    }
