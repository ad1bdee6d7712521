"""Market data models — typed representations of candles, tickers and tagged results."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar.  ``time`` is the bar open in unix seconds."""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Candle":
        return cls(
            time=int(data["time"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data["volume"]),
        )


@dataclass(frozen=True)
class Ticker:
    """24-hour ticker snapshot.  ``source`` is a provenance label."""

    symbol: str
    price: float
    price_change_percent: float
    volume: float
    high: float
    low: float
    source: str

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "priceChangePercent": self.price_change_percent,
            "volume": self.volume,
            "high": self.high,
            "low": self.low,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Ticker":
        return cls(
            symbol=str(data["symbol"]),
            price=float(data["price"]),
            price_change_percent=float(data["priceChangePercent"]),
            volume=float(data["volume"]),
            high=float(data["high"]),
            low=float(data["low"]),
            source=str(data.get("source", "unknown")),
        )


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Data returned by a provider chain, tagged with where it came from.

    ``synthetic`` is ``True`` when the data was fabricated locally (random
    walk, hardcoded constants) rather than fetched or read from cache.
    """

    data: T
    source: str
    synthetic: bool = False

    @property
    def is_real(self) -> bool:
        return not self.synthetic

    def provenance(self) -> dict[str, Any]:
        return {"source": self.source, "synthetic": self.synthetic}


# ── Symbols and intervals ────────────────────────────────────────────────

INTERVAL_SECONDS: dict[str, int] = {
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "30m": 1800,
    "1h": 3600,
    "4h": 14400,
    "1d": 86400,
}


def interval_seconds(interval: str) -> int:
    """Bar length in seconds; unknown intervals are treated as 30m."""
    return INTERVAL_SECONDS.get(interval, 1800)


def normalize_symbol(symbol: str) -> str:
    """Return an exchange pair, e.g. ``"btc"`` → ``"BTCUSDT"``.

    Symbols already quoted in USDT or USD are returned upper-cased.
    """
    sym = symbol.strip().upper()
    if sym.endswith("USDT") or sym.endswith("USD"):
        return sym
    return f"{sym}USDT"


def base_asset(symbol: str) -> str:
    """Return the base coin of a pair, e.g. ``"BTCUSDT"`` → ``"BTC"``."""
    sym = symbol.strip().upper()
    for quote in ("USDT", "USD"):
        if sym.endswith(quote) and len(sym) > len(quote):
            return sym[: -len(quote)]
    return sym
