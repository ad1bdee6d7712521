"""Deterministic tests for indicators, zone models and market condition scoring.

All tests use fixed candle data fixtures. Same input = same output, always.
"""

import math

import pytest

from app.market.models import Candle
from app.strategy.indicators import (
    calculate_bollinger,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
)
from app.strategy.market_condition import analyze_market_condition
from app.strategy.models import DEFAULT_SR_LEVELS, Signal, SRZone, zone_from_dict


# ── Candle fixtures ──────────────────────────────────────────────────────


def _make_candles(closes: list[float], step: int = 3600, volume: float = 100.0) -> list[Candle]:
    return [
        Candle(time=i * step, open=c, high=c + 1, low=c - 1, close=c, volume=volume)
        for i, c in enumerate(closes)
    ]


# ── Indicators ───────────────────────────────────────────────────────────


class TestSMA:
    def test_values(self):
        sma = calculate_sma([1, 2, 3, 4, 5], 3)
        assert math.isnan(sma[0]) and math.isnan(sma[1])
        assert sma[2:] == [2.0, 3.0, 4.0]

    def test_too_short(self):
        with pytest.raises(ValueError):
            calculate_sma([1, 2], 3)

    def test_bad_period(self):
        with pytest.raises(ValueError):
            calculate_sma([1, 2, 3], 0)


class TestEMA:
    def test_constant_series(self):
        assert calculate_ema([5.0] * 10, 4) == [5.0] * 10

    def test_seeded_with_first_value(self):
        ema = calculate_ema([10.0, 20.0], 3)
        assert ema[0] == 10.0
        assert ema[1] == pytest.approx(15.0)

    def test_empty(self):
        with pytest.raises(ValueError):
            calculate_ema([], 3)


class TestRSI:
    def test_short_series_is_neutral(self):
        assert calculate_rsi([1.0] * 10) == 50.0

    def test_only_gains(self):
        assert calculate_rsi([float(i) for i in range(30)]) == 100.0

    def test_only_losses(self):
        assert calculate_rsi([float(30 - i) for i in range(30)]) == 0.0

    def test_balanced_moves(self):
        closes = [100.0 + (i % 2) for i in range(40)]
        assert calculate_rsi(closes) == pytest.approx(50.0, abs=5.0)


class TestMACD:
    def test_flat_series_is_zero(self):
        macd, signal, hist = calculate_macd([100.0] * 40)
        assert len(macd) == len(signal) == len(hist) == 40
        assert all(v == pytest.approx(0.0) for v in hist)

    def test_uptrend_positive_macd(self):
        macd, _, _ = calculate_macd([100.0 + i for i in range(60)])
        assert macd[-1] > 0


class TestBollinger:
    def test_constant_series_collapses(self):
        upper, middle, lower = calculate_bollinger([5.0] * 20)
        assert upper[-1] == middle[-1] == lower[-1] == 5.0
        assert math.isnan(middle[18])

    def test_band_order(self):
        closes = [100.0 + (i % 5) for i in range(30)]
        upper, middle, lower = calculate_bollinger(closes)
        assert lower[-1] < middle[-1] < upper[-1]

    def test_too_short(self):
        with pytest.raises(ValueError):
            calculate_bollinger([1.0] * 5)


# ── Zone and signal models ───────────────────────────────────────────────


class TestSRZone:
    def test_midpoint_and_contains(self):
        zone = SRZone("support", 99.0, 101.0)
        assert zone.midpoint == 100.0
        assert zone.contains(100.0)
        assert zone.contains(98.6)  # inside the 0.5 % tolerance
        assert not zone.contains(98.0)

    def test_to_dict(self):
        data = SRZone("resistance", 1.0, 2.0, 3.0, "x").to_dict()
        assert data == {"type": "resistance", "min": 1.0, "max": 2.0, "strength": 3.0, "description": "x"}

    def test_from_dict_with_label_strength(self):
        zone = zone_from_dict(DEFAULT_SR_LEVELS[0])
        assert zone is not None
        assert zone.zone_type == "support"
        assert zone.strength == 1.0
        assert zone.description == "Strong support zone"

    def test_from_dict_swaps_inverted_bounds(self):
        zone = zone_from_dict({"type": "support", "min": 200, "max": 100})
        assert (zone.min_price, zone.max_price) == (100.0, 200.0)

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "support", "min": "abc", "max": 1},
            {"type": "pivot", "min": 1, "max": 2},
            {"min": 1, "max": 2},
        ],
    )
    def test_from_dict_rejects_malformed(self, data):
        assert zone_from_dict(data) is None


class TestSignalModel:
    def test_expected_value(self):
        sig = Signal("30m", "buy", 7, "r", 100.0, 98.0, 104.0, 2.0, 71)
        # 0.71 × 2 − 0.29
        assert sig.expected_value == pytest.approx(1.13)
        data = sig.to_dict()
        assert data["riskRewardRatio"] == 2.0
        assert data["expectedValue"] == 1.13
        assert data["stopLoss"] == 98.0


# ── Market condition ─────────────────────────────────────────────────────


class TestMarketCondition:
    def test_uptrend(self):
        hourly = _make_candles([100.0 + i for i in range(24)])
        half_hourly = _make_candles([100.0] * 24, step=1800)
        cond = analyze_market_condition(hourly, half_hourly)
        assert cond.trend == "bullish"
        assert cond.trend_strength == pytest.approx((120.5 - 114.5) / 114.5 * 100)
        assert cond.momentum == 100
        assert 0 < cond.volatility <= 100
        assert cond.volume == 50

    def test_downtrend(self):
        hourly = _make_candles([200.0 - i for i in range(24)])
        cond = analyze_market_condition(hourly, [])
        assert cond.trend == "bearish"
        assert cond.momentum == 0

    def test_volume_score_clamped(self):
        hourly = _make_candles([100.0] * 24)
        rising = [Candle(i * 1800, 1, 1, 1, 1, 100.0 if i < 12 else 300.0) for i in range(24)]
        falling = [Candle(i * 1800, 1, 1, 1, 1, 100.0 if i < 12 else 40.0) for i in range(24)]
        assert analyze_market_condition(hourly, rising).volume == 100
        assert analyze_market_condition(hourly, falling).volume == 0

    def test_short_input_is_neutral(self):
        cond = analyze_market_condition(_make_candles([100.0, 101.0]), [])
        assert cond.trend == "neutral"
        assert cond.trend_strength == 0.0
        assert cond.momentum == 50
        assert cond.volume == 50
        assert cond.to_dict()["trendStrength"] == 0.0
