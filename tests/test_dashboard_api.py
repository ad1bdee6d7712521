"""Tests for the dashboard HTTP API.

Upstream clients are mocks, so most answers come from the synthetic end of
each provider chain.
"""

import random
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from app.api.routers import configure_routers, update_stream_state
from app.config import Config
from app.main import app
from app.market.models import Candle, Ticker
from app.market.service import MarketDataService
from app.market.stream import StreamUpdate
from app.refresher import DataRefresher
from app.repos.cache_store import MemoryStore
from app.repos.market_cache import MarketCache

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_config(cron_secret=None) -> Config:
    return Config(
        redis_url=None,
        cron_secret=cron_secret,
        default_symbol="BTCUSDT",
        trading_fee_pct=0.08,
        refresh_interval_seconds=300,
        enable_stream=False,
        log_level="INFO",
        api_port=8080,
    )


def _make_client_mock(**methods) -> MagicMock:
    """Mock upstream client; unlisted async methods raise ``ConnectionError``."""
    mock = MagicMock()
    for name in (
        "fetch_candles", "fetch_ticker", "fetch_news", "fetch_top_perpetuals", "ping",
        "fetch_btc_dominance", "fetch_fear_greed", "fetch_fear_greed_from_volatility",
    ):
        setattr(mock, name, methods.get(name, AsyncMock(side_effect=ConnectionError("down"))))
    return mock


def _make_service(binance=None, coingecko=None) -> MarketDataService:
    return MarketDataService(
        MarketCache(MemoryStore()),
        binance=binance or _make_client_mock(),
        cryptocompare=_make_client_mock(),
        coingecko=coingecko or _make_client_mock(),
        sentiment=_make_client_mock(),
        rng=random.Random(3),
    )


def _configure(service=None, cron_secret=None, stream=None) -> MarketDataService:
    service = service or _make_service()
    configure_routers(
        config=_make_config(cron_secret),
        service=service,
        refresher=DataRefresher(service),
        stream=stream,
    )
    return service


def _candles(n: int = 100) -> list[Candle]:
    return [Candle(1700000000 + i * 3600, 100.0, 101.0, 99.0, 100.5, 10.0) for i in range(n)]


# ── Market data ──────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestTickerEndpoint:
    def test_synthetic_ticker(self):
        _configure()
        resp = client.get("/api/ticker", params={"symbol": "BTC"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["symbol"] == "BTCUSDT"
        assert data["source"] == "hardcoded"
        assert data["synthetic"] is True

    def test_real_ticker(self):
        ticker = Ticker("BTCUSDT", 64000.0, 1.0, 10.0, 65000.0, 63000.0, "binance-combined")
        binance = _make_client_mock(fetch_ticker=AsyncMock(return_value=ticker))
        _configure(_make_service(binance=binance))
        data = client.get("/api/ticker").json()
        assert data["price"] == 64000.0
        assert data["synthetic"] is False


class TestKlinesEndpoint:
    def test_synthetic_candles_with_headers(self):
        _configure()
        resp = client.get("/api/klines", params={"symbol": "BTCUSDT", "interval": "1h", "limit": "5"})
        assert resp.status_code == 200
        data = resp.json()
        assert isinstance(data, list)
        assert len(data) == 5
        assert set(data[0]) == {"time", "open", "high", "low", "close", "volume"}
        assert resp.headers["X-Data-Source"] == "synthetic"
        assert resp.headers["X-Data-Synthetic"] == "true"

    def test_real_candles_and_ms_conversion(self):
        binance = _make_client_mock(fetch_candles=AsyncMock(return_value=_candles()))
        _configure(_make_service(binance=binance))
        resp = client.get(
            "/api/klines",
            params={"interval": "1h", "startTime": "1700000000000", "endTime": "1700003600000"},
        )
        assert resp.status_code == 200
        assert resp.headers["X-Data-Source"] == "binance"
        assert resp.headers["X-Data-Synthetic"] == "false"
        binance.fetch_candles.assert_awaited_once_with("BTCUSDT", "1h", 100, 1700000000, 1700003600)

    def test_invalid_limit(self):
        _configure()
        for limit in ("abc", "0", "-5", "1001"):
            resp = client.get("/api/klines", params={"limit": limit})
            assert resp.status_code == 400
            assert resp.json() == {"error": "Invalid limit parameter"}

    def test_invalid_time_range(self):
        _configure()
        resp = client.get("/api/klines", params={"startTime": "yesterday"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid time range parameter"}

    def test_invalid_interval(self):
        _configure()
        resp = client.get("/api/klines", params={"interval": "7x"})
        assert resp.status_code == 400


class TestSupportResistanceEndpoint:
    def test_defaults_when_no_real_data(self):
        _configure()
        data = client.get("/api/support-resistance").json()
        assert data["symbol"] == "BTCUSDT"
        assert data["source"] == "default"
        assert data["synthetic"] is True
        assert len(data["levels"]) == 3

    def test_defaults_on_service_failure(self):
        service = MagicMock()
        service.get_support_resistance = AsyncMock(side_effect=RuntimeError("cache exploded"))
        configure_routers(config=_make_config(), service=service)
        resp = client.get("/api/support-resistance", params={"symbol": "ETH"})
        assert resp.status_code == 200
        assert resp.json()["symbol"] == "ETHUSDT"
        assert resp.json()["source"] == "default"

    def test_post_then_get(self):
        _configure()
        levels = [{"type": "support", "min": 60000, "max": 60500}]
        resp = client.post("/api/support-resistance", json={"symbol": "BTC", "levels": levels})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "symbol": "BTCUSDT", "levels": levels, "persisted": True}

        data = client.get("/api/support-resistance").json()
        assert data["source"] == "redis-cache"
        assert data["levels"] == levels
        assert data["synthetic"] is False

    def test_post_rejects_non_list(self):
        _configure()
        resp = client.post("/api/support-resistance", json={"levels": "support at 60k"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid levels data"}


# ── News ─────────────────────────────────────────────────────────────────


class TestNewsEndpoints:
    def test_all_sources_down(self):
        _configure()
        resp = client.get("/api/crypto-news")
        assert resp.status_code == 500
        assert resp.json()["error"] == "Failed to fetch news data"

    def test_articles_normalised(self):
        items = [{"title": f"Bitcoin rally {i}", "news_site": "CoinDesk"} for i in range(5)]
        coingecko = _make_client_mock(fetch_news=AsyncMock(return_value=items))
        _configure(_make_service(coingecko=coingecko))

        raw = client.get("/api/crypto-news").json()
        assert raw == {"source": "coingecko", "data": items}

        data = client.get("/api/news/articles", params={"limit": 2}).json()
        assert data["total"] == 2
        assert data["articles"][0]["category"] == "bullish"
        assert data["articles"][0]["slug"] == "bitcoin-rally-0"


# ── Cron ─────────────────────────────────────────────────────────────────


class TestCronEndpoint:
    def test_rejects_missing_token(self):
        _configure(cron_secret="s3cret")
        resp = client.get("/api/cron")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    def test_rejects_wrong_token(self):
        _configure(cron_secret="s3cret")
        resp = client.get("/api/cron", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_runs_refresh_with_token(self):
        _configure(cron_secret="s3cret")
        resp = client.get("/api/cron", headers={"Authorization": "Bearer s3cret"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["message"] == "Data updated successfully"
        assert data["symbol"] == "BTCUSDT"
        # Every upstream is down, so nothing real was refreshed
        assert data["refreshed"] == []
        assert "ticker" in data["errors"]

    def test_open_without_secret(self):
        _configure()
        assert client.get("/api/cron").status_code == 200

    def test_refresh_failure(self):
        refresher = MagicMock()
        refresher.refresh_all = AsyncMock(side_effect=RuntimeError("boom"))
        configure_routers(config=_make_config(), service=_make_service(), refresher=refresher)
        resp = client.get("/api/cron")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to update data"}


# ── Signals ──────────────────────────────────────────────────────────────


class TestSignalEndpoints:
    def test_intraday(self):
        _configure()
        data = client.get("/api/signals/intraday").json()
        assert data["symbol"] == "BTCUSDT"
        assert data["synthetic"] is True
        assert isinstance(data["signals"], list)
        assert set(data["sources"]) == {"ticker", "levels", "5m", "30m", "4h"}

    def test_technical(self):
        _configure()
        data = client.get("/api/signals/technical", params={"interval": "4h"}).json()
        assert data["interval"] == "4h"
        assert data["source"] == "synthetic"
        assert len(data["entryPoints"]) == len(data["signals"])

    def test_technical_bad_interval(self):
        _configure()
        assert client.get("/api/signals/technical", params={"interval": "2y"}).status_code == 400


# ── Calculator ───────────────────────────────────────────────────────────


class TestCalculatorEndpoint:
    def test_prices_with_default_fee(self):
        _configure()
        resp = client.post(
            "/api/calculator/position",
            json={"entryPrice": 50000, "stopLossPrice": 49000, "takeProfitPrice": 52000, "capital": 1000},
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "positionType": "long",
            "positionSize": 1000.0,
            "marginRequired": 1000.0,
            "totalFees": 1.6,
            "potentialProfit": 38.4,
            "potentialLoss": 21.6,
            "riskRewardRatio": 1.78,
        }

    def test_percent_levels_short(self):
        _configure()
        resp = client.post(
            "/api/calculator/position",
            json={
                "entryPrice": 50000,
                "capital": 1000,
                "stopLossPercent": 2,
                "takeProfitPercent": 4,
                "direction": "short",
                "tradingFee": 0,
            },
        )
        data = resp.json()
        assert data["positionType"] == "short"
        assert data["potentialProfit"] == 40.0
        assert data["riskRewardRatio"] == 2.0

    def test_missing_and_malformed_fields(self):
        _configure()
        resp = client.post("/api/calculator/position", json={"capital": "lots"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["status"] == "error"
        assert "entryPrice is required" in body["errors"]
        assert "capital must be a number" in body["errors"]

    def test_non_finite_numbers_rejected(self):
        _configure()
        levels = {"stopLossPrice": 49000, "takeProfitPrice": 52000}
        resp = client.post("/api/calculator/position", json={"entryPrice": "nan", "capital": 1000, **levels})
        assert resp.status_code == 400
        assert resp.json()["errors"] == ["entryPrice must be a number"]

        resp = client.post("/api/calculator/position", json={"entryPrice": 50000, "capital": "inf", **levels})
        assert resp.status_code == 400
        assert resp.json()["errors"] == ["capital must be a number"]

    def test_missing_levels(self):
        _configure()
        resp = client.post("/api/calculator/position", json={"entryPrice": 100, "capital": 10})
        assert resp.status_code == 400
        assert "stopLossPercent" in resp.json()["errors"][0]

    def test_bad_direction(self):
        _configure()
        resp = client.post(
            "/api/calculator/position",
            json={"entryPrice": 100, "capital": 10, "stopLossPercent": 1, "takeProfitPercent": 2, "direction": "up"},
        )
        assert resp.status_code == 400
        assert "direction" in resp.json()["errors"][0]

    def test_invalid_values(self):
        _configure()
        resp = client.post(
            "/api/calculator/position",
            json={"entryPrice": 100, "capital": 10, "stopLossPrice": 90, "takeProfitPrice": 120, "leverage": 0},
        )
        assert resp.status_code == 400
        assert "leverage" in resp.json()["errors"][0]


# ── Statistics ───────────────────────────────────────────────────────────


class TestStatisticsEndpoints:
    def test_cme_gaps(self):
        _configure()
        data = client.get("/api/statistics/cme-gaps", params={"months": 2}).json()
        assert data["synthetic"] is True
        assert isinstance(data["gaps"], list)

    def test_cme_gaps_months_bounds(self):
        _configure()
        assert client.get("/api/statistics/cme-gaps", params={"months": 0}).status_code == 422
        assert client.get("/api/statistics/cme-gaps", params={"months": 34}).status_code == 422

    def test_sunday_monday(self):
        _configure()
        data = client.get("/api/statistics/sunday-monday", params={"weeks": 4}).json()
        assert len(data["rows"]) <= 4
        assert data["summary"]["totalWeeks"] == len(data["rows"])
        assert data["synthetic"] is True

    def test_volatility(self):
        _configure()
        data = client.get("/api/statistics/volatility", params={"days": 7}).json()
        assert len(data["sunday"]) == len(data["monday"]) == len(data["weekday"]) == 24
        assert data["synthetic"] is True

    def test_volatility_bad_interval(self):
        _configure()
        assert client.get("/api/statistics/volatility", params={"interval": "3q"}).status_code == 400

    def test_backtest(self):
        _configure()
        data = client.get("/api/statistics/backtest", params={"symbol": "eth"}).json()
        assert data["synthetic"] is True
        assert data["report"]["symbol"] == "ETHUSDT"
        assert len(data["comparison"]) == 5

    def test_timeframes(self):
        _configure()
        data = client.get("/api/statistics/timeframes").json()
        assert len(data["timeframeData"]) == 6
        assert data["synthetic"] is True


# ── Market overview ──────────────────────────────────────────────────────


class TestMarketEndpoints:
    def test_fear_greed_fallback(self):
        _configure()
        data = client.get("/api/market/fear-greed").json()
        assert data["value"] == 45
        assert data["source"] == "fallback"
        assert data["synthetic"] is True

    def test_dominance_from_coingecko(self):
        coingecko = _make_client_mock(fetch_btc_dominance=AsyncMock(return_value=54.0))
        _configure(_make_service(coingecko=coingecko))
        data = client.get("/api/market/dominance").json()
        assert data["status"] == "Moderate"
        assert data["source"] == "coingecko"

    def test_condition(self):
        _configure()
        data = client.get("/api/market/condition").json()
        assert data["trend"] in ("bullish", "bearish", "neutral")
        assert data["synthetic"] is True

    def test_perpetuals(self):
        _configure()
        data = client.get("/api/market/perpetuals", params={"limit": 3}).json()
        assert len(data["perpetuals"]) == 3
        assert data["source"] == "fallback"

    def test_feed_status(self):
        _configure()
        data = client.get("/api/market/feed-status").json()
        assert data["status"] == "disconnected"
        assert data["cache"] == "memory"
        assert data["stream"] == {"enabled": False, "connected": False}


class TestStreamEndpoint:
    def test_disabled(self):
        _configure()
        assert client.get("/api/stream").json() == {"enabled": False, "connected": False, "update": None}

    def test_latest_update(self):
        stream = MagicMock()
        stream.connected = True
        _configure(stream=stream)
        ticker = Ticker("BTCUSDT", 65001.0, 0.1, 1.0, 65100.0, 64900.0, "binance-ws")
        update_stream_state(StreamUpdate("ticker", ticker))

        data = client.get("/api/stream").json()
        assert data["enabled"] is True
        assert data["connected"] is True
        assert data["update"]["kind"] == "ticker"
        assert data["update"]["data"]["price"] == 65001.0
        assert data["update"]["synthetic"] is False
