"""Tests for the upstream market-data clients with mocked HTTP responses."""

import httpx
import pytest

from app.market.binance_client import BinanceClient
from app.market.coingecko_client import CoinGeckoClient
from app.market.cryptocompare_client import CryptoCompareClient, histo_request
from app.market.http_client import get_json
from app.market.sentiment_client import (
    SentimentClient,
    classify_fear_greed,
    index_from_volatility,
)

SPOT = "https://api.binance.com/api/v3"
FUTURES = "https://fapi.binance.com/fapi/v1"
CC = "https://min-api.cryptocompare.com/data"
CG = "https://api.coingecko.com/api/v3"


def _install_routes(monkeypatch, routes: dict, calls: list | None = None):
    """Patch ``httpx.AsyncClient.get`` to answer from *routes* keyed by exact URL.

    A route value may be a JSON payload, an ``int`` status code, or an
    exception instance to raise.  Unknown URLs answer 404.
    """

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        if calls is not None:
            calls.append({"url": url, "params": params, "timeout": timeout, "headers": headers})
        request = httpx.Request("GET", url)
        answer = routes.get(url, 404)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, int):
            return httpx.Response(answer, json={"error": "nope"}, request=request)
        return httpx.Response(200, json=answer, request=request)

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)


# ── Mock payloads ────────────────────────────────────────────────────────

MOCK_KLINES = [
    [1700000000000, "37000.0", "37200.0", "36900.0", "37100.0", "123.4", 1700001799999],
    [1700001800000, "37100.0", "37300.0", "37050.0", "37250.0", "98.1", 1700003599999],
]

MOCK_24HR = {
    "priceChangePercent": "2.5",
    "volume": "15000.0",
    "highPrice": "38000.0",
    "lowPrice": "36000.0",
}

MOCK_FUTURES_24HR = [
    {"symbol": "BTCUSDT", "lastPrice": "37000", "priceChangePercent": "1.0", "volume": "100", "quoteVolume": "3700000"},
    {"symbol": "USDCUSDT", "lastPrice": "1", "priceChangePercent": "0", "volume": "9e9", "quoteVolume": "9e9"},
    {"symbol": "ETHUSDT", "lastPrice": "2000", "priceChangePercent": "-1.0", "volume": "1000", "quoteVolume": "2000000"},
    {"symbol": "ETHBTC", "lastPrice": "0.05", "priceChangePercent": "0", "volume": "1", "quoteVolume": "9e12"},
    {"symbol": "SOLUSDT", "lastPrice": "60", "priceChangePercent": "3.0", "volume": "100000", "quoteVolume": "6000000"},
]

MOCK_PRICEMULTIFULL = {
    "RAW": {
        "BTC": {
            "USD": {
                "PRICE": 37123.5,
                "CHANGEPCT24HOUR": -1.25,
                "VOLUME24HOUR": 25000.0,
                "HIGH24HOUR": 37800.0,
                "LOW24HOUR": 36500.0,
            }
        }
    }
}


def _histo_rows(n: int) -> list[dict]:
    return [
        {
            "time": 1700000000 + i * 3600,
            "open": 100.0 + i,
            "high": 101.0 + i,
            "low": 99.0 + i,
            "close": 100.5 + i,
            "volumefrom": 10.0 + i,
            "volumeto": 1000.0,
        }
        for i in range(n)
    ]


# ── http_client ──────────────────────────────────────────────────────────


class TestGetJson:
    @pytest.mark.asyncio
    async def test_returns_decoded_json(self, monkeypatch):
        calls: list = []
        _install_routes(monkeypatch, {"https://x.test/a": {"ok": True}}, calls)
        assert await get_json("https://x.test/a", params={"q": 1}, timeout=2.0) == {"ok": True}
        assert calls[0]["params"] == {"q": 1}
        assert calls[0]["timeout"] == 2.0
        assert calls[0]["headers"]["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_raises_on_error_status(self, monkeypatch):
        _install_routes(monkeypatch, {"https://x.test/a": 503})
        with pytest.raises(httpx.HTTPStatusError):
            await get_json("https://x.test/a")


# ── Binance ──────────────────────────────────────────────────────────────


class TestBinanceClient:
    @pytest.mark.asyncio
    async def test_fetch_candles_parses_rows(self, monkeypatch):
        _install_routes(monkeypatch, {f"{SPOT}/klines": MOCK_KLINES})
        candles = await BinanceClient().fetch_candles("BTCUSDT", "30m", 2)
        assert len(candles) == 2
        assert candles[0].time == 1700000000
        assert candles[0].open == 37000.0
        assert candles[1].close == 37250.0
        assert candles[1].volume == 98.1

    @pytest.mark.asyncio
    async def test_fetch_candles_sends_range_in_ms(self, monkeypatch):
        calls: list = []
        _install_routes(monkeypatch, {f"{SPOT}/klines": MOCK_KLINES}, calls)
        await BinanceClient().fetch_candles("BTCUSDT", "30m", 2, start_time=1700000000, end_time=1700003600)
        params = calls[0]["params"]
        assert params["startTime"] == 1700000000000
        assert params["endTime"] == 1700003600000
        assert params["symbol"] == "BTCUSDT"

    @pytest.mark.asyncio
    async def test_fetch_candles_rejects_non_list(self, monkeypatch):
        _install_routes(monkeypatch, {f"{SPOT}/klines": {"code": -1121}})
        with pytest.raises(ValueError):
            await BinanceClient().fetch_candles("BTCUSDT", "30m", 2)

    @pytest.mark.asyncio
    async def test_fetch_ticker_combined(self, monkeypatch):
        _install_routes(
            monkeypatch,
            {f"{SPOT}/ticker/price": {"price": "37000.5"}, f"{SPOT}/ticker/24hr": MOCK_24HR},
        )
        ticker = await BinanceClient().fetch_ticker("BTCUSDT")
        assert ticker.price == 37000.5
        assert ticker.price_change_percent == 2.5
        assert ticker.high == 38000.0
        assert ticker.source == "binance-combined"

    @pytest.mark.asyncio
    async def test_fetch_ticker_price_only_when_stats_fail(self, monkeypatch):
        _install_routes(
            monkeypatch,
            {f"{SPOT}/ticker/price": {"price": "37000.5"}, f"{SPOT}/ticker/24hr": 500},
        )
        ticker = await BinanceClient().fetch_ticker("BTCUSDT")
        assert ticker.source == "binance-price"
        assert ticker.high == ticker.low == 37000.5

    @pytest.mark.asyncio
    async def test_fetch_ticker_raises_when_price_fails(self, monkeypatch):
        _install_routes(monkeypatch, {f"{SPOT}/ticker/price": httpx.ConnectError("down")})
        with pytest.raises(httpx.ConnectError):
            await BinanceClient().fetch_ticker("BTCUSDT")

    @pytest.mark.asyncio
    async def test_top_perpetuals_sorted_and_filtered(self, monkeypatch):
        _install_routes(monkeypatch, {f"{FUTURES}/ticker/24hr": MOCK_FUTURES_24HR})
        rows = await BinanceClient().fetch_top_perpetuals(limit=2)
        assert [r["symbol"] for r in rows] == ["SOL", "BTC"]
        assert rows[0]["quoteVolume"] == 6000000.0

    @pytest.mark.asyncio
    async def test_ping_returns_latency(self, monkeypatch):
        _install_routes(monkeypatch, {f"{FUTURES}/ping": {}})
        latency = await BinanceClient().ping()
        assert latency >= 0


# ── CryptoCompare ────────────────────────────────────────────────────────


class TestCryptoCompareClient:
    def test_histo_request_mapping(self):
        assert histo_request("1h", 100) == ("hour", 100, 1)
        assert histo_request("4h", 100) == ("hour", 400, 4)
        assert histo_request("1d", 30) == ("day", 30, 1)
        assert histo_request("4h", 1000) == ("hour", 2000, 4)
        assert histo_request("weird", 10) == ("hour", 10, 1)

    @pytest.mark.asyncio
    async def test_fetch_ticker(self, monkeypatch):
        _install_routes(monkeypatch, {f"{CC}/pricemultifull": MOCK_PRICEMULTIFULL})
        ticker = await CryptoCompareClient().fetch_ticker("BTCUSDT")
        assert ticker is not None
        assert ticker.symbol == "BTCUSDT"
        assert ticker.price == 37123.5
        assert ticker.price_change_percent == -1.25
        assert ticker.source == "cryptocompare"

    @pytest.mark.asyncio
    async def test_fetch_ticker_missing_coin(self, monkeypatch):
        _install_routes(monkeypatch, {f"{CC}/pricemultifull": {"RAW": {}}})
        assert await CryptoCompareClient().fetch_ticker("XYZUSDT") is None

    @pytest.mark.asyncio
    async def test_fetch_candles_trims_to_limit(self, monkeypatch):
        _install_routes(monkeypatch, {f"{CC}/v2/histohour": {"Data": {"Data": _histo_rows(12)}}})
        candles = await CryptoCompareClient().fetch_candles("BTCUSDT", "1h", 5)
        assert len(candles) == 5
        assert candles[-1].time == 1700000000 + 11 * 3600
        assert candles[-1].volume == 21.0

    @pytest.mark.asyncio
    async def test_fetch_candles_bad_payload_is_empty(self, monkeypatch):
        _install_routes(monkeypatch, {f"{CC}/v2/histoday": {"Response": "Error", "Data": {}}})
        assert await CryptoCompareClient().fetch_candles("BTCUSDT", "1d", 5) == []

    @pytest.mark.asyncio
    async def test_fetch_news(self, monkeypatch):
        items = [{"id": "1", "title": "Bitcoin rally"}]
        _install_routes(monkeypatch, {f"{CC}/v2/news/": {"Data": items}})
        assert await CryptoCompareClient().fetch_news() == items

    @pytest.mark.asyncio
    async def test_fetch_news_rejects_bad_payload(self, monkeypatch):
        _install_routes(monkeypatch, {f"{CC}/v2/news/": {"Data": "rate limited"}})
        with pytest.raises(ValueError):
            await CryptoCompareClient().fetch_news()


# ── CoinGecko ────────────────────────────────────────────────────────────


class TestCoinGeckoClient:
    @pytest.mark.asyncio
    async def test_fetch_ticker(self, monkeypatch):
        market = [{
            "current_price": 36900.0,
            "price_change_percentage_24h": 0.8,
            "total_volume": 1.5e10,
            "high_24h": 37100.0,
            "low_24h": 36200.0,
        }]
        _install_routes(monkeypatch, {f"{CG}/coins/markets": market})
        ticker = await CoinGeckoClient().fetch_ticker("BTCUSDT")
        assert ticker.price == 36900.0
        assert ticker.low == 36200.0
        assert ticker.source == "coingecko"

    @pytest.mark.asyncio
    async def test_fetch_ticker_unknown_coin_skips_network(self, monkeypatch):
        calls: list = []
        _install_routes(monkeypatch, {}, calls)
        assert await CoinGeckoClient().fetch_ticker("DOGEUSDT") is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_btc_dominance(self, monkeypatch):
        _install_routes(monkeypatch, {f"{CG}/global": {"data": {"market_cap_percentage": {"btc": 52.31}}}})
        assert await CoinGeckoClient().fetch_btc_dominance() == 52.31

    @pytest.mark.asyncio
    async def test_news_accepts_wrapped_list(self, monkeypatch):
        _install_routes(monkeypatch, {f"{CG}/news": {"data": [{"title": "a"}]}})
        assert await CoinGeckoClient().fetch_news() == [{"title": "a"}]


# ── Sentiment ────────────────────────────────────────────────────────────


class TestSentiment:
    @pytest.mark.parametrize(
        "value,label",
        [(10, "Extreme Fear"), (25, "Extreme Fear"), (30, "Fear"), (50, "Neutral"), (70, "Greed"), (90, "Extreme Greed")],
    )
    def test_classify_fear_greed(self, value, label):
        assert classify_fear_greed(value) == label

    def test_index_from_volatility_clamped(self):
        assert index_from_volatility(3.0) == 70
        assert index_from_volatility(0.0) == 99
        assert index_from_volatility(50.0) == 1

    @pytest.mark.asyncio
    async def test_fetch_fear_greed(self, monkeypatch):
        payload = {"data": [
            {"value": "62", "value_classification": "Greed"},
            {"value": "55", "value_classification": "Neutral"},
        ]}
        _install_routes(monkeypatch, {"https://api.alternative.me/fng/": payload})
        result = await SentimentClient().fetch_fear_greed()
        assert result == {
            "value": 62,
            "classification": "Greed",
            "previousValue": 55,
            "previousClassification": "Neutral",
        }

    @pytest.mark.asyncio
    async def test_fetch_fear_greed_empty_raises(self, monkeypatch):
        _install_routes(monkeypatch, {"https://api.alternative.me/fng/": {"data": []}})
        with pytest.raises(ValueError):
            await SentimentClient().fetch_fear_greed()

    @pytest.mark.asyncio
    async def test_fear_greed_from_volatility(self, monkeypatch):
        _install_routes(monkeypatch, {"https://api.coinpaprika.com/v1/global": {"volatility_24h": 4.0}})
        result = await SentimentClient().fetch_fear_greed_from_volatility()
        assert result["value"] == 60
        assert result["classification"] == "Neutral"
        assert result["previousValue"] == 58

    @pytest.mark.asyncio
    async def test_btc_dominance(self, monkeypatch):
        _install_routes(
            monkeypatch,
            {"https://api.coinpaprika.com/v1/global": {"bitcoin_dominance_percentage": 54.2}},
        )
        assert await SentimentClient().fetch_btc_dominance() == 54.2
