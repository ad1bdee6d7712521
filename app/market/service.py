"""Market data service — provider chains plus the derived metrics built on them.

Routes, the refresher and the CLI all go through ``MarketDataService``.
Every public method returns a ``FetchResult`` so callers can tell real data
from synthetic data.  Only news can fail outright (``NoDataError``).
"""

import asyncio
import logging
import random
from dataclasses import replace
from typing import Optional

from app.market import synthetic
from app.market.binance_client import BinanceClient
from app.market.coingecko_client import CoinGeckoClient
from app.market.cryptocompare_client import CryptoCompareClient
from app.market.models import Candle, FetchResult, Ticker, interval_seconds, normalize_symbol
from app.market.providers import CandleQuery, Provider, ProviderChain
from app.market.sentiment_client import SentimentClient
from app.repos.market_cache import MarketCache
from app.statistics.cme_gaps import MIN_CANDLES as CME_MIN_CANDLES
from app.statistics.cme_gaps import CMEGap, detect_cme_gaps, sample_gaps
from app.strategy.intraday_signals import generate_intraday_signals
from app.strategy.market_condition import MarketCondition, analyze_market_condition
from app.strategy.models import DEFAULT_SR_LEVELS, SRZone, zone_from_dict
from app.strategy.sr_zones import find_support_resistance_zones

logger = logging.getLogger("btcdash.market")

CACHE_SOURCE = "redis-cache"
SR_REFRESH_KIND = "sr_levels"
SR_MAX_AGE = 86400
SR_LOOKBACK_DAYS = 90
MAX_CANDLES = 1000

INTRADAY_CANDLES: dict[str, int] = {"5m": 100, "30m": 100, "4h": 50}


def dominance_status(value: float) -> str:
    if value > 60:
        return "Very High"
    if value > 55:
        return "High"
    if value > 50:
        return "Moderate"
    return "Low"


def _dominance_payload(value: float) -> dict:
    previous = value - 0.2
    return {
        "value": round(value, 2),
        "previousValue": round(previous, 2),
        "change": round(value - previous, 2),
        "status": dominance_status(value),
    }


class MarketDataService:
    """Façade over the upstream clients, the cache and the pure analytics.

    Args:
        cache: ``MarketCache`` used for cache-aside reads and write-back.
        binance, cryptocompare, coingecko, sentiment: Upstream clients;
            defaults hit the public APIs.
        rng: Random source for synthetic candles.
    """

    def __init__(
        self,
        cache: MarketCache,
        binance: Optional[BinanceClient] = None,
        cryptocompare: Optional[CryptoCompareClient] = None,
        coingecko: Optional[CoinGeckoClient] = None,
        sentiment: Optional[SentimentClient] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.cache = cache
        self._binance = binance or BinanceClient()
        self._cryptocompare = cryptocompare or CryptoCompareClient()
        self._coingecko = coingecko or CoinGeckoClient()
        self._sentiment = sentiment or SentimentClient()
        self._rng = rng or random.Random()

        self.candle_chain: ProviderChain[CandleQuery, list[Candle]] = ProviderChain(
            "candles",
            [
                Provider(CACHE_SOURCE, self._cached_candles),
                Provider("binance", self._binance_candles),
                Provider("cryptocompare", self._cryptocompare_candles),
                Provider("synthetic", self._synthetic_candles, synthetic=True),
            ],
        )
        self.ticker_chain: ProviderChain[str, Ticker] = ProviderChain(
            "ticker",
            [
                Provider(CACHE_SOURCE, self._cached_ticker),
                Provider("cryptocompare", self._cryptocompare.fetch_ticker),
                Provider("coingecko", self._coingecko.fetch_ticker),
                Provider("binance", self._binance.fetch_ticker),
                Provider("hardcoded", self._hardcoded_ticker, synthetic=True),
                Provider("fallback", self._fallback_ticker, synthetic=True),
            ],
        )
        self._live_candle_chain: ProviderChain[CandleQuery, list[Candle]] = ProviderChain(
            "candles", self.candle_chain.providers[1:]
        )
        self._live_ticker_chain: ProviderChain[str, Ticker] = ProviderChain(
            "ticker", self.ticker_chain.providers[1:]
        )
        self.levels_chain: ProviderChain[str, list[dict]] = ProviderChain(
            "support-resistance",
            [
                Provider(CACHE_SOURCE, self._cached_levels),
                Provider("volume-profile", self._computed_levels),
                Provider("default", self._default_levels, synthetic=True),
            ],
        )
        self._live_levels_chain: ProviderChain[str, list[dict]] = ProviderChain(
            "support-resistance", self.levels_chain.providers[1:]
        )
        self.news_chain: ProviderChain[None, list[dict]] = ProviderChain(
            "news",
            [
                Provider("cryptocompare", lambda _: self._cryptocompare.fetch_news()),
                Provider("coingecko", lambda _: self._coingecko.fetch_news()),
            ],
        )
        self.fear_greed_chain: ProviderChain[None, dict] = ProviderChain(
            "fear-greed",
            [
                Provider("alternative.me", lambda _: self._sentiment.fetch_fear_greed()),
                Provider("coinpaprika", lambda _: self._sentiment.fetch_fear_greed_from_volatility()),
                Provider("fallback", self._fallback_fear_greed, synthetic=True),
            ],
        )
        self.dominance_chain: ProviderChain[None, dict] = ProviderChain(
            "btc-dominance",
            [
                Provider("coingecko", self._coingecko_dominance),
                Provider("coinpaprika", self._coinpaprika_dominance),
                Provider("fallback", self._fallback_dominance, synthetic=True),
            ],
        )

    # ── Provider adapters ────────────────────────────────────────────────

    async def _cached_candles(self, query: CandleQuery) -> Optional[list[Candle]]:
        if query.has_range:
            return None
        return await self.cache.get_candles(query.symbol, query.interval, query.limit)

    async def _binance_candles(self, query: CandleQuery) -> list[Candle]:
        return await self._binance.fetch_candles(
            query.symbol, query.interval, query.limit, query.start_time, query.end_time
        )

    async def _cryptocompare_candles(self, query: CandleQuery) -> Optional[list[Candle]]:
        # histo endpoints only page backwards from "now"
        if query.has_range:
            return None
        return await self._cryptocompare.fetch_candles(query.symbol, query.interval, query.limit)

    async def _synthetic_candles(self, query: CandleQuery) -> list[Candle]:
        return synthetic.generate_candles(
            query.symbol, query.interval, query.limit, query.end_time, rng=self._rng
        )

    async def _cached_ticker(self, symbol: str) -> Optional[Ticker]:
        ticker = await self.cache.get_ticker(symbol)
        return replace(ticker, source=CACHE_SOURCE) if ticker else None

    async def _hardcoded_ticker(self, symbol: str) -> Optional[Ticker]:
        return synthetic.hardcoded_ticker(symbol)

    async def _fallback_ticker(self, symbol: str) -> Ticker:
        return synthetic.fallback_ticker(symbol)

    async def _cached_levels(self, symbol: str) -> Optional[list[dict]]:
        if await self.cache.needs_refresh(SR_REFRESH_KIND, SR_MAX_AGE, {"symbol": symbol}):
            return None
        return await self.cache.get_levels(symbol)

    async def _computed_levels(self, symbol: str) -> Optional[list[dict]]:
        daily = await self.get_candles(symbol, "1d", SR_LOOKBACK_DAYS)
        if daily.synthetic or not daily.data:
            return None
        zones = find_support_resistance_zones(daily.data, daily.data[-1].close)
        return [z.to_dict() for z in zones]

    async def _default_levels(self, symbol: str) -> list[dict]:
        return [dict(level) for level in DEFAULT_SR_LEVELS]

    async def _fallback_perpetuals(self, limit: int) -> list[dict]:
        return [dict(p) for p in synthetic.FALLBACK_PERPETUALS[:limit]]

    async def _fallback_fear_greed(self, _) -> dict:
        return dict(synthetic.FALLBACK_FEAR_GREED)

    async def _coingecko_dominance(self, _) -> dict:
        return _dominance_payload(await self._coingecko.fetch_btc_dominance())

    async def _coinpaprika_dominance(self, _) -> dict:
        return _dominance_payload(await self._sentiment.fetch_btc_dominance())

    async def _fallback_dominance(self, _) -> dict:
        value, previous = synthetic.FALLBACK_BTC_DOMINANCE
        return {
            "value": value,
            "previousValue": previous,
            "change": round(value - previous, 2),
            "status": dominance_status(value),
        }

    # ── Core lookups ─────────────────────────────────────────────────────

    async def get_ticker(self, symbol: str, fresh: bool = False) -> FetchResult[Ticker]:
        """Ticker through cache → CryptoCompare → CoinGecko → Binance → constants.

        ``fresh`` skips the cache lookup.
        """
        pair = normalize_symbol(symbol)
        chain = self._live_ticker_chain if fresh else self.ticker_chain
        result = await chain.fetch(pair)
        if result.is_real and result.source != CACHE_SOURCE:
            await self.cache.set_ticker(pair, result.data)
        return result

    async def get_candles(
        self,
        symbol: str,
        interval: str,
        limit: int,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        fresh: bool = False,
    ) -> FetchResult[list[Candle]]:
        """Candles through cache → Binance → CryptoCompare → random walk.

        Real upstream answers for un-ranged queries are written to the cache.
        ``fresh`` skips the cache lookup.
        """
        query = CandleQuery(
            symbol=normalize_symbol(symbol),
            interval=interval,
            limit=limit,
            start_time=start_time,
            end_time=end_time,
        )
        chain = self._live_candle_chain if fresh else self.candle_chain
        result = await chain.fetch(query)
        if result.is_real and result.source != CACHE_SOURCE and not query.has_range:
            await self.cache.set_candles(query.symbol, interval, limit, result.data)
        return result

    async def get_candle_set(
        self, symbol: str, limits: dict[str, int]
    ) -> dict[str, FetchResult[list[Candle]]]:
        """Fetch several intervals concurrently; a failing interval is dropped."""
        intervals = list(limits)
        results = await asyncio.gather(
            *(self.get_candles(symbol, iv, limits[iv]) for iv in intervals),
            return_exceptions=True,
        )
        out: dict[str, FetchResult[list[Candle]]] = {}
        for interval, result in zip(intervals, results):
            if isinstance(result, BaseException):
                logger.warning("Candles %s %s failed: %s", symbol, interval, result)
                continue
            out[interval] = result
        return out

    # ── Support / resistance ─────────────────────────────────────────────

    async def get_support_resistance(
        self, symbol: str, fresh: bool = False
    ) -> FetchResult[list[dict]]:
        """Levels from cache while fresh, else recomputed, else the defaults.

        Freshly computed levels are cached and the refresh is recorded.
        ``fresh`` forces a recompute.
        """
        pair = normalize_symbol(symbol)
        chain = self._live_levels_chain if fresh else self.levels_chain
        result = await chain.fetch(pair)
        if result.source == "volume-profile":
            await self.cache.set_levels(pair, result.data)
            await self.cache.mark_refreshed(SR_REFRESH_KIND, {"symbol": pair})
        return result

    async def save_support_resistance(self, symbol: str, levels: list) -> bool:
        """Store user-supplied levels and mark them fresh."""
        pair = normalize_symbol(symbol)
        stored = await self.cache.set_levels(pair, levels)
        if stored:
            await self.cache.mark_refreshed(SR_REFRESH_KIND, {"symbol": pair})
        return stored

    async def get_zones(self, symbol: str) -> FetchResult[list[SRZone]]:
        """Support/resistance levels parsed into ``SRZone`` objects."""
        levels = await self.get_support_resistance(symbol)
        zones = [z for z in (zone_from_dict(level) for level in levels.data if isinstance(level, dict)) if z]
        return FetchResult(data=zones, source=levels.source, synthetic=levels.synthetic)

    # ── Derived metrics ──────────────────────────────────────────────────

    async def get_intraday_signals(self, symbol: str) -> dict:
        """Zone-aware 5m/30m/4h signals with the provenance of every input."""
        ticker, zones, candles = await asyncio.gather(
            self.get_ticker(symbol),
            self.get_zones(symbol),
            self.get_candle_set(symbol, INTRADAY_CANDLES),
        )
        signals = generate_intraday_signals(
            {tf: r.data for tf, r in candles.items()}, zones.data, ticker.data.price
        )
        sources = {
            "ticker": ticker.provenance(),
            "levels": zones.provenance(),
            **{tf: r.provenance() for tf, r in candles.items()},
        }
        return {
            "symbol": normalize_symbol(symbol),
            "price": ticker.data.price,
            "signals": [s.to_dict() for s in signals],
            "sources": sources,
            "synthetic": any(s["synthetic"] for s in sources.values()),
        }

    async def get_market_condition(self, symbol: str) -> FetchResult[MarketCondition]:
        candles = await self.get_candle_set(symbol, {"1h": 24, "30m": 24})
        hourly = candles.get("1h")
        half_hourly = candles.get("30m")
        condition = analyze_market_condition(
            hourly.data if hourly else [], half_hourly.data if half_hourly else []
        )
        synthetic_input = any(r.synthetic for r in candles.values()) or len(candles) < 2
        return FetchResult(
            data=condition,
            source=hourly.source if hourly else "none",
            synthetic=synthetic_input,
        )

    async def get_cme_gaps(self, symbol: str, months: int = 3) -> FetchResult[list[CMEGap]]:
        """Weekend gaps over ``30 × months`` daily candles; samples on thin data."""
        daily = await self.get_candles(symbol, "1d", min(MAX_CANDLES, 30 * months))
        if len(daily.data) < CME_MIN_CANDLES:
            return FetchResult(data=sample_gaps(), source="sample", synthetic=True)
        return FetchResult(
            data=detect_cme_gaps(daily.data), source=daily.source, synthetic=daily.synthetic
        )

    async def get_history(
        self, symbol: str, interval: str, days: int
    ) -> FetchResult[list[Candle]]:
        """Candles covering *days* at *interval*, capped at 1000 bars."""
        minutes = interval_seconds(interval) // 60
        limit = max(1, min(MAX_CANDLES, days * 1440 // minutes))
        return await self.get_candles(symbol, interval, limit)

    # ── Sentiment and market overview ────────────────────────────────────

    async def get_news(self) -> FetchResult[list[dict]]:
        """Raw news items.  Raises ``NoDataError`` when every source failed."""
        return await self.news_chain.fetch(None)

    async def get_fear_greed(self) -> FetchResult[dict]:
        return await self.fear_greed_chain.fetch(None)

    async def get_btc_dominance(self) -> FetchResult[dict]:
        return await self.dominance_chain.fetch(None)

    async def get_top_perpetuals(self, limit: int = 10) -> FetchResult[list[dict]]:
        chain: ProviderChain[int, list[dict]] = ProviderChain(
            "perpetuals",
            [
                Provider("binance-futures", self._binance.fetch_top_perpetuals),
                Provider("fallback", self._fallback_perpetuals, synthetic=True),
            ],
        )
        return await chain.fetch(limit)

    async def get_feed_status(self) -> dict:
        """Reachability of the Binance futures API and the active cache backend."""
        try:
            latency = await self._binance.ping()
        except Exception as exc:
            logger.warning("Binance ping failed: %s", exc)
            return {"status": "disconnected", "latencyMs": None, "cache": self.cache.backend}
        return {"status": "connected", "latencyMs": latency, "cache": self.cache.backend}
