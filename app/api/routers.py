"""Dashboard API routers — market data, signals, calculator, statistics and cron.

No business logic here.  Delegates to the market data service, the pure
analytics modules and shared state injected at startup.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse

from app.backtest.report import build_backtest_report, compare_strategies, timeframe_performance
from app.config import Config, load_config
from app.market.models import INTERVAL_SECONDS, normalize_symbol
from app.market.news import normalize_news
from app.market.providers import NoDataError
from app.market.service import MarketDataService
from app.market.stream import MarketStream, StreamUpdate
from app.refresher import DataRefresher
from app.repos.cache_store import create_store
from app.repos.market_cache import MarketCache
from app.risk.position_calculator import calculate_position, levels_from_percent
from app.statistics.sunday_monday import build_sunday_monday_rows, calculate_sunday_monday_stats
from app.statistics.volatility import hourly_volatility
from app.strategy.models import DEFAULT_SR_LEVELS
from app.strategy.technical_signals import generate_entry_exit_points, generate_trading_signals

logger = logging.getLogger("btcdash")
router = APIRouter()

MAX_KLINE_LIMIT = 1000
DEFAULT_KLINE_LIMIT = 100

# ── Shared state (set during app startup) ────────────────────────────────

_config: Optional[Config] = None  # Set via configure_routers() or loaded lazily
_service: Optional[MarketDataService] = None
_refresher: Optional[DataRefresher] = None
_stream: Optional[MarketStream] = None
_latest_stream_update: Optional[dict] = None  # Updated by the stream callback


def configure_routers(
    config: Optional[Config] = None,
    service: Optional[MarketDataService] = None,
    refresher: Optional[DataRefresher] = None,
    stream: Optional[MarketStream] = None,
) -> None:
    """Inject dependencies from the application startup.

    Anything left as ``None`` is built on first use from ``load_config()``.

    Args:
        config: Loaded ``Config``.
        service: A ``MarketDataService`` (or duck-type for tests).
        refresher: A ``DataRefresher`` used by the cron endpoint.
        stream: The running ``MarketStream``, if streaming is enabled.
    """
    global _config, _service, _refresher, _stream, _latest_stream_update  # noqa: PLW0603
    _config = config
    _service = service
    _refresher = refresher
    _stream = stream
    _latest_stream_update = None


def update_stream_state(update: StreamUpdate) -> None:
    """Stream callback: remember the most recent update for ``/api/stream``."""
    global _latest_stream_update  # noqa: PLW0603
    _latest_stream_update = {
        "kind": update.kind,
        "data": update.data.to_dict(),
        "synthetic": update.synthetic,
        "receivedAt": datetime.now(timezone.utc).isoformat(),
    }


def _get_config() -> Config:
    global _config  # noqa: PLW0603
    if _config is None:
        _config = load_config()
    return _config


def _get_service() -> MarketDataService:
    global _service  # noqa: PLW0603
    if _service is None:
        cache = MarketCache(create_store(_get_config().redis_url))
        _service = MarketDataService(cache)
    return _service


def _get_refresher() -> DataRefresher:
    global _refresher  # noqa: PLW0603
    if _refresher is None:
        _refresher = DataRefresher(_get_service(), _get_config().default_symbol)
    return _refresher


def _error(status_code: int, message: str, /, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _parse_int(raw: Optional[str]) -> Optional[int]:
    """``int(raw)`` or ``None`` when missing; raises ``ValueError`` when malformed."""
    if raw is None or raw == "":
        return None
    return int(raw)


# ── Market data ──────────────────────────────────────────────────────────


@router.get("/api/ticker")
async def get_ticker(symbol: str = Query(default="BTC")):
    """Return the 24h ticker for *symbol* with its provenance."""
    result = await _get_service().get_ticker(symbol)
    return {**result.data.to_dict(), "synthetic": result.synthetic}


@router.get("/api/klines")
async def get_klines(
    symbol: str = Query(default="BTC"),
    interval: str = Query(default="30m"),
    limit: Optional[str] = Query(default=None),
    startTime: Optional[str] = Query(default=None),  # noqa: N803
    endTime: Optional[str] = Query(default=None),  # noqa: N803
):
    """Return a raw candle array.  Provenance travels in response headers."""
    try:
        parsed_limit = _parse_int(limit)
    except ValueError:
        return _error(400, "Invalid limit parameter")
    if parsed_limit is None:
        parsed_limit = DEFAULT_KLINE_LIMIT
    if not 0 < parsed_limit <= MAX_KLINE_LIMIT:
        return _error(400, "Invalid limit parameter")

    try:
        start_ms = _parse_int(startTime)
        end_ms = _parse_int(endTime)
    except ValueError:
        return _error(400, "Invalid time range parameter")

    if interval not in INTERVAL_SECONDS:
        return _error(400, "Invalid interval parameter")

    result = await _get_service().get_candles(
        symbol,
        interval,
        parsed_limit,
        start_time=start_ms // 1000 if start_ms is not None else None,
        end_time=end_ms // 1000 if end_ms is not None else None,
    )
    return JSONResponse(
        content=[c.to_dict() for c in result.data],
        headers={
            "X-Data-Source": result.source,
            "X-Data-Synthetic": "true" if result.synthetic else "false",
        },
    )


@router.get("/api/support-resistance")
async def get_support_resistance(symbol: str = Query(default="BTCUSDT")):
    """Return support/resistance levels; falls back to defaults on any failure."""
    pair = normalize_symbol(symbol)
    try:
        result = await _get_service().get_support_resistance(pair)
    except Exception as exc:
        logger.error("Support/resistance lookup failed for %s: %s", pair, exc)
        return {
            "symbol": pair,
            "levels": [dict(level) for level in DEFAULT_SR_LEVELS],
            "source": "default",
            "synthetic": True,
        }
    return {"symbol": pair, "levels": result.data, "source": result.source, "synthetic": result.synthetic}


@router.post("/api/support-resistance")
async def post_support_resistance(body: dict):
    """Store user-supplied levels for a symbol.

    Expects ``{"symbol": "BTCUSDT", "levels": [...]}``.
    """
    levels = body.get("levels")
    if not isinstance(levels, list):
        return _error(400, "Invalid levels data")
    pair = normalize_symbol(str(body.get("symbol") or _get_config().default_symbol))
    stored = await _get_service().save_support_resistance(pair, levels)
    if not stored:
        logger.warning("Levels for %s were not persisted", pair)
    return {"success": True, "symbol": pair, "levels": levels, "persisted": stored}


# ── News ─────────────────────────────────────────────────────────────────


@router.get("/api/crypto-news")
async def get_crypto_news():
    """Proxy raw news items from the first provider that answers."""
    try:
        result = await _get_service().get_news()
    except NoDataError as exc:
        logger.error("News fetch failed: %s", exc)
        return _error(500, "Failed to fetch news data", message=str(exc))
    return {"source": result.source, "data": result.data}


@router.get("/api/news/articles")
async def get_news_articles(limit: int = Query(default=20, ge=1, le=100)):
    """Normalised articles with sentiment category, tags and slug."""
    try:
        result = await _get_service().get_news()
    except NoDataError as exc:
        logger.error("News fetch failed: %s", exc)
        return _error(500, "Failed to fetch news data", message=str(exc))
    articles = normalize_news(result.source, result.data)[:limit]
    return {"source": result.source, "articles": articles, "total": len(articles)}


# ── Cron ─────────────────────────────────────────────────────────────────


@router.get("/api/cron")
async def run_cron(authorization: Optional[str] = Header(default=None)):
    """Run one refresh pass.  Bearer-gated when ``CRON_SECRET`` is set."""
    secret = _get_config().cron_secret
    if secret and authorization != f"Bearer {secret}":
        logger.warning("Rejected cron call with bad credentials")
        return _error(401, "Unauthorized")
    try:
        summary = await _get_refresher().refresh_all()
    except Exception as exc:
        logger.error("Cron refresh failed: %s", exc)
        return _error(500, "Failed to update data")
    return {"success": True, "message": "Data updated successfully", **summary}


# ── Signals ──────────────────────────────────────────────────────────────


@router.get("/api/signals/intraday")
async def get_intraday_signals(symbol: str = Query(default="BTCUSDT")):
    """5m / 30m / 4h signals aware of support/resistance zones."""
    return await _get_service().get_intraday_signals(symbol)


@router.get("/api/signals/technical")
async def get_technical_signals(
    symbol: str = Query(default="BTCUSDT"),
    interval: str = Query(default="30m"),
):
    """Indicator signals on the latest candle plus derived entry points."""
    if interval not in INTERVAL_SECONDS:
        return _error(400, "Invalid interval parameter")
    result = await _get_service().get_candles(symbol, interval, 100)
    signals = generate_trading_signals(result.data, interval)
    entries = generate_entry_exit_points(signals)
    return {
        "symbol": normalize_symbol(symbol),
        "interval": interval,
        "signals": [s.to_dict() for s in signals],
        "entryPoints": [e.to_dict() for e in entries],
        "source": result.source,
        "synthetic": result.synthetic,
    }


# ── Calculator ───────────────────────────────────────────────────────────


@router.post("/api/calculator/position")
async def post_position(body: dict):
    """Size a position and report profit, loss and risk/reward.

    Stop and target come either as prices (``stopLossPrice`` /
    ``takeProfitPrice``) or as percentages with a ``direction``.
    """
    errors = []

    def _number(key: str, default=None) -> Optional[float]:
        if key not in body or body[key] is None:
            return default
        try:
            value = float(body[key])
        except (TypeError, ValueError):
            value = math.nan
        if not math.isfinite(value):
            errors.append(f"{key} must be a number")
            return None
        return value

    entry = _number("entryPrice")
    capital = _number("capital")
    leverage = _number("leverage", 1.0)
    fee = _number("tradingFee", _get_config().trading_fee_pct)
    risk_pct = _number("riskPercent")
    stop = _number("stopLossPrice")
    target = _number("takeProfitPrice")
    stop_pct = _number("stopLossPercent")
    target_pct = _number("takeProfitPercent")

    for key, value in (("entryPrice", entry), ("capital", capital)):
        if value is None and f"{key} must be a number" not in errors:
            errors.append(f"{key} is required")

    if not errors and (stop is None or target is None):
        if stop_pct is None or target_pct is None:
            errors.append("Provide stopLossPrice/takeProfitPrice or stopLossPercent/takeProfitPercent")
        else:
            try:
                stop, target = levels_from_percent(
                    entry, stop_pct, target_pct, str(body.get("direction", "long"))
                )
            except ValueError as exc:
                errors.append(str(exc))

    if errors:
        return JSONResponse(status_code=400, content={"status": "error", "errors": errors})

    try:
        result = calculate_position(
            entry_price=entry,
            stop_loss_price=stop,
            take_profit_price=target,
            capital=capital,
            leverage=leverage,
            trading_fee_pct=fee,
            risk_pct=risk_pct,
        )
    except ValueError as exc:
        return JSONResponse(status_code=400, content={"status": "error", "errors": [str(exc)]})
    return result.to_dict()


# ── Statistics ───────────────────────────────────────────────────────────


@router.get("/api/statistics/cme-gaps")
async def get_cme_gaps(
    symbol: str = Query(default="BTCUSDT"),
    months: int = Query(default=3, ge=1, le=33),
):
    """Weekend CME gaps over the last *months* months, newest first."""
    result = await _get_service().get_cme_gaps(symbol, months)
    return {
        "gaps": [g.to_dict() for g in result.data],
        "source": result.source,
        "synthetic": result.synthetic,
    }


@router.get("/api/statistics/sunday-monday")
async def get_sunday_monday(
    symbol: str = Query(default="BTCUSDT"),
    weeks: int = Query(default=52, ge=1, le=140),
):
    """Sunday-close → Monday-open gaps per week with summary statistics."""
    result = await _get_service().get_candles(symbol, "1d", min(1000, weeks * 7 + 7))
    rows = build_sunday_monday_rows(result.data)[:weeks]
    return {
        "rows": [r.to_dict() for r in rows],
        "summary": calculate_sunday_monday_stats(rows),
        "source": result.source,
        "synthetic": result.synthetic,
    }


@router.get("/api/statistics/volatility")
async def get_volatility(
    symbol: str = Query(default="BTCUSDT"),
    interval: str = Query(default="1h"),
    days: int = Query(default=30, ge=1, le=365),
):
    """Average hourly range % split into Sunday, Monday and other weekdays."""
    if interval not in INTERVAL_SECONDS:
        return _error(400, "Invalid interval parameter")
    result = await _get_service().get_history(symbol, interval, days)
    return {
        **hourly_volatility(result.data),
        "source": result.source,
        "synthetic": result.synthetic,
    }


@router.get("/api/statistics/backtest")
async def get_backtest(
    strategy: str = Query(default="Support/Resistance"),
    timeframe: str = Query(default="4h"),
    period: str = Query(default="3m"),
    symbol: str = Query(default="BTCUSDT"),
):
    """Reference backtest report and strategy comparison (illustrative data)."""
    return {
        "report": build_backtest_report(strategy, timeframe, period, normalize_symbol(symbol)),
        "comparison": compare_strategies(),
        "synthetic": True,
    }


@router.get("/api/statistics/timeframes")
async def get_timeframes():
    """Baseline performance per timeframe (illustrative data)."""
    return {**timeframe_performance(), "synthetic": True}


# ── Market overview ──────────────────────────────────────────────────────


@router.get("/api/market/fear-greed")
async def get_fear_greed():
    result = await _get_service().get_fear_greed()
    return {**result.data, "source": result.source, "synthetic": result.synthetic}


@router.get("/api/market/dominance")
async def get_dominance():
    result = await _get_service().get_btc_dominance()
    return {**result.data, "source": result.source, "synthetic": result.synthetic}


@router.get("/api/market/condition")
async def get_market_condition(symbol: str = Query(default="BTCUSDT")):
    """Trend, volatility, momentum and volume scores from recent candles."""
    result = await _get_service().get_market_condition(symbol)
    return {**result.data.to_dict(), "source": result.source, "synthetic": result.synthetic}


@router.get("/api/market/perpetuals")
async def get_perpetuals(limit: int = Query(default=10, ge=1, le=50)):
    result = await _get_service().get_top_perpetuals(limit)
    return {"perpetuals": result.data, "source": result.source, "synthetic": result.synthetic}


@router.get("/api/market/feed-status")
async def get_feed_status():
    """Upstream reachability, cache backend and live stream state."""
    status = await _get_service().get_feed_status()
    status["stream"] = {
        "enabled": _stream is not None,
        "connected": bool(_stream and _stream.connected),
    }
    return status


@router.get("/api/stream")
async def get_stream_update():
    """Most recent update pushed by the live stream, if any."""
    return {
        "enabled": _stream is not None,
        "connected": bool(_stream and _stream.connected),
        "update": _latest_stream_update,
    }
