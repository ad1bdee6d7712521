"""DataRefresher — keeps the market cache warm on a fixed interval.

Each cycle refreshes only the datasets whose last refresh is older than
their maximum age.  The HTTP cron endpoint and the CLI call
:meth:`DataRefresher.refresh_all` directly; the server runs :meth:`run`.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from app.market.models import normalize_symbol
from app.market.service import SR_MAX_AGE, MarketDataService

logger = logging.getLogger("btcdash.refresher")

TICKER_MAX_AGE = 60

# interval → (max age seconds, candle limit)
CANDLE_REFRESH: dict[str, tuple[int, int]] = {
    "5m": (300, 200),
    "30m": (900, 150),
    "4h": (7200, 100),
    "1d": (43200, 60),
}


class DataRefresher:
    """Refreshes ticker, candles and support/resistance levels for a symbol.

    Args:
        service: ``MarketDataService`` whose cache is refreshed.
        symbol: Default symbol for :meth:`run`.
    """

    def __init__(self, service: MarketDataService, symbol: str = "BTCUSDT") -> None:
        self._service = service
        self._cache = service.cache
        self.symbol = normalize_symbol(symbol)
        self._running: bool = False
        self._cycle_count: int = 0
        self.last_run_at: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    def stop(self) -> None:
        """Signal the loop to stop after the current cycle."""
        self._running = False

    # ── Single pass ──────────────────────────────────────────────────────

    async def refresh_all(self, symbol: Optional[str] = None) -> dict:
        """Refresh every dataset that is due.

        Returns:
            ``{"symbol", "refreshed": [...], "skipped": [...], "errors": {...},
            "timestamp"}``.  Names look like ``"ticker"``, ``"candles:5m"``,
            ``"levels"``.
        """
        pair = normalize_symbol(symbol or self.symbol)
        refreshed: list[str] = []
        skipped: list[str] = []
        errors: dict[str, str] = {}

        async def _step(name: str, kind: str, max_age: int, params: dict, action) -> None:
            try:
                if not await self._cache.needs_refresh(kind, max_age, params):
                    skipped.append(name)
                    return
                result = await action()
                if result.synthetic:
                    # Leave the marker stale so the next cycle tries again
                    errors[name] = f"only synthetic data ({result.source})"
                    return
                await self._cache.mark_refreshed(kind, params)
                refreshed.append(name)
            except Exception as exc:
                logger.error("Refresh of %s for %s failed: %s", name, pair, exc)
                errors[name] = str(exc)

        await _step(
            "ticker", "ticker", TICKER_MAX_AGE, {"symbol": pair},
            lambda: self._service.get_ticker(pair, fresh=True),
        )
        for interval, (max_age, limit) in CANDLE_REFRESH.items():
            await _step(
                f"candles:{interval}", "candles", max_age,
                {"symbol": pair, "interval": interval},
                lambda iv=interval, n=limit: self._service.get_candles(pair, iv, n, fresh=True),
            )
        # The levels chain records its own refresh marker
        try:
            if await self._cache.needs_refresh("sr_levels", SR_MAX_AGE, {"symbol": pair}):
                levels = await self._service.get_support_resistance(pair, fresh=True)
                if levels.synthetic:
                    errors["levels"] = f"only synthetic data ({levels.source})"
                else:
                    refreshed.append("levels")
            else:
                skipped.append("levels")
        except Exception as exc:
            logger.error("Refresh of levels for %s failed: %s", pair, exc)
            errors["levels"] = str(exc)

        self.last_run_at = datetime.now(timezone.utc).isoformat()
        logger.info(
            "Refreshed %s: %d updated, %d fresh, %d failed",
            pair, len(refreshed), len(skipped), len(errors),
        )
        return {
            "symbol": pair,
            "refreshed": refreshed,
            "skipped": skipped,
            "errors": errors,
            "timestamp": self.last_run_at,
        }

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(self, interval: int = 300, max_cycles: int = 0) -> list[dict]:
        """Refresh until stopped.

        Args:
            interval: Seconds between cycles.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            List of per-cycle result dicts.
        """
        self._running = True
        results: list[dict] = []
        cycle = 0
        logger.info("Refresher started for %s every %ds", self.symbol, interval)

        while self._running:
            cycle += 1
            self._cycle_count += 1
            try:
                results.append(await self.refresh_all())
            except Exception as exc:
                logger.error("Refresh cycle %d error: %s", cycle, exc)
                results.append({"symbol": self.symbol, "error": str(exc)})

            if max_cycles > 0 and cycle >= max_cycles:
                break

            # Interruptible sleep, checks _running every second
            for _ in range(interval):
                if not self._running:
                    break
                await asyncio.sleep(1)

        self._running = False
        logger.info("Refresher stopped after %d cycle(s)", cycle)
        return results
