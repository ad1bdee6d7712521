"""BTC Dashboard — application entry point.

Boots the FastAPI server and provides the CLI entry point for serving,
refresh-only and snapshot modes.
"""

import logging

from fastapi import FastAPI

from app.api.routers import router

app = FastAPI(title="BTC Dashboard API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("btcdash")


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio

    from app.config import load_config
    from app.market.service import MarketDataService
    from app.refresher import DataRefresher
    from app.repos.cache_store import create_store
    from app.repos.market_cache import MarketCache

    parser = argparse.ArgumentParser(description="BTC trading dashboard backend")
    parser.add_argument("--port", type=int, help="API port (default: API_PORT or 8080)")
    parser.add_argument("--symbol", help="Symbol to refresh (default: DEFAULT_SYMBOL)")
    parser.add_argument(
        "--refresh-only",
        action="store_true",
        help="Run the background refresher without the API server",
    )
    parser.add_argument(
        "--no-refresh",
        action="store_true",
        help="Serve the API without the background refresher",
    )
    parser.add_argument(
        "--snapshot",
        action="store_true",
        help="Print a one-off market snapshot and exit",
    )
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    symbol = args.symbol or config.default_symbol
    cache = MarketCache(create_store(config.redis_url))
    service = MarketDataService(cache)
    refresher = DataRefresher(service, symbol)

    if args.snapshot:
        asyncio.run(_print_snapshot(service, symbol))
    elif args.refresh_only:
        asyncio.run(_run_refresher_only(refresher, config.refresh_interval_seconds))
    else:
        asyncio.run(
            _run_server(
                config,
                service,
                refresher,
                port=args.port or config.api_port,
                refresh=not args.no_refresh,
            )
        )


async def _run_server(config, service, refresher, port: int = 8080, refresh: bool = True) -> None:
    """Start the API server, the refresher and the optional live stream concurrently."""
    import asyncio

    import uvicorn

    from app.api.routers import configure_routers, update_stream_state
    from app.market.stream import MarketStream

    stream = (
        MarketStream(config.default_symbol, update_stream_state)
        if config.enable_stream
        else None
    )
    configure_routers(config=config, service=service, refresher=refresher, stream=stream)

    uvi_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level=config.log_level.lower(),
    )
    server = uvicorn.Server(uvi_config)

    async def _serve():
        try:
            await server.serve()
        finally:
            refresher.stop()
            if stream:
                stream.stop()

    tasks = [_serve()]
    if refresh:
        tasks.append(refresher.run(config.refresh_interval_seconds))
    if stream:
        tasks.append(stream.run())

    logger.info(
        "Starting BTC Dashboard on port %d (cache: %s, refresher: %s, stream: %s)",
        port, service.cache.backend, "on" if refresh else "off", "on" if stream else "off",
    )
    results = await asyncio.gather(*tasks, return_exceptions=True)
    logger.info("BTC Dashboard stopped. Results: %d task(s)", len(results))
    await service.cache.close()


async def _run_refresher_only(refresher, interval: int) -> None:
    """Run the refresher without starting the API server."""
    import signal

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping gracefully.")
        refresher.stop()

    signal.signal(signal.SIGINT, handle_shutdown)
    logger.info("Starting refresher (no API) for %s every %ds", refresher.symbol, interval)
    await refresher.run(interval)


async def _print_snapshot(service, symbol: str) -> None:
    """Fetch ticker, levels and intraday signals and print them."""
    from app.cli.dashboard import print_snapshot

    ticker = await service.get_ticker(symbol)
    levels = await service.get_support_resistance(symbol)
    signals = await service.get_intraday_signals(symbol)
    print_snapshot(
        {
            "ticker": {**ticker.data.to_dict(), "synthetic": ticker.synthetic},
            "levels": levels.data,
            "signals": signals["signals"],
        }
    )
    await service.cache.close()


if __name__ == "__main__":
    _run_cli()
