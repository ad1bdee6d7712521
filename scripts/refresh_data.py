"""One-shot script to warm the market cache, e.g. from an external scheduler.

Usage (from the project root):
    python -m scripts.refresh_data --symbol BTCUSDT
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.config import load_config
from app.market.service import MarketDataService
from app.refresher import DataRefresher
from app.repos.cache_store import create_store
from app.repos.market_cache import MarketCache


async def _main(symbol: str | None) -> int:
    config = load_config()
    cache = MarketCache(create_store(config.redis_url))
    refresher = DataRefresher(MarketDataService(cache), symbol or config.default_symbol)
    try:
        summary = await refresher.refresh_all()
    finally:
        await cache.close()
    logging.getLogger(__name__).info("Done → %s", json.dumps(summary))
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Refresh cached market data once")
    parser.add_argument("--symbol", default=None)
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    sys.exit(asyncio.run(_main(args.symbol)))
