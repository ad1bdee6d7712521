"""BTC Dashboard — application configuration.

Loads .env variables into a typed config object.
Validates numeric variables on startup.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    redis_url: Optional[str]  # None → in-memory cache
    cron_secret: Optional[str]  # None → /api/cron is open
    default_symbol: str
    trading_fee_pct: float
    refresh_interval_seconds: int
    enable_stream: bool
    log_level: str
    api_port: int

    @property
    def uses_redis(self) -> bool:
        """Return ``True`` when a Redis URL is configured."""
        return bool(self.redis_url)


def _float_env(name: str, default: str, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _int_env(name: str, default: str, minimum: int = 1) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Every variable is optional.  Raises ``ValueError`` with a message naming
    the variable when a numeric value is malformed or out of range.
    """
    load_dotenv(dotenv_path=env_path)

    redis_url = os.environ.get("REDIS_URL") or os.environ.get("KV_URL") or None

    return Config(
        redis_url=redis_url,
        cron_secret=os.environ.get("CRON_SECRET") or None,
        default_symbol=os.environ.get("DEFAULT_SYMBOL", "BTCUSDT").upper(),
        trading_fee_pct=_float_env("TRADING_FEE_PCT", "0.08"),
        refresh_interval_seconds=_int_env("REFRESH_INTERVAL_SECONDS", "300"),
        enable_stream=os.environ.get("ENABLE_STREAM", "false").lower() in _TRUE_VALUES,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        api_port=_int_env("API_PORT", "8080"),
    )
