"""Provider chains — try each data source once, in order.

A chain is an ordered list of ``Provider`` strategies.  The first provider
that answers with non-empty data wins and its answer is wrapped in a
``FetchResult`` tagged with the provider's name and whether it fabricates
data.  Failures are logged and skipped; nothing is retried.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from app.market.models import FetchResult

logger = logging.getLogger("btcdash.market")

Q = TypeVar("Q")
T = TypeVar("T")


class NoDataError(RuntimeError):
    """Raised when every provider in a chain came back empty or failed."""


@dataclass(frozen=True)
class CandleQuery:
    """Parameters of a candle lookup.  Times are unix seconds."""

    symbol: str
    interval: str
    limit: int
    start_time: Optional[int] = None
    end_time: Optional[int] = None

    @property
    def has_range(self) -> bool:
        return self.start_time is not None or self.end_time is not None


@dataclass(frozen=True)
class Provider(Generic[Q, T]):
    """One data source in a chain.

    ``fetch`` receives the query and returns data, ``None`` or an empty
    collection when it has nothing, or raises.
    """

    name: str
    fetch: Callable[[Q], Awaitable[Optional[T]]]
    synthetic: bool = False


def _is_empty(data: Any) -> bool:
    if data is None:
        return True
    try:
        return len(data) == 0
    except TypeError:
        return False


class ProviderChain(Generic[Q, T]):
    """Ordered fallback over providers.

    Args:
        kind: Label used in log lines, e.g. ``"candles"``.
        providers: Providers in priority order.
    """

    def __init__(self, kind: str, providers: list[Provider[Q, T]]) -> None:
        if not providers:
            raise ValueError("A provider chain needs at least one provider")
        self._kind = kind
        self._providers = list(providers)

    @property
    def providers(self) -> list[Provider[Q, T]]:
        return list(self._providers)

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._providers]

    async def fetch(self, query: Q) -> FetchResult[T]:
        """Return the first non-empty answer as a tagged result.

        Raises:
            NoDataError: If every provider failed or answered empty.
        """
        for provider in self._providers:
            try:
                data = await provider.fetch(query)
            except Exception as exc:
                logger.warning(
                    "%s provider '%s' failed: %s", self._kind, provider.name, exc
                )
                continue

            if _is_empty(data):
                logger.debug("%s provider '%s' had no data", self._kind, provider.name)
                continue

            if provider.synthetic:
                logger.warning(
                    "%s: all real sources exhausted, serving '%s' data",
                    self._kind, provider.name,
                )
            else:
                logger.debug("%s served by '%s'", self._kind, provider.name)
            return FetchResult(data=data, source=provider.name, synthetic=provider.synthetic)

        raise NoDataError(f"No {self._kind} provider returned data")
