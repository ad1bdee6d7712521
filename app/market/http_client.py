"""Shared async JSON GET helper for the market-data clients.

Each call opens its own ``httpx.AsyncClient`` and fails fast: there is no
retry here, the provider chain moves on to the next source instead.
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger("btcdash.market")

_DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Cache-Control": "no-cache",
}


async def get_json(
    url: str,
    params: Optional[dict] = None,
    timeout: float = 5.0,
    headers: Optional[dict] = None,
) -> Any:
    """GET *url* and return the decoded JSON body.

    Raises:
        httpx.HTTPStatusError: On a non-2xx response.
        httpx.TransportError: On connection problems or timeouts.
        ValueError: When the body is not valid JSON.
    """
    merged = {**_DEFAULT_HEADERS, **(headers or {})}
    async with httpx.AsyncClient() as client:
        resp = await client.get(url, headers=merged, params=params, timeout=timeout)
    resp.raise_for_status()
    logger.debug("GET %s → %d", url, resp.status_code)
    return resp.json()
