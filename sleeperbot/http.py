from __future__ import annotations

import asyncio
from typing import Any, Dict

import aiohttp

from .config import config, logger


RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


class UpstreamError(RuntimeError):
    """An upstream request failed after all retries."""

    def __init__(self, message: str, status: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status = status
        self.url = url


class UpstreamNotFound(UpstreamError):
    pass


def build_headers() -> Dict[str, str]:
    return {
        "accept": "application/json",
        "user-agent": "sleeperbot/1.0",
    }


def make_session() -> aiohttp.ClientSession:
    timeout = aiohttp.ClientTimeout(total=config.HTTP_TIMEOUT_SECS)
    return aiohttp.ClientSession(
        timeout=timeout,
        headers=build_headers(),
        trust_env=True,
    )


def backoff_delay(attempt: int, base: float | None = None, cap: float | None = None) -> float:
    """Capped exponential backoff: base, 2*base, 4*base ... up to cap."""
    base = config.HTTP_BACKOFF_BASE if base is None else base
    cap = config.HTTP_MAX_BACKOFF if cap is None else cap
    return min(base * (2 ** attempt), cap)


async def fetch_json(
    session: aiohttp.ClientSession,
    url: str,
    params: Dict[str, str] | None = None,
    max_retries: int | None = None,
) -> Any:
    retries = config.HTTP_MAX_RETRIES if max_retries is None else max_retries
    attempt = 0
    while True:
        logger.debug(f"API request: {url}")
        try:
            async with session.get(url, params=params) as r:
                if r.status == 200:
                    logger.debug(f"API success: {url}")
                    return await r.json(content_type=None)
                txt = await r.text()
                if r.status == 404:
                    raise UpstreamNotFound(f"HTTP 404 for {url}", status=404, url=url)
                if r.status not in RETRYABLE_STATUSES:
                    logger.error(f"API error for {url}: {r.status}")
                    raise UpstreamError(f"HTTP {r.status} for {url} :: {txt[:300]}", status=r.status, url=url)
                error: Exception = UpstreamError(f"HTTP {r.status} for {url} :: {txt[:300]}", status=r.status, url=url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            error = UpstreamError(f"Request to {url} failed: {e}", url=url)

        if attempt >= retries:
            logger.error(f"Giving up on {url} after {attempt + 1} attempts: {error}")
            raise error
        delay = backoff_delay(attempt)
        attempt += 1
        logger.warning(f"Retrying {url} in {delay:.1f}s ({retries - attempt + 1} attempts left): {error}")
        await asyncio.sleep(delay)
