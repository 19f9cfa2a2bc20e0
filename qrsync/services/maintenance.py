"""Periodic background jobs started with the application."""

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from qrsync.services.session_service import SessionService

logger = logging.getLogger(__name__)


async def run_periodic(name: str, interval: float, job: Callable[[], Awaitable[None]]) -> None:
    """Run job every interval seconds until cancelled. Failures are logged, never raised."""
    while True:
        await asyncio.sleep(interval)
        try:
            await job()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Periodic job %s failed", name)


def expiry_sweep_job(sessions_factory: Callable[[], SessionService]) -> Callable[[], Awaitable[None]]:
    async def job() -> None:
        purged = await sessions_factory().sweep_expired()
        if purged:
            logger.info("Expiry sweep purged %d session(s)", purged)

    return job


def keepalive_job(client: httpx.AsyncClient, url: str) -> Callable[[], Awaitable[None]]:
    async def job() -> None:
        try:
            response = await client.get(url)
            logger.debug("Keep-alive ping %s -> %s", url, response.status_code)
        except httpx.HTTPError as e:
            logger.warning("Keep-alive ping to %s failed: %s", url, e)

    return job
