"""Companion-side poll scheduler.

The desktop companion waits for the phone by polling the status endpoint.
Each session gets its own asyncio task, so polls for different sessions never
share state and any one of them can be cancelled on its own.
"""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from qrsync.services.status_service import (
    COMPANION_FIRST_POLL_DELAY,
    COMPANION_RETRY_INTERVAL,
    is_done,
    is_terminal,
)

logger = logging.getLogger(__name__)

COMPANION_USER_AGENT = "qrsync-companion/1.0"

Snapshot = Mapping[str, Any]
Callback = Callable[[uuid.UUID, Optional[Snapshot]], Awaitable[None]]


class SessionPoller:
    def __init__(
            self,
            client: httpx.AsyncClient,
            base_url: str,
            interval: float = COMPANION_RETRY_INTERVAL,
            first_delay: float = COMPANION_FIRST_POLL_DELAY,
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.interval = interval
        self.first_delay = first_delay
        self._tasks: Dict[uuid.UUID, asyncio.Task] = {}

    def start(self, session_id: uuid.UUID, on_ready: Callback, on_closed: Optional[Callback] = None) -> asyncio.Task:
        """Poll session_id until it has uploads or is over; replaces any running poll for it."""
        self.cancel(session_id)

        task = asyncio.create_task(self._run(session_id, on_ready, on_closed))
        self._tasks[session_id] = task
        task.add_done_callback(lambda t: self._forget(session_id, t))
        return task

    def _forget(self, session_id: uuid.UUID, task: asyncio.Task) -> None:
        if self._tasks.get(session_id) is task:
            del self._tasks[session_id]

    def is_polling(self, session_id: uuid.UUID) -> bool:
        return session_id in self._tasks

    def cancel(self, session_id: uuid.UUID) -> bool:
        task = self._tasks.pop(session_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def cancel_all(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def fetch_status(self, session_id: uuid.UUID) -> Optional[Snapshot]:
        """Return the status payload, or None when the server does not know the session."""
        response = await self.client.get(
            f"{self.base_url}/{session_id}/status",
            headers={"User-Agent": COMPANION_USER_AGENT},
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def _run(self, session_id: uuid.UUID, on_ready: Callback, on_closed: Optional[Callback]) -> None:
        await asyncio.sleep(self.first_delay)

        while True:
            try:
                snapshot = await self.fetch_status(session_id)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Status poll for %s failed: %s", session_id, e)
            else:
                if snapshot is None or is_terminal(snapshot):
                    logger.info("Session %s is over, stopping poll", session_id)
                    if on_closed is not None:
                        await on_closed(session_id, snapshot)
                    return

                if is_done(snapshot):
                    await on_ready(session_id, snapshot)
                    return

            await asyncio.sleep(self.interval)
