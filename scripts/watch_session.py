import argparse
import asyncio
import uuid
from typing import Optional

import httpx

from qrsync.app_logging import configure_logging
from qrsync.client.poller import COMPANION_USER_AGENT, SessionPoller, Snapshot
from qrsync.config import config
from qrsync.services.qr_service import render_qr_ascii


async def create_session(client: httpx.AsyncClient, base_url: str, ttl_seconds: Optional[int]) -> dict:
    body = {"ttlSeconds": ttl_seconds} if ttl_seconds is not None else None
    response = await client.post(f"{base_url}/", json=body, headers={"User-Agent": COMPANION_USER_AGENT})
    response.raise_for_status()
    return response.json()


async def watch_session(base_url: str, ttl_seconds: Optional[int], interval: float) -> int:
    base_url = base_url.rstrip("/")
    done = asyncio.get_running_loop().create_future()

    async def on_ready(session_id: uuid.UUID, snapshot: Snapshot) -> None:
        print(f"[watch] session {session_id} received {len(snapshot['uploads'])} file(s)")
        for upload in snapshot["uploads"]:
            print(f"  {upload['originalName']} ({upload['size']} bytes) -> {base_url}{upload['url']}")
        for message in snapshot.get("messages", []):
            print(f"  message: {message['text']}")
        print(f"[watch] downloads page: {base_url}/downloads/{session_id}")
        done.set_result(0)

    async def on_closed(session_id: uuid.UUID, _snapshot: Optional[Snapshot]) -> None:
        print(f"[watch] session {session_id} expired, generate a new QR code to start over")
        done.set_result(1)

    async with httpx.AsyncClient(timeout=10.0) as client:
        created = await create_session(client, base_url, ttl_seconds)
        session_id = uuid.UUID(created["sessionId"])

        print(render_qr_ascii(created["statusUrl"]))
        print(f"[watch] session={session_id}")
        print(f"[watch] upload_url={created['uploadUrl']}")
        print(f"[watch] expires_at={created['expiresAt']}")

        poller = SessionPoller(client, base_url, interval=interval)
        poller.start(session_id, on_ready, on_closed)
        try:
            return await done
        finally:
            await poller.cancel_all()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a session, show its QR code and wait for uploads.")
    parser.add_argument("--server", default=config.PUBLIC_BASE_URL, help="Base URL of the qrsync server.")
    parser.add_argument("--ttl", type=int, default=None, help="Session lifetime in seconds (0 = never expires).")
    parser.add_argument("--interval", type=float, default=5.0, help="Seconds between status polls.")
    args = parser.parse_args()

    configure_logging(config.LOG_LEVEL)
    raise SystemExit(asyncio.run(watch_session(args.server, args.ttl, args.interval)))


if __name__ == "__main__":
    main()
