"""Status/polling protocol shared by the server and polling clients.

Neither side holds a connection open: the uploading phone, the desktop page
and the companion extension all pull ``GET /{session_id}/status`` on their own
timers. Every poll re-derives the session from disk before answering, so a
client that misses a change simply sees it on its next poll.
"""

import uuid
from typing import Any, Iterable, Mapping, Optional

from qrsync.domain.sessions import SessionRecord
from qrsync.services.session_service import SessionService
from qrsync.utils.types import SessionStatus

# Seconds between polls, as used by the clients of the protocol.
PEER_POLL_INTERVAL = 2.0
BACKGROUND_POLL_INTERVAL = 10.0
COMPANION_FIRST_POLL_DELAY = 1.0
COMPANION_RETRY_INTERVAL = 5.0


def is_companion_request(
        origin: Optional[str],
        user_agent: Optional[str],
        origin_prefixes: Iterable[str],
        user_agent_markers: Iterable[str],
) -> bool:
    """Best-effort guess whether a request comes from the session creator's own client.

    This only decides whether a read counts as "the peer connected". It is not
    an access check; any client can send any header.
    """
    origin = origin or ""
    ua = (user_agent or "").lower()

    if any(origin.startswith(prefix) for prefix in origin_prefixes):
        return True

    return any(marker.lower() in ua for marker in user_agent_markers)


def is_done(snapshot: Mapping[str, Any]) -> bool:
    return bool(snapshot.get("uploads")) or snapshot.get("status") == SessionStatus.COMPLETED.value


def is_terminal(snapshot: Mapping[str, Any]) -> bool:
    return snapshot.get("status") == SessionStatus.EXPIRED.value


class StatusService:
    def __init__(
            self,
            sessions: SessionService,
            origin_prefixes: Iterable[str] = (),
            user_agent_markers: Iterable[str] = (),
    ):
        self.sessions = sessions
        self.origin_prefixes = tuple(origin_prefixes)
        self.user_agent_markers = tuple(user_agent_markers)

    async def poll(
            self,
            session_id: uuid.UUID,
            origin: Optional[str] = None,
            user_agent: Optional[str] = None,
    ) -> SessionRecord:
        record = await self.sessions.reconcile(session_id)

        if not record.connection_created:
            is_peer = not is_companion_request(origin, user_agent, self.origin_prefixes, self.user_agent_markers)
            record = await self.sessions.mark_connected(record, is_peer)

        return record
