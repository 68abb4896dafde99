"""Concurrent session cap enforced at session creation."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

if TYPE_CHECKING:
    from warden.core.modules.session.service import SessionService

logger = structlog.get_logger(__name__)


def eviction_count(live_count: int, max_count: int) -> int:
    """How many of the oldest live sessions must go before one more is admitted.

    A max_count of zero or less evicts every live session.
    """
    if max_count <= 0:
        return live_count
    if live_count < max_count:
        return 0
    return live_count - max_count + 1


class SessionAdmissionPolicy:
    """Keeps count_live(user) <= max_count right after a new session is inserted.

    Count, evict and insert are separate store calls with no lock around them.
    Concurrent logins of one user can each see the same count and leave the cap
    exceeded by up to (concurrent logins - 1); the next login evicts the surplus.
    """

    def __init__(self, sessions: SessionService, max_count: int) -> None:
        self._sessions = sessions
        self.max_count = max_count

    async def admit(self, user_id: UUID) -> list[UUID]:
        """Terminate the oldest live sessions so one more fits. Returns evicted session IDs."""
        live_count = await self._sessions.count_live(user_id)
        to_evict = eviction_count(live_count, self.max_count)
        if to_evict == 0:
            return []

        # Select then terminate by id; limited bulk updates are not portable
        oldest = await self._sessions.find_oldest_live(user_id, to_evict)
        evicted = [session.id for session in oldest]
        await self._sessions.terminate_by_ids(evicted)
        logger.info(
            "sessions_evicted",
            user_id=user_id,
            live_count=live_count,
            max_count=self.max_count,
            evicted=len(evicted),
        )
        return evicted
