"""Per-user conversation state for the chat interface."""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from spikebot.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ConversationSession:
    """Where one user is in a multi-step dialogue, e.g. creating an alert."""
    owner_id: int
    step: str = ""
    market_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    touched_at: float = 0.0


class ConversationSessions:
    """
    Session map keyed by owner ID.

    Sessions expire ``ttl_seconds`` after they were last touched
    (``settings.session_ttl_minutes`` by default). One instance is created
    at startup and shared by the chat interface and the scheduler's prune
    job; there is no module-level registry.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds or settings.session_ttl_minutes * 60
        self._clock = clock
        self._sessions: Dict[int, ConversationSession] = {}
        self._lock = asyncio.Lock()

    def _expired(self, session: ConversationSession, now: float) -> bool:
        return now - session.touched_at > self.ttl_seconds

    async def get(self, owner_id: int) -> ConversationSession:
        """Return the owner's live session, starting a fresh one if needed."""
        async with self._lock:
            now = self._clock()
            session = self._sessions.get(owner_id)
            if session is None or self._expired(session, now):
                session = ConversationSession(owner_id=owner_id)
                self._sessions[owner_id] = session
            session.touched_at = now
            return session

    async def peek(self, owner_id: int) -> Optional[ConversationSession]:
        """Return the owner's live session without creating or refreshing one."""
        async with self._lock:
            session = self._sessions.get(owner_id)
            if session is None or self._expired(session, self._clock()):
                return None
            return session

    async def clear(self, owner_id: int) -> None:
        """Drop the owner's session."""
        async with self._lock:
            self._sessions.pop(owner_id, None)

    async def prune(self) -> int:
        """Remove expired sessions and return how many were dropped."""
        async with self._lock:
            now = self._clock()
            stale = [oid for oid, s in self._sessions.items() if self._expired(s, now)]
            for owner_id in stale:
                del self._sessions[owner_id]
        if stale:
            logger.debug(f"Pruned {len(stale)} expired conversation sessions")
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)
