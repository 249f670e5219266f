from __future__ import annotations

import asyncio
import time

from core.state import SessionStatus
from interview_room.errors import NotFoundError
from interview_room.session.models import Session


class SessionRegistry:
    def __init__(self):
        self._lock = asyncio.Lock()
        self._sessions: dict[str, Session] = {}

    async def get_or_create(self, interview_id: str) -> tuple[Session, bool]:
        async with self._lock:
            session = self._sessions.get(interview_id)
            if session is not None:
                return session, False
            session = Session(interview_id=interview_id)
            self._sessions[interview_id] = session
            return session, True

    async def get(self, interview_id: str) -> Session:
        async with self._lock:
            session = self._sessions.get(str(interview_id or ""))
        if session is None:
            raise NotFoundError(f"unknown interview {interview_id}")
        return session

    async def remove(self, interview_id: str) -> Session | None:
        async with self._lock:
            return self._sessions.pop(interview_id, None)

    async def sweep_completed(self, retention_sec: float, now_ts: float | None = None) -> list[Session]:
        """Drop sessions completed longer than ``retention_sec`` ago. Live sessions are never touched."""
        cutoff = (now_ts if now_ts is not None else time.time()) - max(0.0, float(retention_sec))
        removed: list[Session] = []
        async with self._lock:
            for interview_id, session in list(self._sessions.items()):
                if session.status != SessionStatus.COMPLETED:
                    continue
                if float(session.completed_at or 0.0) <= cutoff:
                    self._sessions.pop(interview_id, None)
                    removed.append(session)
        return removed

    async def all(self) -> list[Session]:
        async with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)
