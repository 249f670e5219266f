from __future__ import annotations

import logging

from interview_room.session.models import Connection, Session

logger = logging.getLogger("interview_room.broadcast")


class RoomBroadcaster:
    """Fan-out for one interview room. Who may receive what is decided by the caller."""

    async def send(self, connection: Connection | None, event: str, payload: dict | None = None) -> bool:
        if connection is None:
            return False
        try:
            await connection.send(event, dict(payload or {}))
        except Exception as exc:
            logger.warning("send failed | event=%s connection=%s err=%s", event, connection.connection_id, exc)
            return False
        return True

    async def to_candidate(self, session: Session, event: str, payload: dict | None = None) -> bool:
        return await self.send(session.candidate_connection, event, payload)

    async def to_observers(
        self,
        session: Session,
        event: str,
        payload: dict | None = None,
        exclude: str | None = None,
    ) -> int:
        delivered = 0
        for observer in list(session.observers.values()):
            if exclude is not None and observer.observer_id == exclude:
                continue
            if await self.send(observer.connection, event, payload):
                delivered += 1
        return delivered

    async def to_all(self, session: Session, event: str, payload: dict | None = None, exclude: str | None = None) -> None:
        await self.to_candidate(session, event, payload)
        await self.to_observers(session, event, payload, exclude=exclude)
