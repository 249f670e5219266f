from __future__ import annotations

import logging
import time

from core.config import COLLABORATOR_TIMEOUT_SEC
from core.logger import log_event
from core.state import SessionStatus
from interview_room.broadcast import RoomBroadcaster
from interview_room.collaborators.base import Persistence
from interview_room.errors import ConflictError, NotFoundError, TransientCollaboratorError, ValidationError
from interview_room.guards import bounded_call
from interview_room.session.models import Connection, Observer, Session
from interview_room.session.recovery import save_live_state
from interview_room.system_metrics import decrement_metric, increment_metric

logger = logging.getLogger("observers")


class ObserverProtocol:
    """Hidden/visible HR observers. An observer never becomes hidden again once revealed."""

    def __init__(self, broadcaster: RoomBroadcaster, persistence: Persistence, timeout_sec: float = COLLABORATOR_TIMEOUT_SEC):
        self.broadcaster = broadcaster
        self.persistence = persistence
        self.timeout_sec = timeout_sec

    def _observer(self, session: Session, observer_id: str) -> Observer:
        observer = session.observers.get(str(observer_id or ""))
        if observer is None:
            raise NotFoundError(f"observer {observer_id} not in {session.interview_id}", "Observer is not part of this interview")
        return observer

    async def _log_observer(self, session: Session, record: dict) -> None:
        try:
            await bounded_call("persistence", self.persistence.log_observer(session.interview_id, record), self.timeout_sec)
        except TransientCollaboratorError as exc:
            logger.warning("observer log not persisted | interview_id=%s err=%s", session.interview_id, exc)

    async def _announce_roster(self, session: Session) -> None:
        await self.broadcaster.to_observers(
            session,
            "observer-update",
            {"observers": [observer.to_dict() for observer in session.observers.values()]},
        )

    async def join(self, session: Session, hr_user_id: str, hr_name: str, connection: Connection) -> dict:
        hr_user_id = str(hr_user_id or "").strip()
        if not hr_user_id:
            raise ValidationError("missing hrUserId", "hrUserId is required")

        existing = session.observers.get(hr_user_id)
        if existing is not None:
            # same recruiter on a new device: the newest connection wins, visibility is kept
            if existing.connection is not None and existing.connection is not connection:
                await self.broadcaster.send(
                    existing.connection, "error", {"message": "Observer session opened elsewhere", "code": "superseded"}
                )
            existing.connection = connection
            existing.name = str(hr_name or existing.name)
            observer = existing
        else:
            observer = Observer(observer_id=hr_user_id, name=str(hr_name or "Recruiter"), connection=connection)
            session.observers[hr_user_id] = observer
            increment_metric("observers_active", 1)
            await self._log_observer(session, observer.log_record())

        log_event("observers", "hr_join", session.interview_id, observer_id=hr_user_id)
        snapshot = session.snapshot(include_hidden=True)
        await self.broadcaster.send(connection, "observer-joined", {"sessionState": snapshot, "observerId": hr_user_id})
        await self._announce_roster(session)
        return snapshot

    async def reveal(self, session: Session, observer_id: str) -> bool:
        observer = self._observer(session, observer_id)
        if observer.visible:
            await self.broadcaster.send(observer.connection, "reveal-success", {"observerId": observer.observer_id, "alreadyVisible": True})
            return False

        observer.visible = True
        log_event("observers", "hr_reveal", session.interview_id, observer_id=observer.observer_id)
        await self.broadcaster.to_candidate(
            session,
            "participant-joined",
            {
                "observerId": observer.observer_id,
                "name": observer.name,
                "role": "hr",
                "audioEnabled": observer.audio_enabled,
                "videoEnabled": observer.video_enabled,
            },
        )
        await self.broadcaster.send(observer.connection, "reveal-success", {"observerId": observer.observer_id})
        await self._announce_roster(session)
        await self._log_observer(session, observer.log_record())
        return True

    async def toggle_audio(self, session: Session, observer_id: str, enabled: bool) -> None:
        observer = self._observer(session, observer_id)
        observer.audio_enabled = bool(enabled)
        if observer.visible:
            await self.broadcaster.to_candidate(
                session, "participant-audio-changed", {"observerId": observer.observer_id, "enabled": observer.audio_enabled}
            )

    async def toggle_video(self, session: Session, observer_id: str, enabled: bool) -> None:
        observer = self._observer(session, observer_id)
        observer.video_enabled = bool(enabled)
        if observer.visible:
            await self.broadcaster.to_candidate(
                session, "participant-video-changed", {"observerId": observer.observer_id, "enabled": observer.video_enabled}
            )

    async def relay_audio(self, session: Session, observer_id: str, chunk: str) -> bool:
        observer = self._observer(session, observer_id)
        if not (observer.visible and observer.audio_enabled):
            increment_metric("hr_media_suppressed_total", 1)
            return False
        observer.spoke = True
        payload = {"observerId": observer.observer_id, "chunk": chunk}
        await self.broadcaster.to_candidate(session, "hr-audio", payload)
        await self.broadcaster.to_observers(session, "hr-audio", payload, exclude=observer.observer_id)
        increment_metric("hr_media_relayed_total", 1)
        return True

    async def relay_video(self, session: Session, observer_id: str, frame: str) -> bool:
        observer = self._observer(session, observer_id)
        if not (observer.visible and observer.video_enabled):
            increment_metric("hr_media_suppressed_total", 1)
            return False
        payload = {"observerId": observer.observer_id, "frame": frame}
        await self.broadcaster.to_candidate(session, "hr-video", payload)
        await self.broadcaster.to_observers(session, "hr-video", payload, exclude=observer.observer_id)
        increment_metric("hr_media_relayed_total", 1)
        return True

    async def set_paused(self, session: Session, observer_id: str, paused: bool) -> bool:
        observer = self._observer(session, observer_id)
        if session.is_completed:
            raise ConflictError("interview completed", "Interview has already ended")
        if session.is_paused == bool(paused):
            return session.is_paused

        session.is_paused = bool(paused)
        if session.is_paused:
            session.status = SessionStatus.PAUSED
        else:
            session.status = SessionStatus.ACTIVE if session.candidate_id else SessionStatus.JOINING
        # buffered answer audio is dropped, not replayed after resume
        session.clear_pending_audio()
        await save_live_state(self.persistence, session, self.timeout_sec)

        event = "interview-paused" if session.is_paused else "interview-resumed"
        payload = {"paused": session.is_paused, "by": observer.name}
        log_event("observers", event, session.interview_id, observer_id=observer.observer_id)
        await self.broadcaster.to_all(session, event, payload)
        return session.is_paused

    async def toggle_pause(self, session: Session, observer_id: str) -> bool:
        return await self.set_paused(session, observer_id, not session.is_paused)

    async def note(self, session: Session, observer_id: str, text: str) -> None:
        observer = self._observer(session, observer_id)
        text = str(text or "").strip()
        if not text:
            raise ValidationError("empty note", "Note text required")
        await bounded_call("persistence", self.persistence.save_note(session.interview_id, observer.observer_id, text), self.timeout_sec)
        await self.broadcaster.send(observer.connection, "note-saved", {"timestamp": time.time()})

    async def leave(self, session: Session, observer_id: str, connection: Connection | None = None) -> bool:
        observer = session.observers.get(str(observer_id or ""))
        if observer is None:
            return False
        if connection is not None and observer.connection is not connection:
            # an older device disconnecting after being superseded
            return False

        session.observers.pop(observer.observer_id, None)
        decrement_metric("observers_active", 1)
        log_event("observers", "hr_leave", session.interview_id, observer_id=observer.observer_id)
        await self._log_observer(session, observer.log_record(left_at=time.time()))
        await self._announce_roster(session)
        if observer.visible:
            await self.broadcaster.to_candidate(session, "participant-left", {"observerId": observer.observer_id})
        return True
