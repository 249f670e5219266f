from interview_room.session.actor import SessionActor
from interview_room.session.models import Connection, Observer, Session, Turn
from interview_room.session.registry import SessionRegistry

__all__ = ["Connection", "Observer", "Session", "SessionActor", "SessionRegistry", "Turn"]
