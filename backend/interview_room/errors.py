from __future__ import annotations


class InterviewRoomError(Exception):
    """Base error. ``public_message`` is what a client is allowed to see."""

    code = "error"
    public_message = "Something went wrong"

    def __init__(self, detail: str = "", public_message: str | None = None):
        super().__init__(detail or public_message or self.public_message)
        if public_message:
            self.public_message = public_message


class ValidationError(InterviewRoomError):
    code = "validation_error"
    public_message = "Invalid interview or token"


class NotFoundError(InterviewRoomError):
    code = "not_found"
    public_message = "Interview session not found"


class ConflictError(InterviewRoomError):
    code = "conflict"
    public_message = "Request cannot be handled right now"


class TransientCollaboratorError(InterviewRoomError):
    code = "collaborator_unavailable"
    public_message = "A service is temporarily unavailable, please try again"

    def __init__(self, collaborator: str, detail: str = "", public_message: str | None = None):
        super().__init__(detail or f"{collaborator} failed", public_message)
        self.collaborator = collaborator


class TerminationRaceError(InterviewRoomError):
    code = "termination_race"
    public_message = ""
