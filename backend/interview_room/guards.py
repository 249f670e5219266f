import asyncio
import logging
from typing import Any, Awaitable

from core.config import COLLABORATOR_TIMEOUT_SEC
from interview_room.errors import InterviewRoomError, TransientCollaboratorError
from interview_room.system_metrics import record_collaborator_failure

logger = logging.getLogger("interview_room.guards")


async def bounded_call(name: str, awaitable: Awaitable[Any], timeout_sec: float = COLLABORATOR_TIMEOUT_SEC) -> Any:
    """Await a collaborator call; any failure or timeout becomes TransientCollaboratorError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_sec)
    except asyncio.TimeoutError as exc:
        record_collaborator_failure(name)
        logger.warning("%s timed out after %.1fs", name, timeout_sec)
        raise TransientCollaboratorError(name, f"{name} timed out") from exc
    except InterviewRoomError:
        raise
    except Exception as exc:
        record_collaborator_failure(name)
        logger.warning("%s failed | err=%s", name, exc)
        raise TransientCollaboratorError(name, f"{name} failed: {exc}") from exc
