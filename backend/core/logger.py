import json
import logging
import time
from typing import Any

logging.basicConfig(
	format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
	level=logging.INFO,
)

logger = logging.getLogger("interview_room.events")

_REDACTED_KEYS = {"text", "transcript", "note", "chunk", "audio", "frame", "message_text"}


def _sanitize_value(key: str, value: Any) -> Any:
	normalized_key = str(key or "").lower()
	if normalized_key in _REDACTED_KEYS:
		size = len(value) if isinstance(value, (str, bytes, bytearray, list)) else len(str(value or ""))
		return {
			"redacted": True,
			"length": size,
		}
	if isinstance(value, (str, int, float, bool)) or value is None:
		return value
	if isinstance(value, dict):
		return {str(k): _sanitize_value(str(k), v) for k, v in value.items()}
	if isinstance(value, (list, tuple, set)):
		return [_sanitize_value(normalized_key, item) for item in value]
	return str(value)


def log_event(component: str, event: str, interview_id: str, **kwargs) -> None:
	"""One JSON line per room event. Speech, notes and media are logged by length only."""
	payload = {
		"ts": round(time.time(), 3),
		"component": str(component or "interview_room"),
		"event": str(event or "unknown"),
		"interview_id": str(interview_id or ""),
	}
	payload.update({str(k): _sanitize_value(str(k), v) for k, v in kwargs.items()})
	logger.info(json.dumps(payload, ensure_ascii=False, default=str))
