import json
import logging
import time
from enum import Enum
from typing import Any

logger = logging.getLogger("interview")

# conversational text is never written out, only its length
_REDACTED_KEYS = {"text", "content", "chunk", "prompt", "audio", "greeting", "interruption_text"}
_MAX_VALUE_CHARS = 300


def _redact(value: Any) -> dict:
	text = str(value or "")
	return {
		"redacted": True,
		"length": len(text),
	}


def _sanitize_value(key: str, value: Any) -> Any:
	normalized_key = str(key or "").lower()
	if normalized_key in _REDACTED_KEYS:
		return _redact(value)
	if isinstance(value, Enum):
		return value.value
	if isinstance(value, str):
		return value if len(value) <= _MAX_VALUE_CHARS else value[:_MAX_VALUE_CHARS] + "..."
	if isinstance(value, (int, float, bool)) or value is None:
		return value
	if isinstance(value, dict):
		return {str(k): _sanitize_value(str(k), v) for k, v in value.items()}
	if isinstance(value, (list, tuple, set, frozenset)):
		return [_sanitize_value(normalized_key, item) for item in value]
	return str(value)


def log_event(component: str, event: str, session_id: str, level: int = logging.INFO, **kwargs) -> None:
	"""One JSON line per lifecycle event, keyed by component and session."""
	payload = {
		"ts": round(time.time(), 3),
		"component": str(component or "interview"),
		"event": str(event or "unknown"),
		"session_id": str(session_id or ""),
	}
	payload.update({str(k): _sanitize_value(str(k), v) for k, v in kwargs.items()})
	logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
