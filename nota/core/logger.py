import json
import logging
import time
from typing import Any

logger = logging.getLogger("nota.events")

# Fields that may carry user speech or model output
_REDACTED_KEYS = {"text", "transcript", "committed", "interim", "prompt", "insight", "analysis"}


def _redact(key: str, value: Any) -> Any:
    if key.lower() in _REDACTED_KEYS:
        return {"redacted": True, "length": len(str(value or ""))}
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    if isinstance(value, dict):
        return {str(k): _redact(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_redact(key, item) for item in value]
    return str(value)


def event_payload(
    component: str,
    event: str,
    recording_id: str,
    provider: str | None = None,
    state: Any = None,
    **fields,
) -> dict:
    payload = {
        "ts": round(time.time(), 3),
        "component": str(component or "nota"),
        "event": str(event or "unknown"),
        "recording_id": str(recording_id or ""),
        "provider": provider,
        "state": _redact("state", state),
    }
    payload.update({str(k): _redact(str(k), v) for k, v in fields.items()})
    return payload


def log_event(component: str, event: str, recording_id: str, **fields) -> None:
    """
    One JSON line per recording lifecycle step. Speech-bearing fields are
    reduced to their length.
    """
    logger.info(json.dumps(event_payload(component, event, recording_id, **fields), ensure_ascii=False, default=str))
