import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    "ws_connections_active": 0.0,
    "interview_sessions_active": 0.0,
    "interview_sessions_started": 0.0,
    "interview_sessions_ended_total": 0.0,
    "interview_sessions_ended_end_session": 0.0,
    "interview_sessions_ended_budget_exhausted": 0.0,
    "interview_sessions_ended_time_exhausted": 0.0,
    "interview_sessions_ended_disconnect": 0.0,
    "interview_sessions_ended_other": 0.0,
    "turns_completed": 0.0,
    "interruptions_emitted": 0.0,
    "user_barge_ins": 0.0,
    "generation_fallbacks": 0.0,
    "synthesis_failures": 0.0,
    "persistence_failures": 0.0,
    "audio_files_swept": 0.0,
    "first_chunk_latency_total_ms": 0.0,
    "first_chunk_latency_samples": 0.0,
}

_ENDED_REASONS = {"end_session", "budget_exhausted", "time_exhausted", "disconnect"}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        next_value = float(_metrics.get(key, 0.0)) - float(amount)
        _metrics[key] = max(0.0, next_value)


def observe_first_chunk_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["first_chunk_latency_total_ms"] = float(_metrics.get("first_chunk_latency_total_ms", 0.0)) + latency
        _metrics["first_chunk_latency_samples"] = float(_metrics.get("first_chunk_latency_samples", 0.0)) + 1.0


def record_session_ended(reason: str) -> None:
    normalized = str(reason or "").strip().lower().replace(" ", "_").replace("-", "_")
    suffix = normalized if normalized in _ENDED_REASONS else "other"
    with _lock:
        _metrics["interview_sessions_ended_total"] = float(_metrics.get("interview_sessions_ended_total", 0.0)) + 1.0
        key = f"interview_sessions_ended_{suffix}"
        _metrics[key] = float(_metrics.get(key, 0.0)) + 1.0


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    latency_samples = max(1.0, float(data.get("first_chunk_latency_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    for key, value in data.items():
        if key.endswith("_total_ms"):
            payload[key] = float(value or 0.0)
        else:
            payload[key] = int(value or 0.0)
    payload["avg_first_chunk_latency_ms"] = round(
        float(data.get("first_chunk_latency_total_ms") or 0.0) / latency_samples, 2
    )

    if extra:
        payload.update(extra)
    return payload
