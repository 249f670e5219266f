import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    # gauges
    "sessions_active": 0.0,
    "candidate_connections_active": 0.0,
    "observers_active": 0.0,
    "ws_connections_active": 0.0,
    # counters
    "ws_disconnects_total": 0.0,
    "turns_appended_total": 0.0,
    "candidate_turns_total": 0.0,
    "reassurances_total": 0.0,
    "collaborator_failures_total": 0.0,
    "interviews_completed_total": 0.0,
    "termination_races_absorbed": 0.0,
    "sessions_swept_total": 0.0,
    "hr_media_relayed_total": 0.0,
    "hr_media_suppressed_total": 0.0,
    "collaborator_latency_total_ms": 0.0,
    "collaborator_latency_samples": 0.0,
}
_failures_by_collaborator: dict[str, int] = {}


def _key(name: str) -> str:
    return str(name or "").strip()


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = _key(name)
    if key:
        with _lock:
            _metrics[key] = _metrics.get(key, 0.0) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = _key(name)
    if key:
        with _lock:
            _metrics[key] = max(0.0, _metrics.get(key, 0.0) - float(amount))


def set_metric(name: str, value: float) -> None:
    key = _key(name)
    if key:
        with _lock:
            _metrics[key] = max(0.0, float(value))


def get_metric(name: str) -> float:
    with _lock:
        return _metrics.get(_key(name), 0.0)


def record_collaborator_failure(collaborator: str) -> None:
    name = _key(collaborator) or "unknown"
    with _lock:
        _metrics["collaborator_failures_total"] += 1.0
        _failures_by_collaborator[name] = _failures_by_collaborator.get(name, 0) + 1


def observe_collaborator_latency_ms(value_ms: float) -> None:
    with _lock:
        _metrics["collaborator_latency_total_ms"] += max(0.0, float(value_ms or 0.0))
        _metrics["collaborator_latency_samples"] += 1.0


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)
        failures = dict(_failures_by_collaborator)

    samples = data.get("collaborator_latency_samples") or 0.0
    payload: dict[str, Any] = {"generated_at": time.time()}
    payload.update({key: (value if key.endswith("_ms") else int(value)) for key, value in data.items()})
    payload["avg_collaborator_latency_ms"] = round(data["collaborator_latency_total_ms"] / samples, 2) if samples else 0.0
    payload["collaborator_failures"] = failures
    if extra:
        payload.update(extra)
    return payload
