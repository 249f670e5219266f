from __future__ import annotations

import asyncio
from collections import defaultdict
import json
import logging
from pathlib import Path
from threading import Lock
import time
from typing import Any

from core.config import DATA_DIR
from interview_room.collaborators.base import InterviewContext

logger = logging.getLogger("interview_room.collaborators.persistence")


class MemoryPersistence:
    def __init__(self):
        self.turns: dict[str, list[dict]] = defaultdict(list)
        self.finalized: dict[str, list[dict]] = defaultdict(list)
        self.observations: dict[str, list[dict]] = defaultdict(list)
        self.observer_log: dict[str, list[dict]] = defaultdict(list)
        self.notes: dict[str, list[dict]] = defaultdict(list)
        self.live_states: dict[str, dict] = {}

    async def append_turn(self, interview_id: str, turn: dict) -> None:
        self.turns[interview_id].append(dict(turn))

    async def finalize(self, interview_id: str, result: dict) -> None:
        self.finalized[interview_id].append(dict(result))

    async def log_observation(self, interview_id: str, kind: str, payload: dict) -> None:
        self.observations[interview_id].append({"kind": kind, "observation": dict(payload or {})})

    async def log_observer(self, interview_id: str, record: dict) -> None:
        self.observer_log[interview_id].append(dict(record))

    async def save_note(self, interview_id: str, hr_user_id: str, note: str) -> None:
        self.notes[interview_id].append({"hr_user_id": hr_user_id, "note": note, "timestamp": time.time()})

    async def update_live_state(self, interview_id: str, state: dict) -> None:
        self.live_states[interview_id] = dict(state)

    async def load_session(self, interview_id: str) -> dict | None:
        if interview_id not in self.turns and interview_id not in self.live_states:
            return None
        return {
            "transcript": [dict(turn) for turn in self.turns.get(interview_id, [])],
            "live_state": dict(self.live_states.get(interview_id) or {}),
        }


class FilePersistence:
    """JSON-lines per interview under ``root/interviews/{id}/``; final record written atomically."""

    def __init__(self, root: Path | str = DATA_DIR):
        self.root = Path(root)
        self._lock = Lock()

    def _dir(self, interview_id: str) -> Path:
        safe_id = "".join(ch for ch in str(interview_id) if ch.isalnum() or ch in {"-", "_"})
        if not safe_id:
            raise ValueError("interview_id is empty after sanitizing")
        return self.root / "interviews" / safe_id

    def _append(self, interview_id: str, filename: str, record: dict) -> None:
        path = self._dir(interview_id) / filename
        line = json.dumps(record, ensure_ascii=False, default=str)
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def _write_json(self, interview_id: str, filename: str, payload: dict) -> None:
        path = self._dir(interview_id) / filename
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = path.with_suffix(".tmp")
            temp_path.write_text(json.dumps(payload, ensure_ascii=False, default=str), encoding="utf-8")
            temp_path.replace(path)

    def _read_stored(self, interview_id: str) -> dict | None:
        directory = self._dir(interview_id)
        turns_path = directory / "turns.jsonl"
        state_path = directory / "live_state.json"
        if not turns_path.exists() and not state_path.exists():
            return None

        transcript: list[dict] = []
        live_state: dict = {}
        with self._lock:
            if turns_path.exists():
                for line in turns_path.read_text(encoding="utf-8").splitlines():
                    if not line.strip():
                        continue
                    try:
                        transcript.append(json.loads(line))
                    except json.JSONDecodeError:
                        logger.warning("skipping corrupt turn line | interview_id=%s", interview_id)
            if state_path.exists():
                try:
                    live_state = json.loads(state_path.read_text(encoding="utf-8"))
                except json.JSONDecodeError:
                    logger.warning("live state unreadable | interview_id=%s", interview_id)
        return {"transcript": transcript, "live_state": live_state if isinstance(live_state, dict) else {}}

    async def append_turn(self, interview_id: str, turn: dict) -> None:
        await asyncio.to_thread(self._append, interview_id, "turns.jsonl", turn)

    async def finalize(self, interview_id: str, result: dict) -> None:
        await asyncio.to_thread(self._write_json, interview_id, "final.json", result)

    async def log_observation(self, interview_id: str, kind: str, payload: dict) -> None:
        record = {"kind": kind, "observation": payload, "timestamp": time.time()}
        await asyncio.to_thread(self._append, interview_id, "observations.jsonl", record)

    async def log_observer(self, interview_id: str, record: dict) -> None:
        await asyncio.to_thread(self._append, interview_id, "observers.jsonl", record)

    async def save_note(self, interview_id: str, hr_user_id: str, note: str) -> None:
        record = {"hr_user_id": hr_user_id, "note": note, "timestamp": time.time()}
        await asyncio.to_thread(self._append, interview_id, "notes.jsonl", record)

    async def update_live_state(self, interview_id: str, state: dict) -> None:
        await asyncio.to_thread(self._write_json, interview_id, "live_state.json", state)

    async def load_session(self, interview_id: str) -> dict | None:
        return await asyncio.to_thread(self._read_stored, interview_id)


class StaticContextProvider:
    def __init__(self, contexts: dict[str, InterviewContext] | None = None, default_language: str = "en"):
        self.contexts = dict(contexts or {})
        self.default_language = default_language

    async def load(self, interview_id: str) -> InterviewContext:
        context = self.contexts.get(interview_id)
        if context is not None:
            return context
        return InterviewContext(interview_id=interview_id, language=self.default_language)


class FileContextProvider:
    """Reads ``root/contexts/{id}.json``; a missing or unreadable file yields an empty English context."""

    def __init__(self, root: Path | str = DATA_DIR):
        self.root = Path(root)

    def _read(self, interview_id: str) -> dict[str, Any]:
        safe_id = "".join(ch for ch in str(interview_id) if ch.isalnum() or ch in {"-", "_"})
        path = self.root / "contexts" / f"{safe_id}.json"
        if not safe_id or not path.exists():
            return {}
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("context read failed | interview_id=%s err=%s", interview_id, exc)
            return {}
        return payload if isinstance(payload, dict) else {}

    async def load(self, interview_id: str) -> InterviewContext:
        data = await asyncio.to_thread(self._read, interview_id)
        return InterviewContext(
            interview_id=interview_id,
            language=str(data.get("language") or "en"),
            duration_minutes=int(data.get("duration_minutes") or 15),
            job=dict(data.get("job") or {}),
            candidate=dict(data.get("candidate") or {}),
            rubric=dict(data.get("rubric") or {}),
        )
