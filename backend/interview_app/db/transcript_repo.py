from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any
import uuid

from interview_app.interview.errors import PersistenceFailure
from interview_core.config import TRANSCRIPT_STORE_PATH

logger = logging.getLogger("interview_app.db.transcript_repo")


def _word_count(text: str) -> int:
    return len(str(text or "").split())


def answer_quality_score(answer: str) -> float:
    return min(10.0, max(1.0, _word_count(answer) / 10))


def build_qa_pairs(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Pair every interviewer turn with the user turn that immediately follows it."""
    pairs = []
    for index in range(len(messages) - 1):
        current = messages[index]
        following = messages[index + 1]
        if current.get("role") != "interviewer" or following.get("role") != "user":
            continue
        answer = str(following.get("content") or "")
        pairs.append({
            "question": str(current.get("content") or ""),
            "answer": answer,
            "question_timestamp": current.get("timestamp"),
            "answer_timestamp": following.get("timestamp"),
            "quality_score": answer_quality_score(answer),
        })
    return pairs


class TranscriptRepository:
    """
    JSON-document store for finished interviews.
    Writes go through a temp file and an atomic replace.
    """

    def __init__(self, path: Path | str = TRANSCRIPT_STORE_PATH):
        self.path = Path(path)
        self._lock = Lock()

    def _read(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            return {}
        return {str(key): value for key, value in payload.items() if isinstance(value, dict)}

    def _persist(self, data: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(f".{uuid.uuid4().hex}.tmp")
        temp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        temp_path.replace(self.path)

    def save_complete_interview_session(
        self,
        session_id: str,
        user_id: str,
        university: str,
        program: str,
        history: list[dict[str, Any]],
    ) -> dict[str, Any]:
        sid = str(session_id or "").strip()
        if not sid:
            raise PersistenceFailure("session_id is required")

        messages = [
            {
                "role": str(item.get("role") or ""),
                "content": str(item.get("content") or ""),
                "timestamp": item.get("timestamp"),
            }
            for item in (history or [])
        ]
        record = {
            "session_id": sid,
            "user_id": str(user_id or ""),
            "university": str(university or ""),
            "program": str(program or ""),
            "status": "completed",
            "started_at": messages[0]["timestamp"] if messages else None,
            "messages": messages,
            "qa_pairs": build_qa_pairs(messages),
        }

        try:
            with self._lock:
                data = self._read()
                data[sid] = record
                self._persist(data)
        except (OSError, ValueError) as exc:
            raise PersistenceFailure(f"Failed to save interview session: {exc}") from exc

        logger.info(
            "Interview session saved | session_id=%s messages=%s qa_pairs=%s",
            sid,
            len(messages),
            len(record["qa_pairs"]),
        )
        return record

    def get_session_record(self, session_id: str) -> dict[str, Any] | None:
        sid = str(session_id or "").strip()
        if not sid:
            return None
        with self._lock:
            try:
                data = self._read()
            except (OSError, ValueError) as exc:
                logger.warning("get_session_record failed | session_id=%s err=%s", sid, exc)
                return None
        record = data.get(sid)
        return dict(record) if record else None

    def list_user_sessions(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        uid = str(user_id or "").strip()
        if not uid:
            return []
        capped = max(1, min(int(limit or 50), 200))
        with self._lock:
            try:
                data = self._read()
            except (OSError, ValueError) as exc:
                logger.warning("list_user_sessions failed | user_id=%s err=%s", uid, exc)
                return []

        rows = [dict(record) for record in data.values() if str(record.get("user_id") or "") == uid]
        rows.sort(key=lambda item: str(item.get("started_at") or ""))
        return rows[-capped:]

    async def save_complete_interview_session_async(
        self,
        session_id: str,
        user_id: str,
        university: str,
        program: str,
        history: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return await asyncio.to_thread(
            self.save_complete_interview_session,
            session_id,
            user_id,
            university,
            program,
            history,
        )
