from __future__ import annotations

from threading import Lock

from interview_app.interview.session import InterviewSession


class SessionRegistry:
    """Maps session id to its live InterviewSession; an entry lives exactly as long as the session."""

    def __init__(self):
        self._lock = Lock()
        self._sessions: dict[str, InterviewSession] = {}

    def register(self, session: InterviewSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> InterviewSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> InterviewSession | None:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions.keys())

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
