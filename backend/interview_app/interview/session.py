from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import time
from typing import Callable
import uuid

from interview_app.interview.speech_tracker import SpeechTracker
from interview_app.questions.bank import QuestionBank
from interview_core.state import SessionPhase

ROLE_INTERVIEWER = "interviewer"
ROLE_USER = "user"


@dataclass(frozen=True)
class DurationPolicy:
    max_questions: int
    has_warmup: bool
    final_question_reserve: float  # minutes kept for the closing "any questions for me" turn


DURATION_POLICIES: dict[int, DurationPolicy] = {
    2: DurationPolicy(max_questions=2, has_warmup=False, final_question_reserve=0.5),
    10: DurationPolicy(max_questions=5, has_warmup=True, final_question_reserve=1.5),
    30: DurationPolicy(max_questions=10, has_warmup=True, final_question_reserve=2.0),
}
DEFAULT_DURATION_POLICY = DurationPolicy(max_questions=3, has_warmup=False, final_question_reserve=1.0)


def policy_for_duration(duration: float) -> DurationPolicy:
    if float(duration).is_integer():
        return DURATION_POLICIES.get(int(duration), DEFAULT_DURATION_POLICY)
    return DEFAULT_DURATION_POLICY


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HistoryEntry:
    role: str  # interviewer | user
    content: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class InterviewSession:
    """
    State for one live interview connection.

    conversation_history is append-only; use append_history() so entries stay
    in the order they were sent or received.
    """
    user_id: str
    target_university: str
    target_program: str
    duration: float  # minutes
    question_bank: QuestionBank
    clock: Callable[[], float] = time.monotonic
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    conversation_history: list[HistoryEntry] = field(default_factory=list)
    questions_asked: int = 0
    current_difficulty: int = 1
    is_ai_speaking: bool = False
    closing_question_asked: bool = False
    phase: SessionPhase = SessionPhase.LISTENING

    started_at: datetime = field(default_factory=_utcnow)
    start_ts: float = field(init=False)
    speech_tracker: SpeechTracker = field(init=False)
    policy: DurationPolicy = field(init=False)

    def __post_init__(self):
        self.start_ts = self.clock()
        self.speech_tracker = SpeechTracker(clock=self.clock)
        self.policy = policy_for_duration(self.duration)

    @property
    def max_questions(self) -> int:
        return self.policy.max_questions

    @property
    def has_warmup(self) -> bool:
        return self.policy.has_warmup

    @property
    def final_question_reserve(self) -> float:
        return self.policy.final_question_reserve

    def append_history(self, role: str, content: str) -> HistoryEntry:
        entry = HistoryEntry(role=role, content=content, timestamp=_utcnow())
        self.conversation_history.append(entry)
        return entry

    def elapsed_minutes(self) -> float:
        return max(0.0, self.clock() - self.start_ts) / 60.0

    def remaining_minutes(self) -> float:
        return self.duration - self.elapsed_minutes()

    def is_time_exhausted(self) -> bool:
        return self.elapsed_minutes() >= self.duration

    def is_budget_exhausted(self) -> bool:
        return self.questions_asked >= self.max_questions or self.is_time_exhausted()

    def history_as_dicts(self) -> list[dict]:
        return [entry.to_dict() for entry in self.conversation_history]
