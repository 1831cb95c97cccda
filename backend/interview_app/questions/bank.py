from __future__ import annotations

import random
from typing import Iterable

from interview_app.questions.catalog import load_question_catalog
from interview_app.questions.models import ALL_PROGRAMS, GENERAL_UNIVERSITY, Question

STEM_PROGRAMS = ("Computer Science", "Engineering", "Mathematics", "Physics", "Chemistry")
OPENING_CATEGORIES = {"personal", "motivation"}
MAX_DIFFICULTY = 5
CONTEXT_QUESTION_LIMIT = 5


def _normalize(text: str) -> str:
    return " ".join(str(text or "").lower().split()).rstrip("?.! ")


def is_program_match(question_program: str, target_program: str) -> bool:
    if question_program == "STEM" and target_program in STEM_PROGRAMS:
        return True

    question_lower = question_program.lower()
    target_lower = target_program.lower()
    if not question_lower or not target_lower:
        return False
    return question_lower in target_lower or target_lower in question_lower


class QuestionBank:
    """
    Ranked question pool for one (university, program) target.

    Owned by a single interview session. Questions handed out by
    get_opening_question or get_next_question, or matched in a spoken turn
    by mark_asked, are remembered by text and never handed out again by the
    same instance.
    """

    def __init__(
        self,
        target_university: str,
        target_program: str,
        catalog: Iterable[Question] | None = None,
        rng: random.Random | None = None,
    ):
        self.target_university = str(target_university or GENERAL_UNIVERSITY)
        self.target_program = str(target_program or ALL_PROGRAMS)
        self._rng = rng or random.Random()
        self._used_questions: set[str] = set()
        source = load_question_catalog() if catalog is None else catalog
        self.questions: list[Question] = self._load_relevant_questions(source)

    def _is_relevant(self, question: Question) -> bool:
        if question.university == self.target_university:
            return True
        if question.university != GENERAL_UNIVERSITY:
            return False
        return (
            question.program == ALL_PROGRAMS
            or question.program == self.target_program
            or is_program_match(question.program, self.target_program)
        )

    def _load_relevant_questions(self, catalog: Iterable[Question]) -> list[Question]:
        relevant = [q for q in catalog if self._is_relevant(q)]
        # school-specific first, then easiest first; sort is stable for ties
        relevant.sort(key=lambda q: (q.is_general, q.difficulty_level))
        return relevant

    @property
    def used_questions(self) -> frozenset[str]:
        return frozenset(self._used_questions)

    def _mark_used(self, question: Question) -> Question:
        self._used_questions.add(question.question_text)
        return question

    def _unused(self) -> list[Question]:
        return [q for q in self.questions if q.question_text not in self._used_questions]

    def get_opening_question(self) -> Question | None:
        unused = self._unused()
        openings = [
            q for q in unused
            if q.difficulty_level == 1 and q.category in OPENING_CATEGORIES
        ]
        if not openings:
            openings = [q for q in unused if q.difficulty_level == 1] or unused[:1]
        if not openings:
            return None
        return self._mark_used(self._rng.choice(openings))

    def get_next_question(self, current_difficulty: int = 1) -> Question | None:
        available = [
            q for q in self._unused()
            if q.difficulty_level <= current_difficulty + 1
        ]
        if not available:
            return None

        target_difficulty = min(current_difficulty + 1, MAX_DIFFICULTY)
        closest = next(
            (q for q in available if q.difficulty_level == target_difficulty),
            available[0],
        )
        return self._mark_used(closest)

    def mark_asked(self, spoken_text: str) -> Question | None:
        """Marks as used the unused question the interviewer just asked verbatim, if any."""
        spoken = _normalize(spoken_text)
        if not spoken:
            return None
        for question in self._unused():
            asked = _normalize(question.question_text)
            if asked and asked in spoken:
                return self._mark_used(question)
        return None

    def get_questions_by_category(self, category: str) -> list[Question]:
        wanted = str(category or "").strip().lower()
        return [q for q in self._unused() if q.category == wanted]

    def get_question_context(self) -> str:
        remaining = "\n".join(
            f"- {q.question_text} ({q.category})"
            for q in self._unused()[:CONTEXT_QUESTION_LIMIT]
        )
        return (
            f"Target School: {self.target_university}\n"
            f"Target Program: {self.target_program}\n"
            "\n"
            "Available interview questions to draw from:\n"
            f"{remaining}\n"
            "\n"
            "When asking follow-ups, stay relevant to the school and program context."
        )
