from dataclasses import dataclass


GENERAL_UNIVERSITY = "General"
ALL_PROGRAMS = "All"


@dataclass(frozen=True)
class Question:
    """
    One catalog entry. Immutable once loaded.
    difficulty_level is ordinal, 1 (easiest) .. 5.
    """
    university: str
    program: str
    question_text: str
    category: str
    difficulty_level: int
    source: str = ""

    @property
    def is_general(self) -> bool:
        return self.university == GENERAL_UNIVERSITY

    @classmethod
    def from_dict(cls, raw: dict) -> "Question":
        return cls(
            university=str(raw.get("university") or GENERAL_UNIVERSITY).strip(),
            program=str(raw.get("program") or ALL_PROGRAMS).strip(),
            question_text=str(raw.get("question_text") or "").strip(),
            category=str(raw.get("category") or "general").strip().lower(),
            difficulty_level=max(1, min(int(raw.get("difficulty_level") or 1), 5)),
            source=str(raw.get("source") or "").strip(),
        )
