from __future__ import annotations

from dataclasses import dataclass, field
import time
from threading import Lock
from typing import Callable

CONTEXT_TTL_SEC = 24 * 60 * 60


@dataclass
class EducationalContext:
    university: str
    recent_news: list[str] = field(default_factory=list)
    trends: list[str] = field(default_factory=list)
    updated_at: float = 0.0


def _is_tech_program(program_lower: str) -> bool:
    return "computer science" in program_lower or "engineering" in program_lower


def general_educational_trends(university: str, program: str) -> list[str]:
    trends = [
        f"{university} has been focusing on interdisciplinary learning and hands-on projects",
        "Recent emphasis on AI and machine learning integration across programs",
        "Strong focus on sustainability and ethical technology development",
        "Increased investment in student research opportunities and mentorship",
        "New partnerships with industry leaders for internship programs",
    ]

    program_lower = str(program or "").lower()
    if _is_tech_program(program_lower):
        trends.extend([
            "Growing demand for software engineers with AI/ML expertise",
            "Emphasis on full-stack development and cloud computing skills",
            "Cybersecurity has become a critical focus area",
        ])
    elif "business" in program_lower:
        trends.extend([
            "Digital transformation is reshaping business education",
            "Entrepreneurship and innovation programs are expanding",
            "Data analytics skills are increasingly important for business graduates",
        ])
    return trends


def industry_trends(program: str) -> list[str]:
    general = [
        "Remote and hybrid work models are reshaping career expectations",
        "Lifelong learning and continuous skill development are essential",
        "Cross-functional collaboration skills are highly valued",
    ]

    program_lower = str(program or "").lower()
    if _is_tech_program(program_lower):
        return general + [
            "AI and machine learning are transforming every industry",
            "Open source contribution is becoming a key differentiator",
            "Climate tech and sustainable technology are growing rapidly",
        ]
    if "business" in program_lower:
        return general + [
            "ESG (Environmental, Social, Governance) is a top priority",
            "Digital-first business models are the new standard",
            "Data-driven decision making is critical for success",
        ]
    return general


def format_context(context: EducationalContext) -> str:
    news = "\n".join(f"- {item}" for item in context.recent_news)
    trends = "\n".join(f"- {item}" for item in context.trends)
    return (
        f"Current Educational Context for {context.university}:\n"
        "\n"
        "Recent Developments:\n"
        f"{news}\n"
        "\n"
        "Industry Trends:\n"
        f"{trends}\n"
        "\n"
        "Use this context to provide informed, relevant answers to the student's questions."
    )


class EducationalContextProvider:
    """Per-university trends digest, cached for a day and keyed by university."""

    def __init__(self, ttl_sec: float = CONTEXT_TTL_SEC, clock: Callable[[], float] = time.time):
        self.ttl_sec = float(ttl_sec)
        self._clock = clock
        self._lock = Lock()
        self._cache: dict[str, EducationalContext] = {}

    async def get_context(self, university: str, program: str) -> str:
        now_ts = self._clock()
        with self._lock:
            cached = self._cache.get(university)
            if cached is not None and (now_ts - cached.updated_at) < self.ttl_sec:
                return format_context(cached)

            context = EducationalContext(
                university=university,
                recent_news=general_educational_trends(university, program),
                trends=industry_trends(program),
                updated_at=now_ts,
            )
            self._cache[university] = context
        return format_context(context)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
