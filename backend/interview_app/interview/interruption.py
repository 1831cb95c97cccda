from __future__ import annotations

from dataclasses import dataclass
import logging
import random
import re
from typing import Sequence

from interview_app.interview.prompts import (
    INTERRUPTION_DEFAULT_TEXT,
    INTERRUPTION_FALLBACKS,
    INTERRUPTION_PROMPTS,
    INTERRUPTION_TEMPLATE,
)
from interview_app.interview.session import HistoryEntry

logger = logging.getLogger("interview_app.interview.interruption")

MIN_WORDS_BEFORE_INTERRUPT = 20
RAMBLING_WORD_LIMIT = 200
VAGUE_MATCH_THRESHOLD = 3
VAGUE_MIN_WORDS = 30
LONG_SPEECH_MS = 5000
CLARIFICATION_PROBABILITY = 0.6
FOLLOWUP_PROBABILITY = 0.3
RECENT_TEXT_CHARS = 200
CONTEXT_TURNS = 3

VAGUE_PATTERNS = (
    re.compile(r"\b(um+|uh+|like|you know|kind of|sort of|i guess|maybe|probably)\b", re.IGNORECASE),
    re.compile(r"\b(stuff|things|something|whatever)\b", re.IGNORECASE),
)


@dataclass(frozen=True)
class InterruptionDecision:
    should_interrupt: bool
    reason: str = "none"  # none | rambling | clarification_needed | pause
    interruption_text: str | None = None


NO_INTERRUPTION = InterruptionDecision(should_interrupt=False, reason="none")


def count_words(text: str) -> int:
    return len(str(text or "").split())


def vague_score(text: str) -> int:
    return sum(len(pattern.findall(text or "")) for pattern in VAGUE_PATTERNS)


def is_vague(text: str) -> bool:
    return vague_score(text) > VAGUE_MATCH_THRESHOLD


class InterruptionEngine:
    """
    Decides whether the interviewer should cut in on partial candidate speech.

    Policy, first match wins:
      < 20 words                      -> never
      > 200 words                     -> rambling
      vague score > 3 and > 30 words  -> clarification_needed, 60% of the time
      speaking > 5 s and > 20 words   -> pause (follow-up), 30% of the time
    """

    def __init__(self, llm=None, rng: random.Random | None = None):
        self.llm = llm
        self._rng = rng or random.Random()

    def decide_reason(self, text: str, speech_duration_ms: float) -> str:
        word_count = count_words(text)
        if word_count < MIN_WORDS_BEFORE_INTERRUPT:
            return "none"

        if word_count > RAMBLING_WORD_LIMIT:
            return "rambling"

        if is_vague(text) and word_count > VAGUE_MIN_WORDS:
            if self._rng.random() > 1.0 - CLARIFICATION_PROBABILITY:
                return "clarification_needed"

        if speech_duration_ms > LONG_SPEECH_MS and word_count > MIN_WORDS_BEFORE_INTERRUPT:
            if self._rng.random() > 1.0 - FOLLOWUP_PROBABILITY:
                return "pause"

        return "none"

    async def analyze(
        self,
        text: str,
        history: Sequence[HistoryEntry],
        speech_duration_ms: float,
    ) -> InterruptionDecision:
        reason = self.decide_reason(text, speech_duration_ms)
        if reason == "none":
            return NO_INTERRUPTION

        interruption_text = await self.generate_interruption(reason, text, history)
        return InterruptionDecision(
            should_interrupt=True,
            reason=reason,
            interruption_text=interruption_text,
        )

    def build_prompt(self, reason: str, text: str, history: Sequence[HistoryEntry]) -> str:
        recent_text = str(text or "")[-RECENT_TEXT_CHARS:]
        context = "\n".join(f"{entry.role}: {entry.content}" for entry in list(history)[-CONTEXT_TURNS:])
        instruction = INTERRUPTION_PROMPTS[reason].format(recent_text=recent_text)
        return INTERRUPTION_TEMPLATE.format(instruction=instruction, context=context)

    async def generate_interruption(self, reason: str, text: str, history: Sequence[HistoryEntry]) -> str:
        if self.llm is None:
            return INTERRUPTION_FALLBACKS[reason]

        prompt = self.build_prompt(reason, text, history)
        try:
            generated = await self.llm.complete(prompt)
        except Exception as exc:
            logger.warning("Interruption generation failed | reason=%s err=%s", reason, exc)
            return INTERRUPTION_FALLBACKS[reason]
        return str(generated or "").strip() or INTERRUPTION_DEFAULT_TEXT
