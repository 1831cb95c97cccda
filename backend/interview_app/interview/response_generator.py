from __future__ import annotations

import logging
from typing import AsyncIterator

from interview_app.interview.educational_context import EducationalContextProvider
from interview_app.interview.prompts import (
    CLOSING_QUESTION_DIRECTIVE,
    CLOSING_STATEMENT_DIRECTIVE,
    FALLBACK_REPLY,
    REMAINING_BUDGET_DIRECTIVE,
    build_response_prompt,
)
from interview_app.interview.session import ROLE_INTERVIEWER, ROLE_USER, InterviewSession
from interview_app.system_metrics import increment_metric

logger = logging.getLogger("interview_app.interview.response_generator")

PACING_CLOSING_QUESTION = "closing_question"
PACING_CLOSING_STATEMENT = "closing_statement"
PACING_REMAINING_BUDGET = "remaining_budget"


def serialize_history(session: InterviewSession, user_text: str) -> str:
    entries = list(session.conversation_history)
    # the new utterance is rendered separately as the final "Student:" line
    if entries and entries[-1].role == ROLE_USER and entries[-1].content == user_text:
        entries = entries[:-1]
    return "\n".join(
        f"{'Interviewer' if entry.role == ROLE_INTERVIEWER else 'Student'}: {entry.content}"
        for entry in entries
    )


class ResponseGenerator:
    """
    Produces one interviewer turn as a lazy, ordered stream of text fragments.

    The stream never raises: on any generation failure, and when the model
    produced nothing usable, it yields the single fallback fragment instead.
    """

    def __init__(self, llm, context_provider: EducationalContextProvider | None = None):
        self.llm = llm
        self.context_provider = context_provider if context_provider is not None else EducationalContextProvider()

    def choose_pacing(self, session: InterviewSession) -> tuple[str, str]:
        remaining = session.remaining_minutes()
        if (
            0 < remaining <= session.final_question_reserve
            and session.questions_asked < session.max_questions
            and not session.closing_question_asked
        ):
            return PACING_CLOSING_QUESTION, CLOSING_QUESTION_DIRECTIVE

        if session.is_budget_exhausted():
            return PACING_CLOSING_STATEMENT, CLOSING_STATEMENT_DIRECTIVE

        directive = REMAINING_BUDGET_DIRECTIVE.format(
            questions_left=max(0, session.max_questions - session.questions_asked),
            minutes_left=max(0.0, remaining),
        )
        return PACING_REMAINING_BUDGET, directive

    async def _trends_digest(self, session: InterviewSession) -> str:
        try:
            return await self.context_provider.get_context(session.target_university, session.target_program)
        except Exception as exc:
            logger.warning("Trends digest unavailable | session_id=%s err=%s", session.session_id, exc)
            return ""

    async def build_prompt(self, session: InterviewSession, user_text: str, pacing: tuple[str, str] | None = None) -> str:
        pacing_kind, pacing_directive = pacing or self.choose_pacing(session)
        logger.info("Pacing directive | session_id=%s kind=%s", session.session_id, pacing_kind)
        return build_response_prompt(
            question_context=session.question_bank.get_question_context(),
            trends_context=await self._trends_digest(session),
            conversation=serialize_history(session, user_text),
            user_text=user_text,
            pacing_directive=pacing_directive,
            university=session.target_university,
            program=session.target_program,
        )

    async def generate(self, session: InterviewSession, user_text: str) -> AsyncIterator[str]:
        produced_text = False
        pacing = self.choose_pacing(session)
        try:
            prompt = await self.build_prompt(session, user_text, pacing)
            async for fragment in self.llm.stream(prompt):
                if not fragment:
                    continue
                if fragment.strip():
                    produced_text = True
                yield fragment
        except Exception as exc:
            logger.warning("AI generation error | session_id=%s err=%s", session.session_id, exc)

        if not produced_text:
            increment_metric("generation_fallbacks", 1)
            yield FALLBACK_REPLY
        elif pacing[0] == PACING_CLOSING_QUESTION:
            # only a turn the model actually spoke uses up the closing question
            session.closing_question_asked = True
