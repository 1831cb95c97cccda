from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Iterable, Optional

from interview_app.api import protocol
from interview_app.api.protocol import (
    AudioEndedMessage,
    EndSessionMessage,
    InitMessage,
    SpeechInterimMessage,
    TextInputMessage,
    UserInterruptMessage,
)
from interview_app.db.transcript_repo import TranscriptRepository
from interview_app.interview.errors import (
    AISpeakingConflict,
    InterviewError,
    ProtocolError,
    SessionEnding,
    SessionNotInitialized,
    SynthesisFailure,
)
from interview_app.interview.interruption import InterruptionEngine, count_words
from interview_app.interview.prompts import DEFAULT_OPENING_QUESTION, FAST_START_GREETING, WARMUP_GREETING
from interview_app.interview.response_generator import ResponseGenerator
from interview_app.interview.session import ROLE_INTERVIEWER, ROLE_USER, InterviewSession
from interview_app.questions.bank import MAX_DIFFICULTY, QuestionBank
from interview_app.questions.models import Question
from interview_app.services.tts_service import ElevenLabsSynthesizer
from interview_app.session.registry import SessionRegistry
from interview_app.system_metrics import (
    decrement_metric,
    increment_metric,
    observe_first_chunk_latency_ms,
    record_session_ended,
)
from interview_core.config import (
    AI_SPEAKING_FALLBACK_SEC,
    SESSION_END_GRACE_SEC,
    SESSION_IDLE_CHECK_INTERVAL_SEC,
    SESSION_IDLE_GRACE_SEC,
    SESSION_OVERRUN_SEC,
    TTS_SENTENCE_STREAMING,
)
from interview_core.logger import log_event
from interview_core.state import SessionPhase

logger = logging.getLogger("interview_app.interview.orchestrator")

SendFn = Callable[[dict], Awaitable[None]]

SPEAKING_SEC_PER_WORD = 0.4
MIN_LOGGED_INTERRUPT_WORDS = 3


class SessionOrchestrator:
    """
    Drives one interview over one duplex connection.

    Inbound messages are handled without blocking the receive loop: long work
    (opening line, replies, interjections) runs in background tasks that take
    turn_lock in the order they were issued, so per-turn frames always go out
    as chunks -> interviewer_message -> interviewer_audio.

    is_ai_speaking is raised before every synthesis and dropped only by
    audio_ended, user_interrupt, a synthesis failure, or the per-utterance
    safety timer. Whenever the floor returns to the user, start_listening is sent.
    """

    def __init__(
        self,
        send: SendFn,
        registry: SessionRegistry,
        *,
        response_generator: ResponseGenerator,
        interruption_engine: InterruptionEngine,
        synthesizer: ElevenLabsSynthesizer | None = None,
        transcript_repo: TranscriptRepository | None = None,
        catalog: Optional[Iterable[Question]] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
        end_grace_sec: float = SESSION_END_GRACE_SEC,
        speaking_fallback_sec: float = AI_SPEAKING_FALLBACK_SEC,
        idle_check_interval_sec: float = SESSION_IDLE_CHECK_INTERVAL_SEC,
        idle_grace_sec: float = SESSION_IDLE_GRACE_SEC,
        overrun_sec: float = SESSION_OVERRUN_SEC,
        sentence_streaming: bool = TTS_SENTENCE_STREAMING,
        speaking_sec_per_word: float = SPEAKING_SEC_PER_WORD,
    ):
        self._send = send
        self.registry = registry
        self.response_generator = response_generator
        self.interruption_engine = interruption_engine
        self.synthesizer = synthesizer
        self.transcript_repo = transcript_repo
        self.catalog = catalog
        self._clock = clock
        self._rng = rng

        self.end_grace_sec = float(end_grace_sec)
        self.speaking_fallback_sec = float(speaking_fallback_sec)
        self.idle_check_interval_sec = float(idle_check_interval_sec)
        self.idle_grace_sec = float(idle_grace_sec)
        self.overrun_sec = float(overrun_sec)
        self.sentence_streaming = bool(sentence_streaming)
        self.speaking_sec_per_word = float(speaking_sec_per_word)

        self.session: InterviewSession | None = None
        self.turn_lock = asyncio.Lock()
        self.responding = False
        self.interrupt_in_flight = False
        self.last_activity_ts = self._clock()
        self.ended = asyncio.Event()

        self._finalized = False
        self._work_tasks: set[asyncio.Task] = set()
        self._speaking_token = 0
        self._speaking_timer: asyncio.Task | None = None
        self._watchdog_task: asyncio.Task | None = None
        self._end_task: asyncio.Task | None = None

    # ---------- task helpers ----------

    def _spawn_work(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._work_tasks.add(task)
        task.add_done_callback(self._work_tasks.discard)
        return task

    @staticmethod
    def _cancel(task: asyncio.Task | None) -> None:
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()

    async def drain(self) -> None:
        """Wait until every queued reply and interjection has finished."""
        while self._work_tasks:
            await asyncio.gather(*list(self._work_tasks), return_exceptions=True)

    def _log_event(self, event: str, **fields) -> None:
        session_id = self.session.session_id if self.session is not None else ""
        log_event("orchestrator", event, session_id, **fields)

    # ---------- dispatch ----------

    async def handle_message(self, message) -> None:
        self.last_activity_ts = self._clock()
        try:
            if isinstance(message, InitMessage):
                await self.handle_init(message.user_id, message.university, message.program, message.duration)
            elif isinstance(message, TextInputMessage):
                await self.handle_user_text(message.text)
            elif isinstance(message, SpeechInterimMessage):
                await self.handle_interim_speech(message.text)
            elif isinstance(message, UserInterruptMessage):
                await self.handle_user_interrupt(message.text)
            elif isinstance(message, AudioEndedMessage):
                await self.handle_audio_ended()
            elif isinstance(message, EndSessionMessage):
                await self.end_session()
            else:
                raise ProtocolError(f"Unknown message type: {getattr(message, 'type', None)}")
        except InterviewError as exc:
            logger.info("Message rejected | type=%s err=%s", getattr(message, "type", None), exc.message)
            await self._send(protocol.error(exc.message))

    def _require_session(self) -> InterviewSession:
        if self.session is None:
            raise SessionNotInitialized()
        if self._finalized:
            raise SessionEnding()
        return self.session

    # ---------- inbound handlers ----------

    async def handle_init(self, user_id: str, university: str, program: str, duration: float) -> InterviewSession:
        if self.session is not None:
            raise ProtocolError("Session already initialized")

        bank = QuestionBank(university, program, catalog=self.catalog, rng=self._rng)
        session = InterviewSession(
            user_id=user_id,
            target_university=bank.target_university,
            target_program=bank.target_program,
            duration=duration,
            question_bank=bank,
            clock=self._clock,
        )
        self.session = session
        self.registry.register(session)
        increment_metric("interview_sessions_started", 1)
        increment_metric("interview_sessions_active", 1)
        self._log_event(
            "session_started",
            user_id=user_id,
            university=session.target_university,
            program=session.target_program,
            duration=duration,
            max_questions=session.max_questions,
            has_warmup=session.has_warmup,
            candidate_questions=len(bank.questions),
        )

        await self._send(protocol.session_ready(session.session_id))

        if session.has_warmup:
            opening = WARMUP_GREETING.format(program=session.target_program, university=session.target_university)
        else:
            question = bank.get_opening_question()
            opening = FAST_START_GREETING.format(
                program=session.target_program,
                university=session.target_university,
                question=question.question_text if question else DEFAULT_OPENING_QUESTION,
            )
            session.questions_asked = 1

        # raise the floor now so nothing sneaks in before the opening task runs
        self._begin_speaking(session, opening)
        self._spawn_work(self._deliver_opening(session, opening))
        self._watchdog_task = asyncio.create_task(self._watchdog(session))
        return session

    async def handle_user_text(self, text: str) -> None:
        session = self._require_session()
        cleaned = str(text or "").strip()
        if not cleaned:
            raise ProtocolError("Message text is required")
        if session.phase in (SessionPhase.ENDING, SessionPhase.ENDED):
            raise SessionEnding()
        if session.is_ai_speaking:
            raise AISpeakingConflict()
        if self.responding:
            raise AISpeakingConflict("Please wait for the interviewer to finish responding")

        self.responding = True
        self._spawn_work(self._run_turn(session, cleaned))

    async def handle_interim_speech(self, text: str) -> None:
        session = self._require_session()
        if session.is_ai_speaking:
            await self._send(protocol.pause_listening())
            return
        if self.responding or self.interrupt_in_flight or session.phase != SessionPhase.LISTENING:
            return

        cleaned = str(text or "").strip()
        if not cleaned:
            return

        if not session.speech_tracker.is_speaking:
            session.speech_tracker.on_speech_start()
        self.interrupt_in_flight = True
        self._spawn_work(self._analyze_interim(session, cleaned))

    async def handle_user_interrupt(self, text: Optional[str] = None) -> None:
        session = self._require_session()
        increment_metric("user_barge_ins", 1)
        fragment = str(text or "").strip()
        logged = count_words(fragment) >= MIN_LOGGED_INTERRUPT_WORDS
        if logged:
            session.append_history(ROLE_USER, fragment)
        self._log_event("user_interrupt", was_speaking=session.is_ai_speaking, logged=logged)
        await self._release_floor(session, "user_interrupt")

    async def handle_audio_ended(self) -> None:
        session = self._require_session()
        await self._release_floor(session, "audio_ended")

    async def end_session(self) -> None:
        self._require_session()
        await self.finalize("end_session")

    # ---------- floor control ----------

    def _begin_speaking(self, session: InterviewSession, text: str) -> None:
        session.is_ai_speaking = True
        if session.phase == SessionPhase.LISTENING:
            session.phase = SessionPhase.AI_SPEAKING

        self._speaking_token += 1
        self._cancel(self._speaking_timer)
        delay = self.speaking_fallback_sec + self.speaking_sec_per_word * count_words(text)
        self._speaking_timer = asyncio.create_task(self._speaking_fallback(session, self._speaking_token, delay))

    async def _speaking_fallback(self, session: InterviewSession, token: int, delay: float) -> None:
        await asyncio.sleep(delay)
        if token != self._speaking_token or not session.is_ai_speaking:
            return
        logger.warning("No audio_ended received, releasing floor | session_id=%s", session.session_id)
        await self._release_floor(session, "fallback_timeout")

    async def _release_floor(self, session: InterviewSession, reason: str) -> None:
        if not session.is_ai_speaking:
            return
        session.is_ai_speaking = False
        self._cancel(self._speaking_timer)
        self._speaking_timer = None
        self._log_event("floor_released", reason=reason)

        if session.phase == SessionPhase.AI_SPEAKING:
            session.phase = SessionPhase.LISTENING
            await self._send(protocol.start_listening())

    # ---------- utterance delivery ----------

    async def _play(self, session: InterviewSession, text: str) -> None:
        if self.synthesizer is None:
            await self._synthesis_failed(session, SynthesisFailure("Text-to-speech is not configured"))
            return
        try:
            if self.sentence_streaming:
                async for audio in self.synthesizer.synthesize_stream(text):
                    await self._send(protocol.interviewer_audio(audio))
            else:
                audio = await self.synthesizer.synthesize(text)
                await self._send(protocol.interviewer_audio(audio))
        except SynthesisFailure as exc:
            await self._synthesis_failed(session, exc)
        except Exception as exc:
            logger.exception("Unexpected synthesis error | session_id=%s", session.session_id)
            await self._synthesis_failed(session, SynthesisFailure(f"Voice generation failed: {exc}"))

    async def _synthesis_failed(self, session: InterviewSession, exc: SynthesisFailure) -> None:
        increment_metric("synthesis_failures", 1)
        self._log_event("synthesis_failed", level=logging.WARNING, error=exc.message)
        await self._send(protocol.error(SynthesisFailure.default_message))
        await self._release_floor(session, "synthesis_failure")

    async def _deliver_utterance(
        self,
        session: InterviewSession,
        text: str,
        *,
        is_interruption: bool = False,
        preface: dict | None = None,
    ) -> None:
        session.append_history(ROLE_INTERVIEWER, text)
        self._begin_speaking(session, text)
        if preface is not None:
            await self._send(preface)
        await self._send(protocol.interviewer_message(text, is_interruption=is_interruption))
        await self._play(session, text)

    async def _deliver_opening(self, session: InterviewSession, text: str) -> None:
        async with self.turn_lock:
            if self._finalized:
                return
            await self._deliver_utterance(session, text)
            self._log_event("opening_delivered", text=text, questions_asked=session.questions_asked)

    # ---------- turns ----------

    async def _run_turn(self, session: InterviewSession, text: str) -> None:
        try:
            async with self.turn_lock:
                if self._finalized:
                    return
                await self._reply(session, text)
        except Exception:
            logger.exception("Turn failed | session_id=%s", session.session_id)
            await self._send(protocol.error("Failed to generate response"))
            await self._release_floor(session, "turn_failure")
        finally:
            self.responding = False

    async def _reply(self, session: InterviewSession, text: str) -> None:
        session.append_history(ROLE_USER, text)
        session.speech_tracker.add_words(count_words(text))
        session.speech_tracker.on_speech_end()

        should_end_now = session.is_budget_exhausted()
        started_at = time.monotonic()
        parts: list[str] = []
        async for chunk in self.response_generator.generate(session, text):
            if not parts:
                observe_first_chunk_latency_ms((time.monotonic() - started_at) * 1000.0)
            parts.append(chunk)
            await self._send(protocol.interviewer_text_chunk(chunk))

        full_text = "".join(parts).strip()

        if "?" in full_text and not should_end_now:
            session.questions_asked += 1
            asked = session.question_bank.mark_asked(full_text)
            next_difficulty = asked.difficulty_level if asked is not None else session.current_difficulty + 1
            session.current_difficulty = min(MAX_DIFFICULTY, max(session.current_difficulty, next_difficulty))

        if should_end_now:
            session.phase = SessionPhase.ENDING

        await self._deliver_utterance(session, full_text)
        increment_metric("turns_completed", 1)
        self._log_event(
            "turn_completed",
            content=full_text,
            questions_asked=session.questions_asked,
            max_questions=session.max_questions,
            elapsed_min=round(session.elapsed_minutes(), 2),
            ending=should_end_now,
        )

        if should_end_now:
            reason = "time_exhausted" if session.is_time_exhausted() else "budget_exhausted"
            self._end_task = asyncio.create_task(self._finalize_later(reason))

    async def _analyze_interim(self, session: InterviewSession, text: str) -> None:
        try:
            decision = await self.interruption_engine.analyze(
                text,
                list(session.conversation_history),
                session.speech_tracker.speech_duration,
            )
            if not decision.should_interrupt:
                return

            async with self.turn_lock:
                # a reply already took the floor while we were deciding
                if self._finalized or self.responding or session.phase != SessionPhase.LISTENING:
                    self._log_event("interjection_dropped", reason=decision.reason)
                    return

                increment_metric("interruptions_emitted", 1)
                self._log_event("interjection", reason=decision.reason, interruption_text=decision.interruption_text)
                interjection = str(decision.interruption_text or "").strip()
                await self._deliver_utterance(
                    session,
                    interjection,
                    is_interruption=True,
                    preface=protocol.interrupt(decision.reason),
                )
                session.speech_tracker.reset()
        except Exception:
            logger.exception("Interruption analysis failed | session_id=%s", session.session_id)
        finally:
            self.interrupt_in_flight = False

    # ---------- ending ----------

    async def _finalize_later(self, reason: str) -> None:
        await asyncio.sleep(self.end_grace_sec)
        await self.finalize(reason)

    async def _watchdog(self, session: InterviewSession) -> None:
        while not self._finalized:
            await asyncio.sleep(self.idle_check_interval_sec)
            if self._finalized or not session.is_time_exhausted():
                continue

            overrun = session.elapsed_minutes() * 60.0 >= session.duration * 60.0 + self.overrun_sec
            closing_pending = self._end_task is not None and not self._end_task.done()
            busy = self.responding or self.turn_lock.locked() or closing_pending
            quiet = (self._clock() - self.last_activity_ts) >= self.idle_grace_sec
            if overrun or (quiet and not busy):
                logger.info(
                    "Interview time elapsed, finalizing | session_id=%s overrun=%s",
                    session.session_id,
                    overrun,
                )
                await self.finalize("time_exhausted")
                return

    async def finalize(self, reason: str, notify: bool = True) -> None:
        """Persist, unregister and announce the end. Safe to call more than once."""
        session = self.session
        if session is None or self._finalized:
            return
        self._finalized = True
        session.phase = SessionPhase.ENDING
        session.is_ai_speaking = False

        self._cancel(self._speaking_timer)
        self._cancel(self._watchdog_task)
        self._cancel(self._end_task)
        for task in list(self._work_tasks):
            self._cancel(task)

        if self.transcript_repo is not None:
            try:
                await self.transcript_repo.save_complete_interview_session_async(
                    session.session_id,
                    session.user_id,
                    session.target_university,
                    session.target_program,
                    session.history_as_dicts(),
                )
            except Exception as exc:
                increment_metric("persistence_failures", 1)
                logger.warning("Transcript save failed | session_id=%s err=%s", session.session_id, exc)

        self.registry.remove(session.session_id)
        decrement_metric("interview_sessions_active", 1)
        record_session_ended(reason)
        session.phase = SessionPhase.ENDED
        self._log_event(
            "session_ended",
            reason=reason,
            questions_asked=session.questions_asked,
            messages=len(session.conversation_history),
            elapsed_min=round(session.elapsed_minutes(), 2),
        )

        if notify:
            await self._send(protocol.session_ended())
        self.ended.set()

    async def close(self) -> None:
        """Connection went away: end without notifying, then stop background work."""
        await self.finalize("disconnect", notify=False)
        pending = [task for task in self._work_tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
