from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketState

from interview_app.api import protocol
from interview_app.api.protocol import parse_client_message
from interview_app.db.transcript_repo import TranscriptRepository
from interview_app.interview.educational_context import EducationalContextProvider
from interview_app.interview.errors import ProtocolError
from interview_app.interview.interruption import InterruptionEngine
from interview_app.interview.orchestrator import SessionOrchestrator
from interview_app.interview.response_generator import ResponseGenerator
from interview_app.services.audio_store import AudioFileStore
from interview_app.services.llm import StreamingLLM, build_llm_client
from interview_app.services.tts_service import ElevenLabsSynthesizer
from interview_app.session.registry import SessionRegistry
from interview_app.system_metrics import decrement_metric, increment_metric
from interview_core.config import WS_MAX_TEXT_BYTES
from interview_core.logger import log_event

router = APIRouter()
logger = logging.getLogger("interview_app.api.ws_interview")


class InterviewDependencyProvider:
    """Process-wide collaborators shared by every interview connection."""

    def __init__(
        self,
        registry: SessionRegistry | None = None,
        audio_store: AudioFileStore | None = None,
        llm: StreamingLLM | None = None,
        synthesizer: ElevenLabsSynthesizer | None = None,
        transcript_repo: TranscriptRepository | None = None,
        context_provider: EducationalContextProvider | None = None,
    ):
        self.registry = registry if registry is not None else SessionRegistry()
        self.audio_store = audio_store if audio_store is not None else AudioFileStore()
        self._llm = llm
        self.synthesizer = synthesizer if synthesizer is not None else ElevenLabsSynthesizer(audio_store=self.audio_store)
        self.transcript_repo = transcript_repo if transcript_repo is not None else TranscriptRepository()
        self.context_provider = context_provider if context_provider is not None else EducationalContextProvider()

    @property
    def llm(self) -> StreamingLLM:
        if self._llm is None:
            self._llm = build_llm_client()
        return self._llm

    def create_response_generator(self) -> ResponseGenerator:
        return ResponseGenerator(self.llm, context_provider=self.context_provider)

    def create_interruption_engine(self) -> InterruptionEngine:
        return InterruptionEngine(llm=self.llm)

    def create_orchestrator(self, send) -> SessionOrchestrator:
        return SessionOrchestrator(
            send,
            self.registry,
            response_generator=self.create_response_generator(),
            interruption_engine=self.create_interruption_engine(),
            synthesizer=self.synthesizer,
            transcript_repo=self.transcript_repo,
        )


async def _send_text_with_lock(websocket: WebSocket, send_lock: asyncio.Lock, encoded_payload: str) -> None:
    async with send_lock:
        await websocket.send_text(encoded_payload)


@router.websocket("/ws/interview")
async def interview_ws(websocket: WebSocket):
    provider: InterviewDependencyProvider = websocket.app.state.interview_dependencies
    await websocket.accept()
    increment_metric("ws_connections_active", 1)
    send_lock = asyncio.Lock()

    async def _safe_send(payload: dict):
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            encoded = json.dumps(payload)
        except Exception as exc:
            logger.warning("ws payload encode failed | err=%s", exc)
            return
        try:
            await _send_text_with_lock(websocket, send_lock, encoded)
        except Exception as exc:
            logger.warning("ws send failed | err=%s", exc)

    orchestrator = provider.create_orchestrator(_safe_send)

    def _log_event(event: str, **fields):
        session_id = orchestrator.session.session_id if orchestrator.session is not None else ""
        log_event("ws_interview", event, session_id, **fields)

    _log_event("connect")
    try:
        while True:
            msg = await websocket.receive()
            if msg["type"] == "websocket.disconnect":
                _log_event("disconnect", reason="client_disconnect")
                break

            text_payload = msg.get("text")
            if not text_payload:
                continue
            if len(text_payload.encode("utf-8")) > WS_MAX_TEXT_BYTES:
                logger.warning("WS message too large | bytes=%s", len(text_payload.encode("utf-8")))
                _log_event("disconnect", reason="message_too_large")
                await websocket.close(code=1009, reason="Message too large")
                break

            try:
                message = parse_client_message(text_payload)
            except ProtocolError as exc:
                await _safe_send(protocol.error(exc.message))
                continue

            _log_event("message_received", message_type=message.type)
            try:
                await orchestrator.handle_message(message)
            except Exception:
                logger.exception("Error handling message | type=%s", message.type)
                await _safe_send(protocol.error("Internal server error"))
    except Exception as exc:
        logger.warning("WebSocket receive loop ended | err=%s", exc)
    finally:
        await orchestrator.close()
        decrement_metric("ws_connections_active", 1)
        _log_event("closed")
