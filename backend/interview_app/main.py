from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging

from interview_app.api.ws_interview import InterviewDependencyProvider, router as interview_ws_router
from interview_app.services.audio_store import AudioFileStore
from interview_app.session.registry import SessionRegistry
from interview_app.system_metrics import get_metrics_snapshot
from interview_core.config import (
    AUDIO_MAX_AGE_SEC,
    AUDIO_SWEEP_INTERVAL_SEC,
    CORS_ALLOW_ORIGINS,
    LLM_PROVIDER,
    QA_MODE,
    TTS_SENTENCE_STREAMING,
)

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

app = FastAPI(title="Mock Interview Orchestrator")
logger = logging.getLogger("interview_app.main")


def _get_allowed_origins() -> list[str]:
    if not CORS_ALLOW_ORIGINS:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:3001",
            "http://127.0.0.1:3001",
        ]
    return [item.strip() for item in CORS_ALLOW_ORIGINS.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.state.session_registry = SessionRegistry()
app.state.audio_store = AudioFileStore()
app.state.interview_dependencies = InterviewDependencyProvider(
    registry=app.state.session_registry,
    audio_store=app.state.audio_store,
)


@app.on_event("startup")
async def startup_banner():
    if QA_MODE:
        logger.info("[SYSTEM] QA_MODE ENABLED")
    logger.info("[SYSTEM] CORS allow_origins=%s", _allowed_origins)
    logger.info("[SYSTEM] llm_provider=%s tts_sentence_streaming=%s", LLM_PROVIDER, TTS_SENTENCE_STREAMING)
    app.state.audio_store.start_sweeper()


@app.on_event("shutdown")
async def shutdown_handler():
    await app.state.audio_store.stop_sweeper()
    await app.state.interview_dependencies.synthesizer.close()
    logger.info("[SYSTEM] shutdown complete")


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "service": "backend"}


@app.get("/api/system/metrics")
def system_metrics_route(request: Request):
    registry: SessionRegistry = request.app.state.session_registry
    return get_metrics_snapshot(extra={
        "sessions_registered": len(registry),
        "audio_max_age_sec": AUDIO_MAX_AGE_SEC,
        "audio_sweep_interval_sec": AUDIO_SWEEP_INTERVAL_SEC,
    })


app.include_router(interview_ws_router)
