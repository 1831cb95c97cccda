import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=True)


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


# ---------- LLM ----------
LLM_PROVIDER = str(os.getenv("LLM_PROVIDER") or "openai").strip().lower()
OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gpt-4o-mini").strip()  # fast streaming for live turns
GEMINI_API_KEY = str(os.getenv("GEMINI_API_KEY") or "").strip()
GEMINI_MODEL = str(os.getenv("GEMINI_MODEL") or "gemini-2.0-flash").strip()
LLM_TIMEOUT_SEC = max(2.0, float(os.getenv("LLM_TIMEOUT_SEC", "15")))
LLM_RETRIES = max(0, int(os.getenv("LLM_RETRIES", "2")))

# ---------- TTS ----------
ELEVENLABS_API_KEY = str(os.getenv("ELEVENLABS_API_KEY") or "").strip()
ELEVENLABS_VOICE_ID = str(os.getenv("ELEVENLABS_VOICE_ID") or "JBFqnCBsd6RMkjVDRZzb").strip()
ELEVENLABS_MODEL_ID = str(os.getenv("ELEVENLABS_MODEL_ID") or "eleven_multilingual_v2").strip()
ELEVENLABS_OUTPUT_FORMAT = str(os.getenv("ELEVENLABS_OUTPUT_FORMAT") or "mp3_44100_128").strip()
TTS_TIMEOUT_SEC = max(5.0, float(os.getenv("TTS_TIMEOUT_SEC", "30")))
TTS_SENTENCE_STREAMING = _env_flag("TTS_SENTENCE_STREAMING")

# ---------- Transient audio ----------
AUDIO_TEMP_DIR = Path(os.getenv("AUDIO_TEMP_DIR") or (_BACKEND_ROOT / "temp_audio"))
AUDIO_MAX_AGE_SEC = max(60, int(os.getenv("AUDIO_MAX_AGE_SEC", "1800")))
AUDIO_SWEEP_INTERVAL_SEC = max(30, int(os.getenv("AUDIO_SWEEP_INTERVAL_SEC", "600")))

# ---------- Data ----------
QUESTION_CATALOG_PATH = str(os.getenv("QUESTION_CATALOG_PATH") or "").strip()
TRANSCRIPT_STORE_PATH = Path(os.getenv("TRANSCRIPT_STORE_PATH") or (_BACKEND_ROOT / "data" / "interview_transcripts.json"))

# ---------- Session pacing ----------
SESSION_END_GRACE_SEC = max(0.0, float(os.getenv("SESSION_END_GRACE_SEC", "3.0")))
AI_SPEAKING_FALLBACK_SEC = max(5.0, float(os.getenv("AI_SPEAKING_FALLBACK_SEC", "20")))
SESSION_IDLE_CHECK_INTERVAL_SEC = max(0.5, float(os.getenv("SESSION_IDLE_CHECK_INTERVAL_SEC", "5")))
SESSION_IDLE_GRACE_SEC = max(0.0, float(os.getenv("SESSION_IDLE_GRACE_SEC", "20")))
SESSION_OVERRUN_SEC = max(0.0, float(os.getenv("SESSION_OVERRUN_SEC", "120")))

# ---------- Transport ----------
WS_MAX_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", "65536")))
CORS_ALLOW_ORIGINS = str(os.getenv("CORS_ALLOW_ORIGINS") or "").strip()
QA_MODE = _env_flag("QA_MODE")
