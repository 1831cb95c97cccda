import asyncio
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from interview_app.interview.errors import SynthesisFailure  # noqa: E402
from interview_app.interview.interruption import NO_INTERRUPTION  # noqa: E402
from interview_app.questions.models import Question  # noqa: E402
from interview_app.services.tts_service import SENTENCE_BOUNDARY  # noqa: E402


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("ELEVENLABS_API_KEY", "test-key")


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


class FakeLLM:
    """Streams canned fragments; records every prompt it was given."""

    def __init__(self, fragments=None, completion: str = "Could you give a concrete example?", fail: bool = False):
        self.fragments = list(fragments if fragments is not None else ["That sounds great.", " What drew you to it?"])
        self.completion = completion
        self.fail = fail
        self.prompts: list[str] = []

    async def stream(self, prompt: str):
        self.prompts.append(prompt)
        if self.fail:
            raise RuntimeError("forced llm failure")
        for fragment in self.fragments:
            await asyncio.sleep(0)
            yield fragment

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise RuntimeError("forced llm failure")
        return self.completion


class FakeSynthesizer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.texts: list[str] = []

    async def synthesize(self, text: str) -> bytes:
        self.texts.append(text)
        await asyncio.sleep(0)
        if self.fail:
            raise SynthesisFailure("Voice generation failed: forced")
        return f"mp3:{text}".encode("utf-8")

    async def synthesize_stream(self, text: str):
        for sentence in SENTENCE_BOUNDARY.split(text):
            if sentence.strip():
                yield await self.synthesize(sentence.strip())

    async def close(self) -> None:
        return None


class FakeTranscriptRepo:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.saved: list[dict] = []

    async def save_complete_interview_session_async(self, session_id, user_id, university, program, history):
        if self.error is not None:
            raise self.error
        self.saved.append({
            "session_id": session_id,
            "user_id": user_id,
            "university": university,
            "program": program,
            "history": history,
        })


class FakeInterruptionEngine:
    def __init__(self, decision=NO_INTERRUPTION):
        self.decision = decision
        self.calls: list[tuple] = []

    async def analyze(self, text, history, speech_duration_ms):
        self.calls.append((text, len(history), speech_duration_ms))
        return self.decision


class FrameRecorder:
    def __init__(self):
        self.frames: list[dict] = []

    async def __call__(self, payload: dict) -> None:
        self.frames.append(payload)

    def types(self) -> list[str]:
        return [frame["type"] for frame in self.frames]

    def of_type(self, frame_type: str) -> list[dict]:
        return [frame for frame in self.frames if frame["type"] == frame_type]

    def clear(self) -> None:
        self.frames.clear()


@pytest.fixture
def sample_catalog() -> list[Question]:
    return [
        Question("Stanford University", "Computer Science", "What would you build with Stanford's AI lab?", "academic", 3),
        Question("Stanford University", "All", "Why does Stanford fit you?", "motivation", 1),
        Question("Massachusetts Institute of Technology", "All", "Describe a time you hacked something.", "experience", 2),
        Question("General", "All", "Tell me about yourself.", "personal", 1),
        Question("General", "All", "Why do you want to study this subject?", "motivation", 1),
        Question("General", "All", "Describe a challenge you overcame.", "experience", 2),
        Question("General", "All", "Where do you see yourself in ten years?", "goals", 3),
        Question("General", "STEM", "Explain a scientific idea you find beautiful.", "academic", 3),
        Question("General", "Computer Science", "What is your favourite algorithm and why?", "academic", 4),
        Question("General", "Business", "How would you grow a small business?", "academic", 3),
        Question("General", "All", "What is the hardest decision you have made?", "reflection", 5),
    ]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_orchestrator(sample_catalog, fake_clock):
    from interview_app.interview.orchestrator import SessionOrchestrator
    from interview_app.interview.response_generator import ResponseGenerator
    from interview_app.session.registry import SessionRegistry

    def _make(
        llm: FakeLLM | None = None,
        synthesizer: FakeSynthesizer | None = None,
        transcript_repo: FakeTranscriptRepo | None = None,
        interruption_engine: FakeInterruptionEngine | None = None,
        **overrides,
    ):
        recorder = FrameRecorder()
        registry = SessionRegistry()
        options = {
            "clock": fake_clock,
            "end_grace_sec": 0.05,
            "speaking_fallback_sec": 30.0,
            "idle_check_interval_sec": 60.0,
            "idle_grace_sec": 20.0,
            "overrun_sec": 120.0,
            "sentence_streaming": False,
        }
        options.update(overrides)
        orchestrator = SessionOrchestrator(
            recorder,
            registry,
            response_generator=ResponseGenerator(llm or FakeLLM()),
            interruption_engine=interruption_engine or FakeInterruptionEngine(),
            synthesizer=synthesizer if synthesizer is not None else FakeSynthesizer(),
            transcript_repo=transcript_repo if transcript_repo is not None else FakeTranscriptRepo(),
            catalog=sample_catalog,
            **options,
        )
        return orchestrator, recorder, registry

    return _make
