import asyncio
import json

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from conftest import FakeLLM, FakeSynthesizer, FakeTranscriptRepo
from interview_app.api import ws_interview
from interview_app.api.ws_interview import InterviewDependencyProvider
from interview_app.main import app
from interview_app.services.audio_store import AudioFileStore
from interview_app.session.registry import SessionRegistry


class FakeWebSocket:
    def __init__(self):
        self.client_state = WebSocketState.CONNECTED
        self.sent = []

    async def send_text(self, payload: str):
        await asyncio.sleep(0)
        self.sent.append(payload)


@pytest.mark.asyncio
async def test_send_text_with_lock_serializes_single_connection():
    ws = FakeWebSocket()
    lock = asyncio.Lock()

    async def _send(i: int):
        await ws_interview._send_text_with_lock(ws, lock, json.dumps({"index": i}))

    await asyncio.gather(*[_send(i) for i in range(50)])

    decoded = [json.loads(item)["index"] for item in ws.sent]
    assert sorted(decoded) == list(range(50))


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, tmp_path):
    registry = SessionRegistry()
    repo = FakeTranscriptRepo()
    provider = InterviewDependencyProvider(
        registry=registry,
        audio_store=AudioFileStore(root=tmp_path),
        llm=FakeLLM(),
        synthesizer=FakeSynthesizer(),
        transcript_repo=repo,
    )
    monkeypatch.setattr(app.state, "interview_dependencies", provider)
    monkeypatch.setattr(app.state, "session_registry", registry)
    return TestClient(app), registry, repo


def test_healthz_and_metrics(client):
    test_client, _, _ = client

    assert test_client.get("/healthz").json() == {"status": "ok", "service": "backend"}
    metrics = test_client.get("/api/system/metrics").json()
    assert "interview_sessions_started" in metrics
    assert metrics["sessions_registered"] == 0


def test_interview_over_websocket(client):
    test_client, registry, repo = client

    with test_client.websocket_connect("/ws/interview") as ws:
        ws.send_text(json.dumps({"type": "bogus"}))
        assert ws.receive_json() == {"type": "error", "message": "Unknown message type: bogus"}

        ws.send_text(json.dumps({"type": "init", "userId": "u-9", "university": "General", "program": "All", "duration": 2}))
        ready = ws.receive_json()
        assert ready["type"] == "session_ready"
        assert ready["sessionId"] in registry

        opening = ws.receive_json()
        assert opening["type"] == "interviewer_message"
        assert ws.receive_json()["type"] == "interviewer_audio"

        ws.send_text(json.dumps({"type": "audio_ended"}))
        assert ws.receive_json() == {"type": "start_listening"}

        ws.send_text(json.dumps({"type": "text_input", "text": "I like robots."}))
        frames = []
        while not frames or frames[-1]["type"] != "interviewer_audio":
            frames.append(ws.receive_json())
        types = [frame["type"] for frame in frames]
        assert types[0] == "interviewer_text_chunk"
        assert types[-2:] == ["interviewer_message", "interviewer_audio"]

        ws.send_text(json.dumps({"type": "end_session"}))
        assert ws.receive_json()["type"] == "session_ended"

    assert len(registry) == 0
    assert repo.saved[0]["user_id"] == "u-9"


def test_provider_keeps_the_injected_empty_registry():
    registry = SessionRegistry()
    provider = InterviewDependencyProvider(registry=registry, llm=FakeLLM(), synthesizer=FakeSynthesizer(), transcript_repo=FakeTranscriptRepo())

    assert len(registry) == 0
    assert provider.registry is registry
    assert app.state.interview_dependencies.registry is app.state.session_registry


def test_metrics_count_live_sessions(client):
    test_client, registry, _ = client

    with test_client.websocket_connect("/ws/interview") as ws:
        ws.send_text(json.dumps({"type": "init", "userId": "u-1", "duration": 2}))
        assert ws.receive_json()["type"] == "session_ready"

        metrics = test_client.get("/api/system/metrics").json()
        assert metrics["sessions_registered"] == 1
        assert len(registry) == 1

        ws.send_text(json.dumps({"type": "end_session"}))
        while ws.receive_json()["type"] != "session_ended":
            pass
