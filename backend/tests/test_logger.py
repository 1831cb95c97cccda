import json
import logging

from interview_core.logger import log_event
from interview_core.state import SessionPhase


def test_log_event_redacts_conversation_text(caplog):
    with caplog.at_level(logging.INFO, logger="interview"):
        log_event("orchestrator", "turn_completed", "s-1", content="my secret answer", phase=SessionPhase.LISTENING, questions_asked=2)

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["event"] == "turn_completed"
    assert payload["session_id"] == "s-1"
    assert payload["content"] == {"redacted": True, "length": 16}
    assert payload["phase"] == "listening"
    assert payload["questions_asked"] == 2


def test_log_event_honours_level(caplog):
    with caplog.at_level(logging.INFO, logger="interview"):
        log_event("orchestrator", "synthesis_failed", "s-1", level=logging.WARNING, error="x" * 400)

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert json.loads(record.getMessage())["error"].endswith("...")
