import pytest

from interview_app.db.transcript_repo import TranscriptRepository, answer_quality_score, build_qa_pairs
from interview_app.interview.errors import PersistenceFailure


HISTORY = [
    {"role": "interviewer", "content": "Why this program?", "timestamp": "2026-01-01T10:00:00+00:00"},
    {"role": "user", "content": " ".join(["word"] * 45), "timestamp": "2026-01-01T10:00:20+00:00"},
    {"role": "interviewer", "content": "Tell me about a project.", "timestamp": "2026-01-01T10:01:00+00:00"},
    {"role": "interviewer", "content": "Take your time.", "timestamp": "2026-01-01T10:01:10+00:00"},
    {"role": "user", "content": "A robot.", "timestamp": "2026-01-01T10:01:30+00:00"},
]


def test_quality_score_is_bounded():
    assert answer_quality_score("") == 1
    assert answer_quality_score("word " * 15) == 1.5
    assert answer_quality_score("word " * 45) == 4.5
    assert answer_quality_score("word " * 500) == 10


def test_qa_pairs_only_pair_adjacent_turns():
    pairs = build_qa_pairs(HISTORY)

    assert [pair["question"] for pair in pairs] == ["Why this program?", "Take your time."]
    assert pairs[0]["quality_score"] == 4.5
    assert pairs[1]["answer"] == "A robot."


@pytest.mark.asyncio
async def test_save_and_read_back(tmp_path):
    repo = TranscriptRepository(tmp_path / "transcripts.json")

    await repo.save_complete_interview_session_async("s-1", "u-1", "Stanford University", "Computer Science", HISTORY)
    repo.save_complete_interview_session("s-2", "u-2", "General", "All", [])

    record = repo.get_session_record("s-1")
    assert record["status"] == "completed"
    assert record["started_at"] == "2026-01-01T10:00:00+00:00"
    assert len(record["messages"]) == 5
    assert len(record["qa_pairs"]) == 2
    assert repo.get_session_record("missing") is None
    assert [row["session_id"] for row in repo.list_user_sessions("u-1")] == ["s-1"]
    assert repo.get_session_record("s-2")["started_at"] is None


def test_write_failure_raises_persistence_failure(tmp_path):
    repo = TranscriptRepository(tmp_path)

    with pytest.raises(PersistenceFailure):
        repo.save_complete_interview_session("s-1", "u-1", "General", "All", HISTORY)
