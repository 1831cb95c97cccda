import json
import logging
from functools import lru_cache
from pathlib import Path

from interview_app.questions.models import Question
from interview_core.config import QUESTION_CATALOG_PATH

logger = logging.getLogger("interview_app.questions.catalog")

_DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "data" / "question_catalog.json"


def _resolve_path(path: str | Path | None) -> Path:
    if path:
        return Path(path)
    if QUESTION_CATALOG_PATH:
        return Path(QUESTION_CATALOG_PATH)
    return _DEFAULT_CATALOG_PATH


def parse_catalog(payload) -> tuple[Question, ...]:
    if isinstance(payload, dict):
        payload = payload.get("questions") or []
    if not isinstance(payload, list):
        raise ValueError("question catalog must be a list of question objects")

    questions: list[Question] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        question = Question.from_dict(item)
        if not question.question_text:
            continue
        questions.append(question)
    return tuple(questions)


@lru_cache(maxsize=8)
def _load_cached(resolved: str) -> tuple[Question, ...]:
    raw = Path(resolved).read_text(encoding="utf-8")
    questions = parse_catalog(json.loads(raw))
    logger.info("Question catalog loaded | path=%s questions=%s", resolved, len(questions))
    return questions


def load_question_catalog(path: str | Path | None = None) -> tuple[Question, ...]:
    """Read-only catalog, parsed once per path for the life of the process."""
    return _load_cached(str(_resolve_path(path).resolve()))


def clear_catalog_cache() -> None:
    _load_cached.cache_clear()
