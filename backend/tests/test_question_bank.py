import json
import random

from interview_app.questions.bank import QuestionBank, is_program_match
from interview_app.questions.catalog import clear_catalog_cache, load_question_catalog, parse_catalog
from interview_app.questions.models import Question


def test_filter_keeps_target_school_and_matching_general_entries(sample_catalog):
    bank = QuestionBank("Stanford University", "Computer Science", catalog=sample_catalog)
    texts = {q.question_text for q in bank.questions}

    assert "Why does Stanford fit you?" in texts
    assert "Tell me about yourself." in texts
    assert "Explain a scientific idea you find beautiful." in texts  # STEM alias
    assert "What is your favourite algorithm and why?" in texts
    assert "Describe a time you hacked something." not in texts
    assert "How would you grow a small business?" not in texts


def test_school_specific_questions_rank_first_then_by_difficulty(sample_catalog):
    bank = QuestionBank("Stanford University", "Computer Science", catalog=sample_catalog)

    assert [q.university for q in bank.questions[:2]] == ["Stanford University", "Stanford University"]
    assert bank.questions[0].difficulty_level == 1
    general = [q.difficulty_level for q in bank.questions if q.is_general]
    assert general == sorted(general)


def test_program_fuzzy_match():
    assert is_program_match("STEM", "Physics")
    assert is_program_match("Engineering", "Mechanical Engineering")
    assert is_program_match("computer science", "Computer Science")
    assert not is_program_match("Business", "Computer Science")


def test_opening_question_is_easy_personal_or_motivation(sample_catalog):
    bank = QuestionBank("General", "All", catalog=sample_catalog, rng=random.Random(7))

    opening = bank.get_opening_question()

    assert opening is not None
    assert opening.difficulty_level == 1
    assert opening.category in {"personal", "motivation"}
    assert opening.question_text in bank.used_questions


def test_next_question_prefers_one_step_harder(sample_catalog):
    bank = QuestionBank("General", "All", catalog=sample_catalog)

    question = bank.get_next_question(current_difficulty=1)

    assert question is not None
    assert question.difficulty_level == 2


def test_no_question_is_handed_out_twice(sample_catalog):
    bank = QuestionBank("Stanford University", "Computer Science", catalog=sample_catalog, rng=random.Random(1))

    seen = []
    opening = bank.get_opening_question()
    if opening is not None:
        seen.append(opening.question_text)
    for _ in range(len(sample_catalog) + 5):
        question = bank.get_next_question(current_difficulty=5)
        if question is not None:
            seen.append(question.question_text)

    assert len(seen) == len(set(seen))
    assert len(seen) == len(bank.questions)
    assert bank.get_opening_question() is None
    assert bank.get_next_question(current_difficulty=5) is None


def test_question_context_lists_five_unused(sample_catalog):
    bank = QuestionBank("Stanford University", "Computer Science", catalog=sample_catalog, rng=random.Random(3))
    opening = bank.get_opening_question()

    context = bank.get_question_context()

    assert "Target School: Stanford University" in context
    assert "Target Program: Computer Science" in context
    assert context.count("\n- ") == 5
    assert opening.question_text not in context


def test_questions_by_category_skips_used(sample_catalog):
    bank = QuestionBank("General", "All", catalog=sample_catalog)
    before = bank.get_questions_by_category("MOTIVATION")
    bank.get_opening_question()
    bank.get_opening_question()

    assert [q.question_text for q in before] == ["Why do you want to study this subject?"]
    assert bank.get_questions_by_category("motivation") == []


def test_parse_catalog_accepts_wrapped_document_and_clamps_difficulty():
    questions = parse_catalog({
        "questions": [
            {"university": "General", "program": "All", "question_text": "Why?", "category": "Motivation", "difficulty_level": 9},
            {"question_text": "   "},
        ]
    })

    assert questions == (Question("General", "All", "Why?", "motivation", 5),)


def test_load_catalog_from_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([
        {"university": "Harvard University", "program": "All", "question_text": "Why Harvard?", "category": "motivation", "difficulty_level": 1},
    ]), encoding="utf-8")

    clear_catalog_cache()
    questions = load_question_catalog(path)

    assert len(questions) == 1
    assert questions[0].university == "Harvard University"


def test_shipped_catalog_has_openings_for_every_target():
    clear_catalog_cache()
    catalog = load_question_catalog()

    assert len(catalog) > 20
    bank = QuestionBank("Massachusetts Institute of Technology", "Engineering", catalog=catalog)
    assert bank.get_opening_question() is not None


def test_mark_asked_matches_spoken_question_once(sample_catalog):
    bank = QuestionBank("General", "All", catalog=sample_catalog)

    asked = bank.mark_asked("Great answer.  WHY do you want to study this subject?")

    assert asked.question_text == "Why do you want to study this subject?"
    assert bank.mark_asked("Why do you want to study this subject?") is None
    assert bank.mark_asked("What got you into robotics?") is None
    assert bank.used_questions == frozenset({"Why do you want to study this subject?"})
