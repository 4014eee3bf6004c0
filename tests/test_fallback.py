"""
Тесты резервных шаблонов вопросов
"""

import pytest

from agents.fallback import build_fallback_question, build_fallback_questions
from agents.validator import QualityValidator
from models import TAG_FALLBACK
from utils.arithmetic import ADDITION, DIVISION, MULTIPLICATION, SUBTRACTION, find_expression


@pytest.mark.parametrize("grade,difficulty", [(1, "easy"), (3, "medium"), (6, "hard"), (11, "hard")])
@pytest.mark.parametrize("operation", [ADDITION, SUBTRACTION, MULTIPLICATION, DIVISION])
def test_fallback_questions_pass_validation(calibrator, grade, difficulty, operation):
    calibration = calibrator.calibrate(grade, difficulty, operation)
    validator = QualityValidator()

    for index in range(6):
        question = build_fallback_question(calibration, "seed", index, operation=operation)
        verdict = validator.check(question, calibration)
        assert verdict.passed, (question.question, verdict.reasons)


def test_fallback_multiple_choice_shape(addition_calibration):
    questions = build_fallback_questions(addition_calibration, 5, seed="Addition:5:easy")

    assert len(questions) == 5
    for q in questions:
        assert q.has_tag(TAG_FALLBACK)
        assert len(q.options) == 4
        assert len(set(q.options)) == 4
        assert q.correct_answer in q.options
        assert find_expression(q.question) is not None
    assert len({q.question_id for q in questions}) == 5


def test_fallback_is_deterministic(addition_calibration):
    first = build_fallback_questions(addition_calibration, 3, seed="same")
    second = build_fallback_questions(addition_calibration, 3, seed="same")
    other = build_fallback_questions(addition_calibration, 3, seed="different")

    assert first == second
    assert [q.question for q in first] != [q.question for q in other]


def test_division_is_exact(calibrator):
    calibration = calibrator.calibrate(4, "medium", "Division")
    for index in range(10):
        q = build_fallback_question(calibration, "div", index)
        a, _, b = find_expression(q.question)
        assert a % b == 0
        assert b <= calibration.max_divisor


def test_open_fallback_has_no_options(addition_calibration):
    q = build_fallback_question(addition_calibration, "open", question_type="open")
    assert q.options == []
    assert q.question_type == "open"


def test_zero_count_builds_nothing(addition_calibration):
    assert build_fallback_questions(addition_calibration, 0, seed="x") == []
