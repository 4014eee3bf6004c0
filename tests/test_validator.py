"""
Тесты для QualityValidator
"""

import pytest

from agents.finalizer import blend_confidence
from agents.validator import (
    CHECK_AGE,
    CHECK_MATHEMATICAL,
    CHECK_PEDAGOGICAL,
    CHECK_REQUIRED_FIELDS,
    QualityValidator,
)
from models import GeneratedQuestion


def question(text, answer, options=None, explanation="Add the two numbers together.", **kwargs):
    if options is None:
        value = int(answer)
        options = [str(value - 1), str(answer), str(value + 1)]
    return GeneratedQuestion(
        question=text, correct_answer=str(answer), options=options, explanation=explanation, **kwargs
    )


@pytest.fixture
def validator():
    return QualityValidator()


@pytest.fixture
def valid_set():
    return [
        question("What is 12 + 15?", 27),
        question("Sam has 20 marbles and finds 31 more. How many marbles now?", 51),
        question("Solve: 40 + 8 = ?", 48),
    ]


def test_valid_question_passes_every_check(validator, addition_calibration):
    verdict = validator.check(question("What is 12 + 15?", 27), addition_calibration)
    assert verdict.passed
    assert set(verdict.checks) == {CHECK_REQUIRED_FIELDS, CHECK_MATHEMATICAL, CHECK_AGE, CHECK_PEDAGOGICAL}
    assert verdict.reasons == []


def test_wrong_arithmetic_is_detected(validator, addition_calibration):
    verdict = validator.check(question("What is 12 + 15?", 28), addition_calibration)
    assert not verdict.checks[CHECK_MATHEMATICAL]
    assert verdict.checks[CHECK_AGE]
    assert "27" in verdict.reasons[0]


@pytest.mark.parametrize("text,answer", [
    ("What is 20 - 8?", 12),
    ("What is 6 × 4?", 24),
    ("What is 6 x 4?", 24),
    ("What is 25 ÷ 5?", 5),
    ("What is 25 / 5?", 5),
])
def test_operator_symbols_are_recomputed(validator, addition_calibration, text, answer):
    assert validator.check(question(text, answer), addition_calibration).checks[CHECK_MATHEMATICAL]


def test_word_problem_uses_topic_operation(validator, addition_calibration):
    ok = question("Mia has 12 shells and finds 9 more. How many shells?", 21)
    wrong = question("Mia has 12 shells and finds 9 more. How many shells?", 3)
    assert validator.check(ok, addition_calibration).checks[CHECK_MATHEMATICAL]
    assert not validator.check(wrong, addition_calibration).checks[CHECK_MATHEMATICAL]


def test_non_numeric_answer_is_not_recomputed(validator, addition_calibration):
    q = question("Which shape has three sides?", "triangle", options=["square", "triangle"],
                 explanation="A triangle has three sides.")
    assert validator.check(q, addition_calibration).passed


def test_numbers_above_grade_range_fail_age_check(validator, addition_calibration):
    verdict = validator.check(question("What is 150 + 15?", 165), addition_calibration)
    assert not verdict.checks[CHECK_AGE]
    assert verdict.checks[CHECK_MATHEMATICAL]


def test_long_question_fails_age_check(validator, addition_calibration):
    text = "What is 2 + 3? " + " ".join(["word"] * 60)
    assert not validator.check(question(text, 5), addition_calibration).checks[CHECK_AGE]


def test_missing_explanation_fails_pedagogy(validator, addition_calibration):
    verdict = validator.check(question("What is 2 + 3?", 5, explanation=""), addition_calibration)
    assert not verdict.checks[CHECK_PEDAGOGICAL]
    assert verdict.checks[CHECK_MATHEMATICAL]


def test_missing_options_fails_required_fields(validator, addition_calibration):
    q = GeneratedQuestion(question="What is 2 + 3?", correct_answer="5", explanation="2 and 3 make 5.")
    assert not validator.check(q, addition_calibration).checks[CHECK_REQUIRED_FIELDS]


def test_diversity_counts_shared_templates(validator):
    same_template = [question("What is 1 + 2?", 3), question("What is 10 + 20?", 30)]
    assert validator.diversity_score(same_template) == 0.0

    mixed = same_template + [question("Solve: 4 + 4 = ?", 8), question("Work out 7 + 1.", 8)]
    assert validator.diversity_score(mixed) == pytest.approx(0.5)
    assert validator.diversity_score([question("What is 1 + 2?", 3)]) == 1.0


def test_report_for_clean_set(validator, addition_calibration, valid_set):
    report = validator.validate(valid_set, addition_calibration)

    assert report.mathematical_accuracy
    assert report.age_appropriateness
    assert report.pedagogical_soundness
    assert report.validation_pass_rate == 1.0
    assert report.issues == []


def test_report_for_empty_set(validator):
    report = validator.validate([])
    assert report.validation_pass_rate == 0.0
    assert report.issues


@pytest.mark.parametrize("broken,flag", [
    (question("What is 12 + 15?", 28), "mathematical_accuracy"),
    (question("What is 150 + 15?", 165), "age_appropriateness"),
    (question("What is 12 + 15?", 27, explanation=""), "pedagogical_soundness"),
])
def test_confidence_strictly_decreases_when_a_check_fails(validator, addition_calibration, valid_set, broken, flag):
    clean = validator.validate(valid_set, addition_calibration)
    dirty = validator.validate(valid_set[:2] + [broken], addition_calibration)

    assert getattr(clean, flag) is True
    assert getattr(dirty, flag) is False
    assert dirty.issues and dirty.issues[0].startswith("Question 3:")

    clean_score = blend_confidence(clean.validation_pass_rate, 0.6, 0.7)
    dirty_score = blend_confidence(dirty.validation_pass_rate, 0.6, 0.7)
    assert 0.0 <= dirty_score < clean_score <= 1.0


def test_validator_never_raises_on_odd_input(validator, addition_calibration):
    odd = GeneratedQuestion(question="   ", correct_answer="?", options=["?"], explanation="")
    verdict = validator.check(odd, addition_calibration)
    assert not verdict.passed


@pytest.mark.parametrize("text,answer", [
    ("What is 12 + 7 + 5?", 24),
    ("What is 3 + 4 × 2?", 11),
    ("What is 20 - 8 - 2?", 10),
])
def test_whole_expression_is_recomputed(validator, addition_calibration, text, answer):
    verdict = validator.check(question(text, answer), addition_calibration)
    assert verdict.checks[CHECK_MATHEMATICAL], verdict.reasons


def test_wrong_answer_to_longer_expression_is_detected(validator, addition_calibration):
    verdict = validator.check(question("What is 12 + 7 + 5?", 19), addition_calibration)
    assert not verdict.checks[CHECK_MATHEMATICAL]
    assert "24" in verdict.reasons[0]


def test_comma_grouped_numbers_are_read_whole(validator, calibrator):
    calibration = calibrator.calibrate(9, "hard", "Addition")
    q = question("What is 1,200 + 300?", "1,500", options=["1,400", "1,500", "1,600"])
    verdict = validator.check(q, calibration)
    assert verdict.checks[CHECK_MATHEMATICAL], verdict.reasons
    assert verdict.checks[CHECK_AGE], verdict.reasons


def test_remainder_answer_allowed_for_hard_division(validator, calibrator):
    calibration = calibrator.calibrate(5, "hard", "Division")
    ok = question("What is 17 ÷ 5?", "3 r 2", options=["3 r 1", "3 r 2", "4 r 2"],
                  explanation="5 goes into 17 three times with 2 left over.")
    wrong = question("What is 17 ÷ 5?", "3 r 1", options=["3 r 1", "3 r 2", "4 r 2"],
                     explanation="5 goes into 17 three times with 2 left over.")
    assert validator.check(ok, calibration).passed
    verdict = validator.check(wrong, calibration)
    assert not verdict.checks[CHECK_MATHEMATICAL]
    assert "3 r 2" in verdict.reasons[0]


def test_remainder_answer_rejected_when_grade_forbids_it(validator, calibrator):
    calibration = calibrator.calibrate(5, "easy", "Division")
    q = question("What is 17 ÷ 5?", "3 r 2", options=["3 r 1", "3 r 2", "4 r 2"],
                 explanation="5 goes into 17 three times with 2 left over.")
    verdict = validator.check(q, calibration)
    assert not verdict.checks[CHECK_MATHEMATICAL]
    assert "not allowed" in verdict.reasons[0]


def test_negative_answer_depends_on_grade(validator, calibrator):
    q = question("What is 5 - 9?", -4, explanation="Take 9 away from 5 and go below zero.")
    assert validator.check(q, calibrator.calibrate(7, "medium", "Subtraction")).passed
    verdict = validator.check(q, calibrator.calibrate(5, "medium", "Subtraction"))
    assert verdict.checks[CHECK_MATHEMATICAL]
    assert not verdict.checks[CHECK_AGE]
