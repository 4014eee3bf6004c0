"""
Тесты для ContextEnhancer
"""

import pytest

from agents.enhancer import CULTURAL_NAMES, LEARNING_STYLE_HINTS, ContextEnhancer
from agents.validator import QualityValidator
from models import GeneratedQuestion, Persona, TAG_ENHANCED
from utils.arithmetic import extract_numbers


@pytest.fixture
def enhancer():
    return ContextEnhancer()


def bare_question(text="What is 12 + 15?", answer="27"):
    return GeneratedQuestion(
        question=text,
        options=["26", answer, "28", "29"],
        correct_answer=answer,
        explanation="Add the tens and then the ones.",
    )


def test_bare_expression_becomes_story(enhancer, persona, addition_calibration):
    original = bare_question()

    enhanced = enhancer.enhance_one(original, persona, addition_calibration)

    assert enhanced.question != original.question
    assert extract_numbers(enhanced.question) == [12.0, 15.0]
    assert any(name in enhanced.question for name in CULTURAL_NAMES["new zealand"])
    assert enhanced.original_question == original.question


def test_enhancement_keeps_answer_and_options(enhancer, persona, addition_calibration):
    original = bare_question()

    enhanced = enhancer.enhance_one(original, persona, addition_calibration)

    assert enhanced.question_id == original.question_id
    assert enhanced.correct_answer == original.correct_answer
    assert enhanced.options == original.options
    assert enhanced.has_tag(TAG_ENHANCED)


def test_enhanced_question_still_passes_validation(enhancer, persona, addition_calibration):
    validator = QualityValidator()
    original = bare_question()
    assert validator.check(original, addition_calibration).passed

    enhanced = enhancer.enhance_one(original, persona, addition_calibration)

    assert validator.check(enhanced, addition_calibration).passed


def test_word_problem_is_framed_with_interest(enhancer, persona, addition_calibration):
    text = "Sam has 20 marbles and finds 31 more. How many marbles now?"
    enhanced = enhancer.enhance_one(bare_question(text, "51"), persona, addition_calibration)

    assert text in enhanced.question
    assert "soccer" in enhanced.question or "dinosaurs" in enhanced.question


def test_learning_style_hint_is_added_once(enhancer, persona, addition_calibration):
    once = enhancer.enhance_one(bare_question(), persona, addition_calibration)
    twice = enhancer.enhance_one(once, persona, addition_calibration)

    hint = LEARNING_STYLE_HINTS["visual"]
    assert once.explanation.endswith(hint)
    assert twice.explanation.count(hint) == 1


def test_enhancement_is_deterministic(enhancer, persona, addition_calibration):
    original = bare_question()
    first = enhancer.enhance_one(original, persona, addition_calibration)
    second = ContextEnhancer().enhance_one(original, persona, addition_calibration)
    assert first == second


def test_unknown_culture_uses_default_names(enhancer, addition_calibration):
    persona = Persona(learning_style="auditory", cultural_context="Atlantis")
    enhanced = enhancer.enhance_one(bare_question(), persona, addition_calibration)
    assert not any(name in enhanced.question for name in CULTURAL_NAMES["new zealand"])
    assert enhanced.explanation.endswith(LEARNING_STYLE_HINTS["auditory"])


def test_engagement_score_is_bounded(enhancer, persona):
    score = enhancer.engagement_score("What is 1 + 2?", "Aroha shares 1 toy with a friend at soccer " * 3, persona)
    assert score == 1.0
    assert enhancer.engagement_score("What is 1 + 2?", "What is 1 + 2?", Persona(cultural_context="")) == 0.5


def test_enhance_preserves_order(enhancer, persona, addition_calibration):
    questions = [bare_question("What is 1 + 2?", "3"), bare_question("What is 4 + 5?", "9")]
    enhanced = enhancer.enhance(questions, persona, addition_calibration)
    assert [q.question_id for q in enhanced] == [q.question_id for q in questions]
    assert all(q.engagement_score is not None for q in enhanced)


def test_framing_respects_word_limit(enhancer, persona, addition_calibration):
    text = "Sam has 20 marbles and finds 31 more. How many marbles now?"
    short = addition_calibration.model_copy(update={"max_question_words": 12})

    enhanced = enhancer.enhance_one(bare_question(text, "51"), persona, short)

    assert enhanced.question == text
    assert QualityValidator().check(enhanced, short).passed


def test_framing_never_adds_numbers(enhancer, addition_calibration):
    text = "Sam has 20 marbles and finds 31 more. How many marbles now?"
    persona = Persona(interests=["7 a side football"], cultural_context="New Zealand")

    enhanced = enhancer.enhance_one(bare_question(text, "51"), persona, addition_calibration)

    assert enhanced.question == text
    assert extract_numbers(enhanced.question) == [20.0, 31.0]


def test_strength_is_mentioned_in_explanation(enhancer, persona, addition_calibration):
    strong = persona.model_copy(update={"strengths": ["mental maths"]})

    once = enhancer.enhance_one(bare_question(), strong, addition_calibration)
    twice = enhancer.enhance_one(once, strong, addition_calibration)

    assert "mental maths" in once.explanation
    assert LEARNING_STYLE_HINTS["visual"] in once.explanation
    assert twice.explanation.count("mental maths") == 1
