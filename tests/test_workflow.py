"""
Сквозные тесты LangGraph workflow с заглушками внешних сервисов
"""

import asyncio

import pytest

from models import PipelineSettings, TAG_FALLBACK
from workflow import run_workflow
from workflow.router import CALIBRATE, FINALIZE, GENERATE, RETRY
from tests.conftest import (
    FailingSearchClient,
    ScriptedGenerationClient,
    StaticSearchClient,
    as_json,
    mc_item,
)

CURRICULUM = [
    {"text": "Add the ones first, then the tens.", "relevance_score": 0.8, "metadata": {"grade": 5}},
    {"text": "Regroup when the ones add up to ten or more.", "relevance_score": 0.6},
]

VALID_BATCH = as_json(mc_item(12, 15), mc_item(20, 31), mc_item(40, 8))


def run(request, client, search=None, settings=None):
    return asyncio.run(run_workflow(request, client, search, settings))


def assert_answers_in_options(result):
    for q in result.questions:
        assert q.correct_answer in q.options, q


def test_happy_path(addition_request, fast_settings):
    client = ScriptedGenerationClient([VALID_BATCH])
    search = StaticSearchClient(CURRICULUM)

    result = run(addition_request, client, search, fast_settings)

    assert len(result.questions) == 3
    assert result.retry_count == 0
    assert result.padded_count == 0
    assert not result.degraded
    assert len(client.calls) == 1
    assert len(result.retrieved_context) == 2
    assert result.completed_nodes[0] == CALIBRATE
    assert result.completed_nodes[-1] == FINALIZE
    assert RETRY not in result.completed_nodes
    assert "total" in result.timings and GENERATE in result.timings
    assert FINALIZE in result.timings

    report = result.quality_report
    assert report.mathematical_accuracy
    assert report.validation_pass_rate == 1.0
    assert report.retrieval_relevance == pytest.approx(0.7)
    assert report.personalization_strength > 0
    assert 0.0 < report.confidence_score <= 1.0
    assert_answers_in_options(result)


def test_discarded_candidates_trigger_one_retry(addition_request, fast_settings):
    bad = [
        mc_item(12, 15, answer=30, options=["25", "26", "27", "28"]),
        mc_item(14, 2, answer=99, options=["15", "16", "17"]),
    ]
    client = ScriptedGenerationClient([
        as_json(mc_item(10, 11), *bad),
        as_json(mc_item(20, 5), mc_item(30, 7)),
    ])

    result = run(addition_request, client, StaticSearchClient(CURRICULUM), fast_settings)

    assert len(result.questions) == 3
    assert result.retry_count == 1
    assert result.padded_count == 0
    assert len(client.calls) == 2
    assert client.calls[1]["constraints"]["count"] == 2
    assert "What is 10 + 11?" in client.calls[1]["prompt"]
    assert_answers_in_options(result)


def test_search_failure_does_not_stop_pipeline(addition_request, fast_settings):
    client = ScriptedGenerationClient([VALID_BATCH])
    search = FailingSearchClient()

    result = run(addition_request, client, search, fast_settings)

    assert search.calls == 1
    assert len(result.questions) == 3
    assert result.retrieved_context == []
    assert result.quality_report.retrieval_relevance == 0.0
    assert not result.degraded
    assert any(issue.startswith("Retrieval:") for issue in result.quality_report.issues)


def test_empty_search_results_still_complete(addition_request, fast_settings):
    client = ScriptedGenerationClient([VALID_BATCH])

    result = run(addition_request, client, StaticSearchClient([]), fast_settings)

    assert len(result.questions) == 3
    assert result.retrieved_context == []
    assert result.padded_count == 0
    assert not result.degraded
    assert "No curriculum context available" in client.calls[0]["prompt"]
    assert_answers_in_options(result)


def test_global_timeout_returns_degraded_fallback(addition_request):
    settings = PipelineSettings(collaborator_timeout_seconds=5.0, global_timeout_seconds=0.3)
    client = ScriptedGenerationClient([VALID_BATCH], delay=5.0)

    result = run(addition_request, client, None, settings)

    assert result.degraded
    assert len(result.questions) == 3
    assert result.padded_count == 3
    assert all(q.has_tag(TAG_FALLBACK) for q in result.questions)
    assert any("Global timeout" in issue for issue in result.quality_report.issues)
    assert result.completed_nodes[-1] == FINALIZE
    assert FINALIZE in result.timings and "total" in result.timings
    assert_answers_in_options(result)


def test_always_wrong_answers_are_padded_after_max_retries(addition_request, fast_settings):
    wrong = as_json(
        mc_item(12, 15, answer=30, options=["28", "29", "30", "31"]),
        mc_item(21, 5, answer=20, options=["20", "24", "26"]),
        mc_item(33, 4, answer=36, options=["36", "37", "38"]),
    )
    client = ScriptedGenerationClient([wrong])

    result = run(addition_request, client, StaticSearchClient(CURRICULUM), fast_settings)

    assert result.retry_count == 2
    assert len(client.calls) == 3
    assert len(result.questions) == 3
    assert result.padded_count == 3
    assert not result.degraded
    assert not result.quality_report.mathematical_accuracy
    assert all(q.has_tag(TAG_FALLBACK) for q in result.questions)
    assert_answers_in_options(result)


def test_unavailable_generator_uses_templates_on_last_attempt(addition_request, fast_settings):
    client = ScriptedGenerationClient([ConnectionError("GigaChat is unreachable")])

    result = run(addition_request, client, None, fast_settings)

    assert len(client.calls) == 3
    assert result.retry_count == 2
    assert len(result.questions) == 3
    assert result.padded_count == 0
    assert all(q.has_tag(TAG_FALLBACK) for q in result.questions)
    assert any("offline templates" in issue for issue in result.quality_report.issues)
    assert_answers_in_options(result)


def test_questions_are_personalized(addition_request, fast_settings):
    client = ScriptedGenerationClient([VALID_BATCH])

    result = run(addition_request, client, None, fast_settings)

    for q in result.questions:
        assert q.original_question is not None
        assert q.engagement_score is not None
