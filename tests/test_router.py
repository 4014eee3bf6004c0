"""
Тесты маршрутизации пайплайна
"""

import pytest
from langgraph.graph import END

from models import CandidateVerdict, GeneratedQuestion
from workflow.router import (
    CALIBRATE,
    ENHANCE,
    FINALIZE,
    GENERATE,
    RETRIEVE,
    RETRY,
    REVIEW,
    VALIDATE,
    Finalize,
    Proceed,
    ProceedParallel,
    Retry,
    Router,
    to_graph_targets,
)
from workflow.state import initial_state


def candidate(n):
    return GeneratedQuestion(question_id=f"q{n}", question=f"What is {n} + 1?",
                             options=[str(n + 1), str(n + 2)], correct_answer=str(n + 1))


def verdict(question_id, passed=True):
    return CandidateVerdict(question_id=question_id, checks={"mathematical_accuracy": passed})


def make_state(request, candidates=(), verdicts=(), retry_count=0, completed=()):
    state = dict(initial_state(request))
    state["candidates"] = list(candidates)
    state["validation"] = {v.question_id: v for v in verdicts}
    state["retry_count"] = retry_count
    state["completed_nodes"] = list(completed)
    return state


@pytest.fixture
def router():
    return Router(max_retries=2)


def test_linear_steps(router, addition_request):
    state = make_state(addition_request)
    assert router.decide(CALIBRATE, state) == Proceed(RETRIEVE)
    assert router.decide(RETRIEVE, state) == Proceed(GENERATE)
    assert router.decide(RETRY, state) == Proceed(GENERATE)
    assert router.decide(VALIDATE, state) == Proceed(REVIEW)
    assert router.decide(ENHANCE, state) == Proceed(REVIEW)
    assert router.decide(FINALIZE, state) == Finalize()


def test_full_generation_goes_parallel(router, addition_request):
    state = make_state(addition_request, [candidate(i) for i in range(3)])
    assert router.decide(GENERATE, state) == ProceedParallel(frozenset({VALIDATE, ENHANCE}))


def test_short_generation_retries(router, addition_request):
    state = make_state(addition_request, [candidate(1)])
    assert router.deficit(state) == 2
    assert router.decide(GENERATE, state) == Retry(GENERATE)


def test_short_generation_proceeds_when_retries_exhausted(router, addition_request):
    state = make_state(addition_request, [candidate(1)], retry_count=2)
    assert isinstance(router.decide(GENERATE, state), ProceedParallel)


def test_completed_nodes_guard_against_loops(router, addition_request):
    state = make_state(addition_request, [], completed=[GENERATE, GENERATE, GENERATE])
    assert router.retries_exhausted(state)


def test_rejected_candidates_do_not_count(router, addition_request):
    candidates = [candidate(i) for i in range(3)]
    state = make_state(addition_request, candidates, [verdict("q0"), verdict("q1", False), verdict("q2")])

    assert len(router.usable_candidates(state)) == 2
    assert len(router.accepted_candidates(state)) == 2
    assert router.deficit(state) == 1


def test_review_retries_until_enough_accepted(router, addition_request):
    candidates = [candidate(i) for i in range(3)]
    short = make_state(addition_request, candidates, [verdict("q0"), verdict("q1", False), verdict("q2")])
    full = make_state(addition_request, candidates, [verdict(q.question_id) for q in candidates])

    assert router.decide(REVIEW, short) == Retry(GENERATE)
    assert router.decide(REVIEW, full) == Proceed(FINALIZE)


def test_review_finalizes_after_max_retries(router, addition_request):
    state = make_state(addition_request, [candidate(0)], [verdict("q0", False)], retry_count=2)
    assert router.decide(REVIEW, state) == Proceed(FINALIZE)


def test_zero_retries_never_loops(addition_request):
    router = Router(max_retries=0)
    state = make_state(addition_request, [candidate(0)], [verdict("q0", False)])
    assert isinstance(router.decide(GENERATE, make_state(addition_request)), ProceedParallel)
    assert router.decide(REVIEW, state) == Proceed(FINALIZE)


def test_graph_targets():
    assert to_graph_targets(Retry()) == RETRY
    assert to_graph_targets(Proceed(REVIEW)) == REVIEW
    assert to_graph_targets(ProceedParallel(frozenset({VALIDATE, ENHANCE}))) == [ENHANCE, VALIDATE]
    assert to_graph_targets(Finalize()) == END
