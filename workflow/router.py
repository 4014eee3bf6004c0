import logging
from dataclasses import dataclass
from typing import Any, FrozenSet, List, Mapping, Union

from langgraph.graph import END

from models.schemas import GeneratedQuestion

logger = logging.getLogger(__name__)


# Имена узлов графа
CALIBRATE = "calibrate"
RETRIEVE = "retrieve"
GENERATE = "generate"
RETRY = "retry"
VALIDATE = "validate"
ENHANCE = "enhance"
REVIEW = "review"
FINALIZE = "finalize"


@dataclass(frozen=True)
class Retry:
    target: str = GENERATE


@dataclass(frozen=True)
class Proceed:
    next_node: str


@dataclass(frozen=True)
class ProceedParallel:
    next_nodes: FrozenSet[str]


@dataclass(frozen=True)
class Finalize:
    pass


RoutingDecision = Union[Retry, Proceed, ProceedParallel, Finalize]


class Router:
    """
    Машина состояний пайплайна.

    Calibrating → Retrieving → Generating → (Validating ∥ Enhancing) → Finalizing → Done,
    плюс ребро Retrying обратно в Generating. Число повторов ограничено max_retries;
    completed_nodes дополнительно защищает от зацикливания.
    """

    def __init__(self, max_retries: int = 2):
        self.max_retries = max_retries
        logger.info(f"Router initialized: max_retries={max_retries}")

    @staticmethod
    def usable_candidates(state: Mapping[str, Any]) -> List[GeneratedQuestion]:
        """Кандидаты, не отклоненные валидатором (еще не проверенные тоже считаются)"""
        verdicts = state.get("validation") or {}
        return [
            q for q in state.get("candidates") or []
            if q.question_id not in verdicts or verdicts[q.question_id].passed
        ]

    @staticmethod
    def accepted_candidates(state: Mapping[str, Any]) -> List[GeneratedQuestion]:
        verdicts = state.get("validation") or {}
        return [
            q for q in state.get("candidates") or []
            if q.question_id in verdicts and verdicts[q.question_id].passed
        ]

    def deficit(self, state: Mapping[str, Any]) -> int:
        """Сколько вопросов еще нужно сгенерировать"""
        return max(0, state["request"].count - len(self.usable_candidates(state)))

    def retries_exhausted(self, state: Mapping[str, Any]) -> bool:
        if int(state.get("retry_count") or 0) >= self.max_retries:
            return True
        generations = (state.get("completed_nodes") or []).count(GENERATE)
        return generations > self.max_retries

    def after_generate(self, state: Mapping[str, Any]) -> RoutingDecision:
        if self.deficit(state) > 0 and not self.retries_exhausted(state):
            logger.info(
                f"[ROUTE] generate → retry "
                f"(usable={len(self.usable_candidates(state))}/{state['request'].count}, "
                f"retry={state.get('retry_count', 0)}/{self.max_retries})"
            )
            return Retry(GENERATE)

        logger.info("[ROUTE] generate → validate ∥ enhance")
        return ProceedParallel(frozenset({VALIDATE, ENHANCE}))

    def after_review(self, state: Mapping[str, Any]) -> RoutingDecision:
        accepted = len(self.accepted_candidates(state))
        count = state["request"].count

        if accepted >= count or self.retries_exhausted(state):
            logger.info(f"[ROUTE] review → finalize (accepted={accepted}/{count})")
            return Proceed(FINALIZE)

        logger.info(f"[ROUTE] review → retry (accepted={accepted}/{count}, deficit={count - accepted})")
        return Retry(GENERATE)

    def decide(self, node: str, state: Mapping[str, Any]) -> RoutingDecision:
        """Решение после завершения узла node"""
        if node == CALIBRATE:
            return Proceed(RETRIEVE)
        if node == RETRIEVE:
            return Proceed(GENERATE)
        if node == GENERATE:
            return self.after_generate(state)
        if node == RETRY:
            return Proceed(GENERATE)
        if node in (VALIDATE, ENHANCE):
            return Proceed(REVIEW)
        if node == REVIEW:
            return self.after_review(state)
        return Finalize()


def to_graph_targets(decision: RoutingDecision) -> Union[str, List[str]]:
    """Перевод решения маршрутизатора в цели условного ребра LangGraph"""
    if isinstance(decision, Retry):
        # Повтор всегда идет через узел retry, который увеличивает счетчик
        return RETRY
    if isinstance(decision, Proceed):
        return decision.next_node
    if isinstance(decision, ProceedParallel):
        return sorted(decision.next_nodes)
    return END
