"""
LangGraph Workflow для генерации персонализированных вопросов
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from langgraph.graph import END, START, StateGraph

from agents.calibrator import DifficultyCalibrator
from agents.enhancer import ContextEnhancer
from agents.finalizer import Finalizer
from agents.generator import QuestionGenerator
from agents.retriever import ContentRetriever
from agents.validator import QualityValidator
from models.schemas import FinalResult, WorkflowRequest
from models.settings import PipelineSettings
from workflow.router import (
    CALIBRATE,
    ENHANCE,
    FINALIZE,
    GENERATE,
    RETRIEVE,
    RETRY,
    REVIEW,
    VALIDATE,
    Router,
    to_graph_targets,
)
from workflow.state import PipelineState, apply_update, initial_state

logger = logging.getLogger(__name__)

NodeHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class QuestionWorkflow:
    """LangGraph Workflow: калибровка → контекст → генерация → (валидация ∥ персонализация) → итог"""

    def __init__(
            self,
            generation_client,
            search_client=None,
            settings: Optional[PipelineSettings] = None
    ):
        """
        Инициализация workflow

        Args:
            generation_client: клиент текстовой генерации (complete(prompt, constraints))
            search_client: клиент векторного поиска (search(query, filters, top_k)) или None
            settings: бюджеты и константы пайплайна
        """
        self.settings = settings or PipelineSettings()

        self.calibrator = DifficultyCalibrator()
        self.retriever = ContentRetriever(
            search_client,
            top_k=self.settings.top_k,
            timeout=self.settings.collaborator_timeout_seconds
        )
        self.generator = QuestionGenerator(
            generation_client,
            max_context_snippets=self.settings.max_context_snippets,
            timeout=self.settings.collaborator_timeout_seconds
        )
        self.validator = QualityValidator()
        self.enhancer = ContextEnhancer()
        self.finalizer = Finalizer(self.validator, self.calibrator, self.settings.confidence_weights)
        self.router = Router(max_retries=self.settings.max_retries)

        self.graph = self._build_workflow()

        logger.info(
            f"QuestionWorkflow initialized "
            f"(max_retries={self.settings.max_retries}, "
            f"global_timeout={self.settings.global_timeout_seconds}s, "
            f"RAG={search_client is not None})"
        )

    def _build_workflow(self):
        """Построение LangGraph workflow"""
        workflow = StateGraph(PipelineState)

        workflow.add_node(CALIBRATE, self._node(CALIBRATE, self.calibrate_node))
        workflow.add_node(RETRIEVE, self._node(RETRIEVE, self.retrieve_node))
        workflow.add_node(GENERATE, self._node(GENERATE, self.generate_node))
        workflow.add_node(RETRY, self._node(RETRY, self.retry_node))
        workflow.add_node(VALIDATE, self._node(VALIDATE, self.validate_node))
        workflow.add_node(ENHANCE, self._node(ENHANCE, self.enhance_node))
        workflow.add_node(REVIEW, self._node(REVIEW, self.review_node))
        workflow.add_node(FINALIZE, self._node(FINALIZE, self.finalize_node))

        workflow.add_edge(START, CALIBRATE)
        workflow.add_edge(CALIBRATE, RETRIEVE)
        workflow.add_edge(RETRIEVE, GENERATE)
        workflow.add_conditional_edges(GENERATE, self._route(GENERATE), [RETRY, VALIDATE, ENHANCE])
        workflow.add_edge(RETRY, GENERATE)
        # review ждет завершения обеих параллельных ветвей
        workflow.add_edge([VALIDATE, ENHANCE], REVIEW)
        workflow.add_conditional_edges(REVIEW, self._route(REVIEW), [RETRY, FINALIZE])
        workflow.add_conditional_edges(FINALIZE, self._route(FINALIZE), [END])

        compiled = workflow.compile()
        logger.info(
            "✓ Workflow скомпилирован: calibrate → retrieve → generate → "
            "(validate ∥ enhance) → review → finalize"
        )
        return compiled

    def _route(self, node: str) -> Callable[[Dict[str, Any]], Union[str, List[str]]]:
        def route(state: Dict[str, Any]) -> Union[str, List[str]]:
            return to_graph_targets(self.router.decide(node, state))
        return route

    def _node(self, name: str, handler: NodeHandler) -> NodeHandler:
        """
        Обертка узла: замер времени, отметка в completed_nodes и перехват ошибок.
        Ошибка узла не роняет граф - узел возвращает пустое обновление,
        и маршрутизатор превращает недостающий результат в ограниченный повтор.
        """
        async def run(state: Dict[str, Any]) -> Dict[str, Any]:
            started = time.perf_counter()
            logger.debug(f"▶ Node '{name}' started")
            try:
                update = dict(await handler(state) or {})
            except Exception as e:
                logger.error(f"Node '{name}' failed: {e}", exc_info=True)
                update = {"node_errors": [f"{name}: {e}"]}

            elapsed_ms = (time.perf_counter() - started) * 1000
            previous = (state.get("timings") or {}).get(name, 0.0)
            update["completed_nodes"] = [name]
            update["timings"] = {name: round(previous + elapsed_ms, 2)}
            logger.debug(f"■ Node '{name}' finished in {elapsed_ms:.1f} ms")
            return update
        return run

    # ------------------------------------------------------------------
    # Узлы графа
    # ------------------------------------------------------------------

    async def calibrate_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        request = state["request"]
        return {"calibration": self.calibrator.calibrate(request.grade, request.difficulty, request.topic)}

    async def retrieve_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        request = state["request"]
        result = await self.retriever.retrieve(request.subject, request.topic, request.grade)
        update: Dict[str, Any] = {
            "retrieved_context": result.snippets,
            "retrieval_failed": result.soft_failure,
        }
        if result.soft_failure:
            update["issues"] = [f"Retrieval: {result.error}; continued without context"]
        return update

    async def generate_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        request = state["request"]
        calibration = state.get("calibration") or self.calibrator.calibrate(
            request.grade, request.difficulty, request.topic
        )
        retry_count = int(state.get("retry_count") or 0)

        result = await self.generator.generate(
            calibration,
            state.get("retrieved_context") or [],
            request.persona,
            self.router.deficit(state),
            subject=request.subject,
            topic=request.topic,
            question_type=request.question_type,
            avoid=[q.question for q in state.get("candidates") or []],
            # Последняя попытка: при недоступности модели - резервные шаблоны
            allow_fallback=retry_count >= self.settings.max_retries,
        )

        issues = [f"Generation (attempt {retry_count + 1}): {reason}" for reason in result.discarded]
        if result.error:
            issues.append(f"Generation (attempt {retry_count + 1}): {result.error}")
        if result.used_fallback:
            issues.append("Generation: text generation unavailable, used offline templates")

        return {"candidates": result.questions, "issues": issues}

    async def retry_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        retry_count = int(state.get("retry_count") or 0) + 1
        logger.info(f"🔄 Retry {retry_count}/{self.settings.max_retries}: deficit={self.router.deficit(state)}")
        return {"retry_count": retry_count}

    async def validate_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        verdicts = state.get("validation") or {}
        pending = [q for q in state.get("candidates") or [] if q.question_id not in verdicts]
        return {"validation": self.validator.check_all(pending, state.get("calibration"))}

    async def enhance_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        done = state.get("enhanced") or {}
        pending = [q for q in state.get("candidates") or [] if q.question_id not in done]
        enhanced = self.enhancer.enhance(pending, state["request"].persona, state.get("calibration"))
        return {"enhanced": {q.question_id: q for q in enhanced}}

    async def review_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        accepted = self.router.accepted_candidates(state)
        logger.info(
            f"Review: accepted {len(accepted)}/{state['request'].count} "
            f"of {len(state.get('candidates') or [])} candidates"
        )
        return {}

    async def finalize_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        return {"final_result": self.finalizer.finalize(state)}

    # ------------------------------------------------------------------
    # Запуск
    # ------------------------------------------------------------------

    async def _stream(self, holder: Dict[str, Any]) -> None:
        config = {"recursion_limit": self.settings.recursion_limit}
        async for snapshot in self.graph.astream(holder["state"], config=config, stream_mode="values"):
            holder["state"] = snapshot

    async def run(self, request: WorkflowRequest) -> FinalResult:
        """
        Запуск workflow

        Args:
            request: запрос на генерацию

        Returns:
            FinalResult ровно с request.count вопросами. При глобальном таймауте
            или сбое графа результат собирается из последнего снимка состояния
            с флагом degraded=True.
        """
        logger.info("=" * 70)
        logger.info(
            f"WORKFLOW START: topic='{request.topic}', grade={request.grade}, "
            f"difficulty={request.difficulty}, count={request.count}"
        )
        logger.info("=" * 70)

        started = time.perf_counter()
        holder: Dict[str, Any] = {"state": initial_state(request)}
        extra_issues: List[str] = []

        try:
            await asyncio.wait_for(self._stream(holder), timeout=self.settings.global_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"⏱ Global timeout ({self.settings.global_timeout_seconds}s) reached, finalizing early")
            extra_issues.append(f"Global timeout of {self.settings.global_timeout_seconds}s reached")
        except Exception as e:
            logger.error(f"Ошибка выполнения workflow: {e}", exc_info=True)
            extra_issues.append(f"Workflow error: {e}")

        state = holder["state"]
        result = state.get("final_result")
        if result is None:
            finalize_started = time.perf_counter()
            state = apply_update(state, {"completed_nodes": [FINALIZE]})
            result = self.finalizer.finalize(state, degraded=True, extra_issues=extra_issues)
            finalize_ms = round((time.perf_counter() - finalize_started) * 1000, 2)
            state = apply_update(state, {"timings": {FINALIZE: finalize_ms}})

        # finalize попадает в completed_nodes и timings только после своего узла,
        # поэтому берем их из последнего снимка, а не из FinalResult
        total_ms = round((time.perf_counter() - started) * 1000, 2)
        result = result.model_copy(update={
            "completed_nodes": list(state.get("completed_nodes") or []),
            "timings": {**(state.get("timings") or {}), "total": total_ms},
        })

        self._log_summary(result)
        return result

    @staticmethod
    def _log_summary(result: FinalResult) -> None:
        logger.info("=" * 70)
        logger.info("WORKFLOW ЗАВЕРШЁН" + (" (DEGRADED)" if result.degraded else " УСПЕШНО"))
        logger.info("=" * 70)
        logger.info(f"Вопросов: {len(result.questions)} (padded: {result.padded_count})")
        logger.info(f"Повторов: {result.retry_count}")
        logger.info(f"Уверенность: {result.quality_report.confidence_score:.2f}")
        logger.info(f"⚡ Total execution time: {result.timings.get('total', 0):.0f} ms")
        logger.info(f"🔄 Nodes executed: {' → '.join(result.completed_nodes)}")


async def run_workflow(
        request: WorkflowRequest,
        generation_client,
        search_client=None,
        settings: Optional[PipelineSettings] = None
) -> FinalResult:
    """Точка входа для вызывающей стороны: никогда не бросает из-за сбоев внешних сервисов"""
    workflow = QuestionWorkflow(generation_client, search_client, settings)
    return await workflow.run(request)


def run_sync(
        request: WorkflowRequest,
        generation_client,
        search_client=None,
        settings: Optional[PipelineSettings] = None
) -> FinalResult:
    """Синхронная обертка для CLI"""
    return asyncio.run(run_workflow(request, generation_client, search_client, settings))
