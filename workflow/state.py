"""
State Schema - единая схема состояния LangGraph для пайплайна генерации.

Узлы не изменяют состояние, а возвращают частичные обновления, которые
сливаются редьюсерами:
    - списки конкатенируются (candidates, issues, completed_nodes, node_errors)
    - словари сливаются с перезаписью (validation, enhanced, timings)
    - скаляры заменяются (calibration, retrieved_context, retry_count, ...)
"""

from typing import Annotated, Any, Callable, Dict, List, Mapping, Optional, TypedDict, get_type_hints

from models.schemas import (
    Calibration,
    CandidateVerdict,
    ContextSnippet,
    FinalResult,
    GeneratedQuestion,
    WorkflowRequest,
)


def concat_lists(left: Optional[list], right: Optional[list]) -> list:
    return list(left or []) + list(right or [])


def merge_dicts(left: Optional[dict], right: Optional[dict]) -> dict:
    merged = dict(left or {})
    merged.update(right or {})
    return merged


class PipelineState(TypedDict, total=False):
    """
    Состояние LangGraph - передается между узлами

    Fields:
        request: входной запрос (только чтение)
        calibration: числовые ограничения, выставляются один раз
        retrieved_context: найденные фрагменты контекста
        retrieval_failed: поиск контекста завершился мягким сбоем
        candidates: все сгенерированные кандидаты в порядке генерации
        validation: question_id -> вердикт валидатора
        enhanced: question_id -> персонализированная версия
        issues: замечания для отчета о качестве
        completed_nodes: пройденные узлы (диагностика и защита от зацикливания)
        retry_count: число возвратов к генерации
        timings: узел -> суммарное время выполнения, мс
        node_errors: ошибки узлов, перехваченные оберткой
        final_result: итог, выставляется узлом finalize
    """
    request: WorkflowRequest
    calibration: Optional[Calibration]
    retrieved_context: List[ContextSnippet]
    retrieval_failed: bool
    candidates: Annotated[List[GeneratedQuestion], concat_lists]
    validation: Annotated[Dict[str, CandidateVerdict], merge_dicts]
    enhanced: Annotated[Dict[str, GeneratedQuestion], merge_dicts]
    issues: Annotated[List[str], concat_lists]
    completed_nodes: Annotated[List[str], concat_lists]
    retry_count: int
    timings: Annotated[Dict[str, float], merge_dicts]
    node_errors: Annotated[List[str], concat_lists]
    final_result: Optional[FinalResult]


def _collect_reducers() -> Dict[str, Callable[[Any, Any], Any]]:
    reducers = {}
    for name, hint in get_type_hints(PipelineState, include_extras=True).items():
        metadata = getattr(hint, "__metadata__", ())
        if metadata and callable(metadata[0]):
            reducers[name] = metadata[0]
    return reducers


REDUCERS = _collect_reducers()


def initial_state(request: WorkflowRequest) -> PipelineState:
    return PipelineState(
        request=request,
        calibration=None,
        retrieved_context=[],
        retrieval_failed=False,
        candidates=[],
        validation={},
        enhanced={},
        issues=[],
        completed_nodes=[],
        retry_count=0,
        timings={},
        node_errors=[],
    )


def apply_update(state: Mapping[str, Any], update: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Применение частичного обновления теми же редьюсерами, что и в графе.
    Возвращает новый словарь, исходное состояние не меняется.
    """
    new_state = dict(state)
    for key, value in (update or {}).items():
        reducer = REDUCERS.get(key)
        if reducer is not None:
            new_state[key] = reducer(new_state.get(key), value)
        else:
            new_state[key] = value
    return new_state
