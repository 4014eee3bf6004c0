"""
Слой оркестрации (Orchestration Layer).

Граф LangGraph, который проводит запрос через агентов:

    calibrate → retrieve → generate ─┬─> validate ─┐
                   ▲                 └─> enhance ──┴─> review ─> finalize
                   └──────── retry <───────────────────────┘

Модули:
    - state: схема состояния и редьюсеры
    - router: машина состояний и решения маршрутизации
    - engine: сборка графа, бюджеты времени, точка входа run_workflow
"""

from workflow.engine import QuestionWorkflow, run_workflow, run_sync
from workflow.router import (
    Finalize,
    Proceed,
    ProceedParallel,
    Retry,
    Router,
    RoutingDecision,
    to_graph_targets,
)
from workflow.state import PipelineState, apply_update, initial_state

__all__ = [
    # Запуск
    "QuestionWorkflow",
    "run_workflow",
    "run_sync",

    # Маршрутизация
    "Router",
    "RoutingDecision",
    "Retry",
    "Proceed",
    "ProceedParallel",
    "Finalize",
    "to_graph_targets",

    # Состояние
    "PipelineState",
    "initial_state",
    "apply_update",
]

__version__ = "1.0.0"
__author__ = "Question Pipeline Team"
