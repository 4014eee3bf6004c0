"""
Слой данных (Data Layer).

Pydantic-модели, которыми обмениваются агенты и граф выполнения.
Модули этого пакета не содержат логики пайплайна - только схемы
и валидацию входных данных.

Модули:
    - schemas: запрос, персона, вопросы, отчет о качестве, итог
    - settings: бюджеты и константы пайплайна из config.json
"""

from models.schemas import (
    Calibration,
    CandidateVerdict,
    ContextSnippet,
    FinalResult,
    GeneratedQuestion,
    Persona,
    QualityReport,
    WorkflowRequest,
    TAG_ENHANCED,
    TAG_FALLBACK,
    TAG_VECTOR_CONTEXT,
)
from models.settings import PipelineSettings, DEFAULT_CONFIDENCE_WEIGHTS

__all__ = [
    # Входные данные
    "WorkflowRequest",
    "Persona",

    # Промежуточные результаты
    "Calibration",
    "ContextSnippet",
    "GeneratedQuestion",
    "CandidateVerdict",

    # Итог
    "QualityReport",
    "FinalResult",

    # Настройки
    "PipelineSettings",
    "DEFAULT_CONFIDENCE_WEIGHTS",

    # Теги происхождения
    "TAG_VECTOR_CONTEXT",
    "TAG_FALLBACK",
    "TAG_ENHANCED",
]

__version__ = "1.0.0"
__author__ = "Question Pipeline Team"
