"""
Слой бизнес-логики (Business Logic Layer).

Этот пакет содержит агентов пайплайна генерации персонализированных
учебных вопросов. Каждый агент отвечает за конкретный шаг.

Архитектура агентов:
    - DifficultyCalibrator: Числовые ограничения по классу и сложности (чистая функция)
    - ContentRetriever: Учебный контекст из векторного поиска (мягкий сбой)
    - QuestionGenerator: Генерация вопросов через LLM с защитным разбором ответа
    - QualityValidator: Детерминированные проверки и оценка разнообразия
    - ContextEnhancer: Персонализация текста под интересы ученика
    - Finalizer: Сборка итога, добивка резервными шаблонами, уверенность

Workflow:
    1. DifficultyCalibrator рассчитывает диапазоны чисел
    2. ContentRetriever находит учебный контекст
    3. QuestionGenerator создает кандидатов
    4. QualityValidator и ContextEnhancer работают параллельно
    5. Finalizer собирает результат

Примечание:
    Агенты не хранят состояние между вызовами. Состоянием владеет
    граф (пакет workflow), агенты получают данные и возвращают результат.
"""

from agents.calibrator import DifficultyCalibrator
from agents.retriever import ContentRetriever, RetrievalResult
from agents.generator import QuestionGenerator, GenerationResult
from agents.validator import QualityValidator
from agents.enhancer import ContextEnhancer
from agents.finalizer import Finalizer, blend_confidence
from agents.fallback import build_fallback_question, build_fallback_questions

# Публичный API пакета
__all__ = [
    # Агенты
    "DifficultyCalibrator",
    "ContentRetriever",
    "QuestionGenerator",
    "QualityValidator",
    "ContextEnhancer",
    "Finalizer",

    # Результаты
    "RetrievalResult",
    "GenerationResult",

    # Вспомогательные функции
    "blend_confidence",
    "build_fallback_question",
    "build_fallback_questions",
]

# Метаданные пакета
__version__ = "1.0.0"
__author__ = "Question Pipeline Team"

# Порядок вызова агентов в pipeline (для документации)
AGENT_PIPELINE = [
    "DifficultyCalibrator",  # Шаг 1: Калибровка
    "ContentRetriever",  # Шаг 2: Контекст
    "QuestionGenerator",  # Шаг 3: Генерация
    "QualityValidator",  # Шаг 4a: Проверка (параллельно с 4b)
    "ContextEnhancer",  # Шаг 4b: Персонализация
    "Finalizer",  # Шаг 5: Итог
]
