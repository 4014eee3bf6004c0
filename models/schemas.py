"""
Схемы данных пайплайна генерации вопросов.

Все модели построены на pydantic. Запрос и персона неизменяемы (frozen):
они создаются один раз на вызов и только читаются узлами графа.
Вопросы тоже неизменяемы - агенты возвращают новые копии через model_copy().
"""

import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


LearningStyle = Literal["visual", "auditory", "kinesthetic", "reading_writing"]
QuestionType = Literal["multiple_choice", "open"]

# Теги происхождения вопроса
TAG_VECTOR_CONTEXT = "vector-context-used"
TAG_FALLBACK = "fallback-generated"
TAG_ENHANCED = "persona-enhanced"


class Persona(BaseModel):
    """Профиль ученика, используемый для персонализации вопросов"""
    model_config = ConfigDict(frozen=True)

    learning_style: LearningStyle = "visual"
    interests: List[str] = Field(default_factory=list)
    cultural_context: str = "New Zealand"
    strengths: List[str] = Field(default_factory=list)

    @field_validator("interests", "strengths")
    @classmethod
    def _strip_empty(cls, value: List[str]) -> List[str]:
        return [str(v).strip() for v in value if v and str(v).strip()]


class WorkflowRequest(BaseModel):
    """
    Входной запрос на генерацию.

    Создается один раз на вызов run_workflow() и больше не меняется.
    """
    model_config = ConfigDict(frozen=True)

    subject: str = "mathematics"
    topic: str
    grade: int
    difficulty: str = "medium"
    count: int = Field(default=5, ge=1)
    question_type: QuestionType = "multiple_choice"
    persona: Persona = Field(default_factory=Persona)


class Calibration(BaseModel):
    """Числовые ограничения для класса и уровня сложности"""
    model_config = ConfigDict(frozen=True)

    grade: int
    difficulty: Literal["easy", "medium", "hard"]
    operation: Optional[str] = None
    number_min: int = 1
    number_max: int
    max_factor: int
    max_divisor: int
    answer_limit: int
    complexity: Literal["simple", "moderate", "complex"] = "simple"
    cognitive_load: Literal["low", "medium", "high"] = "low"
    allowed_operations: Dict[str, bool] = Field(default_factory=dict)
    max_question_words: int = 50


class ContextSnippet(BaseModel):
    """Фрагмент учебного контекста из векторного поиска"""
    model_config = ConfigDict(frozen=True)

    text: str
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GeneratedQuestion(BaseModel):
    """
    Кандидат в вопросы.

    Fields:
        question_id: уникальный идентификатор (uuid4 hex)
        question: текст вопроса
        options: варианты ответа (пусто для открытого вопроса)
        correct_answer: правильный ответ, для multiple_choice всегда входит в options
        tags: теги происхождения (vector-context-used, fallback-generated, ...)
        confidence: уверенность генератора в [0, 1]
        engagement_score: оценка вовлеченности, выставляется ContextEnhancer
        original_question: исходный текст до персонализации
    """
    model_config = ConfigDict(frozen=True)

    question_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    question: str
    question_type: QuestionType = "multiple_choice"
    options: List[str] = Field(default_factory=list)
    correct_answer: str
    explanation: str = ""
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    engagement_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    original_question: Optional[str] = None

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


class CandidateVerdict(BaseModel):
    """Результат проверки одного кандидата"""
    question_id: str
    checks: Dict[str, bool] = Field(default_factory=dict)
    reasons: List[str] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(self.checks.values())


class QualityReport(BaseModel):
    """Агрегированный отчет о качестве набора вопросов"""
    mathematical_accuracy: bool = True
    age_appropriateness: bool = True
    pedagogical_soundness: bool = True
    diversity_score: float = Field(default=1.0, ge=0.0, le=1.0)
    issues: List[str] = Field(default_factory=list)
    validation_pass_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    retrieval_relevance: float = Field(default=0.0, ge=0.0, le=1.0)
    personalization_strength: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)


class FinalResult(BaseModel):
    """Итог выполнения пайплайна, возвращаемый вызывающей стороне"""
    questions: List[GeneratedQuestion]
    quality_report: QualityReport
    timings: Dict[str, float] = Field(default_factory=dict)
    retrieved_context: List[ContextSnippet] = Field(default_factory=list)
    retry_count: int = 0
    completed_nodes: List[str] = Field(default_factory=list)
    padded_count: int = 0
    degraded: bool = False
