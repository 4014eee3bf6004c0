"""
Настройки пайплайна (секция pipeline_settings в config.json).
"""

import logging
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


DEFAULT_CONFIDENCE_WEIGHTS = {
    "validation": 0.4,
    "retrieval": 0.3,
    "personalization": 0.3,
}


class PipelineSettings(BaseModel):
    """
    Бюджеты и константы пайплайна.

    Fields:
        max_retries: сколько раз граф может вернуться к генерации
        top_k: сколько фрагментов запрашивать у векторного поиска
        max_context_snippets: сколько фрагментов попадает в промпт
        collaborator_timeout_seconds: таймаут одного вызова LLM / поиска
        global_timeout_seconds: общий бюджет времени на один запуск
        confidence_weights: веса смешивания итоговой уверенности
    """
    max_retries: int = Field(default=2, ge=0)
    top_k: int = Field(default=5, ge=1)
    max_context_snippets: int = Field(default=5, ge=0)
    collaborator_timeout_seconds: float = Field(default=30.0, gt=0)
    global_timeout_seconds: float = Field(default=120.0, gt=0)
    recursion_limit: int = Field(default=50, ge=10)
    confidence_weights: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_WEIGHTS)
    )

    @field_validator("confidence_weights")
    @classmethod
    def _normalize_weights(cls, value: Dict[str, float]) -> Dict[str, float]:
        weights = {key: float(value.get(key, 0.0)) for key in DEFAULT_CONFIDENCE_WEIGHTS}
        if any(w < 0 for w in weights.values()):
            raise ValueError("confidence weights must be non-negative")

        total = sum(weights.values())
        if total <= 0:
            return dict(DEFAULT_CONFIDENCE_WEIGHTS)
        # Нормализуем, чтобы итоговая уверенность оставалась в [0, 1]
        return {key: w / total for key, w in weights.items()}

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "PipelineSettings":
        """Создание настроек из полного config.json"""
        section = config.get("pipeline_settings", {}) or {}
        settings = cls(**section)
        logger.debug(f"Pipeline settings loaded: {settings.model_dump()}")
        return settings
