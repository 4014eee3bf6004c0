import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.schemas import ContextSnippet

logger = logging.getLogger(__name__)


@dataclass
class RetrievalResult:
    """Результат поиска контекста. soft_failure=True означает пустой контекст из-за сбоя"""
    snippets: List[ContextSnippet] = field(default_factory=list)
    soft_failure: bool = False
    error: Optional[str] = None


class ContentRetriever:
    """
    Агент поиска учебного контекста.

    Делегирует запрос векторному поиску (любой объект с async-методом
    search(query_text, filters, top_k)). Сбой, таймаут или пустая выдача
    не пробрасываются: возвращается пустой список и флаг soft_failure.
    """

    def __init__(self, search_client=None, top_k: int = 5, timeout: float = 30.0):
        """
        :param search_client: Клиент векторного поиска (None - поиск отключен)
        :param top_k: Максимум фрагментов в выдаче
        :param timeout: Таймаут одного вызова поиска в секундах
        """
        self.search_client = search_client
        self.top_k = top_k
        self.timeout = timeout
        logger.info(
            f"ContentRetriever initialized: top_k={top_k}, "
            f"enabled={search_client is not None}"
        )

    async def retrieve(self, subject: str, topic: str, grade: int) -> RetrievalResult:
        if self.search_client is None:
            logger.info("[SKIP] Vector search disabled, continuing without context")
            return RetrievalResult(soft_failure=True, error="vector search disabled")

        query_text = f"{subject} {topic} grade {grade}".strip()
        filters = build_search_filters(subject, grade, topic)

        try:
            raw_results = await asyncio.wait_for(
                self.search_client.search(query_text, filters, self.top_k),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"[SOFT-FAIL] Vector search timed out after {self.timeout}s")
            return RetrievalResult(soft_failure=True, error="vector search timeout")
        except Exception as e:
            logger.error(f"[SOFT-FAIL] Vector search failed: {e}", exc_info=True)
            return RetrievalResult(soft_failure=True, error=f"vector search error: {e}")

        snippets = self._to_snippets(raw_results or [])
        if not snippets:
            logger.warning(f"[SOFT-FAIL] No context found for '{query_text}'")
            return RetrievalResult(soft_failure=True, error="no context found")

        logger.info(
            f"Retrieved {len(snippets)} snippets "
            f"(best relevance={snippets[0].relevance_score:.2f})"
        )
        return RetrievalResult(snippets=snippets)

    def _to_snippets(self, raw_results: List[Any]) -> List[ContextSnippet]:
        snippets = []
        for item in raw_results:
            if isinstance(item, ContextSnippet):
                snippets.append(item)
                continue
            if not isinstance(item, dict):
                logger.debug(f"[SKIP] Unexpected search result type: {type(item).__name__}")
                continue

            text = str(item.get("text") or "").strip()
            if not text:
                continue

            snippets.append(ContextSnippet(
                text=text,
                relevance_score=self._clamp(item.get("relevance_score")),
                metadata=dict(item.get("metadata") or {}),
            ))

        snippets.sort(key=lambda s: s.relevance_score, reverse=True)
        return snippets[:self.top_k]

    @staticmethod
    def _clamp(value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, score))


def mean_relevance(snippets: List[ContextSnippet]) -> float:
    """Средняя релевантность контекста (0.0 для пустого контекста)"""
    if not snippets:
        return 0.0
    return sum(s.relevance_score for s in snippets) / len(snippets)


def build_search_filters(subject: str, grade: int, topic: Optional[str] = None) -> Dict[str, Any]:
    filters: Dict[str, Any] = {"subject": subject, "grade": grade}
    if topic:
        filters["topic"] = topic
    return filters
