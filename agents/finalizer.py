import logging
from typing import Any, Dict, List, Mapping, Optional

from agents.calibrator import DifficultyCalibrator
from agents.fallback import build_fallback_questions
from agents.retriever import mean_relevance
from agents.validator import QualityValidator
from models.schemas import FinalResult, GeneratedQuestion, QualityReport
from models.settings import DEFAULT_CONFIDENCE_WEIGHTS

logger = logging.getLogger(__name__)


def blend_confidence(
        validation_pass_rate: float,
        retrieval_relevance: float,
        personalization_strength: float,
        weights: Optional[Mapping[str, float]] = None
) -> float:
    """
    Итоговая уверенность: взвешенная смесь доли пройденных проверок,
    релевантности контекста и силы персонализации. Результат в [0, 1].
    """
    weights = weights or DEFAULT_CONFIDENCE_WEIGHTS
    score = (
        weights.get("validation", 0.0) * validation_pass_rate
        + weights.get("retrieval", 0.0) * retrieval_relevance
        + weights.get("personalization", 0.0) * personalization_strength
    )
    return max(0.0, min(1.0, score))


class Finalizer:
    """
    Сборка итогового результата.

    Берет принятые валидатором кандидаты (в порядке генерации) в их
    персонализированной версии, обрезает до запрошенного числа или
    добивает резервными шаблонами, считает отчет о качестве и уверенность.
    """

    def __init__(
            self,
            validator: QualityValidator,
            calibrator: DifficultyCalibrator,
            confidence_weights: Optional[Mapping[str, float]] = None
    ):
        self.validator = validator
        self.calibrator = calibrator
        self.confidence_weights = dict(confidence_weights or DEFAULT_CONFIDENCE_WEIGHTS)
        logger.info(f"Finalizer initialized: weights={self.confidence_weights}")

    def finalize(
            self,
            state: Mapping[str, Any],
            degraded: bool = False,
            extra_issues: Optional[List[str]] = None
    ) -> FinalResult:
        request = state["request"]
        count = request.count
        calibration = state.get("calibration") or self.calibrator.calibrate(
            request.grade, request.difficulty, request.topic
        )

        candidates: List[GeneratedQuestion] = list(state.get("candidates") or [])
        verdicts = dict(state.get("validation") or {})
        enhanced: Dict[str, GeneratedQuestion] = dict(state.get("enhanced") or {})

        # Кандидаты, до которых валидатор не дошел (например, по таймауту)
        unchecked = [q for q in candidates if q.question_id not in verdicts]
        if unchecked:
            logger.info(f"Validating {len(unchecked)} unchecked candidates before finalizing")
            verdicts.update(self.validator.check_all(unchecked, calibration))

        accepted = [
            enhanced.get(q.question_id, q)
            for q in candidates
            if verdicts[q.question_id].passed
        ]
        selected = accepted[:count]

        padded_count = count - len(selected)
        padding: List[GeneratedQuestion] = []
        if padded_count > 0:
            logger.warning(f"[PAD] Only {len(selected)}/{count} questions accepted, padding with fallback templates")
            padding = build_fallback_questions(
                calibration,
                padded_count,
                seed=f"pad:{request.topic}:{calibration.grade}:{calibration.difficulty}",
                question_type=request.question_type,
            )
            verdicts.update(self.validator.check_all(padding, calibration))

        questions = selected + padding

        report = self.validator.validate(candidates + padding, calibration, verdicts)
        issues: List[str] = list(state.get("issues") or [])
        issues.extend(f"Node error: {e}" for e in state.get("node_errors") or [])
        issues.extend(report.issues)
        if padded_count > 0:
            issues.append(f"Padded {padded_count} of {count} questions with fallback templates")
        if extra_issues:
            issues.extend(extra_issues)
        if degraded:
            issues.append("Result is degraded: pipeline did not complete normally")

        snippets = list(state.get("retrieved_context") or [])
        report = self._score(report, questions, snippets, issues)

        result = FinalResult(
            questions=questions,
            quality_report=report,
            timings=dict(state.get("timings") or {}),
            retrieved_context=snippets,
            retry_count=int(state.get("retry_count") or 0),
            completed_nodes=list(state.get("completed_nodes") or []),
            padded_count=max(0, padded_count),
            degraded=degraded,
        )

        logger.info(
            f"Finalized {len(questions)} questions "
            f"(padded={result.padded_count}, confidence={report.confidence_score:.2f}, degraded={degraded})"
        )
        return result

    def _score(
            self,
            report: QualityReport,
            questions: List[GeneratedQuestion],
            snippets: list,
            issues: List[str]
    ) -> QualityReport:
        relevance = mean_relevance(snippets)
        personalization = (
            sum(q.engagement_score or 0.0 for q in questions) / len(questions)
            if questions else 0.0
        )
        confidence = blend_confidence(
            report.validation_pass_rate, relevance, personalization, self.confidence_weights
        )
        return report.model_copy(update={
            "issues": issues,
            "retrieval_relevance": relevance,
            "personalization_strength": personalization,
            "confidence_score": confidence,
        })
