import logging
from collections import Counter
from typing import Dict, List, Optional, Tuple

from models.schemas import Calibration, CandidateVerdict, GeneratedQuestion, QualityReport
from utils.arithmetic import (
    DIVISION,
    compute,
    evaluate,
    extract_numbers,
    find_chain,
    format_number,
    numbers_equal,
    parse_number,
    parse_remainder,
)
from utils.hashing import template_signature

logger = logging.getLogger(__name__)


CHECK_REQUIRED_FIELDS = "required_fields"
CHECK_MATHEMATICAL = "mathematical_accuracy"
CHECK_AGE = "age_appropriateness"
CHECK_PEDAGOGICAL = "pedagogical_soundness"

ALL_CHECKS = (CHECK_REQUIRED_FIELDS, CHECK_MATHEMATICAL, CHECK_AGE, CHECK_PEDAGOGICAL)

MIN_EXPLANATION_LENGTH = 5


class QualityValidator:
    """
    Агент контроля качества. Выполняет детерминированные проверки каждого
    кандидата и считает разнообразие набора.

    Никогда не бросает исключений: любой сбой проверки превращается
    в проваленную проверку с описанием причины.
    """

    def __init__(self, min_explanation_length: int = MIN_EXPLANATION_LENGTH):
        self.min_explanation_length = min_explanation_length
        logger.info("QualityValidator initialized")

    # ------------------------------------------------------------------
    # Проверка одного кандидата
    # ------------------------------------------------------------------

    def check(self, question: GeneratedQuestion, calibration: Optional[Calibration] = None) -> CandidateVerdict:
        verdict = CandidateVerdict(question_id=question.question_id)

        for name, checker in (
                (CHECK_REQUIRED_FIELDS, self._check_required_fields),
                (CHECK_MATHEMATICAL, self._check_mathematics),
                (CHECK_AGE, self._check_age),
                (CHECK_PEDAGOGICAL, self._check_pedagogy),
        ):
            try:
                reasons = checker(question, calibration)
            except Exception as e:
                logger.error(f"Check '{name}' crashed on {question.question_id}: {e}", exc_info=True)
                reasons = [f"{name} check error: {e}"]

            verdict.checks[name] = not reasons
            verdict.reasons.extend(reasons)

        if not verdict.passed:
            logger.debug(f"[REJECT] {question.question_id}: {verdict.reasons}")
        return verdict

    @staticmethod
    def _check_required_fields(question: GeneratedQuestion, calibration) -> List[str]:
        reasons = []
        if not question.question.strip():
            reasons.append("missing question text")
        if not question.correct_answer.strip():
            reasons.append("missing correct answer")
        if question.question_type == "multiple_choice" and not question.options:
            reasons.append("multiple choice question without options")
        return reasons

    @staticmethod
    def _check_mathematics(question: GeneratedQuestion, calibration: Optional[Calibration]) -> List[str]:
        reasons = []

        if question.options and question.correct_answer not in question.options:
            reasons.append(f"correct answer '{question.correct_answer}' not among options")

        chain = find_chain(question.question)

        remainder = parse_remainder(question.correct_answer)
        if remainder is not None:
            return reasons + QualityValidator._check_remainder(question, calibration, chain, remainder)

        answer = parse_number(question.correct_answer)
        if answer is None:
            # Нечисловой ответ пересчитать нельзя
            return reasons

        if chain is not None:
            numbers, operations = chain
            expected = evaluate(numbers, operations)
            label = operations[0] if len(operations) == 1 else "expression"
        else:
            # Текстовая задача: операция из темы, ровно два числа в тексте
            numbers = extract_numbers(question.question)
            if calibration is None or calibration.operation is None or len(numbers) != 2:
                return reasons
            label = calibration.operation
            expected = compute(label, numbers[0], numbers[1])

        if expected is None:
            reasons.append(f"cannot compute {label} for {[format_number(n) for n in numbers]}")
        elif not numbers_equal(expected, answer):
            reasons.append(
                f"answer {question.correct_answer} does not match computed "
                f"{label} result {format_number(expected)}"
            )
        return reasons

    @staticmethod
    def _check_remainder(
            question: GeneratedQuestion,
            calibration: Optional[Calibration],
            chain,
            remainder: Tuple[int, int]
    ) -> List[str]:
        """Ответ вида "q r m" допустим только для деления и только если калибровка разрешает остатки"""
        if calibration is not None and not calibration.allowed_operations.get("remainders", False):
            return [
                f"remainder answer {question.correct_answer} not allowed for grade "
                f"{calibration.grade} ({calibration.difficulty})"
            ]
        if chain is None or chain[1] != [DIVISION]:
            return [f"remainder answer {question.correct_answer} given for a question without a single division"]

        dividend, divisor = chain[0]
        if divisor == 0 or not dividend.is_integer() or not divisor.is_integer():
            return [f"cannot divide {format_number(dividend)} by {format_number(divisor)} with remainder"]

        expected = divmod(int(dividend), int(divisor))
        if remainder != expected:
            return [
                f"answer {question.correct_answer} does not match computed "
                f"division result {expected[0]} r {expected[1]}"
            ]
        return []

    @staticmethod
    def _check_age(question: GeneratedQuestion, calibration: Optional[Calibration]) -> List[str]:
        reasons = []
        max_words = calibration.max_question_words if calibration else 50
        word_count = len(question.question.split())
        if word_count > max_words:
            reasons.append(f"question too long ({word_count} words > {max_words})")

        if calibration is None:
            return reasons

        too_big = [n for n in extract_numbers(question.question) if n > calibration.number_max]
        if too_big:
            reasons.append(
                f"numbers {[format_number(n) for n in too_big]} exceed grade {calibration.grade} "
                f"limit {calibration.number_max}"
            )

        allowed = calibration.allowed_operations
        answer = parse_number(question.correct_answer)
        if answer is None:
            return reasons

        lower = -calibration.answer_limit if allowed.get("negative_numbers", False) else 0
        if answer < lower or answer > calibration.answer_limit:
            reasons.append(f"answer {question.correct_answer} outside range {lower}..{calibration.answer_limit}")
        if not float(answer).is_integer() and not allowed.get("decimals", True):
            reasons.append(f"decimal answer {question.correct_answer} not expected for grade {calibration.grade}")
        return reasons

    def _check_pedagogy(self, question: GeneratedQuestion, calibration) -> List[str]:
        reasons = []
        if len(question.explanation.strip()) < self.min_explanation_length:
            reasons.append("explanation missing or too short")

        if question.question_type == "multiple_choice":
            if len(question.options) < 2:
                reasons.append("fewer than two options")
            lowered = [opt.strip().lower() for opt in question.options]
            if len(set(lowered)) != len(lowered):
                reasons.append("duplicate options")
        return reasons

    # ------------------------------------------------------------------
    # Отчет по набору
    # ------------------------------------------------------------------

    def check_all(
            self,
            candidates: List[GeneratedQuestion],
            calibration: Optional[Calibration] = None
    ) -> Dict[str, CandidateVerdict]:
        """Вердикты для всех кандидатов: question_id -> CandidateVerdict"""
        return {q.question_id: self.check(q, calibration) for q in candidates}

    @staticmethod
    def diversity_score(candidates: List[GeneratedQuestion]) -> float:
        """1 - доля кандидатов, разделяющих шаблон с другим кандидатом"""
        if len(candidates) < 2:
            return 1.0
        signatures = [template_signature(q.question) for q in candidates]
        counts = Counter(signatures)
        shared = sum(1 for s in signatures if counts[s] > 1)
        return 1.0 - shared / len(candidates)

    def validate(
            self,
            candidates: List[GeneratedQuestion],
            calibration: Optional[Calibration] = None,
            verdicts: Optional[Dict[str, CandidateVerdict]] = None
    ) -> QualityReport:
        """
        Отчет о качестве набора.

        validation_pass_rate считается по проверкам (пройдено / всего), поэтому
        провал любой отдельной проверки уменьшает итоговую уверенность.
        """
        if verdicts is None:
            verdicts = self.check_all(candidates, calibration)

        report = QualityReport()
        if not candidates:
            report.issues.append("No candidates to validate")
            return report

        passed_checks = 0
        total_checks = 0
        for idx, question in enumerate(candidates, 1):
            verdict = verdicts.get(question.question_id) or self.check(question, calibration)
            for check_name in ALL_CHECKS:
                ok = verdict.checks.get(check_name, False)
                total_checks += 1
                passed_checks += int(ok)
                if not ok:
                    if check_name == CHECK_MATHEMATICAL:
                        report.mathematical_accuracy = False
                    elif check_name == CHECK_AGE:
                        report.age_appropriateness = False
                    elif check_name == CHECK_PEDAGOGICAL:
                        report.pedagogical_soundness = False
            report.issues.extend(f"Question {idx}: {reason}" for reason in verdict.reasons)

        report.validation_pass_rate = passed_checks / total_checks if total_checks else 0.0
        report.diversity_score = self.diversity_score(candidates)
        if report.diversity_score < 0.5:
            report.issues.append(f"Low diversity across questions ({report.diversity_score:.2f})")

        logger.info(
            f"Validation: pass_rate={report.validation_pass_rate:.2f}, "
            f"diversity={report.diversity_score:.2f}, issues={len(report.issues)}"
        )
        return report
