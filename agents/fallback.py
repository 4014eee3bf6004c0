"""
Резервные (offline) шаблоны вопросов.

Используются, когда LLM недоступна или пайплайн не набрал нужное число
вопросов после всех повторов. Числа выбираются детерминированно по хешу
зерна в пределах калибровки, поэтому одинаковый вход дает одинаковые вопросы.
"""

import logging
from typing import List, Optional, Tuple

from models.schemas import Calibration, GeneratedQuestion, TAG_FALLBACK
from utils.arithmetic import (
    ADDITION,
    DIVISION,
    MULTIPLICATION,
    OPERATION_SYMBOLS,
    SUBTRACTION,
    compute,
    format_number,
)
from utils.hashing import compute_short_hash, hash_to_int

logger = logging.getLogger(__name__)


PHRASINGS = (
    "What is {a} {op} {b}?",
    "Work out {a} {op} {b}.",
    "Solve: {a} {op} {b} = ?",
)

EXPLANATIONS = {
    ADDITION: "Add {a} and {b} together: {a} + {b} = {answer}.",
    SUBTRACTION: "Take {b} away from {a}: {a} - {b} = {answer}.",
    MULTIPLICATION: "{a} groups of {b} make {answer}, so {a} × {b} = {answer}.",
    DIVISION: "Split {a} into {b} equal groups: {a} ÷ {b} = {answer}.",
}

FALLBACK_CONFIDENCE = 0.5


def _pick(seed: str, low: int, high: int) -> int:
    if high <= low:
        return low
    return low + hash_to_int(seed, high - low + 1)


def _operands(operation: str, calibration: Calibration, seed: str) -> Tuple[int, int]:
    top = calibration.number_max

    if operation == ADDITION:
        a = _pick(seed + ":a", 1, max(1, top // 2))
        b = _pick(seed + ":b", 1, max(1, top - a))
        return a, b

    if operation == SUBTRACTION:
        a = _pick(seed + ":a", 2, top)
        b = _pick(seed + ":b", 1, a - 1)
        return a, b

    if operation == MULTIPLICATION:
        a = _pick(seed + ":a", 2, calibration.max_factor)
        b = _pick(seed + ":b", 2, calibration.max_factor)
        return a, b

    # Деление без остатка: делимое = делитель * частное
    divisor = _pick(seed + ":b", 2, calibration.max_divisor)
    quotient = _pick(seed + ":q", 1, max(1, top // divisor))
    return divisor * quotient, divisor


def _distractors(answer: int, seed: str) -> List[str]:
    offsets = (1, -1, 2, -2, 10, -10, 3, 5)
    start = hash_to_int(seed, len(offsets))
    result: List[str] = []
    for i in range(len(offsets)):
        value = answer + offsets[(start + i) % len(offsets)]
        if value < 0 or value == answer:
            continue
        text = format_number(value)
        if text not in result:
            result.append(text)
        if len(result) == 3:
            break
    return result


def build_fallback_question(
        calibration: Calibration,
        seed: str,
        index: int = 0,
        question_type: str = "multiple_choice",
        operation: Optional[str] = None
) -> GeneratedQuestion:
    """
    Один детерминированный вопрос по калибровке.

    Args:
        calibration: Ограничения на числа
        seed: Зерно детерминированного выбора (обычно тема + номер)
        index: Номер вопроса (определяет формулировку)
        question_type: multiple_choice или open
        operation: Операция; по умолчанию операция калибровки или сложение
    """
    operation = operation or calibration.operation or ADDITION
    item_seed = f"{seed}:{index}"
    a, b = _operands(operation, calibration, item_seed)
    answer = int(compute(operation, a, b))

    phrasing = PHRASINGS[index % len(PHRASINGS)]
    text = phrasing.format(a=a, op=OPERATION_SYMBOLS[operation], b=b)
    answer_text = format_number(answer)

    options: List[str] = []
    if question_type == "multiple_choice":
        options = _distractors(answer, item_seed) + [answer_text]
        # Позиция правильного ответа зависит от зерна
        shift = hash_to_int(item_seed + ":pos", len(options))
        options = options[shift:] + options[:shift]

    return GeneratedQuestion(
        question_id=compute_short_hash(f"fallback:{item_seed}:{text}", 32),
        question=text,
        question_type=question_type,
        options=options,
        correct_answer=answer_text,
        explanation=EXPLANATIONS[operation].format(a=a, b=b, answer=answer_text),
        tags=[TAG_FALLBACK],
        confidence=FALLBACK_CONFIDENCE,
    )


def build_fallback_questions(
        calibration: Calibration,
        count: int,
        seed: str,
        question_type: str = "multiple_choice",
        start_index: int = 0
) -> List[GeneratedQuestion]:
    """Набор из count резервных вопросов с разными формулировками и числами"""
    if count <= 0:
        return []

    questions = [
        build_fallback_question(calibration, seed, start_index + i, question_type)
        for i in range(count)
    ]
    logger.info(f"Built {len(questions)} fallback questions (operation={calibration.operation or ADDITION})")
    return questions
