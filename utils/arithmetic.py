# utils/arithmetic.py

"""
Арифметические утилиты (Pure Functions).

Используются валидатором (перепроверка ответа), ContextEnhancer
(извлечение операндов для сюжета) и резервными шаблонами.
"""

import re
from typing import List, Optional, Tuple

ADDITION = "addition"
SUBTRACTION = "subtraction"
MULTIPLICATION = "multiplication"
DIVISION = "division"


OPERATION_SYMBOLS = {
    ADDITION: "+",
    SUBTRACTION: "-",
    MULTIPLICATION: "×",
    DIVISION: "÷",
}

_SYMBOL_TO_OPERATION = {
    "+": ADDITION,
    "-": SUBTRACTION,
    "−": SUBTRACTION,
    "–": SUBTRACTION,
    "×": MULTIPLICATION,
    "x": MULTIPLICATION,
    "X": MULTIPLICATION,
    "*": MULTIPLICATION,
    "÷": DIVISION,
    "/": DIVISION,
}

# Ключевые слова темы -> операция
_TOPIC_KEYWORDS = (
    (ADDITION, ("addition", "add", "sum", "plus")),
    (SUBTRACTION, ("subtraction", "subtract", "minus", "difference", "take away")),
    (MULTIPLICATION, ("multiplication", "multiply", "times", "product")),
    (DIVISION, ("division", "divide", "quotient", "sharing")),
)

# Число: 1,200 читается как одно число
_NUMBER = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?"
_OPERATOR = r"[+\-−–×xX*÷/]"

NUMBER_RE = re.compile(rf"\b{_NUMBER}\b")
EXPRESSION_RE = re.compile(rf"({_NUMBER})((?:\s*{_OPERATOR}\s*{_NUMBER})+)")
_TAIL_RE = re.compile(rf"\s*({_OPERATOR})\s*({_NUMBER})")
REMAINDER_RE = re.compile(r"^\s*(\d+)\s*(?:remainder|rem|r)\s*(\d+)\s*$", re.IGNORECASE)

_HIGH_PRECEDENCE = (MULTIPLICATION, DIVISION)


def detect_operation(topic: str) -> Optional[str]:
    """
    Определение арифметической операции по названию темы.

    Examples:
        >>> detect_operation("Two-digit Addition")
        'addition'
        >>> detect_operation("fractions") is None
        True
    """
    lowered = (topic or "").lower()
    for operation, keywords in _TOPIC_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return operation
    return None


def _to_float(text: str) -> float:
    return float(text.replace(",", ""))


def extract_numbers(text: str) -> List[float]:
    """Все числа из текста в порядке появления"""
    return [_to_float(n) for n in NUMBER_RE.findall(text or "")]


def find_chain(text: str) -> Optional[Tuple[List[float], List[str]]]:
    """
    Первая цепочка вида "a op b op c ..." в тексте.

    Returns:
        (числа, операции) или None; операций всегда на одну меньше, чем чисел

    Examples:
        >>> find_chain("What is 12 + 7 + 5?")
        ([12.0, 7.0, 5.0], ['addition', 'addition'])
    """
    match = EXPRESSION_RE.search(text or "")
    if not match:
        return None
    numbers = [_to_float(match.group(1))]
    operations = []
    for symbol, number in _TAIL_RE.findall(match.group(2)):
        operations.append(_SYMBOL_TO_OPERATION[symbol])
        numbers.append(_to_float(number))
    return numbers, operations


def find_expression(text: str) -> Optional[Tuple[float, str, float]]:
    """
    Бинарное выражение вида "a op b" в тексте.
    Цепочка из нескольких операций бинарным выражением не считается.

    Returns:
        (a, operation, b) или None
    """
    chain = find_chain(text)
    if chain is None or len(chain[1]) != 1:
        return None
    (a, b), (operation,) = chain
    return a, operation, b


def evaluate(numbers: List[float], operations: List[str]) -> Optional[float]:
    """
    Значение цепочки с обычным приоритетом: сначала × и ÷, затем + и -.
    None при делении на ноль.

    Examples:
        >>> evaluate([3, 4, 2], ["addition", "multiplication"])
        11
    """
    if len(numbers) != len(operations) + 1:
        return None

    terms = [numbers[0]]
    pending = []
    for operation, number in zip(operations, numbers[1:]):
        if operation in _HIGH_PRECEDENCE:
            terms[-1] = compute(operation, terms[-1], number)
            if terms[-1] is None:
                return None
        else:
            pending.append(operation)
            terms.append(number)

    result = terms[0]
    for operation, term in zip(pending, terms[1:]):
        result = compute(operation, result, term)
    return result


def parse_remainder(value: str) -> Optional[Tuple[int, int]]:
    """
    Ответ деления с остатком: "3 r 2", "3 rem 2", "3 remainder 2".

    Returns:
        (частное, остаток) или None
    """
    match = REMAINDER_RE.match(str(value or ""))
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def compute(operation: str, a: float, b: float) -> Optional[float]:
    """Результат операции или None (деление на ноль, неизвестная операция)"""
    if operation == ADDITION:
        return a + b
    if operation == SUBTRACTION:
        return a - b
    if operation == MULTIPLICATION:
        return a * b
    if operation == DIVISION:
        return a / b if b else None
    return None


def parse_number(value: str) -> Optional[float]:
    """
    Числовое значение ответа, если ответ числовой.

    Examples:
        >>> parse_number("12")
        12.0
        >>> parse_number("twelve") is None
        True
    """
    text = str(value or "").strip().replace(",", "")
    match = re.fullmatch(r"-?\d+(?:\.\d+)?", text)
    if match:
        return float(text)
    # "12 apples" - берем ведущее число
    match = re.match(r"^(-?\d+(?:\.\d+)?)\b", text)
    return float(match.group(1)) if match else None


def format_number(value: float) -> str:
    """Целые без дробной части, остальные с двумя знаками"""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def numbers_equal(a: float, b: float, tolerance: float = 0.01) -> bool:
    return abs(a - b) <= tolerance
