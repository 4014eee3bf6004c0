"""
Слой утилит (Utility Layer).

Этот пакет содержит вспомогательные Pure Functions, которые используются
по всему проекту. Утилиты не содержат бизнес-логики и не зависят от
внешних сервисов - это чистые преобразования данных.

Модули:
    - hashing: Сигнатуры шаблонов и детерминированный выбор
    - text_cleaner: Постобработка ответов от LLM (JSON, построчный формат)
    - arithmetic: Извлечение чисел, распознавание и пересчет операций

Принципы:
    - Все функции являются Pure Functions (без побочных эффектов)
    - Детерминированность: одинаковый вход → одинаковый выход
"""

from utils.hashing import (
    compute_hash,
    compute_short_hash,
    hash_to_int,
    stable_choice,
    template_signature,
)

from utils.text_cleaner import (
    extract_json_from_markdown,
    remove_comments,
    extract_json_structure,
    fix_common_json_errors,
    parse_llm_json,
    parse_question_lines,
    normalize_whitespace,
)

from utils.arithmetic import (
    ADDITION,
    SUBTRACTION,
    MULTIPLICATION,
    DIVISION,
    OPERATION_SYMBOLS,
    detect_operation,
    extract_numbers,
    find_expression,
    find_chain,
    evaluate,
    parse_remainder,
    compute,
    parse_number,
    format_number,
    numbers_equal,
)

__all__ = [
    # Hashing
    "compute_hash",
    "compute_short_hash",
    "hash_to_int",
    "stable_choice",
    "template_signature",

    # Text cleaning
    "extract_json_from_markdown",
    "remove_comments",
    "extract_json_structure",
    "fix_common_json_errors",
    "parse_llm_json",
    "parse_question_lines",
    "normalize_whitespace",

    # Arithmetic
    "ADDITION",
    "SUBTRACTION",
    "MULTIPLICATION",
    "DIVISION",
    "OPERATION_SYMBOLS",
    "detect_operation",
    "extract_numbers",
    "find_expression",
    "find_chain",
    "evaluate",
    "parse_remainder",
    "compute",
    "parse_number",
    "format_number",
    "numbers_equal",
]

__version__ = "1.0.0"
__author__ = "Question Pipeline Team"
