# utils/hashing.py

"""
Утилиты для хеширования данных (Pure Functions).

Основное назначение:
    - Сигнатуры шаблонов вопросов для оценки разнообразия набора
    - Детерминированный выбор вариантов (имена, сюжеты) в ContextEnhancer
      и в резервных шаблонах, чтобы повторный запуск давал тот же текст

Используется алгоритм SHA-256:
    - Одинаковый текст → одинаковый хеш (детерминированность)
    - Разные тексты → разные хеши (уникальность)

Примечание:
    Все функции являются pure functions - не имеют побочных эффектов.
"""

import hashlib
import re
from typing import Sequence, TypeVar

T = TypeVar("T")

_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")
_SPACES_RE = re.compile(r"\s+")


def compute_hash(text: str, algorithm: str = "sha256") -> str:
    """
    Вычисление хеша текста.

    Args:
        text: Текст для хеширования
        algorithm: Алгоритм хеширования ('sha256', 'md5', 'sha1')

    Returns:
        str: Шестнадцатеричное представление хеша

    Examples:
        >>> compute_hash("Hello World") == compute_hash("Hello World")
        True

    Raises:
        ValueError: Если algorithm не поддерживается
    """
    if algorithm not in ("sha256", "md5", "sha1"):
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    hash_obj = hashlib.new(algorithm)
    hash_obj.update((text or "").encode("utf-8"))
    return hash_obj.hexdigest()


def compute_short_hash(text: str, length: int = 16) -> str:
    """Укороченный SHA-256 хеш (первые length символов)"""
    if length < 1 or length > 64:
        raise ValueError(f"Hash length must be between 1 and 64, got {length}")
    return compute_hash(text)[:length]


def hash_to_int(text: str, max_value: int = 2 ** 32) -> int:
    """
    Преобразование текста в детерминированное целое число.

    Args:
        text: Текст для преобразования
        max_value: Верхняя граница (не включительно)

    Returns:
        int: Целое число от 0 до max_value-1

    Examples:
        >>> 0 <= hash_to_int("any", max_value=1000) < 1000
        True
    """
    if max_value < 1:
        raise ValueError("max_value must be positive")
    # Первые 8 байт хеша как целое
    return int(compute_hash(text)[:16], 16) % max_value


def stable_choice(options: Sequence[T], seed: str) -> T:
    """
    Детерминированный выбор элемента последовательности по строке-зерну.

    Examples:
        >>> stable_choice(["a", "b", "c"], "q1") == stable_choice(["a", "b", "c"], "q1")
        True
    """
    if not options:
        raise ValueError("Cannot choose from an empty sequence")
    return options[hash_to_int(seed, len(options))]


def template_signature(text: str) -> str:
    """
    Сигнатура "шаблона" вопроса.

    Числа заменяются на маркер, регистр и пробелы нормализуются.
    Вопросы "What is 3 + 4?" и "What is 10 + 2?" получают одну сигнатуру.

    Examples:
        >>> template_signature("What is 3 + 4?") == template_signature("what is  10 + 2?")
        True
    """
    normalized = _NUMBER_RE.sub("#", (text or "").lower())
    normalized = _SPACES_RE.sub(" ", normalized).strip()
    return compute_short_hash(normalized)
