# utils/text_cleaner.py

"""
Набор чистых функций (Pure Functions) для постобработки ответов от LLM.

Основные задачи:
    - Извлечение JSON из текста с markdown разметкой
    - Удаление комментариев и "починка" частых ошибок JSON
    - Разбор построчного формата "Question: / Options: / Answer: / Explanation:"
      для случаев, когда модель проигнорировала просьбу вернуть JSON

Примечание:
    Все функции являются pure functions - не имеют побочных эффектов,
    всегда возвращают одинаковый результат для одинаковых входных данных.
"""

import json
import re
from typing import Any, Dict, List, Optional, Union

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_LINE_FIELD_RE = re.compile(
    r"^\s*(?:\d+[.)]\s*)?(question|q|options|choices|answer|correct answer|correct_answer|explanation)\s*[:\-]\s*(.*)$",
    re.IGNORECASE,
)
_OPTION_LINE_RE = re.compile(r"^\s*(?:[A-Da-d][.)]|[-*•])\s*(.+)$")


def extract_json_from_markdown(text: str) -> str:
    """
    Извлекает содержимое первого markdown-блока кода.

    Examples:
        >>> extract_json_from_markdown('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
        >>> extract_json_from_markdown('plain text')
        'plain text'
    """
    text = (text or "").strip()
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text


def remove_comments(text: str) -> str:
    """Удаляет комментарии // в начале строк и блоки /* */"""
    text = re.sub(r"^\s*//.*$", "", text, flags=re.MULTILINE)
    text = re.sub(r"/\*.*?\*/", "", text, flags=re.DOTALL)
    return text


def extract_json_structure(text: str) -> Optional[str]:
    """Ищет JSON-подобную структуру: от первой [ или { до последней ] или }"""
    match = re.search(r"(\[.*\]|\{.*\})", text, re.DOTALL)
    return match.group(0) if match else None


def fix_common_json_errors(text: str) -> str:
    """
    Попытка исправить частые ошибки LLM в JSON.

    Исправляет trailing commas, одинарные кавычки вокруг ключей и значений,
    Python-литералы None/True/False.

    Warning:
        Не гарантирует валидный JSON, только пытается исправить частые ошибки
    """
    if not text:
        return text

    text = re.sub(r",\s*]", "]", text)
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r"'([^']*)'\s*:", r'"\1":', text)
    text = re.sub(r":\s*'([^']*)'", r': "\1"', text)
    text = re.sub(r"\bNone\b", "null", text)
    text = re.sub(r"\bTrue\b", "true", text)
    text = re.sub(r"\bFalse\b", "false", text)
    return text


def parse_llm_json(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """
    Устойчивый парсинг JSON из "грязного" ответа LLM.

    Стратегии по порядку:
        1. Прямой json.loads
        2. Очистка markdown и комментариев
        3. Поиск JSON-структуры внутри текста
        4. Починка частых ошибок

    Returns:
        Распарсенный dict/list или None, если ни одна стратегия не сработала

    Examples:
        >>> parse_llm_json('[{"a": 1}]')
        [{'a': 1}]
        >>> parse_llm_json('no json here') is None
        True
    """
    if not text or not text.strip():
        return None

    candidates = [text]

    cleaned = remove_comments(extract_json_from_markdown(text))
    # BOM и неразрывные пробелы
    cleaned = cleaned.replace("\ufeff", "").replace("\u00a0", " ").strip()
    candidates.append(cleaned)

    extracted = extract_json_structure(cleaned)
    if extracted:
        candidates.append(extracted)

    candidates.append(fix_common_json_errors(extracted or cleaned))

    for candidate in candidates:
        try:
            return json.loads(candidate, strict=False)
        except json.JSONDecodeError:
            continue

    return None


def _split_options(raw: str) -> List[str]:
    parts = re.split(r"\s*(?:[;|]|,(?!\d))\s*", raw)
    options = []
    for part in parts:
        part = re.sub(r"^\s*[A-Da-d][.)]\s*", "", part).strip()
        if part:
            options.append(part)
    return options


def parse_question_lines(text: str) -> List[Dict[str, Any]]:
    """
    Разбор построчного формата вопросов.

    Поддерживаемый формат (блоки повторяются):
        Question: What is 3 + 4?
        Options: 5, 6, 7, 8
        Answer: 7
        Explanation: 3 plus 4 equals 7.

    Варианты могут идти и отдельными строками "A) 5", "- 6" после "Options:".

    Returns:
        Список словарей с ключами question/options/correct_answer/explanation
    """
    if not text:
        return []

    blocks: List[Dict[str, Any]] = []
    current: Optional[Dict[str, Any]] = None
    collecting_options = False

    for line in text.splitlines():
        match = _LINE_FIELD_RE.match(line)
        if match:
            field = match.group(1).lower()
            value = match.group(2).strip()

            if field in ("question", "q"):
                if current and current.get("question"):
                    blocks.append(current)
                current = {"question": value, "options": []}
                collecting_options = False
            elif current is None:
                continue
            elif field in ("options", "choices"):
                current["options"] = _split_options(value) if value else []
                collecting_options = True
            elif field in ("answer", "correct answer", "correct_answer"):
                current["correct_answer"] = re.sub(r"^\s*[A-Da-d][.)]\s*", "", value).strip()
                collecting_options = False
            elif field == "explanation":
                current["explanation"] = value
                collecting_options = False
            continue

        if current is not None and collecting_options:
            option_match = _OPTION_LINE_RE.match(line)
            if option_match:
                current["options"].append(option_match.group(1).strip())

    if current and current.get("question"):
        blocks.append(current)

    return blocks


def normalize_whitespace(text: str) -> str:
    """Схлопывает последовательности пробелов и обрезает края"""
    return re.sub(r"\s+", " ", text or "").strip()
