import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from langchain_core.prompts import ChatPromptTemplate

from agents.fallback import build_fallback_questions
from models.schemas import (
    Calibration,
    ContextSnippet,
    GeneratedQuestion,
    Persona,
    TAG_VECTOR_CONTEXT,
)
from utils.arithmetic import parse_number, parse_remainder, numbers_equal
from utils.text_cleaner import normalize_whitespace, parse_llm_json, parse_question_lines

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are an experienced primary and secondary school teacher who writes \
practice questions for students. Every question must have exactly one correct answer \
and the arithmetic must be correct."""

HUMAN_PROMPT = """Write {count} {question_type_label} questions.

SUBJECT: {subject}
TOPIC: {topic}
GRADE: {grade}
DIFFICULTY: {difficulty}

NUMBER CONSTRAINTS:
- Use whole numbers from {number_min} to {number_max}.
- Multiplication factors must not exceed {max_factor}; divisors must not exceed {max_divisor}.
- Answers must not exceed {answer_limit}.
- Each question must be at most {max_words} words long.
- Complexity: {complexity}, cognitive load: {cognitive_load}.
{operation_rules}

STUDENT:
- Learning style: {learning_style}
- Interests: {interests}
- Cultural context: {cultural_context}
- Strengths: {strengths}

CURRICULUM CONTEXT:
{context}

DO NOT REPEAT THESE QUESTIONS:
{avoid}

{format_instructions}"""

MULTIPLE_CHOICE_FORMAT = """Return a JSON array. Every element must look like:
{"question": "What is 12 + 7?", "options": ["17", "18", "19", "20"], "correct_answer": "19", "explanation": "12 plus 7 equals 19."}
The correct_answer MUST be copied exactly from options. Give 4 distinct options."""

OPEN_FORMAT = """Return a JSON array. Every element must look like:
{"question": "What is 12 + 7?", "correct_answer": "19", "explanation": "12 plus 7 equals 19."}"""


# Флаг калибровки -> (формулировка, если разрешено; если запрещено)
OPERATION_RULES = {
    "carrying": ("Addition may need carrying.", "Choose additions that need no carrying."),
    "borrowing": ("Subtraction may need borrowing.", "Choose subtractions that need no borrowing."),
    "double_digit": ("Two-digit numbers are fine.", "Prefer single-digit numbers."),
    "multiplication": ("Multiplication may be used.", "Do not use multiplication."),
    "division": ("Division may be used.", "Do not use division."),
    "remainders": (
        "Division may leave a remainder; write such answers like \"3 r 2\".",
        "Division must have no remainder.",
    ),
    "decimals": ("Decimal answers are allowed.", "Answers must be whole numbers."),
    "negative_numbers": ("Negative answers are allowed.", "Answers must not be negative."),
}


def describe_operation_rules(allowed_operations: Dict[str, bool]) -> str:
    """Строки промпта по флагам калибровки (в порядке OPERATION_RULES)"""
    lines = []
    for flag, (allowed_text, forbidden_text) in OPERATION_RULES.items():
        if flag in allowed_operations:
            lines.append(f"- {allowed_text if allowed_operations[flag] else forbidden_text}")
    return "\n".join(lines)


@dataclass
class GenerationResult:
    """
    Результат одного обращения к генератору.

    Fields:
        questions: прошедшие проверку самосогласованности вопросы
        discarded: причины отбраковки (ответ не из вариантов и т.п.)
        collaborator_failed: LLM недоступна / таймаут / пустой ответ
        used_fallback: вопросы взяты из резервных шаблонов
    """
    questions: List[GeneratedQuestion] = field(default_factory=list)
    discarded: List[str] = field(default_factory=list)
    collaborator_failed: bool = False
    used_fallback: bool = False
    error: Optional[str] = None


class QuestionGenerator:
    """
    Агент-генератор. Собирает один промпт (калибровка + контекст + персона),
    вызывает текстовую модель и защитно разбирает ответ.

    Вопрос с вариантами ответа, у которого правильный ответ не входит в
    варианты, отбрасывается и никогда не "чинится" подставленным ответом.
    """

    def __init__(
            self,
            client,
            max_context_snippets: int = 5,
            timeout: float = 30.0
    ):
        """
        :param client: Клиент текстовой генерации с async-методом complete(prompt, constraints)
        :param max_context_snippets: Сколько фрагментов контекста попадает в промпт
        :param timeout: Таймаут одного вызова модели в секундах
        """
        self.client = client
        self.max_context_snippets = max_context_snippets
        self.timeout = timeout
        self.prompt = ChatPromptTemplate.from_messages([
            ("system", SYSTEM_PROMPT),
            ("human", HUMAN_PROMPT),
        ])
        logger.info(
            f"QuestionGenerator initialized: max_context_snippets={max_context_snippets}, "
            f"timeout={timeout}s"
        )

    async def generate(
            self,
            calibration: Calibration,
            context: List[ContextSnippet],
            persona: Persona,
            count: int,
            subject: str = "mathematics",
            topic: str = "",
            question_type: str = "multiple_choice",
            avoid: Optional[List[str]] = None,
            allow_fallback: bool = False
    ) -> GenerationResult:
        """
        Генерация count вопросов.

        Args:
            calibration: Числовые ограничения
            context: Фрагменты учебного контекста (может быть пустым)
            persona: Профиль ученика
            count: Сколько вопросов нужно
            avoid: Тексты уже полученных вопросов (не повторять)
            allow_fallback: При недоступности модели вернуть резервные шаблоны
                вместо пустого результата (последняя попытка)

        Returns:
            GenerationResult
        """
        if count <= 0:
            return GenerationResult()

        logger.info(f"[START] Generating {count} questions: topic='{topic}', grade={calibration.grade}")

        snippets = list(context or [])[:self.max_context_snippets]
        prompt_text = self.build_prompt(
            calibration, snippets, persona, count, subject, topic, question_type, avoid or []
        )
        constraints = {
            "format": "json",
            "count": count,
            "number_max": calibration.number_max,
            "answer_limit": calibration.answer_limit,
        }

        try:
            raw_text = await asyncio.wait_for(
                self.client.complete(prompt_text, constraints),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"[ERROR] Text generation timed out after {self.timeout}s")
            return self._on_unavailable(calibration, count, topic, question_type, allow_fallback, "generation timeout")
        except Exception as e:
            logger.error(f"[ERROR] LLM generation failed: {e}", exc_info=True)
            return self._on_unavailable(calibration, count, topic, question_type, allow_fallback, f"generation error: {e}")

        if not raw_text or not str(raw_text).strip():
            logger.warning("[ERROR] Empty response from text generation")
            return self._on_unavailable(calibration, count, topic, question_type, allow_fallback, "empty response")

        result = self.parse_response(str(raw_text), calibration, question_type, bool(snippets))
        if len(result.questions) > count:
            result.questions = result.questions[:count]

        logger.info(
            f"[DONE] Generated {len(result.questions)}/{count} questions "
            f"({len(result.discarded)} discarded)"
        )
        return result

    def build_prompt(
            self,
            calibration: Calibration,
            snippets: List[ContextSnippet],
            persona: Persona,
            count: int,
            subject: str,
            topic: str,
            question_type: str,
            avoid: List[str]
    ) -> str:
        if snippets:
            context_text = "\n".join(f"- {normalize_whitespace(s.text)}" for s in snippets)
        else:
            context_text = "No curriculum context available. Rely on the constraints above."

        avoid_text = "\n".join(f"- {q}" for q in avoid[:15]) if avoid else "None"

        return self.prompt.format(
            count=count,
            question_type_label="multiple-choice" if question_type == "multiple_choice" else "open-answer",
            subject=subject,
            topic=topic or calibration.operation or "general practice",
            grade=calibration.grade,
            difficulty=calibration.difficulty,
            number_min=calibration.number_min,
            number_max=calibration.number_max,
            max_factor=calibration.max_factor,
            max_divisor=calibration.max_divisor,
            answer_limit=calibration.answer_limit,
            max_words=calibration.max_question_words,
            complexity=calibration.complexity,
            cognitive_load=calibration.cognitive_load,
            operation_rules=describe_operation_rules(calibration.allowed_operations),
            learning_style=persona.learning_style,
            interests=", ".join(persona.interests) or "not specified",
            cultural_context=persona.cultural_context or "not specified",
            strengths=", ".join(persona.strengths) or "not specified",
            context=context_text,
            avoid=avoid_text,
            format_instructions=MULTIPLE_CHOICE_FORMAT if question_type == "multiple_choice" else OPEN_FORMAT,
        )

    def parse_response(
            self,
            raw_text: str,
            calibration: Optional[Calibration],
            question_type: str = "multiple_choice",
            context_used: bool = False
    ) -> GenerationResult:
        """
        Защитный разбор ответа модели: сначала JSON, затем построчный формат.
        """
        parsed = parse_llm_json(raw_text)
        if isinstance(parsed, dict):
            # {"questions": [...]} или одиночный вопрос
            parsed = parsed.get("questions", [parsed])

        if isinstance(parsed, list):
            raw_items = parsed
        else:
            raw_items = parse_question_lines(raw_text)
            if raw_items:
                logger.info(f"[PARSE] JSON not found, parsed {len(raw_items)} questions from plain text")

        result = GenerationResult()
        if not raw_items:
            logger.warning("[PARSE] Could not extract any questions from response")
            result.discarded.append("malformed response: no questions found")
            return result

        seen_texts = set()
        for idx, item in enumerate(raw_items, 1):
            if not isinstance(item, dict):
                result.discarded.append(f"item {idx}: not an object")
                continue

            question, reason = self._build_question(item, calibration, question_type, context_used)
            if question is None:
                logger.warning(f"[SKIP] Question #{idx}: {reason}")
                result.discarded.append(f"item {idx}: {reason}")
                continue

            text_key = question.question.lower()
            if text_key in seen_texts:
                result.discarded.append(f"item {idx}: duplicate within batch")
                continue
            seen_texts.add(text_key)
            result.questions.append(question)

        return result

    def _build_question(
            self,
            item: Dict[str, Any],
            calibration: Optional[Calibration],
            question_type: str,
            context_used: bool
    ):
        """Нормализация одного элемента. Возвращает (вопрос, None) или (None, причина)"""
        text = item.get("question") or item.get("text") or item.get("prompt")
        if not text or not str(text).strip():
            return None, "empty question text"
        text = normalize_whitespace(str(text))

        answer = item.get("correct_answer", item.get("answer", item.get("correctAnswer")))
        if answer is None or not str(answer).strip():
            return None, "missing correct answer"
        answer = str(answer).strip()

        explanation = normalize_whitespace(str(item.get("explanation") or ""))

        options: List[str] = []
        if question_type == "multiple_choice":
            raw_options = item.get("options", item.get("choices"))
            if not isinstance(raw_options, list):
                return None, "options must be a list"

            # Дедупликация опций (регистронезависимая)
            seen_lower = set()
            for opt in raw_options:
                if opt is None or not str(opt).strip():
                    continue
                opt = str(opt).strip()
                if opt.lower() not in seen_lower:
                    seen_lower.add(opt.lower())
                    options.append(opt)

            if len(options) < 2:
                return None, f"not enough options: {options}"

            matched = self._match_option(answer, options)
            if matched is None:
                return None, f"correct answer '{answer}' not in options {options}"
            # Приводим ответ к точному написанию из options
            answer = matched

        tags = [TAG_VECTOR_CONTEXT] if context_used else []

        return GeneratedQuestion(
            question_id=uuid.uuid4().hex,
            question=text,
            question_type=question_type,
            options=options,
            correct_answer=answer,
            explanation=explanation,
            tags=tags,
            confidence=self._confidence(answer, explanation, calibration, context_used),
        ), None

    @staticmethod
    def _match_option(answer: str, options: List[str]) -> Optional[str]:
        answer_lower = answer.lower()
        for opt in options:
            if opt.lower() == answer_lower:
                return opt

        # "7" и "7.0" считаются одним ответом, "3 r 2" сравнивается только точно
        answer_value = parse_number(answer)
        if answer_value is None or parse_remainder(answer) is not None:
            return None
        for opt in options:
            if parse_remainder(opt) is not None:
                continue
            opt_value = parse_number(opt)
            if opt_value is not None and numbers_equal(opt_value, answer_value, 1e-9):
                return opt
        return None

    @staticmethod
    def _confidence(
            answer: str,
            explanation: str,
            calibration: Optional[Calibration],
            context_used: bool
    ) -> float:
        score = 0.5
        if context_used:
            score += 0.2
        if calibration is not None:
            score += 0.1
        if explanation:
            score += 0.1

        value = parse_number(answer)
        if value is None:
            score += 0.1
        elif calibration is None or 0 <= value <= calibration.answer_limit:
            score += 0.1

        return round(min(1.0, score), 2)

    def _on_unavailable(
            self,
            calibration: Calibration,
            count: int,
            topic: str,
            question_type: str,
            allow_fallback: bool,
            reason: str
    ) -> GenerationResult:
        if not allow_fallback:
            return GenerationResult(collaborator_failed=True, error=reason)

        logger.warning(f"[FALLBACK] Text generation unavailable ({reason}), using offline templates")
        questions = build_fallback_questions(
            calibration, count, seed=f"{topic}:{calibration.grade}:{calibration.difficulty}",
            question_type=question_type
        )
        return GenerationResult(
            questions=questions,
            collaborator_failed=True,
            used_fallback=True,
            error=reason,
        )
