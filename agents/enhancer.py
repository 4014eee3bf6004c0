import logging
from typing import List, Optional, Tuple

from models.schemas import Calibration, GeneratedQuestion, Persona, TAG_ENHANCED
from utils.arithmetic import (
    ADDITION,
    DIVISION,
    MULTIPLICATION,
    SUBTRACTION,
    extract_numbers,
    find_expression,
    format_number,
)
from utils.hashing import stable_choice

logger = logging.getLogger(__name__)


DEFAULT_NAMES = ("Emma", "Alex", "Maya", "Sam", "Zoe", "Jake")

CULTURAL_NAMES = {
    "new zealand": ("Aroha", "Nikau", "Mere", "Tane", "Ruby", "Liam"),
    "australia": ("Mia", "Jack", "Kirra", "Noah", "Isla", "Jarrah"),
    "india": ("Aarav", "Diya", "Vihaan", "Anaya", "Kabir", "Meera"),
    "russia": ("Masha", "Ivan", "Sasha", "Olga", "Dima", "Katya"),
}

STORY_ITEMS = {
    ADDITION: ("stickers", "marbles", "toy cars", "crayons", "cookies"),
    SUBTRACTION: ("balloons", "candies", "pencils", "erasers", "stamps"),
    MULTIPLICATION: ("apples", "books", "toys", "cards", "stickers"),
    DIVISION: ("cookies", "candies", "toys", "cards", "stickers"),
}

# (множественное, единственное)
STORY_CONTAINERS = (("bags", "bag"), ("boxes", "box"), ("baskets", "basket"), ("packs", "pack"))

STORY_TEMPLATES = {
    ADDITION: "{name} has {a} {items}. A friend gives {name} {b} more {items}. "
              "How many {items} does {name} have now?",
    SUBTRACTION: "{name} had {a} {items}. {name} gave away {b} {items}. "
                 "How many {items} does {name} have left?",
    MULTIPLICATION: "{name} has {a} {containers}. Each {container} holds {b} {items}. "
                    "How many {items} does {name} have in total?",
    DIVISION: "{name} has {a} {items} to share equally among {b} {containers}. "
              "How many {items} go in each {container}?",
}

INTEREST_FRAMES = (
    "{name} is a big fan of {interest}. {question}",
    "Here is a {interest} challenge from {name}: {question}",
    "While thinking about {interest}, {name} asks: {question}",
)

LEARNING_STYLE_HINTS = {
    "visual": "Tip: draw a picture or a number line to see the problem.",
    "auditory": "Tip: say each step out loud as you solve it.",
    "kinesthetic": "Tip: use counters or blocks to act the problem out.",
    "reading_writing": "Tip: write each step down in words before answering.",
}

STRENGTH_HINT = "You are good at {strength}, so lean on it here."

# Слова, указывающие на понятную ребенку ситуацию
RELATABLE_WORDS = ("friend", "share", "school", "team", "game", "family")


class ContextEnhancer:
    """
    Агент персонализации. Переписывает поверхностный текст вопроса под
    интересы и культурный контекст ученика, не меняя чисел, операции,
    вариантов и правильного ответа. Выбор имен и сюжетов детерминирован.
    """

    def __init__(self):
        logger.info("ContextEnhancer initialized")

    def enhance(
            self,
            candidates: List[GeneratedQuestion],
            persona: Persona,
            calibration: Optional[Calibration] = None
    ) -> List[GeneratedQuestion]:
        enhanced = [self.enhance_one(q, persona, calibration) for q in candidates]
        if enhanced:
            avg = sum(q.engagement_score or 0.0 for q in enhanced) / len(enhanced)
            logger.info(f"Enhanced {len(enhanced)} questions (avg engagement={avg:.2f})")
        return enhanced

    def enhance_one(
            self,
            question: GeneratedQuestion,
            persona: Persona,
            calibration: Optional[Calibration] = None
    ) -> GeneratedQuestion:
        original_text = question.question
        seed = question.question_id
        name = stable_choice(self._names_for(persona.cultural_context), seed + ":name")

        new_text = self._story_rewrite(original_text, name, seed, calibration)
        if new_text is None:
            new_text = self._frame_with_interest(original_text, name, persona, seed, calibration)

        hint = LEARNING_STYLE_HINTS.get(persona.learning_style)
        explanation = question.explanation
        if hint and hint not in explanation:
            explanation = f"{explanation} {hint}".strip()
        if persona.strengths:
            strength_hint = STRENGTH_HINT.format(strength=stable_choice(persona.strengths, seed + ":strength"))
            if strength_hint not in explanation:
                explanation = f"{explanation} {strength_hint}".strip()

        return question.model_copy(update={
            "question": new_text,
            "explanation": explanation,
            "tags": list(dict.fromkeys(question.tags + [TAG_ENHANCED])),
            "engagement_score": self.engagement_score(original_text, new_text, persona),
            "original_question": original_text,
        })

    @staticmethod
    def _names_for(cultural_context: str) -> Tuple[str, ...]:
        key = (cultural_context or "").strip().lower()
        return CULTURAL_NAMES.get(key, DEFAULT_NAMES)

    @staticmethod
    def _story_rewrite(
            text: str,
            name: str,
            seed: str,
            calibration: Optional[Calibration]
    ) -> Optional[str]:
        """Сюжет для "голого" примера вида 'What is 12 + 7?'. Порядок операндов сохраняется"""
        expression = find_expression(text)
        if expression is None or len(text.split()) > 8:
            return None

        a, operation, b = expression
        if not float(a).is_integer() or not float(b).is_integer():
            return None

        containers, container = stable_choice(STORY_CONTAINERS, seed + ":box")
        story = STORY_TEMPLATES[operation].format(
            name=name,
            a=format_number(a),
            b=format_number(b),
            items=stable_choice(STORY_ITEMS[operation], seed + ":items"),
            containers=containers,
            container=container,
        )

        max_words = calibration.max_question_words if calibration else 50
        if len(story.split()) > max_words:
            return None
        return story

    @staticmethod
    def _frame_with_interest(
            text: str,
            name: str,
            persona: Persona,
            seed: str,
            calibration: Optional[Calibration] = None
    ) -> str:
        if persona.interests:
            interest = stable_choice(persona.interests, seed + ":interest")
            frame = stable_choice(INTEREST_FRAMES, seed + ":frame")
            framed = frame.format(name=name, interest=interest, question=text)
        elif persona.cultural_context:
            framed = f"In {persona.cultural_context}, {name} wonders: {text}"
        else:
            return text

        # Рамка не должна удлинять вопрос сверх лимита и добавлять числа
        max_words = calibration.max_question_words if calibration else 50
        if len(framed.split()) > max_words or extract_numbers(framed) != extract_numbers(text):
            logger.debug(f"[SKIP] Framing rejected for '{text[:40]}', keeping original text")
            return text
        return framed

    @staticmethod
    def engagement_score(original_text: str, enhanced_text: str, persona: Persona) -> float:
        """
        Оценка вовлеченности в [0, 1]:
        база 0.5, +0.2 за развернутый текст, +0.2 за интерес или понятную
        ситуацию, +0.1 за культурный контекст.
        """
        score = 0.5
        lowered = enhanced_text.lower()

        if len(enhanced_text) >= 1.5 * max(1, len(original_text)):
            score += 0.2

        interests = [i.lower() for i in persona.interests]
        if any(i and i in lowered for i in interests) or any(w in lowered for w in RELATABLE_WORDS):
            score += 0.2

        culture = (persona.cultural_context or "").strip().lower()
        names = CULTURAL_NAMES.get(culture, ())
        if culture and (culture in lowered or any(n.lower() in lowered for n in names)):
            score += 0.1

        return round(min(1.0, score), 2)
