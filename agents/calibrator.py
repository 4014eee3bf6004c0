import logging
import math
from typing import Dict

from models.schemas import Calibration
from utils.arithmetic import (
    ADDITION,
    DIVISION,
    MULTIPLICATION,
    SUBTRACTION,
    detect_operation,
)

logger = logging.getLogger(__name__)


# Верхняя граница операндов по классам
GRADE_BASE_MAX: Dict[int, int] = {
    1: 10,
    2: 20,
    3: 50,
    4: 100,
    5: 200,
    6: 500,
    7: 1000,
    8: 2000,
    9: 5000,
    10: 10000,
    11: 10000,
    12: 10000,
}

DIFFICULTY_FACTORS: Dict[str, float] = {
    "easy": 0.5,
    "medium": 0.75,
    "hard": 1.0,
}

DIFFICULTY_ALIASES: Dict[str, str] = {
    "beginner": "easy",
    "simple": "easy",
    "basic": "easy",
    "intermediate": "medium",
    "normal": "medium",
    "advanced": "hard",
    "expert": "hard",
    "difficult": "hard",
}

MIN_GRADE = 1
MAX_GRADE = 12

_COMPLEXITY_ORDER = ("simple", "moderate", "complex")
_LOAD_ORDER = ("low", "medium", "high")


class DifficultyCalibrator:
    """
    Калибровка сложности: (класс, уровень сложности, тема) → числовые ограничения.

    Чистая детерминированная логика без внешних вызовов. Никогда не бросает
    исключений: класс вне диапазона прижимается к [1, 12], неизвестный
    уровень сложности приводится к ближайшему из easy/medium/hard.
    """

    def __init__(self, max_question_words: int = 50):
        self.max_question_words = max_question_words
        logger.info("DifficultyCalibrator initialized")

    @staticmethod
    def normalize_grade(grade) -> int:
        try:
            value = int(grade)
        except (TypeError, ValueError):
            logger.warning(f"Invalid grade '{grade}', falling back to {MIN_GRADE}")
            return MIN_GRADE
        return max(MIN_GRADE, min(MAX_GRADE, value))

    @staticmethod
    def normalize_difficulty(difficulty) -> str:
        key = str(difficulty or "").strip().lower()
        if key in DIFFICULTY_FACTORS:
            return key
        if key in DIFFICULTY_ALIASES:
            return DIFFICULTY_ALIASES[key]
        logger.warning(f"Unknown difficulty '{difficulty}', using 'medium'")
        return "medium"

    def calibrate(self, grade, difficulty, topic: str = "") -> Calibration:
        """
        Расчет ограничений для генерации.

        Args:
            grade: Класс ученика (прижимается к [1, 12])
            difficulty: easy / medium / hard или синоним
            topic: Тема, по которой определяется арифметическая операция

        Returns:
            Calibration с диапазоном операндов и флагами сложности
        """
        grade = self.normalize_grade(grade)
        difficulty = self.normalize_difficulty(difficulty)
        operation = detect_operation(topic)

        base_max = GRADE_BASE_MAX[grade]
        number_max = max(2, int(base_max * DIFFICULTY_FACTORS[difficulty]))

        max_factor = max(2, min(12, int(math.sqrt(number_max))))
        max_divisor = max(2, min(12, number_max // 4))

        complexity, cognitive_load = self._analyze_complexity(grade, difficulty, operation)

        calibration = Calibration(
            grade=grade,
            difficulty=difficulty,
            operation=operation,
            number_min=1,
            number_max=number_max,
            max_factor=max_factor,
            max_divisor=max_divisor,
            answer_limit=self._answer_limit(grade, number_max, max_factor),
            complexity=complexity,
            cognitive_load=cognitive_load,
            allowed_operations=self._allowed_operations(grade, difficulty),
            max_question_words=self.max_question_words,
        )

        logger.debug(
            f"Calibrated grade={grade} difficulty={difficulty} operation={operation}: "
            f"range=[1, {number_max}] factor<={max_factor} divisor<={max_divisor}"
        )
        return calibration

    @staticmethod
    def _answer_limit(grade: int, number_max: int, max_factor: int) -> int:
        limit = max(number_max * 2, max_factor * max_factor)
        # Потолок ответа по возрасту
        if grade <= 2:
            cap = 50
        elif grade <= 4:
            cap = 500
        elif grade <= 8:
            cap = 5000
        else:
            cap = 100000
        return min(limit, cap)

    @staticmethod
    def _analyze_complexity(grade: int, difficulty: str, operation):
        if operation in (MULTIPLICATION, DIVISION):
            complexity = "moderate"
        elif operation in (ADDITION, SUBTRACTION):
            complexity = "simple"
        else:
            complexity = "moderate"
        cognitive_load = "medium"

        if grade <= 2:
            complexity, cognitive_load = "simple", "low"
        elif grade >= 6 and complexity == "simple":
            complexity = "moderate"

        c_idx = _COMPLEXITY_ORDER.index(complexity)
        l_idx = _LOAD_ORDER.index(cognitive_load)
        if difficulty == "hard":
            c_idx, l_idx = min(c_idx + 1, 2), min(l_idx + 1, 2)
        elif difficulty == "easy":
            c_idx = max(c_idx - 1, 0)
            if cognitive_load == "medium":
                l_idx = 0

        return _COMPLEXITY_ORDER[c_idx], _LOAD_ORDER[l_idx]

    @staticmethod
    def _allowed_operations(grade: int, difficulty: str) -> Dict[str, bool]:
        return {
            "carrying": grade >= 2 and difficulty != "easy",
            "borrowing": grade >= 2 and difficulty != "easy",
            "double_digit": grade >= 2,
            "multiplication": grade >= 2,
            "division": grade >= 3,
            "remainders": grade >= 4 and difficulty == "hard",
            "decimals": grade >= 5,
            "negative_numbers": grade >= 7,
        }
