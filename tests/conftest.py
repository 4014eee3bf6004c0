"""
Общие фикстуры и заглушки внешних сервисов для тестов
"""

import asyncio
import json

import pytest

from agents.calibrator import DifficultyCalibrator
from models import Persona, PipelineSettings, WorkflowRequest


def mc_item(a, b, answer=None, options=None, op="+", explanation=None):
    """Элемент ответа LLM в формате JSON для вопроса 'What is a op b?'"""
    results = {"+": a + b, "-": a - b, "×": a * b}
    correct = results[op] if answer is None else answer
    if options is None:
        options = [str(correct - 1), str(correct), str(correct + 1), str(correct + 2)]
    return {
        "question": f"What is {a} {op} {b}?",
        "options": options,
        "correct_answer": str(correct),
        "explanation": explanation or f"{a} {op} {b} equals {correct}.",
    }


def as_json(*items):
    return json.dumps(list(items))


class ScriptedGenerationClient:
    """
    Заглушка текстовой генерации. Отдает ответы по очереди;
    последний ответ повторяется. Исключение в списке пробрасывается.
    """

    def __init__(self, responses, delay: float = 0.0):
        self.responses = list(responses)
        self.delay = delay
        self.calls = []

    async def complete(self, prompt, constraints=None):
        self.calls.append({"prompt": prompt, "constraints": constraints})
        if self.delay:
            await asyncio.sleep(self.delay)
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


class StaticSearchClient:
    def __init__(self, results):
        self.results = results
        self.calls = []

    async def search(self, query_text, filters, top_k):
        self.calls.append({"query_text": query_text, "filters": filters, "top_k": top_k})
        return self.results


class FailingSearchClient:
    def __init__(self):
        self.calls = 0

    async def search(self, query_text, filters, top_k):
        self.calls += 1
        raise ConnectionError("vector store is down")


@pytest.fixture
def calibrator():
    return DifficultyCalibrator()


@pytest.fixture
def addition_calibration(calibrator):
    """Класс 5, easy, сложение: числа до 100, ответ до 200"""
    return calibrator.calibrate(5, "easy", "Addition")


@pytest.fixture
def persona():
    return Persona(
        learning_style="visual",
        interests=["soccer", "dinosaurs"],
        cultural_context="New Zealand",
    )


@pytest.fixture
def addition_request(persona):
    return WorkflowRequest(
        subject="mathematics",
        topic="Addition",
        grade=5,
        difficulty="easy",
        count=3,
        persona=persona,
    )


@pytest.fixture
def fast_settings():
    return PipelineSettings(
        max_retries=2,
        collaborator_timeout_seconds=2.0,
        global_timeout_seconds=10.0,
    )
