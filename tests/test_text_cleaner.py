"""
Тесты разбора ответов LLM
"""

from utils.text_cleaner import parse_llm_json, parse_question_lines


def test_parse_plain_json_array():
    assert parse_llm_json('[{"question": "What is 1 + 1?"}]') == [{"question": "What is 1 + 1?"}]


def test_parse_json_inside_markdown_with_text_around():
    raw = 'Here are your questions:\n```json\n[{"a": 1}, {"a": 2}]\n```\nGood luck!'
    assert parse_llm_json(raw) == [{"a": 1}, {"a": 2}]


def test_parse_json_with_comments_and_trailing_commas():
    raw = '// generated\n[{"a": 1,}, {"a": 2},]'
    assert parse_llm_json(raw) == [{"a": 1}, {"a": 2}]


def test_parse_python_style_literals():
    raw = "[{'question': 'What is 2 + 2?', 'hint': None, 'ok': True}]"
    assert parse_llm_json(raw) == [{"question": "What is 2 + 2?", "hint": None, "ok": True}]


def test_garbage_returns_none():
    assert parse_llm_json("I cannot help with that.") is None
    assert parse_llm_json("") is None


def test_parse_question_lines_inline_options():
    raw = """Question: What is 3 + 4?
Options: 5, 6, 7, 8
Answer: 7
Explanation: 3 plus 4 equals 7.

Question: What is 9 - 2?
Options: A) 6; B) 7; C) 8
Answer: B) 7
Explanation: 9 take away 2 is 7."""
    items = parse_question_lines(raw)

    assert len(items) == 2
    assert items[0] == {
        "question": "What is 3 + 4?",
        "options": ["5", "6", "7", "8"],
        "correct_answer": "7",
        "explanation": "3 plus 4 equals 7.",
    }
    assert items[1]["options"] == ["6", "7", "8"]
    assert items[1]["correct_answer"] == "7"


def test_parse_question_lines_option_list():
    raw = """1. Question: What is 5 × 2?
Options:
A) 7
B) 10
C) 12
Answer: 10"""
    items = parse_question_lines(raw)

    assert len(items) == 1
    assert items[0]["options"] == ["7", "10", "12"]
    assert items[0]["correct_answer"] == "10"
    assert "explanation" not in items[0]
