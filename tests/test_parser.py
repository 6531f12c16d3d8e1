import sys, pathlib; sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))
import json
import logging

import pytest

from ai_quizgen.core import question_parser
from ai_quizgen.core.types import MultiChoiceQuestion, SingleChoiceQuestion, TextInputQuestion


def test_parse_strict_json_ok():
    txt = '{"questions": [{"question": "What is two plus two?"}]}'
    assert question_parser.parse_question_list(txt) == [{"question": "What is two plus two?"}]


def test_parse_strips_code_fences():
    txt = '```json\n{"questions": []}\n```'
    assert question_parser.parse_question_list(txt) == []
    assert question_parser.strip_code_fences("```\n{}\n```") == "{}"


def test_parse_with_extra_text():
    txt = 'Sure! Here you go:\n{"questions": [{"type": "text-input"}]}\nThanks!'
    assert question_parser.parse_question_list(txt) == [{"type": "text-input"}]


@pytest.mark.parametrize("txt", ["No JSON here", '{"questions": "nope"}', "[1, 2]", '{"items": []}'])
def test_parse_failure_raises(txt):
    with pytest.raises(question_parser.ResponseParseError, match="Failed to parse AI response"):
        question_parser.parse_question_list(txt)


def test_single_choice_is_sanitized():
    raw = {
        "question": "  Which planet is known as the red planet?  ",
        "options": [" Mars ", "", "Venus", 7, "Jupiter"],
        "correctAnswer": "0",
        "explanation": "   ",
    }
    question = question_parser.build_question(raw, 0, 1700000000000)
    assert isinstance(question, SingleChoiceQuestion)
    assert question.id == "ai_q_1700000000000_0"
    assert question.prompt == "Which planet is known as the red planet?"
    assert question.options == ["Mars", "Venus", "Jupiter"]
    assert question.correct_index == 0
    assert question.explanation == "No explanation provided."


def test_unknown_type_defaults_to_single_choice():
    raw = {"type": "essay", "question": "Which gas do plants absorb?", "options": ["CO2", "O2"], "correctAnswer": 0}
    assert isinstance(question_parser.build_question(raw, 1, 1), SingleChoiceQuestion)


def test_multi_choice_indices_are_cleaned():
    raw = {
        "type": "mcq-multiple",
        "question": "Which of these are primary colours?",
        "options": ["Red", "Green", "Blue", "Purple"],
        "correctAnswers": [2, "0", 2, 9, "x"],
        "explanation": "Red and blue are primaries.",
    }
    question = question_parser.build_question(raw, 2, 5)
    assert isinstance(question, MultiChoiceQuestion)
    assert question.correct_indices == [0, 2]
    assert question.explanation == "Red and blue are primaries."


def test_text_input_question():
    raw = {
        "type": "text-input",
        "question": "What is the chemical symbol for gold?",
        "correctAnswer": " Au ",
        "caseSensitive": "true",
    }
    question = question_parser.build_question(raw, 3, 5)
    assert isinstance(question, TextInputQuestion)
    assert question.expected == "Au"
    assert question.case_sensitive is True


@pytest.mark.parametrize(
    "raw",
    [
        "not an object",
        {"question": "Too short", "options": ["A", "B"], "correctAnswer": 0},
        {"question": "Which option is right here?", "options": ["A"], "correctAnswer": 0},
        {"question": "Which option is right here?", "options": ["A", "B"], "correctAnswer": 2},
        {"question": "Which option is right here?", "options": ["A", "B"]},
        {"type": "multi-choice", "question": "Which options are right?", "options": ["A", "B"], "correctAnswers": [5]},
        {"type": "multi-choice", "question": "Which options are right?", "options": ["A", "B"], "correctAnswers": []},
        {"type": "text-input", "question": "What is the capital of France?", "correctAnswer": "  "},
    ],
)
def test_invalid_questions_raise(raw):
    with pytest.raises(ValueError):
        question_parser.build_question(raw, 0, 0)


def test_build_questions_skips_invalid_with_warning(caplog):
    raw_questions = json.loads(
        """[
        {"question": "What is the largest ocean on Earth?", "options": ["Pacific", "Atlantic"], "correctAnswer": 0},
        {"question": "Which option is valid here?", "options": ["A"], "correctAnswer": 0},
        {"type": "text-input", "question": "Name the closest star to Earth.", "correctAnswer": "The Sun"}
    ]"""
    )
    with caplog.at_level(logging.WARNING, logger="ai_quizgen.core.question_parser"):
        questions = question_parser.build_questions(raw_questions, 42)

    assert [q.id for q in questions] == ["ai_q_42_0", "ai_q_42_2"]
    assert any("Skipping invalid question 2" in r.getMessage() for r in caplog.records)
