"""Utilities for importing quizzes from a JSON file.

File format:

    {
      "title": "Fractions",
      "questions": [
        {"type": "mc", "text": "What is $1/2 + 1/4$?",
         "options": ["3/4", "2/6", "1/8"], "correctIndex": 0, "timeLimit": 20},
        {"type": "tf", "text": "Is 0.5 equal to 1/2?", "options": ["True", "False"],
         "correctIndex": 0},
        {"type": "open", "text": "Name the top part of a fraction.",
         "acceptedAnswers": ["numerator"], "ignoreCase": true},
        {"type": "sorting", "text": "Smallest first",
         "items": ["1/8", "1/4", "1/2"]},
        {"type": "slider", "text": "How many quarters in 3?",
         "min": 0, "max": 20, "correctValue": 12, "tolerance": 1},
        {"type": "wordcloud", "text": "One word about fractions", "maxSubmissions": 3}
      ]
    }

``timeLimit`` is optional and falls back to a per-type default; word clouds are
never timed. Question text supports markdown and LaTeX.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from quiz_live.constants.quiz_constants import MIN_SORTING_ITEMS
from quiz_live.core.errors import QuizImportError
from quiz_live.core.models import (
    ChoiceQuestion,
    OpenQuestion,
    Question,
    QuestionType,
    Quiz,
    SliderQuestion,
    SortingQuestion,
    WordCloudQuestion,
    question_from_dict,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ImportedQuiz:
    """Container for an imported quiz and where it came from."""

    source_path: Path
    quiz: Quiz


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise QuizImportError(f"Could not read quiz file {file_path}: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise QuizImportError(f"Quiz file is not valid JSON (line {exc.lineno}).") from exc
    quiz = parse_quiz(data)
    logger.info("Imported %d questions from %s", len(quiz.questions), file_path)
    return ImportedQuiz(source_path=file_path, quiz=quiz)


def parse_quiz(data: Any) -> Quiz:
    """Validate a quiz document and build the typed quiz."""
    if not isinstance(data, dict):
        raise QuizImportError("Quiz document must be a JSON object.")
    title = str(data.get("title") or "").strip()
    if not title:
        raise QuizImportError("Quiz title cannot be empty.")
    raw_questions = data.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        raise QuizImportError("Quiz did not contain any questions.")

    questions: list[Question] = []
    for number, raw in enumerate(raw_questions, start=1):
        if not isinstance(raw, dict):
            raise QuizImportError(f"Question {number} must be an object.")
        questions.append(_parse_question(number, raw))
    return Quiz(title=title, questions=tuple(questions))


def _parse_question(number: int, raw: dict[str, Any]) -> Question:
    raw_type = raw.get("type")
    if raw_type not in {member.value for member in QuestionType}:
        raise QuizImportError(f"Question {number}: unknown type {raw_type!r}.")
    _check_time_limit(number, raw.get("timeLimit"))
    question = question_from_dict(raw)
    if not question.text.strip():
        raise QuizImportError(f"Question {number}: question text cannot be empty.")

    if isinstance(question, ChoiceQuestion):
        correct = raw.get("correctIndex")
        if isinstance(correct, bool) or not isinstance(correct, int):
            raise QuizImportError(f"Question {number}: correctIndex must be an option number.")
        _check_choice(number, question)
    elif isinstance(question, OpenQuestion):
        if not any(answer.strip() for answer in question.accepted_answers):
            raise QuizImportError(f"Question {number}: needs at least one accepted answer.")
    elif isinstance(question, SortingQuestion):
        if len([item for item in question.items if item.strip()]) < MIN_SORTING_ITEMS:
            raise QuizImportError(
                f"Question {number}: sorting needs at least {MIN_SORTING_ITEMS} non-empty items."
            )
    elif isinstance(question, SliderQuestion):
        _check_slider(number, question)
    elif isinstance(question, WordCloudQuestion):
        limit = raw.get("maxSubmissions")
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 1):
            raise QuizImportError(f"Question {number}: maxSubmissions must be a positive integer.")
    return question


def _check_time_limit(number: int, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise QuizImportError(f"Question {number}: timeLimit must be a number of seconds.")
    if value <= 0:
        raise QuizImportError(f"Question {number}: timeLimit must be positive.")


def _check_choice(number: int, question: ChoiceQuestion) -> None:
    if question.question_type is QuestionType.TRUE_FALSE and len(question.options) != 2:
        raise QuizImportError(f"Question {number}: true/false needs exactly two options.")
    if len(question.options) < 2:
        raise QuizImportError(f"Question {number}: needs at least two options.")
    if any(not option.strip() for option in question.options):
        raise QuizImportError(f"Question {number}: option text cannot be empty.")
    if not 0 <= question.correct_index < len(question.options):
        raise QuizImportError(f"Question {number}: correctIndex does not point at an option.")


def _check_slider(number: int, question: SliderQuestion) -> None:
    for label, value in (
        ("min", question.min_value),
        ("max", question.max_value),
        ("correctValue", question.correct_value),
        ("tolerance", question.tolerance),
    ):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise QuizImportError(f"Question {number}: {label} must be a number.")
    if question.min_value >= question.max_value:
        raise QuizImportError(f"Question {number}: min must be less than max.")
    if not question.min_value <= question.correct_value <= question.max_value:
        raise QuizImportError(f"Question {number}: correctValue must lie between min and max.")
    if question.tolerance <= 0:
        raise QuizImportError(f"Question {number}: tolerance must be positive.")
