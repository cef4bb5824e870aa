"""Scoring rules for every question type.

All functions here are pure: they map a question, one submitted answer and
the question's start time to a :class:`ScoreResult`. Times are epoch
milliseconds, time limits are seconds.

Speed terms:

* ``time_fraction`` = clamp(1 - elapsed / limit, 0, 1), used by choice and
  open questions: ``round(500 + 500 * fraction)`` when correct.
* ``time_factor`` = clamp(1 - elapsed / limit, 0.5, 1), a multiplier applied
  to the base points of sorting and slider answers, so a slow but good
  answer still keeps half of its value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from quiz_live.constants.quiz_constants import (
    CHOICE_BASE_POINTS,
    CHOICE_SPEED_POINTS,
    MIN_TIME_FACTOR,
    SLIDER_POINT_BANDS,
    SORTING_ALL_CORRECT_BONUS,
    SORTING_POINTS_PER_POSITION,
)
from quiz_live.core.models import (
    AnswerRecord,
    ChoiceQuestion,
    OpenQuestion,
    Question,
    SliderQuestion,
    SortingQuestion,
)


@dataclass(frozen=True, slots=True)
class ScoreResult:
    """Outcome of scoring one answer."""

    is_correct: bool
    points: int
    correct_positions: int | None = None
    distance: float | None = None


NOT_SCORED = ScoreResult(is_correct=False, points=0)


def elapsed_seconds(answered_at: int, started_at: int | None) -> float:
    if started_at is None:
        return 0.0
    return (answered_at - started_at) / 1000


def time_fraction(elapsed: float, time_limit: float | None) -> float:
    return _clamp(_remaining_share(elapsed, time_limit), 0.0, 1.0)


def time_factor(elapsed: float, time_limit: float | None) -> float:
    return _clamp(_remaining_share(elapsed, time_limit), MIN_TIME_FACTOR, 1.0)


def round_points(value: float) -> int:
    """Round half up, so 0.5 point ties always favour the player."""
    return int(math.floor(value + 0.5))


def choice_points(elapsed: float, time_limit: float | None) -> int:
    return round_points(CHOICE_BASE_POINTS + CHOICE_SPEED_POINTS * time_fraction(elapsed, time_limit))


def score_choice(question: ChoiceQuestion, answer: Any, elapsed: float) -> ScoreResult:
    is_correct = _is_index(answer) and answer == question.correct_index
    points = choice_points(elapsed, question.time_limit) if is_correct else 0
    return ScoreResult(is_correct=is_correct, points=points)


def is_open_answer_correct(question: OpenQuestion, answer: Any) -> bool:
    if not isinstance(answer, str):
        return False
    submitted = answer.strip()
    if not submitted:
        return False
    if question.ignore_case:
        submitted = submitted.casefold()
        return any(accepted.strip().casefold() == submitted for accepted in question.accepted_answers)
    return any(accepted.strip() == submitted for accepted in question.accepted_answers)


def score_open(question: OpenQuestion, answer: Any, elapsed: float) -> ScoreResult:
    is_correct = is_open_answer_correct(question, answer)
    points = choice_points(elapsed, question.time_limit) if is_correct else 0
    return ScoreResult(is_correct=is_correct, points=points)


def count_correct_positions(question: SortingQuestion, answer: Any) -> int:
    """Positions where the submitted order holds the item that belongs there."""
    order = answer if isinstance(answer, (list, tuple)) else []
    return sum(
        1
        for position in range(len(question.items))
        if position < len(order) and _is_index(order[position]) and order[position] == position
    )


def score_sorting(question: SortingQuestion, answer: Any, elapsed: float) -> ScoreResult:
    correct_positions = count_correct_positions(question, answer)
    all_correct = bool(question.items) and correct_positions == len(question.items)
    base = correct_positions * SORTING_POINTS_PER_POSITION + (SORTING_ALL_CORRECT_BONUS if all_correct else 0)
    points = round_points(base * time_factor(elapsed, question.time_limit))
    return ScoreResult(is_correct=all_correct, points=points, correct_positions=correct_positions)


def slider_distance(question: SliderQuestion, answer: Any) -> float:
    value = answer if _is_number(answer) else 0
    return abs(value - question.correct_value)


def effective_tolerance(question: SliderQuestion) -> float:
    return question.tolerance if _is_number(question.tolerance) and question.tolerance > 0 else 1


def slider_base_points(distance: float, tolerance: float) -> int:
    for multiple, points in SLIDER_POINT_BANDS:
        if distance <= tolerance * multiple:
            return points
    return 0


def score_slider(question: SliderQuestion, answer: Any, elapsed: float) -> ScoreResult:
    tolerance = effective_tolerance(question)
    distance = slider_distance(question, answer)
    base = slider_base_points(distance, tolerance)
    points = round_points(base * time_factor(elapsed, question.time_limit))
    return ScoreResult(is_correct=distance <= tolerance, points=points, distance=distance)


def score_answer(question: Question, record: AnswerRecord, started_at: int | None) -> ScoreResult:
    """Score one stored answer against ``question``; word clouds are never scored."""
    elapsed = elapsed_seconds(record.answered_at, started_at)
    if isinstance(question, ChoiceQuestion):
        return score_choice(question, record.answer, elapsed)
    if isinstance(question, OpenQuestion):
        return score_open(question, record.answer, elapsed)
    if isinstance(question, SortingQuestion):
        return score_sorting(question, record.answer, elapsed)
    if isinstance(question, SliderQuestion):
        return score_slider(question, record.answer, elapsed)
    return NOT_SCORED


def _remaining_share(elapsed: float, time_limit: float | None) -> float:
    if not time_limit or time_limit <= 0:
        return 1.0
    return 1 - elapsed / time_limit


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
