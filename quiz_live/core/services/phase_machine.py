"""Session phase transitions.

Each transition inspects a :class:`SessionRecord` and returns the store
updates that move it to the next phase, or ``None`` when the record is not in
the phase the transition starts from. Returning ``None`` instead of raising is
what makes transitions idempotent: a second "show results" for the same
question, fired by a timer that lost the race against the all-answered
check, simply finds the session already in ``results`` and does nothing.

    lobby          --start-->             question(0)
    question(i)    --expire/all/skip-->   results(i)
    results(i)     --advance-->           leaderboard(i)
    leaderboard(i) --advance, i+1 < N-->  question(i+1)
    leaderboard(i) --advance, i+1 == N--> final
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any

from quiz_live.core.models import QuestionType, SessionRecord, SessionStatus
from quiz_live.core.services.scoreboard import QuestionOutcome, apply_question_scores


@dataclass(frozen=True, slots=True)
class Transition:
    """Store updates for one phase change, relative to the session path."""

    from_status: SessionStatus
    to_status: SessionStatus
    question_index: int
    updates: dict[str, Any]
    outcomes: list[QuestionOutcome] = field(default_factory=list)


def new_session_record(title: str, questions: list[dict[str, Any]], created_at: int) -> dict[str, Any]:
    return {
        "quizTitle": title,
        "questions": questions,
        "status": SessionStatus.LOBBY.value,
        "currentQuestion": -1,
        "questionStartedAt": None,
        "shuffledOrder": None,
        "createdAt": created_at,
    }


def shuffled_indices(count: int, rng: random.Random) -> list[int]:
    """Fisher-Yates permutation of ``range(count)``."""
    indices = list(range(count))
    rng.shuffle(indices)
    return indices


def start_quiz(record: SessionRecord, now_ms: int, rng: random.Random) -> Transition | None:
    if record.status is not SessionStatus.LOBBY or not record.questions:
        return None
    return _open_question(record, 0, now_ms, rng)


def show_results(record: SessionRecord, index: int) -> Transition | None:
    if record.status is not SessionStatus.QUESTION or record.current_question != index:
        return None
    question = record.current_question_def
    if question is None:
        return None
    updates: dict[str, Any] = {"status": SessionStatus.RESULTS.value}
    if question.question_type is QuestionType.WORD_CLOUD:
        return Transition(SessionStatus.QUESTION, SessionStatus.RESULTS, index, updates)

    players, outcomes = apply_question_scores(
        question,
        record.players,
        record.answers_for(index),
        record.question_started_at,
    )
    for name, state in players.items():
        updates[f"players/{name}/score"] = state.score
        updates[f"players/{name}/streak"] = state.streak
    return Transition(SessionStatus.QUESTION, SessionStatus.RESULTS, index, updates, outcomes)


def show_leaderboard(record: SessionRecord, index: int) -> Transition | None:
    if record.status is not SessionStatus.RESULTS or record.current_question != index:
        return None
    return Transition(
        SessionStatus.RESULTS,
        SessionStatus.LEADERBOARD,
        index,
        {"status": SessionStatus.LEADERBOARD.value},
    )


def advance_from_leaderboard(
    record: SessionRecord,
    index: int,
    now_ms: int,
    rng: random.Random,
) -> Transition | None:
    if record.status is not SessionStatus.LEADERBOARD or record.current_question != index:
        return None
    if index + 1 < record.question_count:
        return _open_question(record, index + 1, now_ms, rng)
    return Transition(
        SessionStatus.LEADERBOARD,
        SessionStatus.FINAL,
        index,
        {
            "status": SessionStatus.FINAL.value,
            "currentQuestion": -1,
            "questionStartedAt": None,
            "shuffledOrder": None,
        },
    )


def _open_question(record: SessionRecord, index: int, now_ms: int, rng: random.Random) -> Transition:
    question = record.questions[index]
    shuffled = None
    if question.question_type is QuestionType.SORTING:
        shuffled = shuffled_indices(len(getattr(question, "items", ())), rng)
    updates = {
        "status": SessionStatus.QUESTION.value,
        "currentQuestion": index,
        "questionStartedAt": now_ms if question.is_timed else None,
        "shuffledOrder": shuffled,
        f"answers/{index}": None,
        f"wordCloud/{index}": None,
    }
    return Transition(record.status, SessionStatus.QUESTION, index, updates)
