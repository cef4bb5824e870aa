"""Service for applying question scores and ranking players."""

from __future__ import annotations

from dataclasses import dataclass

from quiz_live.core.models import AnswerRecord, PlayerState, Question
from quiz_live.core.scoring import ScoreResult, score_answer


@dataclass(frozen=True, slots=True)
class QuestionOutcome:
    """Result of one player on one question."""

    name: str
    answered: bool
    is_correct: bool
    points: int
    total_score: int
    streak: int


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    """Immutable snapshot returned to consumers."""

    rank: int
    name: str
    score: int
    streak: int

    def to_dict(self) -> dict[str, object]:
        return {"rank": self.rank, "name": self.name, "score": self.score, "streak": self.streak}


def apply_question_scores(
    question: Question,
    players: dict[str, PlayerState],
    answers: dict[str, AnswerRecord],
    started_at: int | None,
) -> tuple[dict[str, PlayerState], list[QuestionOutcome]]:
    """Return updated player states and per-player outcomes for one question.

    Only joined players are ranked; an answer under a name that never joined
    is ignored. Players without an answer score nothing and lose their streak.
    """
    updated: dict[str, PlayerState] = {}
    outcomes: list[QuestionOutcome] = []
    for name in sorted(players):
        previous = players[name]
        record = answers.get(name)
        result = score_answer(question, record, started_at) if record is not None else ScoreResult(False, 0)
        streak = previous.streak + 1 if result.is_correct else 0
        state = PlayerState(
            joined_at=previous.joined_at,
            score=previous.score + max(0, result.points),
            streak=streak,
        )
        updated[name] = state
        outcomes.append(
            QuestionOutcome(
                name=name,
                answered=record is not None,
                is_correct=result.is_correct,
                points=max(0, result.points),
                total_score=state.score,
                streak=state.streak,
            )
        )
    return updated, outcomes


def build_leaderboard(players: dict[str, PlayerState], limit: int | None = None) -> list[LeaderboardRow]:
    """Rank players by score (descending, ties share a rank, then by name)."""
    ordered = sorted(players.items(), key=lambda item: (-item[1].score, item[0]))
    rows: list[LeaderboardRow] = []
    previous_score: int | None = None
    rank = 0
    for position, (name, state) in enumerate(ordered, start=1):
        if state.score != previous_score:
            rank = position
            previous_score = state.score
        rows.append(LeaderboardRow(rank=rank, name=name, score=state.score, streak=state.streak))
    return rows if limit is None else rows[:limit]
