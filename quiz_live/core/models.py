"""Domain models for the live quiz engine.

The store speaks plain JSON-like dictionaries with camelCase keys; the
dataclasses here are the typed view the engine works with. ``to_dict`` and the
``from_*`` helpers translate between the two.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from quiz_live.constants.quiz_constants import (
    DEFAULT_TIME_LIMITS,
    DEFAULT_WORDCLOUD_MAX_SUBMISSIONS,
)


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "mc"
    TRUE_FALSE = "tf"
    OPEN = "open"
    SORTING = "sorting"
    SLIDER = "slider"
    WORD_CLOUD = "wordcloud"


class SessionStatus(str, Enum):
    LOBBY = "lobby"
    QUESTION = "question"
    RESULTS = "results"
    LEADERBOARD = "leaderboard"
    FINAL = "final"


@dataclass(frozen=True, slots=True, kw_only=True)
class Question:
    """Fields shared by every question type."""

    question_type: QuestionType
    text: str
    image_url: str | None = None
    time_limit: float | None = None

    @property
    def is_timed(self) -> bool:
        return self.question_type is not QuestionType.WORD_CLOUD

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.question_type.value,
            "text": self.text,
            "imageUrl": self.image_url,
        }
        if self.is_timed:
            data["timeLimit"] = self.time_limit
        data.update(self._specific_fields())
        return data

    def public_dict(self) -> dict[str, Any]:
        """Wire form with the answer key removed, for display while a question runs."""
        return self.to_dict()

    def _specific_fields(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True, slots=True, kw_only=True)
class ChoiceQuestion(Question):
    """Multiple-choice or true/false question answered with an option index."""

    options: tuple[str, ...]
    correct_index: int

    def _specific_fields(self) -> dict[str, Any]:
        return {"options": list(self.options), "correctIndex": self.correct_index}

    def public_dict(self) -> dict[str, Any]:
        data = self.to_dict()
        data.pop("correctIndex")
        return data


@dataclass(frozen=True, slots=True, kw_only=True)
class OpenQuestion(Question):
    question_type: QuestionType = QuestionType.OPEN
    accepted_answers: tuple[str, ...]
    ignore_case: bool = True

    def _specific_fields(self) -> dict[str, Any]:
        return {"acceptedAnswers": list(self.accepted_answers), "ignoreCase": self.ignore_case}

    def public_dict(self) -> dict[str, Any]:
        data = self.to_dict()
        data.pop("acceptedAnswers")
        return data


@dataclass(frozen=True, slots=True, kw_only=True)
class SortingQuestion(Question):
    """Items are stored in their correct order; participants see a shuffled pool."""

    question_type: QuestionType = QuestionType.SORTING
    items: tuple[str, ...]

    def _specific_fields(self) -> dict[str, Any]:
        return {"items": list(self.items)}

    def public_dict(self) -> dict[str, Any]:
        # The item list itself is the answer key; clients render it through shuffledOrder.
        return self.to_dict()


@dataclass(frozen=True, slots=True, kw_only=True)
class SliderQuestion(Question):
    question_type: QuestionType = QuestionType.SLIDER
    min_value: float
    max_value: float
    correct_value: float
    tolerance: float
    unit: str | None = None

    def _specific_fields(self) -> dict[str, Any]:
        return {
            "min": self.min_value,
            "max": self.max_value,
            "correctValue": self.correct_value,
            "tolerance": self.tolerance,
            "unit": self.unit,
        }

    def public_dict(self) -> dict[str, Any]:
        data = self.to_dict()
        data.pop("correctValue")
        data.pop("tolerance")
        return data


@dataclass(frozen=True, slots=True, kw_only=True)
class WordCloudQuestion(Question):
    question_type: QuestionType = QuestionType.WORD_CLOUD
    max_submissions: int = DEFAULT_WORDCLOUD_MAX_SUBMISSIONS

    def _specific_fields(self) -> dict[str, Any]:
        return {"maxSubmissions": self.max_submissions}


@dataclass(frozen=True, slots=True)
class Quiz:
    """Quiz definition handed to the engine by the authoring side."""

    title: str
    questions: tuple[Question, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "questions": [q.to_dict() for q in self.questions]}


@dataclass(slots=True)
class PlayerState:
    joined_at: int
    score: int = 0
    streak: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"joinedAt": self.joined_at, "score": self.score, "streak": self.streak}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PlayerState:
        data = data or {}
        return cls(
            joined_at=_as_int(data.get("joinedAt"), 0),
            score=max(0, _as_int(data.get("score"), 0)),
            streak=max(0, _as_int(data.get("streak"), 0)),
        )


@dataclass(frozen=True, slots=True)
class AnswerRecord:
    answer: Any
    answered_at: int

    def to_dict(self) -> dict[str, Any]:
        return {"answer": self.answer, "answeredAt": self.answered_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AnswerRecord:
        data = data or {}
        return cls(answer=data.get("answer"), answered_at=_as_int(data.get("answeredAt"), 0))


@dataclass(frozen=True, slots=True)
class WordCloudEntry:
    word: str
    author: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {"word": self.word, "author": self.author, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> WordCloudEntry:
        data = data or {}
        return cls(
            word=str(data.get("word") or ""),
            author=str(data.get("author") or ""),
            timestamp=_as_int(data.get("timestamp"), 0),
        )


@dataclass(slots=True)
class SessionRecord:
    """Typed read view over one ``sessions/{code}`` snapshot."""

    code: str
    quiz_title: str
    questions: list[Question]
    status: SessionStatus
    current_question: int = -1
    question_started_at: int | None = None
    shuffled_order: list[int] | None = None
    players: dict[str, PlayerState] = field(default_factory=dict)
    answers: dict[int, dict[str, AnswerRecord]] = field(default_factory=dict)
    word_cloud: dict[int, list[WordCloudEntry]] = field(default_factory=dict)
    created_at: int | None = None

    @classmethod
    def from_snapshot(cls, code: str, data: dict[str, Any]) -> SessionRecord:
        status_value = data.get("status") or SessionStatus.LOBBY.value
        try:
            status = SessionStatus(status_value)
        except ValueError:
            status = SessionStatus.LOBBY
        shuffled = data.get("shuffledOrder")
        return cls(
            code=code,
            quiz_title=str(data.get("quizTitle") or ""),
            questions=[question_from_dict(q) for q in _as_list(data.get("questions"))],
            status=status,
            current_question=_as_int(data.get("currentQuestion"), -1),
            question_started_at=_optional_int(data.get("questionStartedAt")),
            shuffled_order=[int(i) for i in _as_list(shuffled)] if shuffled is not None else None,
            players={
                name: PlayerState.from_dict(player)
                for name, player in (data.get("players") or {}).items()
            },
            answers={
                int(index): {
                    name: AnswerRecord.from_dict(record)
                    for name, record in (per_question or {}).items()
                }
                for index, per_question in _indexed_items(data.get("answers"))
            },
            word_cloud={
                int(index): [WordCloudEntry.from_dict(entry) for entry in _pushed_values(entries)]
                for index, entries in _indexed_items(data.get("wordCloud"))
            },
            created_at=_optional_int(data.get("createdAt")),
        )

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def current_question_def(self) -> Question | None:
        if 0 <= self.current_question < len(self.questions):
            return self.questions[self.current_question]
        return None

    def answers_for(self, index: int) -> dict[str, AnswerRecord]:
        return dict(self.answers.get(index, {}))

    def word_cloud_for(self, index: int) -> list[WordCloudEntry]:
        return list(self.word_cloud.get(index, []))


def question_from_dict(data: dict[str, Any]) -> Question:
    """Build a question from its wire form; unknown types fall back to multiple choice."""
    try:
        question_type = QuestionType(data.get("type") or QuestionType.MULTIPLE_CHOICE.value)
    except ValueError:
        question_type = QuestionType.MULTIPLE_CHOICE
    common: dict[str, Any] = {
        "text": str(data.get("text") or ""),
        "image_url": data.get("imageUrl") or None,
    }
    if question_type is not QuestionType.WORD_CLOUD:
        time_limit = data.get("timeLimit")
        common["time_limit"] = (
            time_limit if time_limit is not None else DEFAULT_TIME_LIMITS[question_type.value]
        )

    if question_type is QuestionType.OPEN:
        return OpenQuestion(
            accepted_answers=tuple(str(a) for a in _as_list(data.get("acceptedAnswers"))),
            ignore_case=data.get("ignoreCase") is not False,
            **common,
        )
    if question_type is QuestionType.SORTING:
        return SortingQuestion(items=tuple(str(i) for i in _as_list(data.get("items"))), **common)
    if question_type is QuestionType.SLIDER:
        return SliderQuestion(
            min_value=data.get("min", 0),
            max_value=data.get("max", 100),
            correct_value=data.get("correctValue", 0),
            tolerance=data.get("tolerance", 1),
            unit=data.get("unit") or None,
            **common,
        )
    if question_type is QuestionType.WORD_CLOUD:
        return WordCloudQuestion(
            max_submissions=_as_int(data.get("maxSubmissions"), DEFAULT_WORDCLOUD_MAX_SUBMISSIONS)
            or DEFAULT_WORDCLOUD_MAX_SUBMISSIONS,
            **common,
        )
    return ChoiceQuestion(
        question_type=question_type,
        options=tuple(str(o) for o in _as_list(data.get("options"))),
        correct_index=_as_int(data.get("correctIndex"), 0),
        **common,
    )


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return _as_int(value, 0)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, dict):
        # Integer-keyed maps come back from some stores instead of arrays.
        return [v for _k, v in sorted(value.items(), key=lambda kv: _as_int(kv[0], 0))]
    return list(value)


def _indexed_items(value: Any) -> list[tuple[int, Any]]:
    if not value:
        return []
    if isinstance(value, list):
        return [(i, v) for i, v in enumerate(value) if v is not None]
    items = []
    for key, item in value.items():
        try:
            items.append((int(key), item))
        except (TypeError, ValueError):
            continue
    return items


def _pushed_values(value: Any) -> list[Any]:
    """Values of a push-keyed map in key (insertion time) order."""
    if not value:
        return []
    if isinstance(value, list):
        return [v for v in value if v is not None]
    return [v for _k, v in sorted(value.items())]
