"""Aggregation of submitted answers: progress counts, word clouds and result summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from quiz_live.constants.quiz_constants import (
    WORDCLOUD_FONT_STEP,
    WORDCLOUD_MAX_FONT_SIZE,
    WORDCLOUD_MIN_FONT_SIZE,
)
from quiz_live.core.models import (
    AnswerRecord,
    ChoiceQuestion,
    OpenQuestion,
    Question,
    QuestionType,
    SliderQuestion,
    SortingQuestion,
    WordCloudEntry,
)
from quiz_live.core.scoring import (
    count_correct_positions,
    effective_tolerance,
    is_open_answer_correct,
    slider_distance,
)


@dataclass(frozen=True, slots=True)
class AnswerProgress:
    """Live counts the host watches while a question runs."""

    connected: int
    answered: int

    def should_auto_advance(self, question: Question | None) -> bool:
        if question is None or question.question_type is QuestionType.WORD_CLOUD:
            return False
        return self.connected > 0 and self.answered >= self.connected


def answer_progress(players: dict[str, Any], answers: dict[str, Any]) -> AnswerProgress:
    return AnswerProgress(
        connected=len(players),
        answered=sum(1 for name in answers if name in players),
    )


@dataclass(frozen=True, slots=True)
class WordCount:
    word: str
    count: int
    font_size: int


def normalize_word(word: str) -> str:
    return word.strip().lower()


def aggregate_word_cloud(entries: list[WordCloudEntry]) -> list[WordCount]:
    """Group entries case- and whitespace-insensitively, most frequent first."""
    grouped: dict[str, list[Any]] = {}
    for entry in entries:
        key = normalize_word(entry.word)
        if not key:
            continue
        if key not in grouped:
            grouped[key] = [entry.word.strip(), 0]
        grouped[key][1] += 1
    # sorted() is stable, so equal counts keep first-submission order.
    ranked = sorted(grouped.values(), key=lambda item: -item[1])
    return [
        WordCount(word=word, count=count, font_size=word_font_size(count))
        for word, count in ranked
    ]


def word_font_size(count: int) -> int:
    return min(WORDCLOUD_MAX_FONT_SIZE, WORDCLOUD_MIN_FONT_SIZE + count * WORDCLOUD_FONT_STEP)


@dataclass(slots=True)
class QuestionSummary:
    """Per-question figures shown on the host results screen."""

    question_type: QuestionType
    answer_count: int
    player_count: int
    correct_count: int = 0
    option_counts: list[int] = field(default_factory=list)
    correct_names: list[str] = field(default_factory=list)
    wrong_names: list[str] = field(default_factory=list)
    position_correct_percent: list[int] = field(default_factory=list)
    guesses: list[dict[str, Any]] = field(default_factory=list)
    words: list[WordCount] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.question_type.value,
            "answerCount": self.answer_count,
            "playerCount": self.player_count,
            "correctCount": self.correct_count,
            "optionCounts": list(self.option_counts),
            "correctNames": list(self.correct_names),
            "wrongNames": list(self.wrong_names),
            "positionCorrectPercent": list(self.position_correct_percent),
            "guesses": [dict(g) for g in self.guesses],
            "words": [{"word": w.word, "count": w.count, "fontSize": w.font_size} for w in self.words],
        }


def summarize_question(
    question: Question,
    answers: dict[str, AnswerRecord],
    player_count: int,
    word_cloud: list[WordCloudEntry] | None = None,
) -> QuestionSummary:
    summary = QuestionSummary(
        question_type=question.question_type,
        answer_count=len(answers),
        player_count=player_count,
    )
    if isinstance(question, ChoiceQuestion):
        counts = [0] * len(question.options)
        for record in answers.values():
            answer = record.answer
            if isinstance(answer, int) and not isinstance(answer, bool) and 0 <= answer < len(counts):
                counts[answer] += 1
        summary.option_counts = counts
        if 0 <= question.correct_index < len(counts):
            summary.correct_count = counts[question.correct_index]
    elif isinstance(question, OpenQuestion):
        for name in sorted(answers):
            if is_open_answer_correct(question, answers[name].answer):
                summary.correct_names.append(name)
            else:
                summary.wrong_names.append(name)
        summary.correct_count = len(summary.correct_names)
    elif isinstance(question, SortingQuestion):
        position_hits = [0] * len(question.items)
        for record in answers.values():
            order = record.answer if isinstance(record.answer, (list, tuple)) else []
            for position in range(len(question.items)):
                if position < len(order) and order[position] == position:
                    position_hits[position] += 1
            if question.items and count_correct_positions(question, record.answer) == len(question.items):
                summary.correct_count += 1
        total = len(answers)
        summary.position_correct_percent = [
            round(hits * 100 / total) if total else 0 for hits in position_hits
        ]
    elif isinstance(question, SliderQuestion):
        tolerance = effective_tolerance(question)
        guesses = []
        for name, record in answers.items():
            distance = slider_distance(question, record.answer)
            guesses.append(
                {
                    "name": name,
                    "value": record.answer,
                    "distance": distance,
                    "withinTolerance": distance <= tolerance,
                }
            )
        guesses.sort(key=lambda guess: (guess["distance"], guess["name"]))
        summary.guesses = guesses
        summary.correct_count = sum(1 for guess in guesses if guess["withinTolerance"])
    elif question.question_type is QuestionType.WORD_CLOUD:
        summary.words = aggregate_word_cloud(word_cloud or [])
        summary.answer_count = len(word_cloud or [])
    return summary
