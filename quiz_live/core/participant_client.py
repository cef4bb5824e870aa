"""Participant side of a live quiz session.

A participant never decides anything about the session flow. It subscribes
to the session record, derives what to show from ``status`` and writes exactly
two kinds of keys: its own player entry when joining and its own answer per
question. "Already answered" and the word-cloud cap are enforced here, in
the client, because the store accepts any write to those keys.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from threading import RLock
from typing import Any, Callable

from quiz_live.core.errors import SessionNotFoundError, SubmissionRejectedError
from quiz_live.core.models import (
    AnswerRecord,
    ChoiceQuestion,
    Question,
    QuestionType,
    SessionRecord,
    SessionStatus,
    SliderQuestion,
    SortingQuestion,
    WordCloudQuestion,
)
from quiz_live.core.record_store import RecordStore, Unsubscribe
from quiz_live.core.scoring import ScoreResult, score_answer
from quiz_live.core.services.scoreboard import LeaderboardRow, build_leaderboard
from quiz_live.core.session_writers import ParticipantSessionWriter, session_path

logger = logging.getLogger(__name__)


class ParticipantMode(str, Enum):
    LOADING = "loading"
    NOT_FOUND = "not_found"
    NAME_ENTRY = "name_entry"
    LOBBY = "lobby"
    QUESTION = "question"
    RESULTS = "results"
    LEADERBOARD = "leaderboard"
    FINAL = "final"


_STATUS_MODES = {
    SessionStatus.LOBBY: ParticipantMode.LOBBY,
    SessionStatus.QUESTION: ParticipantMode.QUESTION,
    SessionStatus.RESULTS: ParticipantMode.RESULTS,
    SessionStatus.LEADERBOARD: ParticipantMode.LEADERBOARD,
    SessionStatus.FINAL: ParticipantMode.FINAL,
}


class ParticipantClient:
    """One student device following a session."""

    def __init__(
        self,
        store: RecordStore,
        code: str,
        name: str,
        *,
        clock: Callable[[], float] = time.time,
        on_change: Callable[["ParticipantClient"], None] | None = None,
    ) -> None:
        self.code = code
        self._store = store
        self._writer = ParticipantSessionWriter(store, code, name)
        self.name = self._writer.name
        self._clock = clock
        self._on_change = on_change
        self._lock = RLock()
        self._unsubscribe: Unsubscribe | None = None
        self._loaded = False
        self._record: SessionRecord | None = None
        self._joined = False
        self._question_index: int | None = None
        self._answered = False
        self._submitted_answer: Any = None
        self._words_sent: list[str] = []

    # --- Connection ---

    def connect(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(session_path(self.code), self._on_snapshot)

    def disconnect(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def join(self) -> bool:
        """Register under ``players/{name}``; returns False when the name was already there."""
        with self._lock:
            record = self._record
            if record is None:
                raise SessionNotFoundError(self.code)
            if self.name in record.players:
                self._joined = True
                logger.info("%s rejoined session %s", self.name, self.code)
                return False
            joined_at = self._now_ms()
        if self._writer.join(joined_at):
            with self._lock:
                self._joined = True
            logger.info("%s joined session %s", self.name, self.code)
            return True
        return False

    # --- Submissions ---

    def submit_choice(self, option_index: int) -> bool:
        def validate(question: Question) -> None:
            options = question.options if isinstance(question, ChoiceQuestion) else ()
            if isinstance(option_index, bool) or not isinstance(option_index, int):
                raise SubmissionRejectedError("Choose an option by its number.")
            if not 0 <= option_index < len(options):
                raise SubmissionRejectedError(f"Option {option_index} does not exist.")

        return self._submit(
            (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE),
            option_index,
            validate,
        )

    def submit_text(self, text: str) -> bool:
        answer = (text or "").strip()

        def validate(question: Question) -> None:
            if not answer:
                raise SubmissionRejectedError("Answer must not be empty.")

        return self._submit((QuestionType.OPEN,), answer, validate)

    def submit_order(self, order: list[int]) -> bool:
        answer = list(order)

        def validate(question: Question) -> None:
            items = question.items if isinstance(question, SortingQuestion) else ()
            if sorted(answer) != list(range(len(items))):
                raise SubmissionRejectedError("Place every item exactly once.")

        return self._submit((QuestionType.SORTING,), answer, validate)

    def submit_slider(self, value: float) -> bool:
        def validate(question: Question) -> None:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise SubmissionRejectedError("Slider value must be a number.")
            if isinstance(question, SliderQuestion) and not (
                question.min_value <= value <= question.max_value
            ):
                raise SubmissionRejectedError(
                    f"Value must lie between {question.min_value} and {question.max_value}."
                )

        return self._submit((QuestionType.SLIDER,), value, validate)

    def submit_word(self, word: str) -> bool:
        cleaned = (word or "").strip()
        with self._lock:
            record, question = self._require_question((QuestionType.WORD_CLOUD,))
            if not cleaned:
                raise SubmissionRejectedError("Word must not be empty.")
            limit = question.max_submissions if isinstance(question, WordCloudQuestion) else 0
            if len(self._words_sent) >= limit:
                raise SubmissionRejectedError(f"Only {limit} words per player.")
            self._words_sent.append(cleaned)
            index = record.current_question
            timestamp = self._now_ms()
        delivered = self._writer.push_word(index, cleaned, timestamp)
        if not delivered:
            logger.warning("%s: word %r may not have reached the host", self.name, cleaned)
        return delivered

    # --- Views ---

    @property
    def mode(self) -> ParticipantMode:
        with self._lock:
            if not self._loaded:
                return ParticipantMode.LOADING
            if self._record is None:
                return ParticipantMode.NOT_FOUND
            if not self._joined:
                return ParticipantMode.NAME_ENTRY
            record = self._record
            if record.status in (SessionStatus.QUESTION, SessionStatus.RESULTS) and (
                record.current_question_def is None
            ):
                return ParticipantMode.LOBBY
            return _STATUS_MODES[record.status]

    @property
    def record(self) -> SessionRecord | None:
        with self._lock:
            return self._record

    @property
    def has_answered(self) -> bool:
        with self._lock:
            return self._answered

    @property
    def submitted_answer(self) -> Any:
        with self._lock:
            return self._submitted_answer

    @property
    def words_sent(self) -> list[str]:
        with self._lock:
            return list(self._words_sent)

    def current_question(self) -> Question | None:
        with self._lock:
            return self._record.current_question_def if self._record is not None else None

    def display_items(self) -> list[tuple[int, str]]:
        """Sorting items as ``(original index, text)`` in the shared shuffled order."""
        with self._lock:
            record = self._record
            question = record.current_question_def if record is not None else None
            if not isinstance(question, SortingQuestion):
                return []
            order = record.shuffled_order
            if not order or sorted(order) != list(range(len(question.items))):
                order = list(range(len(question.items)))
            return [(index, question.items[index]) for index in order]

    def remaining_seconds(self) -> float | None:
        with self._lock:
            deadline = self._deadline_ms()
        if deadline is None:
            return None
        return max(0.0, (deadline - self._now_ms()) / 1000)

    def my_outcome(self) -> ScoreResult | None:
        """This player's result for the question just closed, as shown on the results screen."""
        with self._lock:
            record = self._record
            if record is None or record.status is not SessionStatus.RESULTS:
                return None
            question = record.current_question_def
            if question is None or question.question_type is QuestionType.WORD_CLOUD:
                return None
            answer = record.answers_for(record.current_question).get(self.name)
            if answer is None:
                return None
            return score_answer(question, answer, record.question_started_at)

    def my_rank(self) -> LeaderboardRow | None:
        with self._lock:
            if self._record is None:
                return None
            rows = build_leaderboard(self._record.players)
        return next((row for row in rows if row.name == self.name), None)

    # --- Internals ---

    def _on_snapshot(self, data: Any) -> None:
        with self._lock:
            self._loaded = True
            if data is None:
                if self._record is not None:
                    logger.info("Session %s ended", self.code)
                self._record = None
            else:
                record = SessionRecord.from_snapshot(self.code, data)
                self._record = record
                if self.name in record.players:
                    self._joined = True
                if record.current_question != self._question_index:
                    self._question_index = record.current_question
                    self._answered = False
                    self._submitted_answer = None
                    self._words_sent = []
        if self._on_change is not None:
            try:
                self._on_change(self)
            except Exception:
                logger.exception("Participant change listener failed")

    def _submit(
        self,
        allowed: tuple[QuestionType, ...],
        answer: Any,
        validate: Callable[[Question], None],
    ) -> bool:
        with self._lock:
            record, question = self._require_question(allowed)
            if self._answered:
                raise SubmissionRejectedError("You have already answered this question.")
            validate(question)
            answered_at = self._now_ms()
            # Set before writing: a failed write is not rolled back.
            self._answered = True
            self._submitted_answer = answer
            index = record.current_question
        delivered = self._writer.write_answer(index, AnswerRecord(answer=answer, answered_at=answered_at))
        if not delivered:
            logger.warning("%s: answer to question %d may not have reached the host", self.name, index)
        return delivered

    def _require_question(self, allowed: tuple[QuestionType, ...]) -> tuple[SessionRecord, Question]:
        record = self._record
        if record is None:
            raise SessionNotFoundError(self.code)
        if not self._joined:
            raise SubmissionRejectedError("Join the session first.")
        question = record.current_question_def
        if record.status is not SessionStatus.QUESTION or question is None:
            raise SubmissionRejectedError("No question is open right now.")
        if question.question_type not in allowed:
            raise SubmissionRejectedError(
                f"The current question expects a {question.question_type.value} answer."
            )
        return record, question

    def _deadline_ms(self) -> int | None:
        record = self._record
        question = record.current_question_def if record is not None else None
        if (
            record is None
            or record.status is not SessionStatus.QUESTION
            or question is None
            or not question.is_timed
            or record.question_started_at is None
            or not question.time_limit
        ):
            return None
        return record.question_started_at + int(question.time_limit * 1000)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)
