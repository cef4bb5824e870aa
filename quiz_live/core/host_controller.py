"""Host side of a live quiz session.

The host is the only process that moves a session between phases. It keeps a
subscription on the whole session record, recomputes the answered/connected
counts from every snapshot it receives and runs one local countdown per timed
question. Timer expiry, "everybody answered" and a manual skip all funnel into
the same guarded transition, so whichever fires first wins and the others
become no-ops.
"""

from __future__ import annotations

import logging
import random
import time
from threading import RLock
from typing import Any, Callable

from quiz_live.core.countdown import QuestionCountdown
from quiz_live.core.errors import SessionNotFoundError, StoreUnavailableError
from quiz_live.core.models import Quiz, SessionRecord, SessionStatus
from quiz_live.core.record_store import RecordStore, Unsubscribe
from quiz_live.core.services import phase_machine
from quiz_live.core.services.answer_aggregator import (
    AnswerProgress,
    QuestionSummary,
    answer_progress,
    summarize_question,
)
from quiz_live.core.services.phase_machine import Transition
from quiz_live.core.services.scoreboard import LeaderboardRow, QuestionOutcome, build_leaderboard
from quiz_live.core.session_codes import SessionCodeGenerator
from quiz_live.core.session_writers import HostSessionWriter, session_path
from quiz_live.core.snapshot_exporter import SnapshotExporter

logger = logging.getLogger(__name__)

SessionListener = Callable[["SessionRecord | None"], None]


class HostController:
    """Drives one session through lobby, questions, results, leaderboards and final."""

    def __init__(
        self,
        store: RecordStore,
        code: str,
        *,
        class_name: str | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
        on_change: SessionListener | None = None,
    ) -> None:
        self.code = code
        self._store = store
        self._writer = HostSessionWriter(store, code)
        self._lock = RLock()
        self._clock = clock
        self._rng = rng or random.Random()
        self._on_change = on_change
        self._countdown = QuestionCountdown(self._handle_time_expired, clock=clock)
        self._exporter = SnapshotExporter(self._writer, class_name)
        self._unsubscribe: Unsubscribe | None = None
        self._record: SessionRecord | None = None
        self._progress = AnswerProgress(connected=0, answered=0)
        self._last_outcomes: list[QuestionOutcome] = []
        self._result_document: dict[str, Any] | None = None
        self._session_gone = False

    # --- Bootstrap ---

    @classmethod
    def create_session(
        cls,
        store: RecordStore,
        quiz: Quiz,
        *,
        code_generator: SessionCodeGenerator | None = None,
        **kwargs: Any,
    ) -> HostController:
        """Write a fresh lobby record under a code that is not in use yet."""
        if not quiz.questions:
            raise ValueError("Quiz must contain at least one question.")
        generator = code_generator or SessionCodeGenerator()
        code = generator.generate_unique(lambda candidate: store.exists(session_path(candidate)))
        controller = cls(store, code, **kwargs)
        record = phase_machine.new_session_record(
            quiz.title,
            [question.to_dict() for question in quiz.questions],
            controller._now_ms(),
        )
        if not controller._writer.create(record):
            raise StoreUnavailableError(f"Could not create session {code}.")
        logger.info("Session %s created for quiz %r (%d questions)", code, quiz.title, len(quiz.questions))
        controller.attach()
        return controller

    @classmethod
    def resume_session(cls, store: RecordStore, code: str, **kwargs: Any) -> HostController:
        """Take over an existing session, e.g. after the host display reloaded."""
        if not store.exists(session_path(code)):
            raise SessionNotFoundError(code)
        controller = cls(store, code, **kwargs)
        controller.attach()
        return controller

    def attach(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._store.subscribe(session_path(self.code), self._on_snapshot)
        with self._lock:
            record = self._record
            if record is not None and record.status is SessionStatus.QUESTION:
                self._arm_countdown(record.current_question, record, record.question_started_at)

    def detach(self) -> None:
        self._countdown.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # --- Host actions ---

    def start_quiz(self, require_players: bool = True) -> bool:
        with self._lock:
            if require_players and self._record is not None and not self._record.players:
                logger.warning("Session %s: refusing to start without players", self.code)
                return False
            return self._apply(
                lambda record: phase_machine.start_quiz(record, self._now_ms(), self._rng),
                "start",
            )

    def skip(self) -> bool:
        """Close the running question now, e.g. when a participant dropped out."""
        return self.show_results(self._current_index(), reason="host skip")

    def show_results(self, index: int, reason: str = "host") -> bool:
        return self._apply(lambda record: phase_machine.show_results(record, index), reason)

    def show_leaderboard(self) -> bool:
        index = self._current_index()
        return self._apply(lambda record: phase_machine.show_leaderboard(record, index), "leaderboard")

    def next_question(self) -> bool:
        index = self._current_index()
        return self._apply(
            lambda record: phase_machine.advance_from_leaderboard(record, index, self._now_ms(), self._rng),
            "next",
        )

    def advance(self) -> bool:
        """Perform whichever host step follows the current phase."""
        with self._lock:
            record = self._record
            if record is None:
                return False
            if record.status is SessionStatus.LOBBY:
                return self.start_quiz()
            if record.status is SessionStatus.QUESTION:
                return self.skip()
            if record.status is SessionStatus.RESULTS:
                return self.show_leaderboard()
            if record.status is SessionStatus.LEADERBOARD:
                return self.next_question()
            return False

    def end_session(self) -> bool:
        """Delete the session record; every subscriber sees the session disappear."""
        self.detach()
        removed = self._writer.remove()
        with self._lock:
            self._record = None
            self._session_gone = True
        logger.info("Session %s ended", self.code)
        return removed

    # --- Views ---

    @property
    def record(self) -> SessionRecord | None:
        with self._lock:
            return self._record

    @property
    def progress(self) -> AnswerProgress:
        with self._lock:
            return self._progress

    @property
    def session_gone(self) -> bool:
        return self._session_gone

    @property
    def last_outcomes(self) -> list[QuestionOutcome]:
        with self._lock:
            return list(self._last_outcomes)

    @property
    def result_document(self) -> dict[str, Any] | None:
        return self._result_document

    def remaining_seconds(self) -> float:
        return self._countdown.remaining_seconds()

    def leaderboard(self, limit: int | None = None) -> list[LeaderboardRow]:
        with self._lock:
            if self._record is None:
                return []
            return build_leaderboard(self._record.players, limit)

    def question_summary(self) -> QuestionSummary | None:
        with self._lock:
            record = self._record
            if record is None or record.current_question_def is None:
                return None
            index = record.current_question
            return summarize_question(
                record.current_question_def,
                record.answers_for(index),
                len(record.players),
                record.word_cloud_for(index),
            )

    # --- Internals ---

    def _on_snapshot(self, data: Any) -> None:
        auto_advance_index: int | None = None
        with self._lock:
            if data is None:
                if not self._session_gone:
                    logger.warning("Session %s disappeared from the store", self.code)
                self._record = None
                self._session_gone = True
                self._countdown.cancel()
                record = None
            else:
                record = SessionRecord.from_snapshot(self.code, data)
                self._record = record
                if record.status is SessionStatus.QUESTION:
                    self._progress = answer_progress(record.players, record.answers_for(record.current_question))
                    if self._progress.should_auto_advance(record.current_question_def):
                        auto_advance_index = record.current_question
                else:
                    self._progress = AnswerProgress(connected=len(record.players), answered=0)
        if auto_advance_index is not None:
            self.show_results(auto_advance_index, reason="all answered")
        if self._on_change is not None:
            try:
                self._on_change(self.record)
            except Exception:
                logger.exception("Session change listener failed")

    def _handle_time_expired(self, index: int) -> None:
        self.show_results(index, reason="time expired")

    def _apply(self, build: Callable[[SessionRecord], Transition | None], reason: str) -> bool:
        with self._lock:
            record = self._load_record()
            if record is None:
                return False
            transition = build(record)
            if transition is None:
                logger.debug(
                    "Session %s: %s ignored in %s(%d)",
                    self.code,
                    reason,
                    record.status.value,
                    record.current_question,
                )
                return False
            if not self._writer.apply(transition.updates):
                return False
            logger.info(
                "Session %s: %s -> %s at question %d (%s)",
                self.code,
                transition.from_status.value,
                transition.to_status.value,
                transition.question_index,
                reason,
            )
            self._after_transition(transition, record)
            return True

    def _after_transition(self, transition: Transition, record: SessionRecord) -> None:
        if transition.to_status is SessionStatus.QUESTION:
            self._arm_countdown(
                transition.question_index,
                record,
                transition.updates.get("questionStartedAt"),
            )
        elif transition.to_status is SessionStatus.RESULTS:
            self._countdown.cancel()
            self._last_outcomes = list(transition.outcomes)
        elif transition.to_status is SessionStatus.FINAL:
            self._countdown.cancel()
            self._export_snapshot()

    def _arm_countdown(self, index: int, record: SessionRecord, started_at: int | None) -> None:
        question = record.questions[index] if 0 <= index < record.question_count else None
        if question is None or not question.is_timed or started_at is None:
            self._countdown.cancel()
            return
        if self._countdown.is_running() and self._countdown.question_index == index:
            return
        deadline = started_at + int((question.time_limit or 0) * 1000)
        self._countdown.start(index, deadline)

    def _export_snapshot(self) -> None:
        try:
            snapshot = self._store.get(session_path(self.code))
        except StoreUnavailableError as exc:
            logger.error("Could not read session %s for export: %s", self.code, exc)
            return
        document = self._exporter.export(snapshot, self._now_ms())
        if document is not None:
            self._result_document = document

    def _load_record(self) -> SessionRecord | None:
        try:
            data = self._store.get(session_path(self.code))
        except StoreUnavailableError as exc:
            logger.error("Could not read session %s: %s", self.code, exc)
            return None
        if data is None:
            logger.warning("Session %s no longer exists", self.code)
            return None
        return SessionRecord.from_snapshot(self.code, data)

    def _current_index(self) -> int:
        with self._lock:
            return self._record.current_question if self._record is not None else -1

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)
