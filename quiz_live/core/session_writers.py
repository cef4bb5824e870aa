"""Write capabilities over one session record.

The session key space is partitioned by writer. The host owns every
session-level field; a participant owns ``players/{name}`` and
``answers/{i}/{name}`` and may append word-cloud entries signed with its own
name. Each side gets its own writer class, and neither exposes the other's
paths, so a participant cannot touch ``status`` and the host never writes an
answer.

Failed writes are logged and reported as ``False``; nothing is retried and
callers do not roll back local state.
"""

from __future__ import annotations

import logging
from typing import Any

from quiz_live.constants.quiz_constants import RESULTS_ROOT, SESSIONS_ROOT
from quiz_live.core.errors import StoreUnavailableError
from quiz_live.core.models import AnswerRecord, PlayerState, WordCloudEntry
from quiz_live.core.record_store import RecordStore, join_path, validate_segment

logger = logging.getLogger(__name__)


def session_path(code: str, *parts: object) -> str:
    return join_path(SESSIONS_ROOT, validate_segment(code), *parts)


def normalize_player_name(name: str) -> str:
    """Trim a display name and check it can be used as a store key."""
    cleaned = (name or "").strip()
    return validate_segment(cleaned)


class HostSessionWriter:
    """Single writer of session-level fields and of scored player totals."""

    def __init__(self, store: RecordStore, code: str) -> None:
        self._store = store
        self.code = code
        self.path = session_path(code)

    def create(self, record: dict[str, Any]) -> bool:
        return self._attempt("create session", lambda: self._store.set(self.path, record))

    def apply(self, updates: dict[str, Any]) -> bool:
        return self._attempt("update session", lambda: self._store.update(self.path, updates))

    def remove(self) -> bool:
        return self._attempt("remove session", lambda: self._store.remove(self.path))

    def write_result_document(self, namespace_key: str, document: dict[str, Any]) -> bool:
        path = join_path(RESULTS_ROOT, validate_segment(namespace_key), self.code)
        return self._attempt("write result snapshot", lambda: self._store.set(path, document))

    def _attempt(self, action: str, write) -> bool:
        try:
            write()
        except StoreUnavailableError as exc:
            logger.error("Could not %s for %s: %s", action, self.code, exc)
            return False
        return True


class ParticipantSessionWriter:
    """Writes only the keys that belong to one participant."""

    def __init__(self, store: RecordStore, code: str, name: str) -> None:
        self._store = store
        self.code = code
        self.name = normalize_player_name(name)

    def join(self, joined_at: int) -> bool:
        player = PlayerState(joined_at=joined_at)
        path = session_path(self.code, "players", self.name)
        return self._attempt("join", lambda: self._store.set(path, player.to_dict()))

    def write_answer(self, question_index: int, record: AnswerRecord) -> bool:
        path = session_path(self.code, "answers", int(question_index), self.name)
        return self._attempt("submit answer", lambda: self._store.set(path, record.to_dict()))

    def push_word(self, question_index: int, word: str, timestamp: int) -> bool:
        entry = WordCloudEntry(word=word, author=self.name, timestamp=timestamp)
        path = session_path(self.code, "wordCloud", int(question_index))
        return self._attempt("submit word", lambda: self._store.push(path, entry.to_dict()))

    def _attempt(self, action: str, write) -> bool:
        try:
            write()
        except StoreUnavailableError as exc:
            logger.error("%s could not %s in session %s: %s", self.name, action, self.code, exc)
            return False
        return True
