"""Hand-off of a finished session to the reporting side."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from quiz_live.core.models import PlayerState
from quiz_live.core.services.scoreboard import build_leaderboard
from quiz_live.core.session_writers import HostSessionWriter

logger = logging.getLogger(__name__)


def build_result_document(snapshot: dict[str, Any], saved_at: int) -> dict[str, Any]:
    """Copy the raw session record into the reporting format, plus the final ranking."""
    players = snapshot.get("players") or {}
    questions = snapshot.get("questions") or []
    leaderboard = build_leaderboard({name: PlayerState.from_dict(data) for name, data in players.items()})
    return {
        "quizTitle": snapshot.get("quizTitle") or "",
        "savedAt": saved_at,
        "playerCount": len(players),
        "questionCount": len(questions),
        "players": {
            name: {"score": (data or {}).get("score", 0), "streak": (data or {}).get("streak", 0)}
            for name, data in players.items()
        },
        "questions": questions,
        "answers": snapshot.get("answers") or {},
        "wordCloud": snapshot.get("wordCloud") or {},
        "leaderboard": [row.to_dict() for row in leaderboard],
    }


class SnapshotExporter:
    """Writes the result document once, under ``quizResults/{class}/{code}``."""

    def __init__(self, writer: HostSessionWriter, class_name: str | None = None) -> None:
        self._writer = writer
        self._class_name = (class_name or "").strip() or None
        self._exported = False

    @property
    def exported(self) -> bool:
        return self._exported

    def export(self, snapshot: dict[str, Any] | None, saved_at: int) -> dict[str, Any] | None:
        if snapshot is None:
            logger.warning("Session %s vanished before it could be exported", self._writer.code)
            return None
        if self._exported:
            return None
        document = build_result_document(snapshot, saved_at)
        self._exported = True
        if self._class_name is None:
            logger.info("No class name set; result snapshot for %s kept in memory only", self._writer.code)
            return document
        if self._writer.write_result_document(self._class_name, document):
            logger.info("Result snapshot for %s saved under class %s", self._writer.code, self._class_name)
        return document


def save_result_document(file_path: Path, document: dict[str, Any]) -> None:
    """Persist a result document as JSON."""

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
