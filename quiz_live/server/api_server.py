"""FastAPI server that shares the record store with remote devices."""

from __future__ import annotations

from threading import Thread
from typing import Any, Callable

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel
import uvicorn

from quiz_live.constants.about import APP_NAME, APP_VERSION
from quiz_live.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_live.core.errors import InvalidPathError, SessionNotFoundError, StoreUnavailableError
from quiz_live.core.markdown_math_renderer import renderer
from quiz_live.core.models import SessionRecord, SessionStatus, SortingQuestion
from quiz_live.core.record_store import RecordStore
from quiz_live.core.services.answer_aggregator import answer_progress, summarize_question
from quiz_live.core.services.scoreboard import build_leaderboard
from quiz_live.core.session_writers import session_path


class ValuePayload(BaseModel):
    """Payload schema for set and push."""

    value: Any = None


class UpdatePayload(BaseModel):
    """Payload schema for multi-path updates, keyed by relative path."""

    updates: dict[str, Any]


def _get_store_dependency(store: RecordStore):
    def dependency() -> RecordStore:
        return store

    return dependency


def _call_store(operation: Callable[[], Any]) -> Any:
    try:
        return operation()
    except InvalidPathError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def build_session_view(code: str, data: dict[str, Any]) -> dict[str, Any]:
    """Participant-facing projection of a session record.

    The answer key stays hidden while a question runs and is revealed once the
    host moves to results.
    """
    record = SessionRecord.from_snapshot(code, data)
    question = record.current_question_def
    view: dict[str, Any] = {
        "code": code,
        "quizTitle": record.quiz_title,
        "status": record.status.value,
        "currentQuestion": record.current_question,
        "questionCount": record.question_count,
        "playerCount": len(record.players),
        "answeredCount": 0,
        "questionStartedAt": record.question_started_at,
        "shuffledOrder": record.shuffled_order,
        "timeLimit": None,
        "question": None,
        "questionHtml": None,
        "summary": None,
        "leaderboard": None,
    }
    if question is not None and record.status in (SessionStatus.QUESTION, SessionStatus.RESULTS):
        answers = record.answers_for(record.current_question)
        revealed = record.status is SessionStatus.RESULTS
        public = question.to_dict() if revealed else question.public_dict()
        if isinstance(question, SortingQuestion) and not revealed:
            order = record.shuffled_order or list(range(len(question.items)))
            public.pop("items")
            public["displayItems"] = [
                {"index": index, "text": question.items[index]}
                for index in order
                if 0 <= index < len(question.items)
            ]
        view["question"] = public
        view["questionHtml"] = renderer.render_fragment(question.text)
        view["timeLimit"] = question.time_limit if question.is_timed else None
        view["answeredCount"] = answer_progress(record.players, answers).answered
        if revealed:
            view["summary"] = summarize_question(
                question,
                answers,
                len(record.players),
                record.word_cloud_for(record.current_question),
            ).to_dict()
    if record.status in (SessionStatus.LEADERBOARD, SessionStatus.FINAL):
        view["leaderboard"] = [row.to_dict() for row in build_leaderboard(record.players)]
    return view


def create_api_app(store: RecordStore) -> FastAPI:
    """Create a FastAPI application wired to the provided record store."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    store_dep = _get_store_dependency(store)

    @app.get("/store/{path:path}")
    def read_path(path: str, store: RecordStore = Depends(store_dep)) -> dict[str, Any]:
        value = _call_store(lambda: store.get(path))
        return {"path": path, "value": value}

    @app.put("/store/{path:path}")
    def set_path(
        path: str,
        payload: ValuePayload,
        store: RecordStore = Depends(store_dep),
    ) -> dict[str, Any]:
        _call_store(lambda: store.set(path, payload.value))
        return {"path": path}

    @app.patch("/store/{path:path}")
    def update_path(
        path: str,
        payload: UpdatePayload,
        store: RecordStore = Depends(store_dep),
    ) -> dict[str, Any]:
        _call_store(lambda: store.update(path, payload.updates))
        return {"path": path}

    @app.post("/store/{path:path}", status_code=201)
    def push_child(
        path: str,
        payload: ValuePayload,
        store: RecordStore = Depends(store_dep),
    ) -> dict[str, Any]:
        key = _call_store(lambda: store.push(path, payload.value))
        return {"path": path, "key": key}

    @app.delete("/store/{path:path}")
    def remove_path(path: str, store: RecordStore = Depends(store_dep)) -> dict[str, Any]:
        _call_store(lambda: store.remove(path))
        return {"path": path}

    @app.get("/sessions/{code}/view")
    def session_view(code: str, store: RecordStore = Depends(store_dep)) -> dict[str, Any]:
        data = _call_store(lambda: store.get(session_path(code)))
        if not isinstance(data, dict):
            raise HTTPException(status_code=404, detail=str(SessionNotFoundError(code)))
        return build_session_view(code, data)

    return app


def start_api_server(
    store: RecordStore,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    log_level: str = "info",
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(store)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level)
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="QuizApiServer", daemon=True)
    thread.start()
    return thread
