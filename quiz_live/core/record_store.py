"""Key/value tree with path-scoped push subscriptions.

Every quiz process talks to the same store: the host writes session-level
fields, participants write their own leaves, and everybody subscribes to the
paths they render. Subscribers always receive a full snapshot of their path,
never a delta, so they can ignore delivery order entirely.
"""

from __future__ import annotations

import copy
import itertools
import logging
import time
from threading import RLock
from typing import Any, Callable, Iterable, Protocol

from quiz_live.core.errors import InvalidPathError

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]
Unsubscribe = Callable[[], None]

_ILLEGAL_SEGMENT_CHARS = frozenset(".#$[]")


class RecordStore(Protocol):
    """Operations every store adapter provides."""

    def get(self, path: str) -> Any: ...

    def exists(self, path: str) -> bool: ...

    def set(self, path: str, value: Any) -> None: ...

    def update(self, path: str, updates: dict[str, Any]) -> None: ...

    def push(self, path: str, value: Any) -> str: ...

    def remove(self, path: str) -> None: ...

    def subscribe(self, path: str, listener: Listener) -> Unsubscribe: ...


def split_path(path: str) -> tuple[str, ...]:
    """Split a slash path into validated segments. The empty path is the root."""
    segments = tuple(segment for segment in str(path).strip("/").split("/") if segment != "")
    for segment in segments:
        validate_segment(segment)
    return segments


def validate_segment(segment: str) -> str:
    if not segment or not segment.strip():
        raise InvalidPathError("Path segments must not be empty.")
    if "/" in segment or any(char in _ILLEGAL_SEGMENT_CHARS for char in segment):
        raise InvalidPathError(f"Path segment {segment!r} contains an illegal character.")
    return segment


def join_path(*parts: object) -> str:
    return "/".join(str(part).strip("/") for part in parts if str(part).strip("/"))


class InMemoryRecordStore:
    """Thread-safe in-process store. Listeners run in the writing thread, outside the lock."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._lock = RLock()
        self._root: dict[str, Any] = {}
        self._listeners: dict[int, tuple[tuple[str, ...], Listener]] = {}
        self._listener_ids = itertools.count(1)
        self._push_sequence = itertools.count()
        self._clock = clock

    # --- Reads ---

    def get(self, path: str) -> Any:
        with self._lock:
            return copy.deepcopy(self._read(split_path(path)))

    def exists(self, path: str) -> bool:
        with self._lock:
            return self._read(split_path(path)) is not None

    # --- Writes ---

    def set(self, path: str, value: Any) -> None:
        segments = split_path(path)
        with self._lock:
            self._write(segments, value)
        self._notify([segments])

    def update(self, path: str, updates: dict[str, Any]) -> None:
        """Apply several relative writes as one mutation."""
        base = split_path(path)
        written = [base + split_path(relative) for relative in updates]
        with self._lock:
            for segments, value in zip(written, updates.values()):
                self._write(segments, value)
        self._notify(written)

    def push(self, path: str, value: Any) -> str:
        """Append ``value`` under a generated key that sorts in insertion order."""
        millis = int(self._clock() * 1000)
        key = f"{millis:013d}-{next(self._push_sequence):08d}"
        self.set(join_path(path, key), value)
        return key

    def remove(self, path: str) -> None:
        self.set(path, None)

    # --- Subscriptions ---

    def subscribe(self, path: str, listener: Listener) -> Unsubscribe:
        segments = split_path(path)
        with self._lock:
            listener_id = next(self._listener_ids)
            self._listeners[listener_id] = (segments, listener)
            snapshot = copy.deepcopy(self._read(segments))
        self._deliver(listener, snapshot)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    # --- Internals ---

    def _read(self, segments: tuple[str, ...]) -> Any:
        node: Any = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _write(self, segments: tuple[str, ...], value: Any) -> None:
        value = _normalize(copy.deepcopy(value))
        if not segments:
            self._root = value if isinstance(value, dict) else {}
            return
        parents = [self._root]
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[segment] = child
            node = child
            parents.append(node)
        if value is None:
            node.pop(segments[-1], None)
        else:
            node[segments[-1]] = value
        # Empty containers disappear, like in the hosted stores this mirrors.
        for depth in range(len(parents) - 1, 0, -1):
            if parents[depth]:
                break
            parents[depth - 1].pop(segments[depth - 1], None)

    def _notify(self, written: Iterable[tuple[str, ...]]) -> None:
        written = list(written)
        with self._lock:
            targets = [
                (segments, listener)
                for segments, listener in self._listeners.values()
                if any(_related(segments, path) for path in written)
            ]
        for segments, listener in targets:
            # Snapshot is taken at delivery time so the last delivery always sees the latest state.
            with self._lock:
                snapshot = copy.deepcopy(self._read(segments))
            self._deliver(listener, snapshot)

    @staticmethod
    def _deliver(listener: Listener, snapshot: Any) -> None:
        try:
            listener(snapshot)
        except Exception:
            logger.exception("Store listener %r failed", listener)


def _related(listener_path: tuple[str, ...], written_path: tuple[str, ...]) -> bool:
    shortest = min(len(listener_path), len(written_path))
    return listener_path[:shortest] == written_path[:shortest]


def _normalize(value: Any) -> Any:
    """Drop ``None`` children and empty maps so that absence has one representation."""
    if isinstance(value, dict):
        cleaned = {}
        for key, child in value.items():
            validate_segment(str(key))
            child = _normalize(child)
            if child is not None:
                cleaned[str(key)] = child
        return cleaned or None
    if isinstance(value, tuple):
        return [_normalize(item) for item in value]
    if isinstance(value, list):
        return [_normalize(item) for item in value]
    return value
