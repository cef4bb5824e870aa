"""Cancellable per-question countdown for the host."""

from __future__ import annotations

import logging
import time
from threading import Lock, Timer
from typing import Callable

logger = logging.getLogger(__name__)


class QuestionCountdown:
    """Fires ``on_expire`` once when the absolute deadline passes.

    The deadline is an epoch-millisecond value derived from the stored
    question start time, so a host that reconnects mid-question arms the timer
    for the time that is actually left instead of a full time limit.
    """

    def __init__(
        self,
        on_expire: Callable[[int], None],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._on_expire = on_expire
        self._clock = clock
        self._lock = Lock()
        self._timer: Timer | None = None
        self._deadline_ms: int | None = None
        self._question_index: int | None = None

    def start(self, question_index: int, deadline_ms: int) -> None:
        with self._lock:
            self._cancel_locked()
            delay = max(0.0, (deadline_ms - self._clock() * 1000) / 1000)
            self._deadline_ms = deadline_ms
            self._question_index = question_index
            timer = Timer(delay, self._fire, args=(question_index, deadline_ms))
            timer.daemon = True
            timer.name = f"QuestionCountdown-{question_index}"
            self._timer = timer
            timer.start()
        logger.info("Countdown armed for question %d (%.1fs left)", question_index, delay)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                logger.debug("Countdown for question %s cancelled", self._question_index)
            self._cancel_locked()

    def is_running(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def question_index(self) -> int | None:
        return self._question_index

    def remaining_seconds(self) -> float:
        with self._lock:
            if self._deadline_ms is None:
                return 0.0
            return max(0.0, (self._deadline_ms - self._clock() * 1000) / 1000)

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._deadline_ms = None
        self._question_index = None

    def _fire(self, question_index: int, deadline_ms: int) -> None:
        with self._lock:
            # A re-armed or cancelled countdown must not fire for its old deadline.
            if self._deadline_ms != deadline_ms or self._question_index != question_index:
                return
            self._timer = None
            self._deadline_ms = None
            self._question_index = None
        logger.info("Countdown expired for question %d", question_index)
        try:
            self._on_expire(question_index)
        except Exception:
            logger.exception("Countdown expiry handler failed for question %d", question_index)
