"""Utility for generating short, unambiguous session codes."""

from __future__ import annotations

import logging
import random
from threading import Lock
from typing import Callable

from quiz_live.constants.quiz_constants import (
    SESSION_CODE_ALPHABET,
    SESSION_CODE_LENGTH,
    SESSION_CODE_MAX_ATTEMPTS,
)
from quiz_live.core.errors import SessionCodeError

logger = logging.getLogger(__name__)


class SessionCodeGenerator:
    """Draws fixed-length codes from the 32-symbol alphabet."""

    def __init__(
        self,
        rng: random.Random | None = None,
        alphabet: str = SESSION_CODE_ALPHABET,
        length: int = SESSION_CODE_LENGTH,
    ) -> None:
        if not alphabet or length <= 0:
            raise ValueError("Alphabet and length must be non-empty.")
        self._rng = rng or random.SystemRandom()
        self._alphabet = alphabet
        self._length = length
        self._lock = Lock()

    def generate(self) -> str:
        with self._lock:
            return "".join(self._rng.choice(self._alphabet) for _ in range(self._length))

    def generate_unique(
        self,
        exists: Callable[[str], bool],
        max_attempts: int = SESSION_CODE_MAX_ATTEMPTS,
    ) -> str:
        """Return a code for which ``exists`` is false, retrying on collisions."""
        for attempt in range(1, max_attempts + 1):
            code = self.generate()
            if not exists(code):
                return code
            logger.info("Session code %s already in use (attempt %d/%d)", code, attempt, max_attempts)
        raise SessionCodeError(f"No free session code after {max_attempts} attempts.")


def is_valid_session_code(code: str) -> bool:
    return len(code) == SESSION_CODE_LENGTH and all(char in SESSION_CODE_ALPHABET for char in code)
