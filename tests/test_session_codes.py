from __future__ import annotations

import random

import pytest

from quiz_live.constants.quiz_constants import SESSION_CODE_ALPHABET
from quiz_live.core.errors import SessionCodeError
from quiz_live.core.session_codes import SessionCodeGenerator, is_valid_session_code


def test_alphabet_has_no_ambiguous_symbols() -> None:
    assert len(SESSION_CODE_ALPHABET) == 32
    assert not set("01IO") & set(SESSION_CODE_ALPHABET)


def test_generated_codes_have_expected_shape() -> None:
    generator = SessionCodeGenerator(random.Random(1))
    for _ in range(500):
        code = generator.generate()
        assert len(code) == 6
        assert set(code) <= set(SESSION_CODE_ALPHABET)
        assert is_valid_session_code(code)


def test_collision_is_retried() -> None:
    first = SessionCodeGenerator(random.Random(5)).generate()
    taken = {first}

    code = SessionCodeGenerator(random.Random(5)).generate_unique(lambda candidate: candidate in taken)

    assert code != first
    assert is_valid_session_code(code)


def test_gives_up_after_max_attempts() -> None:
    calls = []

    def always_taken(candidate: str) -> bool:
        calls.append(candidate)
        return True

    with pytest.raises(SessionCodeError):
        SessionCodeGenerator(random.Random(2)).generate_unique(always_taken, max_attempts=10)
    assert len(calls) == 10


@pytest.mark.parametrize("code", ["ABC12", "ABCDEFG", "ABCDE0", "abcdef"])
def test_rejects_malformed_codes(code: str) -> None:
    assert not is_valid_session_code(code)
