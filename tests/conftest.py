from __future__ import annotations

import random
from typing import Any

import pytest

from quiz_live.core.errors import StoreUnavailableError
from quiz_live.core.host_controller import HostController
from quiz_live.core.models import (
    ChoiceQuestion,
    OpenQuestion,
    QuestionType,
    Quiz,
    SliderQuestion,
    SortingQuestion,
    WordCloudQuestion,
)
from quiz_live.core.participant_client import ParticipantClient
from quiz_live.core.record_store import InMemoryRecordStore
from quiz_live.core.session_codes import SessionCodeGenerator

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced wall clock returning epoch seconds."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    @property
    def millis(self) -> int:
        return int(self.now * 1000)


class FlakyStore:
    """Wraps a store and fails every write while ``fail_writes`` is set."""

    def __init__(self, inner: InMemoryRecordStore) -> None:
        self.inner = inner
        self.fail_writes = False

    def get(self, path: str) -> Any:
        return self.inner.get(path)

    def exists(self, path: str) -> bool:
        return self.inner.exists(path)

    def subscribe(self, path, listener):
        return self.inner.subscribe(path, listener)

    def set(self, path: str, value: Any) -> None:
        self._check()
        self.inner.set(path, value)

    def update(self, path: str, updates: dict[str, Any]) -> None:
        self._check()
        self.inner.update(path, updates)

    def push(self, path: str, value: Any) -> str:
        self._check()
        return self.inner.push(path, value)

    def remove(self, path: str) -> None:
        self._check()
        self.inner.remove(path)

    def _check(self) -> None:
        if self.fail_writes:
            raise StoreUnavailableError("store offline")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryRecordStore:
    return InMemoryRecordStore(clock=clock)


@pytest.fixture
def mc_question() -> ChoiceQuestion:
    return ChoiceQuestion(
        question_type=QuestionType.MULTIPLE_CHOICE,
        text="Which planet is the largest?",
        options=("Mars", "Venus", "Jupiter", "Earth"),
        correct_index=2,
        time_limit=20,
    )


@pytest.fixture
def mixed_quiz(mc_question: ChoiceQuestion) -> Quiz:
    return Quiz(
        title="Space",
        questions=(
            mc_question,
            ChoiceQuestion(
                question_type=QuestionType.TRUE_FALSE,
                text="The Sun is a star.",
                options=("True", "False"),
                correct_index=0,
                time_limit=15,
            ),
            OpenQuestion(text="Name the red planet.", accepted_answers=("Mars",), time_limit=20),
            SortingQuestion(
                text="Order by distance from the Sun",
                items=("Mercury", "Venus", "Earth", "Mars"),
                time_limit=10,
            ),
            SliderQuestion(
                text="How many moons does Mars have?",
                min_value=0,
                max_value=100,
                correct_value=50,
                tolerance=5,
                time_limit=15,
            ),
            WordCloudQuestion(text="One word for space", max_submissions=3),
        ),
    )


@pytest.fixture
def start_host(store, clock):
    """Create a session for ``quiz`` with deterministic code and shuffling."""
    hosts: list[HostController] = []

    def factory(quiz: Quiz, **kwargs: Any) -> HostController:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("rng", random.Random(3))
        kwargs.setdefault("code_generator", SessionCodeGenerator(random.Random(len(hosts) + 11)))
        host = HostController.create_session(kwargs.pop("store", store), quiz, **kwargs)
        hosts.append(host)
        return host

    yield factory
    for host in hosts:
        host.detach()


@pytest.fixture
def join_player(store, clock):
    """Connect a participant and join it to the session."""

    def factory(code: str, name: str, target_store=None) -> ParticipantClient:
        client = ParticipantClient(target_store or store, code, name, clock=clock)
        client.connect()
        client.join()
        return client

    return factory


@pytest.fixture
def flaky_store(store: InMemoryRecordStore) -> FlakyStore:
    return FlakyStore(store)
