from __future__ import annotations

import pytest

from quiz_live.core.errors import InvalidPathError, SessionNotFoundError, SubmissionRejectedError
from quiz_live.core.models import ChoiceQuestion, Quiz, SessionStatus, WordCloudQuestion
from quiz_live.core.participant_client import ParticipantClient, ParticipantMode


def _only(question) -> Quiz:
    return Quiz(title="One", questions=(question,))


def _walk_to(host, index: int) -> None:
    while host.record.current_question != index or host.record.status is not SessionStatus.QUESTION:
        assert host.advance()


def test_modes_follow_the_session(store, clock, start_host, mixed_quiz) -> None:
    host = start_host(mixed_quiz)
    client = ParticipantClient(store, host.code, "Ann", clock=clock)
    assert client.mode is ParticipantMode.LOADING

    client.connect()
    assert client.mode is ParticipantMode.NAME_ENTRY
    client.join()
    assert client.mode is ParticipantMode.LOBBY

    host.start_quiz()
    assert client.mode is ParticipantMode.QUESTION
    host.skip()
    assert client.mode is ParticipantMode.RESULTS
    host.advance()
    assert client.mode is ParticipantMode.LEADERBOARD
    assert client.my_rank().rank == 1


def test_unknown_session_is_terminal(store, clock) -> None:
    client = ParticipantClient(store, "ZZZZZZ", "Ann", clock=clock)
    client.connect()

    assert client.mode is ParticipantMode.NOT_FOUND
    with pytest.raises(SessionNotFoundError):
        client.join()


def test_join_writes_player_entry(store, clock, start_host, mixed_quiz) -> None:
    host = start_host(mixed_quiz)
    client = ParticipantClient(store, host.code, "  Ann  ", clock=clock)
    client.connect()

    assert client.join()

    assert client.name == "Ann"
    assert store.get(f"sessions/{host.code}/players/Ann") == {
        "joinedAt": clock.millis,
        "score": 0,
        "streak": 0,
    }


def test_rejoin_does_not_reset_score(store, clock, start_host, join_player, mc_question) -> None:
    host = start_host(_only(mc_question))
    first = join_player(host.code, "Ann")
    host.start_quiz()
    first.submit_choice(2)
    first.disconnect()

    again = ParticipantClient(store, host.code, "Ann", clock=clock)
    again.connect()
    assert again.mode is ParticipantMode.RESULTS
    assert not again.join()

    assert store.get(f"sessions/{host.code}/players/Ann/score") == 1000


@pytest.mark.parametrize("name", ["", "   ", "A.B", "x#1", "$", "a[0]", "a/b"])
def test_names_must_be_usable_as_keys(store, name: str) -> None:
    with pytest.raises(InvalidPathError):
        ParticipantClient(store, "ABC234", name)


def test_second_answer_is_rejected(store, start_host, join_player, mc_question) -> None:
    host = start_host(_only(mc_question))
    ann = join_player(host.code, "Ann")
    join_player(host.code, "Ben")
    host.start_quiz()

    assert ann.submit_choice(2)
    with pytest.raises(SubmissionRejectedError):
        ann.submit_choice(1)

    assert store.get(f"sessions/{host.code}/answers/0/Ann/answer") == 2


def test_submission_must_match_question_type(start_host, join_player, mc_question) -> None:
    host = start_host(_only(mc_question))
    ann = join_player(host.code, "Ann")

    with pytest.raises(SubmissionRejectedError):
        ann.submit_choice(2)

    host.start_quiz()
    with pytest.raises(SubmissionRejectedError):
        ann.submit_text("Jupiter")
    with pytest.raises(SubmissionRejectedError):
        ann.submit_choice(7)
    assert not ann.has_answered


def test_device_clock_ahead_of_host_can_still_answer(store, start_host, join_player, mc_question, clock) -> None:
    host = start_host(_only(mc_question))
    join_player(host.code, "Ben")
    ann = ParticipantClient(store, host.code, "Ann", clock=lambda: clock() + 25)
    ann.connect()
    ann.join()
    host.start_quiz()
    clock.advance(1)

    assert ann.remaining_seconds() == 0
    assert ann.submit_choice(2)

    assert store.get(f"sessions/{host.code}/answers/0/Ann/answer") == 2
    assert host.record.status is SessionStatus.QUESTION


def test_failed_write_keeps_answer_locked(store, flaky_store, clock, start_host, mc_question) -> None:
    host = start_host(_only(mc_question))
    ann = ParticipantClient(flaky_store, host.code, "Ann", clock=clock)
    ann.connect()
    ann.join()
    host.start_quiz()

    flaky_store.fail_writes = True
    assert not ann.submit_choice(2)

    assert ann.has_answered
    assert ann.submitted_answer == 2
    assert store.get(f"sessions/{host.code}/answers/0") is None
    with pytest.raises(SubmissionRejectedError):
        ann.submit_choice(2)


def test_failed_join_stays_on_name_entry(flaky_store, clock, start_host, mc_question) -> None:
    host = start_host(_only(mc_question))
    ann = ParticipantClient(flaky_store, host.code, "Ann", clock=clock)
    ann.connect()
    flaky_store.fail_writes = True

    assert not ann.join()
    assert ann.mode is ParticipantMode.NAME_ENTRY


def test_local_state_resets_on_next_question(start_host, join_player, mixed_quiz) -> None:
    host = start_host(mixed_quiz)
    ann = join_player(host.code, "Ann")
    join_player(host.code, "Ben")
    host.start_quiz()
    ann.submit_choice(2)
    assert ann.has_answered

    _walk_to(host, 1)

    assert not ann.has_answered
    assert ann.submitted_answer is None
    assert ann.submit_choice(0)


def test_each_question_type_submits(store, start_host, join_player, mixed_quiz) -> None:
    host = start_host(mixed_quiz)
    ann = join_player(host.code, "Ann")
    join_player(host.code, "Ben")
    host.start_quiz()
    _walk_to(host, 2)
    with pytest.raises(SubmissionRejectedError):
        ann.submit_text("   ")
    assert ann.submit_text("  Mars ")
    assert store.get(f"sessions/{host.code}/answers/2/Ann/answer") == "Mars"

    _walk_to(host, 3)
    with pytest.raises(SubmissionRejectedError):
        ann.submit_order([0, 0, 1, 2])
    assert ann.submit_order([0, 1, 2, 3])

    _walk_to(host, 4)
    with pytest.raises(SubmissionRejectedError):
        ann.submit_slider(150)
    assert ann.submit_slider(53)
    assert store.get(f"sessions/{host.code}/answers/4/Ann/answer") == 53


def test_sorting_items_follow_shared_shuffle(start_host, join_player, mixed_quiz) -> None:
    host = start_host(mixed_quiz)
    ann = join_player(host.code, "Ann")
    host.start_quiz(require_players=False)
    assert ann.display_items() == []

    _walk_to(host, 3)

    order = host.record.shuffled_order
    items = mixed_quiz.questions[3].items
    assert ann.display_items() == [(index, items[index]) for index in order]


def test_word_cloud_submission_cap(store, start_host, join_player) -> None:
    host = start_host(_only(WordCloudQuestion(text="Words", max_submissions=3)))
    ann = join_player(host.code, "Ann")
    host.start_quiz()

    for word in ("sun", "Moon", "sun"):
        assert ann.submit_word(word)
    with pytest.raises(SubmissionRejectedError):
        ann.submit_word("comet")
    with pytest.raises(SubmissionRejectedError):
        ann.submit_choice(0)

    entries = [entry for _key, entry in sorted(store.get(f"sessions/{host.code}/wordCloud/0").items())]
    assert [e["word"] for e in entries] == ["sun", "Moon", "sun"]
    assert {e["author"] for e in entries} == {"Ann"}
    assert ann.words_sent == ["sun", "Moon", "sun"]


def test_results_outcome_for_unanswered_player(start_host, join_player, mc_question: ChoiceQuestion) -> None:
    host = start_host(_only(mc_question))
    ann = join_player(host.code, "Ann")
    host.start_quiz()
    assert ann.my_outcome() is None

    host.skip()

    assert ann.mode is ParticipantMode.RESULTS
    assert ann.my_outcome() is None
