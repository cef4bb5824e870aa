from __future__ import annotations

from quiz_live.core.models import (
    AnswerRecord,
    OpenQuestion,
    PlayerState,
    SliderQuestion,
    SortingQuestion,
    WordCloudEntry,
    WordCloudQuestion,
)
from quiz_live.core.services.answer_aggregator import (
    AnswerProgress,
    aggregate_word_cloud,
    answer_progress,
    summarize_question,
    word_font_size,
)
from quiz_live.core.services.scoreboard import apply_question_scores, build_leaderboard

STARTED = 1_700_000_000_000


def _entries(*words: str) -> list[WordCloudEntry]:
    return [WordCloudEntry(word=w, author=f"p{i}", timestamp=STARTED + i) for i, w in enumerate(words)]


def test_word_variants_group_together() -> None:
    counts = aggregate_word_cloud(_entries("Katze", " katze ", "KATZE"))

    assert len(counts) == 1
    assert counts[0].count == 3
    assert counts[0].word == "Katze"


def test_word_cloud_orders_by_count_then_first_seen() -> None:
    counts = aggregate_word_cloud(_entries("Hund", "Maus", "maus", "Vogel", "  ", "hund", "MAUS"))

    assert [(c.word, c.count) for c in counts] == [("Maus", 3), ("Hund", 2), ("Vogel", 1)]


def test_word_font_size_is_capped() -> None:
    assert word_font_size(1) == 28
    assert word_font_size(3) == 52
    assert word_font_size(10) == 60


def test_no_auto_advance_without_players(mc_question) -> None:
    assert not AnswerProgress(connected=0, answered=0).should_auto_advance(mc_question)
    assert not answer_progress({}, {"ghost": object()}).should_auto_advance(mc_question)


def test_auto_advance_when_every_player_answered(mc_question) -> None:
    players = {"Ann": PlayerState(joined_at=0), "Ben": PlayerState(joined_at=0)}

    assert not answer_progress(players, {"Ann": object()}).should_auto_advance(mc_question)
    assert answer_progress(players, {"Ann": object(), "Ben": object()}).should_auto_advance(mc_question)


def test_answers_from_unknown_names_do_not_count(mc_question) -> None:
    players = {"Ann": PlayerState(joined_at=0), "Ben": PlayerState(joined_at=0)}

    progress = answer_progress(players, {"Ann": object(), "Eve": object()})

    assert progress.answered == 1
    assert not progress.should_auto_advance(mc_question)


def test_word_cloud_never_auto_advances() -> None:
    progress = AnswerProgress(connected=2, answered=2)
    assert not progress.should_auto_advance(WordCloudQuestion(text="Words"))
    assert not progress.should_auto_advance(None)


def test_scores_accumulate_and_streaks_reset(mc_question) -> None:
    players = {
        "Ann": PlayerState(joined_at=0, score=100, streak=2),
        "Ben": PlayerState(joined_at=0, score=300, streak=1),
        "Cem": PlayerState(joined_at=0, score=50, streak=4),
    }
    answers = {
        "Ann": AnswerRecord(answer=2, answered_at=STARTED + 4000),
        "Ben": AnswerRecord(answer=0, answered_at=STARTED + 10000),
        "Eve": AnswerRecord(answer=2, answered_at=STARTED),
    }

    updated, outcomes = apply_question_scores(mc_question, players, answers, STARTED)

    assert set(updated) == {"Ann", "Ben", "Cem"}
    assert (updated["Ann"].score, updated["Ann"].streak) == (1000, 3)
    assert (updated["Ben"].score, updated["Ben"].streak) == (300, 0)
    assert (updated["Cem"].score, updated["Cem"].streak) == (50, 0)
    assert [o.name for o in outcomes if not o.answered] == ["Cem"]


def test_leaderboard_ranks_ties_together() -> None:
    players = {
        "Ben": PlayerState(joined_at=0, score=500),
        "Ann": PlayerState(joined_at=0, score=900, streak=1),
        "Cem": PlayerState(joined_at=0, score=500),
        "Dan": PlayerState(joined_at=0, score=0),
    }

    rows = build_leaderboard(players)

    assert [(r.rank, r.name) for r in rows] == [(1, "Ann"), (2, "Ben"), (2, "Cem"), (4, "Dan")]
    assert build_leaderboard(players, limit=2)[-1].name == "Ben"


def test_choice_summary_counts_options(mc_question) -> None:
    answers = {
        "Ann": AnswerRecord(answer=2, answered_at=STARTED),
        "Ben": AnswerRecord(answer=0, answered_at=STARTED),
        "Cem": AnswerRecord(answer=2, answered_at=STARTED),
    }

    summary = summarize_question(mc_question, answers, player_count=4)

    assert summary.option_counts == [1, 0, 2, 0]
    assert summary.correct_count == 2
    assert summary.to_dict()["answerCount"] == 3


def test_open_summary_splits_names() -> None:
    question = OpenQuestion(text="Red planet?", accepted_answers=("Mars",), time_limit=20)
    answers = {
        "Ben": AnswerRecord(answer="mars", answered_at=STARTED),
        "Ann": AnswerRecord(answer="Venus", answered_at=STARTED),
    }

    summary = summarize_question(question, answers, player_count=2)

    assert summary.correct_names == ["Ben"]
    assert summary.wrong_names == ["Ann"]


def test_sorting_summary_reports_position_hit_rates() -> None:
    question = SortingQuestion(text="Order", items=("a", "b", "c"), time_limit=30)
    answers = {
        "Ann": AnswerRecord(answer=[0, 1, 2], answered_at=STARTED),
        "Ben": AnswerRecord(answer=[0, 2, 1], answered_at=STARTED),
    }

    summary = summarize_question(question, answers, player_count=2)

    assert summary.position_correct_percent == [100, 50, 50]
    assert summary.correct_count == 1


def test_slider_summary_sorts_by_distance() -> None:
    question = SliderQuestion(
        text="Guess",
        min_value=0,
        max_value=100,
        correct_value=50,
        tolerance=5,
        time_limit=20,
    )
    answers = {
        "Ann": AnswerRecord(answer=70, answered_at=STARTED),
        "Ben": AnswerRecord(answer=52, answered_at=STARTED),
    }

    summary = summarize_question(question, answers, player_count=2)

    assert [g["name"] for g in summary.guesses] == ["Ben", "Ann"]
    assert summary.correct_count == 1


def test_word_cloud_summary_uses_entries() -> None:
    summary = summarize_question(
        WordCloudQuestion(text="Words"),
        {},
        player_count=2,
        word_cloud=_entries("sun", "Sun", "moon"),
    )

    assert summary.answer_count == 3
    assert [(w.word, w.count) for w in summary.words] == [("sun", 2), ("moon", 1)]
