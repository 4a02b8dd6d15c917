from datetime import timedelta

import pytest
from flask import current_app
from sqlalchemy import select

from dailyhistory import create_app
from dailyhistory.composition.judge import PuzzleJudgment
from dailyhistory.conftest import seed_events
from dailyhistory.engine.prng import date_seed
from dailyhistory.errors import DateOutOfWindow
from dailyhistory.extensions import db
from dailyhistory.models import Event, OrderPuzzle, Puzzle
from dailyhistory.puzzles import generation
from dailyhistory.puzzles.generation import (
    check_date_window,
    eligible_years,
    ensure_classic_puzzle,
    ensure_order_puzzle,
    ensure_puzzles_for_date,
    local_today,
    unused_candidates,
)


def _judgment(approved, events):
    return PuzzleJudgment(
        approved=approved,
        quality_score=0.75 if approved else 0.2,
        recommended=list(reversed(events)),
        rationale="hard to easy",
        composition={"topicDiversity": 0.7, "geographicSpread": 0.7, "difficultyGradient": 0.8, "guessability": 0.8},
        issues=[] if approved else ["too easy"],
    )


def test_order_puzzle_is_created_once_per_date(events):
    today = local_today()
    first = ensure_order_puzzle(today)
    again = ensure_order_puzzle(today)
    assert first.status == "created"
    assert again.status == "already_exists"
    assert again.puzzle.id == first.puzzle.id
    assert first.puzzle.puzzle_number == 1
    assert first.puzzle.seed == date_seed(current_app.config["ORDER_PUZZLE_SALT"], today.isoformat())

    ids = [e["id"] for e in first.puzzle.events]
    assert len(set(ids)) == 6
    consumed = db.session.execute(select(Event).where(Event.order_puzzle_id == first.puzzle.id)).scalars().all()
    assert sorted(str(e.id) for e in consumed) == sorted(ids)

    tomorrow = ensure_order_puzzle(today + timedelta(days=1))
    assert tomorrow.puzzle.puzzle_number == 2
    assert not set(ids) & {e["id"] for e in tomorrow.puzzle.events}


def test_order_selection_is_reproducible_across_servers(events):
    today = local_today()
    here = [e["id"] for e in ensure_order_puzzle(today).puzzle.events]

    other = create_app("testing")
    with other.app_context():
        seed_events()
        there = [e["id"] for e in ensure_order_puzzle(today).puzzle.events]
        db.session.remove()
        db.drop_all()

    assert here == there


def test_order_puzzle_avoids_the_range_answer(events):
    today = local_today()
    classic = ensure_classic_puzzle(today).puzzle
    order = ensure_order_puzzle(today).puzzle
    assert classic.target_year not in {e["year"] for e in order.events}


def test_legacy_range_puzzle(events):
    result = ensure_classic_puzzle(local_today())
    puzzle = result.puzzle
    assert result.status == "created"
    assert puzzle.composition_source == "legacy"
    assert puzzle.target_year in (1815, 1914, 1969)
    assert len(puzzle.events) == 6
    assert all(text.startswith(str(puzzle.target_year)) for text in puzzle.events)

    consumed = db.session.execute(select(Event).where(Event.classic_puzzle_id == puzzle.id)).scalars().all()
    assert len(consumed) == 6
    assert puzzle.target_year not in eligible_years()
    assert len(unused_candidates("classic")) == len(events) - 6


def test_judged_range_puzzle_keeps_the_judges_order(events):
    calls = []

    def judge(year, era, texts):
        calls.append(year)
        return _judgment(True, texts)

    puzzle = ensure_classic_puzzle(local_today(), judge=judge).puzzle
    assert puzzle.composition_source == "judge"
    assert puzzle.quality_score == 0.75
    assert puzzle.quality["ordering"]["rationale"] == "hard to easy"
    assert calls == [puzzle.target_year]
    ordered = db.session.execute(select(Event).where(Event.classic_puzzle_id == puzzle.id)).scalars().all()
    assert sorted(e.text for e in ordered) == sorted(puzzle.events)


def test_rejected_composition_falls_back_to_legacy(events):
    tried = []

    def judge(year, era, texts):
        tried.append(year)
        return _judgment(False, texts)

    puzzle = ensure_classic_puzzle(local_today(), judge=judge).puzzle
    assert puzzle.composition_source == "legacy"
    assert len(tried) == 3
    assert len(set(tried)) == 3


def test_generation_window(app):
    today = local_today()
    check_date_window(today - timedelta(days=1), today)
    check_date_window(today + timedelta(days=1), today)
    with pytest.raises(DateOutOfWindow):
        check_date_window(today + timedelta(days=2), today)
    with pytest.raises(DateOutOfWindow):
        check_date_window(today - timedelta(days=5), today)


def test_ensure_both_modes(events):
    outcome = ensure_puzzles_for_date(local_today())
    assert outcome["classic"]["status"] == "created"
    assert outcome["order"]["status"] == "created"
    again = ensure_puzzles_for_date(local_today())
    assert again["classic"]["status"] == "already_exists"
    assert db.session.query(Puzzle).count() == 1
    assert db.session.query(OrderPuzzle).count() == 1


def test_empty_pool_is_reported_not_raised(app):
    outcome = ensure_puzzles_for_date(local_today())
    assert outcome["classic"]["status"] == "failed"
    assert outcome["order"]["status"] == "failed"
    assert db.session.query(Puzzle).count() == 0


def test_losing_the_creation_race_returns_the_winner(events, monkeypatch):
    today = local_today()
    winner_id = ensure_order_puzzle(today).puzzle.id

    real_existing = generation._existing
    calls = []

    def stale_first_read(model, target):
        calls.append(model)
        if len(calls) == 1:
            return None
        return real_existing(model, target)

    monkeypatch.setattr(generation, "_existing", stale_first_read)
    result = ensure_order_puzzle(today)

    assert result.status == "already_exists"
    assert result.puzzle.id == winner_id
    assert db.session.query(OrderPuzzle).count() == 1
    consumed = db.session.execute(select(Event).where(Event.order_puzzle_id.is_not(None))).scalars().all()
    assert len(consumed) == 6


def test_puzzle_number_collision_is_retried(events, monkeypatch):
    today = local_today()
    ensure_order_puzzle(today)

    real_next = generation._next_puzzle_number
    taken = iter([1])
    monkeypatch.setattr(generation, "_next_puzzle_number", lambda model: next(taken, None) or real_next(model))
    result = ensure_order_puzzle(today + timedelta(days=1))

    assert result.status == "created"
    assert result.puzzle.puzzle_number == 2
    assert db.session.query(OrderPuzzle).count() == 2
