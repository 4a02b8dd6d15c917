# dailyhistory/puzzles/generation.py
"""
Create-if-absent puzzle generation, one puzzle per date per mode.

The unique constraint on ``date`` is what makes concurrent generation safe:
whoever loses the insert race rolls back and reports the winner's puzzle as
``already_exists``.
"""
from __future__ import annotations

import random
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterator, List, Optional

import pytz
from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from dailyhistory.composition.composer import (
    Judge,
    compose_with_retries,
    legacy_shuffle_events,
    require_composition,
)
from dailyhistory.composition.judge import PUZZLE_SIZE, judge_puzzle_composition, normalize_text
from dailyhistory.engine.prng import date_seed
from dailyhistory.engine.selector import (
    Candidate,
    config_for_date,
    select_with_fallback,
    shuffle_events,
)
from dailyhistory.errors import CompositionExhausted, DateOutOfWindow, PuzzleError
from dailyhistory.extensions import db
from dailyhistory.models import Event, OrderPuzzle, Puzzle

CLASSIC = "classic"
ORDER = "order"
MODES = (CLASSIC, ORDER)

_CREATE_RETRIES = 3


@dataclass
class GenerationResult:
    status: str  # created | already_exists
    puzzle: object

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "puzzleId": self.puzzle.id,
            "puzzleNumber": self.puzzle.puzzle_number,
            "date": self.puzzle.date.isoformat(),
        }


# -----------------------------------------------------------------------------
# Dates
# -----------------------------------------------------------------------------
def local_today() -> date:
    """Today's date in the configured zone."""
    tz = pytz.timezone(current_app.config.get("TIME_ZONE", "UTC"))
    return datetime.now(tz).date()


def check_date_window(target: date, today: Optional[date] = None) -> None:
    today = today or local_today()
    if not (today - timedelta(days=1) <= target <= today + timedelta(days=1)):
        raise DateOutOfWindow(f"{target.isoformat()} is outside the generation window around {today.isoformat()}")


# -----------------------------------------------------------------------------
# Pool readers
# -----------------------------------------------------------------------------
def unused_events(mode: str) -> List[Event]:
    if mode == CLASSIC:
        column = Event.classic_puzzle_id
    elif mode == ORDER:
        column = Event.order_puzzle_id
    else:
        raise ValueError(f"unknown mode: {mode}")
    return db.session.execute(select(Event).where(column.is_(None)).order_by(Event.id)).scalars().all()


def unused_candidates(mode: str) -> List[Candidate]:
    return [e.to_candidate() for e in unused_events(mode)]


def eligible_years() -> Dict[int, List[Event]]:
    """Years that still have enough unused range-mode events for a puzzle."""
    by_year: Dict[int, List[Event]] = defaultdict(list)
    for event in unused_events(CLASSIC):
        by_year[event.year].append(event)
    return {year: events for year, events in by_year.items() if len(events) >= PUZZLE_SIZE}


def _existing(model, target: date):
    return db.session.execute(select(model).where(model.date == target)).scalar_one_or_none()


def _next_puzzle_number(model) -> int:
    return (db.session.query(func.max(model.puzzle_number)).scalar() or 0) + 1


def _create_if_absent(model, target: date, build: Callable[[int], object]) -> GenerationResult:
    """
    Insert the puzzle ``build`` returns unless one already exists for
    ``target``. ``build`` receives the puzzle number and must only add rows to
    the session; this function owns commit and rollback.
    """
    existing = _existing(model, target)
    if existing:
        current_app.logger.info("[generation] %s puzzle already exists for %s", model.__tablename__, target)
        return GenerationResult("already_exists", existing)

    for attempt in range(_CREATE_RETRIES):
        try:
            puzzle = build(_next_puzzle_number(model))
            db.session.commit()
            return GenerationResult("created", puzzle)
        except PuzzleError:
            db.session.rollback()
            raise
        except IntegrityError:
            db.session.rollback()
            existing = _existing(model, target)
            if existing:
                current_app.logger.info("[generation] lost creation race for %s on %s", model.__tablename__, target)
                return GenerationResult("already_exists", existing)
            current_app.logger.warning(
                "[generation] puzzle number collision on %s (attempt %s), retrying", model.__tablename__, attempt + 1
            )
    raise PuzzleError(f"could not allocate a puzzle number for {target.isoformat()}")


# -----------------------------------------------------------------------------
# Order mode
# -----------------------------------------------------------------------------
def _classic_years_for(target: date) -> List[int]:
    puzzle = _existing(Puzzle, target)
    return [puzzle.target_year] if puzzle else []


def ensure_order_puzzle(target: Optional[date] = None) -> GenerationResult:
    target = target or local_today()
    date_key = target.isoformat()
    salt = current_app.config["ORDER_PUZZLE_SALT"]

    def build(number: int) -> OrderPuzzle:
        seed = date_seed(salt, date_key)
        pool = unused_candidates(ORDER)
        config = config_for_date(salt, date_key, _classic_years_for(target))
        selection = select_with_fallback(pool, seed, config)
        presented = shuffle_events(selection.events, selection.state)

        puzzle = OrderPuzzle(
            puzzle_number=number,
            date=target,
            seed=seed,
            difficulty=(selection.config.label if selection.config else config.label),
            events=[c.to_dict() for c in presented],
        )
        db.session.add(puzzle)
        db.session.flush()

        ids = [int(c.id) for c in selection.events]
        for event in db.session.execute(select(Event).where(Event.id.in_(ids))).scalars():
            event.order_puzzle_id = puzzle.id

        current_app.logger.info(
            "[generation] order puzzle #%s for %s span=%s attempts=%s difficulty=%s fallback=%s",
            number, date_key, selection.span, selection.attempts, puzzle.difficulty, selection.used_fallback,
        )
        return puzzle

    return _create_if_absent(OrderPuzzle, target, build)


# -----------------------------------------------------------------------------
# Range (classic) mode
# -----------------------------------------------------------------------------
def year_candidate_source(by_year: Dict[int, List[Event]], rng: random.Random, samples: Dict[int, List[Event]]):
    """
    Hand out eligible years in a seeded random order, each with a shuffled
    six-event sample. Samples are recorded in ``samples`` so the caller can map
    the judge's texts back to events.
    """
    years = sorted(by_year)
    rng.shuffle(years)
    remaining: Iterator[int] = iter(years)

    def next_candidate():
        year = next(remaining, None)
        if year is None:
            return None
        sample = legacy_shuffle_events(by_year[year], rng)
        samples[year] = sample
        return year, [e.text for e in sample]

    return next_candidate


def _events_in_judged_order(sample: List[Event], ordered_texts: List[str]) -> List[Event]:
    by_text = {}
    for event in sample:
        by_text.setdefault(normalize_text(event.text), []).append(event)
    return [by_text[normalize_text(text)].pop(0) for text in ordered_texts]


def _compose_classic(date_key: str, by_year: Dict[int, List[Event]], judge: Optional[Judge]):
    rng = random.Random(date_seed(current_app.config["CLASSIC_PUZZLE_SALT"], date_key))

    if judge is not None:
        samples: Dict[int, List[Event]] = {}
        try:
            result = require_composition(
                compose_with_retries(
                    year_candidate_source(by_year, rng, samples),
                    max_attempts=current_app.config.get("COMPOSITION_MAX_ATTEMPTS", 3),
                    judge=judge,
                )
            )
        except CompositionExhausted as exc:
            current_app.logger.warning(
                "[generation] composition failed for %s (%s; tried %s), using legacy shuffle",
                date_key, exc.result.reason, exc.result.attempted_years,
            )
        else:
            events = _events_in_judged_order(samples[result.year], result.ordered_events)
            quality = result.judgment.to_dict()
            quality["attemptedYears"] = list(result.attempted_years)
            return result.year, events, "judge", quality

    year = rng.choice(sorted(by_year))
    return year, legacy_shuffle_events(by_year[year], rng), "legacy", None


def _default_judge() -> Optional[Judge]:
    return judge_puzzle_composition if current_app.config.get("PUZZLE_JUDGE_ENABLED") else None


def ensure_classic_puzzle(target: Optional[date] = None, judge: Optional[Judge] = None) -> GenerationResult:
    target = target or local_today()
    date_key = target.isoformat()
    judge = judge if judge is not None else _default_judge()

    def build(number: int) -> Puzzle:
        by_year = eligible_years()
        if not by_year:
            raise PuzzleError(f"no year has {PUZZLE_SIZE} unused events")
        year, events, source, quality = _compose_classic(date_key, by_year, judge)

        puzzle = Puzzle(
            puzzle_number=number,
            date=target,
            target_year=year,
            events=[e.text for e in events],
            seed=date_seed(current_app.config["CLASSIC_PUZZLE_SALT"], date_key),
            composition_source=source,
            quality_score=(quality or {}).get("qualityScore"),
            quality=quality,
        )
        db.session.add(puzzle)
        db.session.flush()
        for event in events:
            event.classic_puzzle_id = puzzle.id

        current_app.logger.info(
            "[generation] range puzzle #%s for %s year=%s source=%s", number, date_key, year, source
        )
        return puzzle

    return _create_if_absent(Puzzle, target, build)


# -----------------------------------------------------------------------------
# Both modes
# -----------------------------------------------------------------------------
def ensure_puzzles_for_date(target: Optional[date] = None, on_demand: bool = True) -> Dict[str, dict]:
    """
    Ensure both puzzles exist for ``target``. On-demand calls are limited to
    yesterday, today and tomorrow. Per-mode failures are logged and reported,
    never raised.
    """
    target = target or local_today()
    if on_demand:
        check_date_window(target)

    outcome: Dict[str, dict] = {}
    for mode, ensure in ((CLASSIC, ensure_classic_puzzle), (ORDER, ensure_order_puzzle)):
        try:
            outcome[mode] = ensure(target).to_dict()
        except PuzzleError as exc:
            db.session.rollback()
            current_app.logger.warning("[generation] %s puzzle for %s failed: %s", mode, target, exc)
            outcome[mode] = {"status": "failed", "error": str(exc)}
    return outcome
