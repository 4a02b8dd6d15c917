# dailyhistory/puzzles/plays.py
"""
Validated persistence of plays.

Every write goes through the engine's recomputation first; only the server's
own evaluation is stored. One row per (user, puzzle), sealed by
``completed_at``.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from dailyhistory.engine import scoring
from dailyhistory.engine.hints import generate_hint, merge_hints, parse_hint, serialize_hint
from dailyhistory.engine.validation import (
    parse_order_submission,
    parse_range_guess,
    validate_order_submission,
    validate_range_guess,
)
from dailyhistory.errors import IdentityMismatch, MalformedSubmission, PlaySealed, RecordNotFound
from dailyhistory.extensions import db
from dailyhistory.models import OrderPlay, OrderPuzzle, Play, Puzzle, User
from dailyhistory.puzzles.generation import local_today


@dataclass
class RecordedPlay:
    status: str  # recorded | already_recorded | in_progress
    play: Any
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"status": self.status, "play": self.play.to_payload()}
        payload.update(self.details)
        return payload


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _load_user(user_id) -> User:
    user = db.session.get(User, int(user_id))
    if user is None:
        raise RecordNotFound("User not found")
    return user


def _authorize(claimed_user_id, authenticated_user_id) -> User:
    if authenticated_user_id is None or str(claimed_user_id) != str(authenticated_user_id):
        raise IdentityMismatch("Forbidden")
    return _load_user(authenticated_user_id)


def get_play(model, user_id: int, puzzle_id: int) -> Optional[Any]:
    return db.session.execute(
        select(model).where(model.user_id == user_id, model.puzzle_id == puzzle_id)
    ).scalar_one_or_none()


def _update_streak(user: User, puzzle_date: date, perfect: bool) -> None:
    user.total_plays = (user.total_plays or 0) + 1
    if perfect:
        user.perfect_games = (user.perfect_games or 0) + 1

    # archive puzzles count as plays but never move the streak
    if puzzle_date != local_today():
        return
    if user.last_completed_date == puzzle_date:
        return
    if user.last_completed_date == puzzle_date - timedelta(days=1):
        user.current_streak = (user.current_streak or 0) + 1
    else:
        user.current_streak = 1
    user.last_completed_date = puzzle_date
    user.longest_streak = max(user.longest_streak or 0, user.current_streak)


# -----------------------------------------------------------------------------
# Order mode
# -----------------------------------------------------------------------------
def _same_history(play: OrderPlay, submission) -> bool:
    stored = [a.get("ordering") for a in (play.attempts or [])]
    submitted = [a.ordering for a in submission.attempts]
    return stored == submitted and list(play.ordering or []) == submission.ordering


def _parse_hints(raw_hints):
    try:
        return [parse_hint(h) for h in raw_hints]
    except ValueError as exc:
        raise MalformedSubmission(f"bad hint: {exc}") from exc


def validate_and_record_order_play(claimed_user_id, authenticated_user_id, puzzle_id: int, payload: Dict[str, Any]) -> RecordedPlay:
    user = _authorize(claimed_user_id, authenticated_user_id)
    puzzle = db.session.get(OrderPuzzle, puzzle_id)
    if puzzle is None:
        raise RecordNotFound("Order puzzle not found")

    submission = parse_order_submission(payload)
    play = get_play(OrderPlay, user.id, puzzle.id)

    if play is not None and play.sealed:
        if _same_history(play, submission):
            return RecordedPlay("already_recorded", play, {"score": play.score})
        raise PlaySealed("play already completed")

    evaluations = validate_order_submission(submission, puzzle.events)

    attempts = []
    for client, server in zip(submission.attempts, evaluations):
        record = server.to_dict()
        record["timestamp"] = client.timestamp if client.timestamp is not None else _now_ms()
        attempts.append(record)

    if play is None:
        play = OrderPlay(user_id=user.id, puzzle_id=puzzle.id, hints=[])
        db.session.add(play)
    play.ordering = list(submission.ordering)
    play.attempts = attempts
    # hints only come from request_order_hint
    play.score = scoring.order_score(attempts)
    play.completed_at = _now()
    _update_streak(user, puzzle.date, perfect=len(attempts) == 1)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        winner = get_play(OrderPlay, user.id, puzzle.id)
        current_app.logger.info("[plays] concurrent order submission for user=%s puzzle=%s", user.id, puzzle.id)
        return RecordedPlay("already_recorded", winner, {"score": winner.score})

    current_app.logger.info(
        "[plays] order play recorded user=%s puzzle=%s attempts=%s", user.id, puzzle.id, len(attempts)
    )
    return RecordedPlay("recorded", play, {"score": play.score})


def request_order_hint(authenticated_user_id, puzzle_id: int, payload: Dict[str, Any], _retry: bool = True):
    """
    Issue the next hint of ``payload["kind"]`` for the user's board and record
    it on their play. Hints already issued come from the stored play, never
    from the client. Raises NoHintAvailable when that kind is used up and
    ValueError for an unknown kind.
    """
    user = _load_user(authenticated_user_id)
    puzzle = db.session.get(OrderPuzzle, puzzle_id)
    if puzzle is None:
        raise RecordNotFound("Order puzzle not found")

    play = get_play(OrderPlay, user.id, puzzle.id)
    if play is not None and play.sealed:
        raise PlaySealed("play already completed")

    board = payload.get("currentOrder")
    if board is None:
        board = [e["id"] for e in puzzle.events]
    elif not isinstance(board, list):
        raise MalformedSubmission("currentOrder must be a list of event ids")
    board = [str(x) for x in board]
    problem = scoring.ordering_problem(board, scoring.correct_order(puzzle.events))
    if problem:
        raise MalformedSubmission(f"currentOrder: {problem}")

    existing = _parse_hints(play.hints if play else [])
    hint = generate_hint(payload.get("kind"), puzzle.events, board, existing, puzzle.seed)

    if play is None:
        play = OrderPlay(user_id=user.id, puzzle_id=puzzle.id, hints=[])
        db.session.add(play)
    play.hints = [serialize_hint(h) for h in merge_hints(existing, [hint])]

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if not _retry:
            raise
        current_app.logger.info("[plays] concurrent hint request for user=%s puzzle=%s", user.id, puzzle.id)
        return request_order_hint(authenticated_user_id, puzzle_id, payload, _retry=False)

    current_app.logger.info(
        "[plays] %s hint issued user=%s puzzle=%s total=%s", hint.__class__.__name__, user.id, puzzle.id, len(play.hints)
    )
    return hint, play


# -----------------------------------------------------------------------------
# Range mode
# -----------------------------------------------------------------------------
def _seal_range_play(play: Play, puzzle: Puzzle, user: User, total: int, perfect: bool) -> None:
    play.total_score = total
    play.completed_at = _now()
    guesses = len(play.ranges)
    count = puzzle.play_count or 0
    puzzle.avg_guesses = ((puzzle.avg_guesses or 0.0) * count + guesses) / (count + 1)
    puzzle.play_count = count + 1
    _update_streak(user, puzzle.date, perfect=perfect)


def submit_range_guess(claimed_user_id, authenticated_user_id, puzzle_id: int, payload: Dict[str, Any]) -> RecordedPlay:
    """
    Score one range guess from stored truth and append it to the play. Any
    client-sent score is ignored. The play seals on a containing guess or on
    the last allowed guess.
    """
    user = _authorize(claimed_user_id, authenticated_user_id)
    puzzle = db.session.get(Puzzle, puzzle_id)
    if puzzle is None:
        raise RecordNotFound("Puzzle not found")

    guess = parse_range_guess(payload)
    play = get_play(Play, user.id, puzzle.id)
    if play is not None and play.sealed:
        raise PlaySealed("play already completed")

    previous = list(play.ranges or []) if play else []
    result = validate_range_guess(guess, puzzle.target_year, previous)

    if play is None:
        play = Play(user_id=user.id, puzzle_id=puzzle.id, ranges=[])
        db.session.add(play)
    play.ranges = previous + [{
        "start": guess.start,
        "end": guess.end,
        "hintsUsed": guess.hints_used,
        "score": result.score,
        "timestamp": _now_ms(),
    }]

    if result.contained:
        _seal_range_play(play, puzzle, user, result.score, perfect=len(play.ranges) == 1)
    elif len(play.ranges) >= scoring.MAX_GUESSES:
        _seal_range_play(play, puzzle, user, 0, perfect=False)

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise PlaySealed("a concurrent guess was recorded first; refresh and retry") from exc

    details: Dict[str, Any] = {"result": result.to_dict()}
    if play.sealed:
        details["targetYear"] = puzzle.target_year
        current_app.logger.info(
            "[plays] range play sealed user=%s puzzle=%s guesses=%s score=%s",
            user.id, puzzle.id, len(play.ranges), play.total_score,
        )
        return RecordedPlay("recorded", play, details)
    return RecordedPlay("in_progress", play, details)
