# dailyhistory/models.py
from __future__ import annotations

from datetime import datetime, timezone

from flask_login import UserMixin

from dailyhistory.engine.selector import Candidate
from dailyhistory.extensions import db, login_manager


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    current_streak = db.Column(db.Integer, default=0, nullable=False)
    longest_streak = db.Column(db.Integer, default=0, nullable=False)
    last_completed_date = db.Column(db.Date, nullable=True)
    total_plays = db.Column(db.Integer, default=0, nullable=False)
    perfect_games = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def stats_payload(self):
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "totalPlays": self.total_plays,
            "perfectGames": self.perfect_games,
        }


@login_manager.user_loader
def load_user(user_id):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


class Event(db.Model):
    """A single dated clue. Each game mode consumes an event at most once."""

    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    classic_puzzle_id = db.Column(db.Integer, db.ForeignKey("puzzles.id"), nullable=True, index=True)
    order_puzzle_id = db.Column(db.Integer, db.ForeignKey("order_puzzles.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_candidate(self) -> Candidate:
        return Candidate(id=str(self.id), year=self.year, text=self.text)


class Puzzle(db.Model):
    """Range-mode puzzle: six clues pointing at one target year."""

    __tablename__ = "puzzles"

    id = db.Column(db.Integer, primary_key=True)
    puzzle_number = db.Column(db.Integer, unique=True, nullable=False, index=True)
    date = db.Column(db.Date, unique=True, nullable=False, index=True)
    target_year = db.Column(db.Integer, nullable=False)
    events = db.Column(db.JSON, nullable=False)  # clue texts in hint order
    seed = db.Column(db.BigInteger, nullable=True)
    composition_source = db.Column(db.String(20), nullable=False, default="legacy")  # judge|legacy
    quality_score = db.Column(db.Float, nullable=True)
    quality = db.Column(db.JSON, nullable=True)
    play_count = db.Column(db.Integer, default=0, nullable=False)
    avg_guesses = db.Column(db.Float, default=0.0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def public_payload(self):
        return {
            "id": self.id,
            "puzzleNumber": self.puzzle_number,
            "date": self.date.isoformat(),
            "events": list(self.events or []),
            "playCount": self.play_count,
            "avgGuesses": self.avg_guesses,
        }


class OrderPuzzle(db.Model):
    """Order-mode puzzle: six events stored in presentation order."""

    __tablename__ = "order_puzzles"

    id = db.Column(db.Integer, primary_key=True)
    puzzle_number = db.Column(db.Integer, unique=True, nullable=False, index=True)
    date = db.Column(db.Date, unique=True, nullable=False, index=True)
    seed = db.Column(db.BigInteger, nullable=False)
    difficulty = db.Column(db.String(20), nullable=True)
    events = db.Column(db.JSON, nullable=False)  # [{"id", "year", "text"}]
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def public_payload(self):
        return {
            "id": self.id,
            "puzzleNumber": self.puzzle_number,
            "date": self.date.isoformat(),
            "events": [{"id": e["id"], "text": e["text"]} for e in (self.events or [])],
        }


class Play(db.Model):
    __tablename__ = "plays"
    __table_args__ = (db.UniqueConstraint("user_id", "puzzle_id", name="uq_plays_user_puzzle"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    puzzle_id = db.Column(db.Integer, db.ForeignKey("puzzles.id"), nullable=False, index=True)
    ranges = db.Column(db.JSON, nullable=False, default=list)
    total_score = db.Column(db.Integer, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def sealed(self) -> bool:
        return self.completed_at is not None

    def to_payload(self):
        return {
            "puzzleId": self.puzzle_id,
            "ranges": list(self.ranges or []),
            "totalScore": self.total_score,
            "completed": self.sealed,
        }


class OrderPlay(db.Model):
    __tablename__ = "order_plays"
    __table_args__ = (db.UniqueConstraint("user_id", "puzzle_id", name="uq_order_plays_user_puzzle"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    puzzle_id = db.Column(db.Integer, db.ForeignKey("order_puzzles.id"), nullable=False, index=True)
    ordering = db.Column(db.JSON, nullable=False, default=list)
    attempts = db.Column(db.JSON, nullable=False, default=list)
    hints = db.Column(db.JSON, nullable=False, default=list)
    score = db.Column(db.JSON, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def sealed(self) -> bool:
        return self.completed_at is not None

    def to_payload(self):
        return {
            "puzzleId": self.puzzle_id,
            "ordering": list(self.ordering or []),
            "attempts": list(self.attempts or []),
            "hints": list(self.hints or []),
            "score": self.score,
            "completed": self.sealed,
        }
