# dailyhistory/engine/validation.py
"""
Server-side recomputation of submitted plays.

Nothing a client asserts (feedback, pair counts, scores) is trusted. Every
check below recomputes from the stored puzzle truth and raises a specific
ValidationFailed subclass at the first disagreement.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from dailyhistory.engine import scoring
from dailyhistory.errors import (
    AttemptFeedbackMismatch,
    AttemptOrderingInvalid,
    AttemptPairsMismatch,
    FinalAttemptNotSolved,
    MalformedSubmission,
    NotSolved,
    RangeRejected,
    ScoreMismatch,
)


@dataclass
class OrderAttempt:
    ordering: List[str]
    feedback: List[str]
    pairs_correct: int
    total_pairs: int
    timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ordering": list(self.ordering),
            "feedback": list(self.feedback),
            "pairsCorrect": self.pairs_correct,
            "totalPairs": self.total_pairs,
            "timestamp": self.timestamp,
        }


@dataclass
class OrderSubmission:
    ordering: List[str]
    attempts: List[OrderAttempt] = field(default_factory=list)
    score: Dict[str, int] = field(default_factory=dict)
    hints: List[str] = field(default_factory=list)


def _string_list(value: Any, label: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(x, (str, int)) and not isinstance(x, bool) for x in value):
        raise MalformedSubmission(f"{label} must be a list of event ids")
    return [str(x) for x in value]


def _int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedSubmission(f"{label} must be an integer")
    return value


def parse_order_submission(payload: Dict[str, Any]) -> OrderSubmission:
    if not isinstance(payload, dict):
        raise MalformedSubmission("submission must be a JSON object")

    ordering = _string_list(payload.get("ordering"), "ordering")

    raw_attempts = payload.get("attempts")
    if not isinstance(raw_attempts, list):
        raise MalformedSubmission("attempts must be a list")
    attempts: List[OrderAttempt] = []
    for idx, raw in enumerate(raw_attempts, start=1):
        if not isinstance(raw, dict):
            raise MalformedSubmission(f"attempt {idx} must be an object")
        feedback = raw.get("feedback")
        if not isinstance(feedback, list) or not all(isinstance(f, str) for f in feedback):
            raise MalformedSubmission(f"attempt {idx} feedback must be a list of strings")
        timestamp = raw.get("timestamp")
        attempts.append(
            OrderAttempt(
                ordering=_string_list(raw.get("ordering"), f"attempt {idx} ordering"),
                feedback=list(feedback),
                pairs_correct=_int(raw.get("pairsCorrect"), f"attempt {idx} pairsCorrect"),
                total_pairs=_int(raw.get("totalPairs"), f"attempt {idx} totalPairs"),
                timestamp=timestamp if isinstance(timestamp, int) and not isinstance(timestamp, bool) else None,
            )
        )

    score = payload.get("score")
    if not isinstance(score, dict):
        raise MalformedSubmission("score must be an object")
    hints = payload.get("hints") or []
    if not isinstance(hints, list) or not all(isinstance(h, str) for h in hints):
        raise MalformedSubmission("hints must be a list of strings")

    return OrderSubmission(
        ordering=ordering,
        attempts=attempts,
        score={"attempts": _int(score.get("attempts"), "score.attempts")},
        hints=list(hints),
    )


def validate_order_submission(submission: OrderSubmission, events: Sequence) -> List[scoring.AttemptEvaluation]:
    """
    Recompute an order-mode play against ``events`` and return the server's
    evaluation of every attempt.

    Checks run in a fixed order and stop at the first failure: asserted
    score, final ordering solves, every attempt is a full ordering with
    matching feedback and pair counts, last attempt solved and equal to the
    final ordering.
    """
    if submission.score.get("attempts") != len(submission.attempts):
        raise ScoreMismatch("attempts count does not match score")

    if not scoring.would_solve(submission.ordering, events):
        raise NotSolved("final ordering does not solve puzzle")

    truth = scoring.correct_order(events)
    evaluations: List[scoring.AttemptEvaluation] = []
    for idx, attempt in enumerate(submission.attempts, start=1):
        problem = scoring.ordering_problem(attempt.ordering, truth)
        if problem:
            raise AttemptOrderingInvalid(idx, problem)
        server = scoring.evaluate_ordering(attempt.ordering, events)
        if not scoring.arrays_equal(attempt.feedback, server.feedback):
            raise AttemptFeedbackMismatch(idx)
        if attempt.pairs_correct != server.pairs_correct or attempt.total_pairs != server.total_pairs:
            raise AttemptPairsMismatch(idx)
        evaluations.append(server)

    if not evaluations or not evaluations[-1].solved:
        raise FinalAttemptNotSolved("final attempt is not solved")
    if evaluations[-1].ordering != submission.ordering:
        raise FinalAttemptNotSolved("final attempt does not match the submitted ordering")

    return evaluations


@dataclass
class RangeGuess:
    start: int
    end: int
    hints_used: int


def parse_range_guess(payload: Dict[str, Any]) -> RangeGuess:
    if not isinstance(payload, dict):
        raise MalformedSubmission("guess must be a JSON object")
    start, end, hints = payload.get("start"), payload.get("end"), payload.get("hintsUsed", 0)
    for label, value in (("start", start), ("end", end), ("hintsUsed", hints)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise MalformedSubmission(f"{label} must be an integer")
    return RangeGuess(start=start, end=end, hints_used=hints)


def validate_range_guess(
    guess: RangeGuess,
    target_year: int,
    previous: Sequence[Dict[str, Any]] = (),
    current_year: Optional[int] = None,
) -> scoring.RangeScore:
    """
    Score a range guess from the stored target year.

    ``previous`` holds the guesses already recorded on the play; hints cannot
    go down between guesses and a play never takes more than MAX_GUESSES.
    """
    errors = scoring.validate_range_submission(
        guess.start, guess.end, current_range_count=len(previous), current_year=current_year
    )
    if errors:
        first = errors[0]
        raise RangeRejected(first["field"], first["message"])

    if guess.hints_used < 0 or guess.hints_used > scoring.MAX_HINTS:
        raise RangeRejected("hintsUsed", f"hintsUsed must be between 0 and {scoring.MAX_HINTS} inclusive")
    if previous and guess.hints_used < int(previous[-1].get("hintsUsed", 0)):
        raise RangeRejected("hintsUsed", "hintsUsed cannot decrease between guesses")

    return scoring.score_range_detailed(guess.start, guess.end, target_year, guess.hints_used)
