# dailyhistory/engine/scoring.py
"""
Pure scoring for both game modes.

Range mode: containment is binary. A contained guess earns the hint tier's
ceiling scaled down quadratically with width, bottoming out at ``FLOOR`` of
the ceiling for a ``W_MAX``-wide guess. A missed target scores 0.

Order mode: per-position feedback plus pairwise accuracy against the
chronological order (year ascending, ties broken by event id).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

W_MAX = 250
FLOOR = 0.04
TIER_CEILINGS = (100, 85, 70, 55, 45, 35, 25)  # indexed by hints used
MAX_HINTS = len(TIER_CEILINGS) - 1
MAX_GUESSES = 6
MIN_YEAR = -9999

CORRECT = "correct"
INCORRECT = "incorrect"


# ---------------------------------------------------------------------------
# Range mode
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class RangeScore:
    contained: bool
    width: int
    base_score: int
    score: int

    def to_dict(self) -> dict:
        return {
            "contained": self.contained,
            "width": self.width,
            "baseScore": self.base_score,
            "score": self.score,
        }


def _require_year(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{label} must be a finite number")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"{label} must be a finite number")
        if not value.is_integer():
            raise ValueError(f"{label} must be a whole year")
    return int(value)


def range_width(start: int, end: int) -> int:
    return end - start + 1


def range_contains_target(start: int, end: int, target: int) -> bool:
    return start <= target <= end


def width_factor(width: int) -> float:
    return 1 - ((width - 1) / (W_MAX - 1)) ** 2 * (1 - FLOOR)


def score_range_detailed(start, end, target, hints_used: int = 0) -> RangeScore:
    """
    Score a range guess. Raises ValueError for input that is out of bounds
    rather than scoring it.
    """
    start = _require_year(start, "start")
    end = _require_year(end, "end")
    target = _require_year(target, "target")
    if isinstance(hints_used, bool) or not isinstance(hints_used, int):
        raise ValueError("hintsUsed must be an integer between 0 and 6 inclusive")
    if hints_used < 0 or hints_used > MAX_HINTS:
        raise ValueError(f"hintsUsed must be between 0 and {MAX_HINTS} inclusive")
    if start > end:
        raise ValueError("start year must not be after end year")

    width = range_width(start, end)
    if width > W_MAX:
        raise ValueError(f"range width {width} exceeds maximum of {W_MAX} years")

    ceiling = TIER_CEILINGS[hints_used]
    if not range_contains_target(start, end, target):
        return RangeScore(contained=False, width=width, base_score=ceiling, score=0)

    score = math.floor(ceiling * width_factor(width))
    return RangeScore(contained=True, width=width, base_score=ceiling, score=score)


def score_range(start, end, target, hints_used: int = 0) -> int:
    return score_range_detailed(start, end, target, hints_used).score


def validate_range_submission(
    start, end, current_range_count: Optional[int] = None, current_year: Optional[int] = None
) -> List[Dict[str, str]]:
    """
    Collect every problem with a range submission as ``{"field", "message"}``
    dicts. An empty list means the submission may be scored.
    """
    errors: List[Dict[str, str]] = []
    latest = current_year if current_year is not None else date.today().year

    for label, value in (("start", start), ("end", end)):
        try:
            year = _require_year(value, label)
        except ValueError as exc:
            errors.append({"field": label, "message": str(exc)})
            continue
        if year < MIN_YEAR or year > latest:
            errors.append({"field": label, "message": f"Please enter a year between {MIN_YEAR} and {latest}"})
    if errors:
        return errors

    if start > end:
        return [{"field": "range", "message": "Start year must be before end year"}]

    if range_width(int(start), int(end)) > W_MAX:
        errors.append({"field": "width", "message": f"Range must be {W_MAX} years or narrower"})

    if current_range_count is not None and current_range_count >= MAX_GUESSES:
        errors.append({"field": "rangeCount", "message": "You've used all ranges for this puzzle"})

    return errors


# ---------------------------------------------------------------------------
# Order mode
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class AttemptEvaluation:
    ordering: List[str]
    feedback: List[str]
    pairs_correct: int
    total_pairs: int

    @property
    def solved(self) -> bool:
        return is_solved(self.feedback)

    def to_dict(self) -> dict:
        return {
            "ordering": list(self.ordering),
            "feedback": list(self.feedback),
            "pairsCorrect": self.pairs_correct,
            "totalPairs": self.total_pairs,
        }


def _event_fields(event) -> tuple:
    if isinstance(event, dict):
        return str(event["id"]), int(event["year"])
    return str(event.id), int(event.year)


def correct_order(events: Sequence) -> List[str]:
    """Event ids earliest first; equal years fall back to id order."""
    keyed = sorted((_event_fields(e)[1], _event_fields(e)[0]) for e in events)
    return [event_id for _, event_id in keyed]


def position_feedback(ordering: Sequence[str], truth: Sequence[str]) -> List[str]:
    return [
        CORRECT if idx < len(truth) and event_id == truth[idx] else INCORRECT
        for idx, event_id in enumerate(ordering)
    ]


def count_correct_pairs(ordering: Sequence[str], truth: Sequence[str]) -> tuple:
    """Pairs placed in true relative order. A pair with an unknown id is never correct."""
    n = len(ordering)
    total = n * (n - 1) // 2
    position = {event_id: idx for idx, event_id in enumerate(truth)}
    correct = 0
    for i in range(n):
        for j in range(i + 1, n):
            a, b = position.get(ordering[i]), position.get(ordering[j])
            if a is not None and b is not None and a < b:
                correct += 1
    return correct, total


def ordering_problem(ordering: Sequence[str], truth: Sequence[str]) -> Optional[str]:
    """Why ``ordering`` is not a permutation of ``truth``, or None if it is."""
    if len(ordering) != len(truth):
        return f"expected {len(truth)} events, got {len(ordering)}"
    known = set(truth)
    unknown = [event_id for event_id in ordering if event_id not in known]
    if unknown:
        return f"unknown event ids: {', '.join(unknown)}"
    if len(set(ordering)) != len(ordering):
        return "duplicate event ids"
    return None


def evaluate_ordering(ordering: Sequence[str], events: Sequence) -> AttemptEvaluation:
    """Positional feedback and pair counts. Raises ValueError unless ``ordering`` covers every event once."""
    truth = correct_order(events)
    ordering = [str(x) for x in ordering]
    problem = ordering_problem(ordering, truth)
    if problem:
        raise ValueError(problem)
    pairs_correct, total_pairs = count_correct_pairs(ordering, truth)
    return AttemptEvaluation(
        ordering=ordering,
        feedback=position_feedback(ordering, truth),
        pairs_correct=pairs_correct,
        total_pairs=total_pairs,
    )


def would_solve(ordering: Sequence[str], events: Sequence) -> bool:
    truth = correct_order(events)
    return len(ordering) == len(truth) and all(str(a) == b for a, b in zip(ordering, truth))


def is_solved(feedback: Sequence[str]) -> bool:
    return bool(feedback) and all(f == CORRECT for f in feedback)


def arrays_equal(a: Sequence, b: Sequence) -> bool:
    return len(a) == len(b) and all(x == y for x, y in zip(a, b))


def correct_positions(feedback: Sequence[str]) -> int:
    return sum(1 for f in feedback if f == CORRECT)


def accuracy_percent(pairs_correct: int, total_pairs: int) -> int:
    if total_pairs == 0:
        return 0
    return round(pairs_correct / total_pairs * 100)


def format_progress(evaluation: AttemptEvaluation) -> str:
    return f"{correct_positions(evaluation.feedback)}/{len(evaluation.feedback)} correct"


def order_score(attempts: Sequence) -> Dict[str, int]:
    return {"attempts": len(attempts)}
