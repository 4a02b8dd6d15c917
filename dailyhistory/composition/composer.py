# dailyhistory/composition/composer.py
"""
Judge-driven puzzle composition.

``compose_with_retries`` walks a caller-supplied candidate source one year at
a time. Each attempt ends in exactly one AttemptStatus and is returned in the
result's attempt log, so callers can see how the run went without re-running
it. The orchestrator only reacts to success or exception from the judge.
"""
from __future__ import annotations

import enum
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from dailyhistory.composition.judge import (
    PUZZLE_SIZE,
    PuzzleJudgment,
    era_for_year,
    judge_puzzle_composition,
)
from dailyhistory.errors import CompositionExhausted, CompositionRejected

log = logging.getLogger(__name__)

MAX_COMPOSITION_ATTEMPTS = 3

Judge = Callable[[int, str, Sequence[str]], PuzzleJudgment]
Candidate = Tuple[int, List[str]]
CandidateSource = Callable[[], Optional[Candidate]]


class AttemptStatus(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    ERRORED = "errored"
    INSUFFICIENT = "insufficient"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class AttemptRecord:
    year: int
    status: AttemptStatus
    reason: str = ""
    judgment: Optional[PuzzleJudgment] = None

    @property
    def judged(self) -> bool:
        return self.status in (AttemptStatus.APPROVED, AttemptStatus.REJECTED)


@dataclass
class CompositionResult:
    status: str  # "success" | "failed"
    attempts: int
    reason: str = ""
    year: Optional[int] = None
    ordered_events: List[str] = field(default_factory=list)
    judgment: Optional[PuzzleJudgment] = None
    last_judgment: Optional[PuzzleJudgment] = None
    attempted_years: List[int] = field(default_factory=list)
    attempt_log: List[AttemptRecord] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


def ensure_approved(judgment: PuzzleJudgment) -> PuzzleJudgment:
    if not judgment.approved:
        raise CompositionRejected("; ".join(judgment.issues) or "Below quality threshold", judgment)
    return judgment


def judge_attempt(year: int, events: Sequence[str], judge: Judge = judge_puzzle_composition) -> AttemptRecord:
    """Run one attempt. Never raises: judge exceptions become ERRORED."""
    if len(events) < PUZZLE_SIZE:
        return AttemptRecord(
            year=year,
            status=AttemptStatus.INSUFFICIENT,
            reason=f"Need at least {PUZZLE_SIZE} events, got {len(events)}",
        )

    try:
        judgment = judge(abs(year), era_for_year(year), list(events)[:PUZZLE_SIZE])
    except Exception as exc:  # noqa: BLE001
        log.warning("[composer] judge failed for %s: %s", year, exc)
        return AttemptRecord(year=year, status=AttemptStatus.ERRORED, reason=str(exc) or exc.__class__.__name__)

    try:
        ensure_approved(judgment)
    except CompositionRejected as exc:
        log.info("[composer] %s rejected (quality=%.3f): %s", year, judgment.quality_score, exc.reason)
        return AttemptRecord(year=year, status=AttemptStatus.REJECTED, reason=exc.reason, judgment=exc.judgment)

    log.info("[composer] %s approved (quality=%.3f)", year, judgment.quality_score)
    return AttemptRecord(year=year, status=AttemptStatus.APPROVED, judgment=judgment)


def compose_with_judge(year: int, events: Sequence[str], judge: Judge = judge_puzzle_composition) -> CompositionResult:
    """Single-shot composition for one year."""
    record = judge_attempt(year, events, judge)
    attempts = 0 if record.status == AttemptStatus.INSUFFICIENT else 1
    if record.status == AttemptStatus.APPROVED:
        return CompositionResult(
            status="success",
            attempts=attempts,
            year=year,
            ordered_events=list(record.judgment.recommended),
            judgment=record.judgment,
            attempted_years=[year],
            attempt_log=[record],
        )
    return CompositionResult(
        status="failed",
        attempts=attempts,
        reason=record.reason,
        last_judgment=record.judgment,
        attempted_years=[year],
        attempt_log=[record],
    )


def compose_with_retries(
    candidate_source: CandidateSource,
    max_attempts: int = MAX_COMPOSITION_ATTEMPTS,
    judge: Judge = judge_puzzle_composition,
) -> CompositionResult:
    """
    Try up to ``max_attempts`` candidates from ``candidate_source``.

    Terminal outcomes:
      - success on the first approved candidate, carrying the judge's ordering
      - failed, "No more year candidates available", when the source is empty
      - failed, "All N attempts failed", when the budget runs out

    A year the source hands back twice is logged as DUPLICATE and not judged
    again.
    """
    attempted_years: List[int] = []
    log_entries: List[AttemptRecord] = []
    last_judgment: Optional[PuzzleJudgment] = None

    for attempt in range(max_attempts):
        candidate = candidate_source()
        if candidate is None:
            return CompositionResult(
                status="failed",
                attempts=attempt,
                reason="No more year candidates available",
                last_judgment=last_judgment,
                attempted_years=attempted_years,
                attempt_log=log_entries,
            )

        year, events = candidate
        if year in attempted_years:
            record = AttemptRecord(year=year, status=AttemptStatus.DUPLICATE, reason=f"Year {year} already attempted")
        else:
            attempted_years.append(year)
            record = judge_attempt(year, events, judge)
        log_entries.append(record)
        if record.judged:
            last_judgment = record.judgment

        if record.status == AttemptStatus.APPROVED:
            return CompositionResult(
                status="success",
                attempts=attempt + 1,
                year=year,
                ordered_events=list(record.judgment.recommended),
                judgment=record.judgment,
                last_judgment=record.judgment,
                attempted_years=attempted_years,
                attempt_log=log_entries,
            )

        log.warning(
            "[composer] year %s %s (attempt %s/%s): %s",
            year, record.status.value, attempt + 1, max_attempts, record.reason,
        )

    return CompositionResult(
        status="failed",
        attempts=max_attempts,
        reason=f"All {max_attempts} attempts failed",
        last_judgment=last_judgment,
        attempted_years=attempted_years,
        attempt_log=log_entries,
    )


def legacy_shuffle_events(events: Sequence[str], rng: Optional[random.Random] = None) -> List[str]:
    """Fisher-Yates on a copy, cut to six. No quality check."""
    rng = rng or random
    shuffled = list(events)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(rng.random() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled[:PUZZLE_SIZE]


def require_composition(result: CompositionResult) -> CompositionResult:
    """Pass a successful result through; raise CompositionExhausted otherwise."""
    if not result.succeeded:
        raise CompositionExhausted(result)
    return result
