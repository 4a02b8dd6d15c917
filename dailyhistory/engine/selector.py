# dailyhistory/engine/selector.py
"""
Event selection for order-mode puzzles.

A selection draws ``count`` events from the pool with the seeded PRNG and keeps
the first draw whose year span fits the configured window. The date seed also
picks the window itself, so difficulty varies from day to day but every
server agrees on it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from dailyhistory.engine.prng import SeededRandom, date_seed
from dailyhistory.errors import SelectionExhausted

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    id: str
    year: int
    text: str

    def to_dict(self) -> dict:
        return {"id": self.id, "year": self.year, "text": self.text}


@dataclass(frozen=True)
class SelectionConfig:
    count: int = 6
    min_span: int = 500
    max_span: int = 5000
    exclude_years: frozenset = field(default_factory=frozenset)
    max_attempts: int = 20
    label: str = "wide"


@dataclass
class Selection:
    events: List[Candidate]
    attempts: int
    state: int  # PRNG state after the accepted draw
    used_fallback: bool = False
    config: Optional[SelectionConfig] = None

    @property
    def span(self) -> int:
        return calculate_span(self.events)


FALLBACK_MIN_SPAN = 500
FALLBACK_MAX_SPAN = 5000
FALLBACK_MAX_ATTEMPTS = 40


def calculate_span(events: Sequence[Candidate]) -> int:
    if not events:
        return 0
    years = [e.year for e in events]
    return max(years) - min(years)


def config_for_date(salt: str, date_key: str, exclude_years=()) -> SelectionConfig:
    """
    Pick the span window for a date.

    Roughly 15% of days are focused (50-500 years), 30% moderate (200-1500)
    and the rest wide (500-5000).
    """
    roll = date_seed(salt, date_key) % 100
    excluded = frozenset(exclude_years or ())
    if roll < 15:
        return SelectionConfig(6, 50, 500, excluded, 30, "focused")
    if roll < 45:
        return SelectionConfig(6, 200, 1500, excluded, 25, "moderate")
    return SelectionConfig(6, 500, 5000, excluded, 20, "wide")


def _draw(pool: Sequence[Candidate], count: int, rng: SeededRandom) -> List[Candidate]:
    # partial Fisher-Yates: the tail of the working copy is the sample
    items = list(pool)
    n = len(items)
    for i in range(n - 1, n - 1 - count, -1):
        j = rng.randbelow(i + 1)
        items[i], items[j] = items[j], items[i]
    return items[n - count:]


def _acceptable(subset: Sequence[Candidate], config: SelectionConfig) -> bool:
    span = calculate_span(subset)
    if span < config.min_span or span > config.max_span:
        return False
    return not any(e.year in config.exclude_years for e in subset)


def select_events(pool: Sequence[Candidate], seed: int, config: SelectionConfig) -> Selection:
    """
    Return the first draw of ``config.count`` events that satisfies the span and
    exclusion constraints. Attempt ``k`` is keyed by ``seed + k``.

    Raises SelectionExhausted once ``config.max_attempts`` draws have failed.
    """
    if config.count <= 0:
        raise ValueError("count must be positive")
    if len(pool) < config.count:
        raise SelectionExhausted(
            0, config.min_span, config.max_span,
            reason=f"pool has {len(pool)} events, need {config.count}",
        )

    for attempt in range(config.max_attempts):
        rng = SeededRandom(seed + attempt)
        subset = _draw(pool, config.count, rng)
        if _acceptable(subset, config):
            return Selection(events=subset, attempts=attempt + 1, state=rng.state, config=config)

    raise SelectionExhausted(config.max_attempts, config.min_span, config.max_span)


def fallback_config(config: SelectionConfig) -> SelectionConfig:
    return replace(
        config,
        min_span=FALLBACK_MIN_SPAN,
        max_span=FALLBACK_MAX_SPAN,
        max_attempts=FALLBACK_MAX_ATTEMPTS,
        label="fallback",
    )


def select_with_fallback(pool: Sequence[Candidate], seed: int, config: SelectionConfig) -> Selection:
    """
    Run :func:`select_events`, retrying once with the wide fallback window.

    Fallback seeds continue where the primary attempts stopped, so the two
    passes never repeat a draw. Only a failure of both passes propagates.
    """
    try:
        return select_events(pool, seed, config)
    except SelectionExhausted as exc:
        log.warning(
            "[selector] span %s-%s exhausted after %s attempts (%s), falling back to wide window",
            config.min_span, config.max_span, exc.attempts, exc.reason,
        )

    wide = fallback_config(config)
    selection = select_events(pool, seed + config.max_attempts, wide)
    selection.attempts += config.max_attempts
    selection.used_fallback = True
    return selection


def shuffle_events(events: Sequence[Candidate], state: int) -> List[Candidate]:
    """Presentation order: Fisher-Yates driven by the PRNG from ``state``."""
    rng = SeededRandom(state=state)
    shuffled = list(events)
    rng.shuffle(shuffled)
    return shuffled
