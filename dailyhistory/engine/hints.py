# dailyhistory/engine/hints.py
"""
Order-mode hints.

There are exactly three kinds and every operation here branches over all of
them explicitly; adding a kind means touching each function below.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Tuple, Union

from dailyhistory.engine.prng import SeededRandom, hash_parts
from dailyhistory.engine.scoring import correct_order

ANCHOR = "anchor"
RELATIVE = "relative"
BRACKET = "bracket"
HINT_KINDS = (ANCHOR, RELATIVE, BRACKET)

BRACKET_WIDTH = 100


@dataclass(frozen=True)
class AnchorHint:
    event_id: str
    position: int


@dataclass(frozen=True)
class RelativeHint:
    earlier_event_id: str
    later_event_id: str


@dataclass(frozen=True)
class BracketHint:
    event_id: str
    year_range: Tuple[int, int]


OrderHint = Union[AnchorHint, RelativeHint, BracketHint]


class NoHintAvailable(ValueError):
    pass


def serialize_hint(hint: OrderHint) -> str:
    if isinstance(hint, AnchorHint):
        return f"{ANCHOR}:{hint.event_id}:{hint.position}"
    if isinstance(hint, RelativeHint):
        return f"{RELATIVE}:{hint.earlier_event_id}:{hint.later_event_id}"
    if isinstance(hint, BracketHint):
        lo, hi = hint.year_range
        return f"{BRACKET}:{hint.event_id}:{lo}-{hi}"
    raise TypeError(f"unknown hint type: {type(hint).__name__}")


def _parse_year_range(raw: str) -> Tuple[int, int]:
    # "lo-hi" where either bound may itself be negative, e.g. "-200--101"
    sep = raw.find("-", 1)
    if sep == -1:
        raise ValueError(f"bad year range: {raw!r}")
    return int(raw[:sep]), int(raw[sep + 1:])


def parse_hint(serialized: str) -> OrderHint:
    kind, _, rest = serialized.partition(":")
    if kind == ANCHOR:
        event_id, _, position = rest.rpartition(":")
        return AnchorHint(event_id=event_id, position=int(position))
    if kind == RELATIVE:
        earlier, _, later = rest.partition(":")
        if not earlier or not later:
            raise ValueError(f"bad relative hint: {serialized!r}")
        return RelativeHint(earlier_event_id=earlier, later_event_id=later)
    if kind == BRACKET:
        event_id, _, year_range = rest.partition(":")
        return BracketHint(event_id=event_id, year_range=_parse_year_range(year_range))
    raise ValueError(f"unknown hint kind: {kind!r}")


def hint_to_dict(hint: OrderHint) -> Dict[str, Any]:
    if isinstance(hint, AnchorHint):
        return {"type": ANCHOR, "eventId": hint.event_id, "position": hint.position}
    if isinstance(hint, RelativeHint):
        return {"type": RELATIVE, "earlierEventId": hint.earlier_event_id, "laterEventId": hint.later_event_id}
    if isinstance(hint, BracketHint):
        return {"type": BRACKET, "eventId": hint.event_id, "yearRange": list(hint.year_range)}
    raise TypeError(f"unknown hint type: {type(hint).__name__}")


def merge_hints(*groups: Iterable[OrderHint]) -> List[OrderHint]:
    """Concatenate hint lists, dropping repeats while keeping first-seen order."""
    seen = set()
    merged: List[OrderHint] = []
    for group in groups:
        for hint in group:
            key = serialize_hint(hint)
            if key in seen:
                continue
            seen.add(key)
            merged.append(hint)
    return merged


def hint_seed(puzzle_seed, kind: str, current_order: Sequence[str], hints_used: int) -> int:
    return hash_parts([puzzle_seed, kind, "-".join(current_order), hints_used])


def bracket_for_year(year: int) -> Tuple[int, int]:
    lo = year - year % BRACKET_WIDTH
    return lo, lo + BRACKET_WIDTH - 1


def _pick(rng: SeededRandom, options: list):
    return options[rng.randbelow(len(options))]


def generate_hint(
    kind: str,
    events: Sequence,
    current_order: Sequence[str],
    existing: Sequence[OrderHint] = (),
    puzzle_seed=0,
) -> OrderHint:
    """
    Produce the next hint of ``kind`` for a player whose board currently reads
    ``current_order``. The choice is deterministic for a given board state.

    Raises NoHintAvailable when every hint of that kind has been given.
    """
    if kind not in HINT_KINDS:
        raise ValueError(f"unknown hint kind: {kind!r}")

    current_order = [str(x) for x in current_order]
    truth = correct_order(events)
    truth_pos = {event_id: idx for idx, event_id in enumerate(truth)}
    rng = SeededRandom(hint_seed(puzzle_seed, kind, current_order, len(existing)))

    if kind == ANCHOR:
        anchored = {h.event_id for h in existing if isinstance(h, AnchorHint)}
        misplaced = [
            event_id for idx, event_id in enumerate(current_order)
            if event_id in truth_pos and truth_pos[event_id] != idx and event_id not in anchored
        ]
        options = misplaced or [event_id for event_id in truth if event_id not in anchored]
        if not options:
            raise NoHintAvailable("every event is already anchored")
        event_id = _pick(rng, options)
        return AnchorHint(event_id=event_id, position=truth_pos[event_id])

    if kind == RELATIVE:
        revealed = {
            (h.earlier_event_id, h.later_event_id) for h in existing if isinstance(h, RelativeHint)
        }
        inverted = []
        for i in range(len(current_order)):
            for j in range(i + 1, len(current_order)):
                a, b = current_order[i], current_order[j]
                if a in truth_pos and b in truth_pos and truth_pos[a] > truth_pos[b] and (b, a) not in revealed:
                    inverted.append((b, a))
        options = inverted or [
            (truth[k], truth[k + 1]) for k in range(len(truth) - 1) if (truth[k], truth[k + 1]) not in revealed
        ]
        if not options:
            raise NoHintAvailable("every relative pair is already revealed")
        earlier, later = _pick(rng, options)
        return RelativeHint(earlier_event_id=earlier, later_event_id=later)

    bracketed = {h.event_id for h in existing if isinstance(h, BracketHint)}
    years = {}
    for e in events:
        if isinstance(e, dict):
            years[str(e["id"])] = int(e["year"])
        else:
            years[str(e.id)] = int(e.year)
    options = [event_id for event_id in truth if event_id not in bracketed]
    if not options:
        raise NoHintAvailable("every event already has a bracket")
    event_id = _pick(rng, options)
    return BracketHint(event_id=event_id, year_range=bracket_for_year(years[event_id]))
