# dailyhistory/engine/prng.py
"""
Deterministic randomness for daily puzzles.

Both constants blocks below are part of the puzzle wire format: changing any
of them changes every puzzle generated from then on.
"""
from __future__ import annotations

from typing import Iterable, Tuple

# FNV-1a, 32-bit
FNV_OFFSET_BASIS = 0x811C9DC5  # 2166136261
FNV_PRIME = 0x01000193  # 16777619

# Mulberry32
MULBERRY_INCREMENT = 0x6D2B79F5

_MASK = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK


def fnv1a(text: str) -> int:
    h = FNV_OFFSET_BASIS
    for byte in text.encode("utf-8"):
        h ^= byte
        h = _imul(h, FNV_PRIME)
    return h


def date_seed(salt: str, date_key: str) -> int:
    """Stable per-day seed from ``salt`` and a YYYY-MM-DD date key."""
    return fnv1a(f"{salt}:{date_key}")


def initial_state(seed: int) -> int:
    return (seed & _MASK) or MULBERRY_INCREMENT


def next_float(state: int) -> Tuple[float, int]:
    """Advance one step. Returns a float in [0, 1) and the new state."""
    state = (state + MULBERRY_INCREMENT) & _MASK
    t = state
    t = _imul(t ^ (t >> 15), t | 1)
    t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK
    t = (t ^ (t >> 14)) & _MASK
    return t / 4294967296, state


class SeededRandom:
    """Stateful convenience wrapper around :func:`next_float`."""

    def __init__(self, seed: int = 0, state: int | None = None):
        self.state = initial_state(seed) if state is None else state & _MASK

    def random(self) -> float:
        value, self.state = next_float(self.state)
        return value

    def randbelow(self, n: int) -> int:
        return int(self.random() * n)

    def shuffle(self, items: list) -> None:
        for i in range(len(items) - 1, 0, -1):
            j = self.randbelow(i + 1)
            items[i], items[j] = items[j], items[i]


def hash_parts(parts: Iterable[object]) -> int:
    """FNV-1a over several chunks, mixing in each chunk's length."""
    h = FNV_OFFSET_BASIS
    for part in parts:
        chunk = str(part)
        for byte in chunk.encode("utf-8"):
            h ^= byte
            h = _imul(h, FNV_PRIME)
        h ^= len(chunk) & _MASK
        h = _imul(h, FNV_PRIME)
    return h
