"""Reproducible random streams for the odds simulations.

Simulated odds are cached and compared across processes, so every run for a
given set of teams must draw exactly the same sequence.  The generator is a
small linear congruential generator and the seed is a 32-bit string hash of
the sorted team identifiers.
"""

from __future__ import annotations

from typing import Iterable

__all__ = [
    "SeededRandom",
    "seed_from_identifiers",
    "seeded_random",
]

_MULTIPLIER = 9301
_INCREMENT = 49297
_MODULUS = 233280

_SEED_DELIMITER = "|"


def _to_int32(value: int) -> int:
    """Wrap ``value`` to a signed 32-bit two's complement integer."""

    value &= 0xFFFFFFFF
    if value & 0x80000000:
        return value - 0x100000000
    return value


def _utf16_code_units(text: str) -> Iterable[int]:
    encoded = text.encode("utf-16-le")
    for index in range(0, len(encoded), 2):
        yield encoded[index] | (encoded[index + 1] << 8)


def seed_from_identifiers(identifiers: Iterable[str]) -> int:
    """Return the non-negative 32-bit seed for a set of identifiers.

    Identifiers are sorted before hashing so callers may pass them in any
    order.  Characters outside the Basic Multilingual Plane contribute their
    two UTF-16 surrogate units.
    """

    joined = _SEED_DELIMITER.join(sorted(identifiers))
    acc = 0
    for code in _utf16_code_units(joined):
        acc = _to_int32((acc << 5) - acc + code)
    return abs(acc)


class SeededRandom:
    """Linear congruential generator returning floats in ``[0, 1)``."""

    __slots__ = ("seed",)

    def __init__(self, seed: int) -> None:
        if seed < 0:
            raise ValueError("Seed must be non-negative")
        self.seed = int(seed)

    def next(self) -> float:
        self.seed = (self.seed * _MULTIPLIER + _INCREMENT) % _MODULUS
        return self.seed / _MODULUS

    def __repr__(self) -> str:
        return f"SeededRandom(seed={self.seed})"


def seeded_random(identifiers: Iterable[str]) -> SeededRandom:
    """Build a :class:`SeededRandom` seeded from ``identifiers``."""

    return SeededRandom(seed_from_identifiers(identifiers))
