"""Reusable betting math helpers for odds and probabilities."""

from __future__ import annotations

import math

OddsValue = int | float | str

__all__ = [
    "OddsValue",
    "normalise_american_odds",
    "american_to_decimal",
    "decimal_to_american",
    "implied_probability_from_decimal",
    "american_odds_to_implied_probability",
    "probability_to_american_odds",
]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalise_american_odds(value: OddsValue) -> int:
    """Coerce American odds into a signed integer."""

    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(round(value))
    stripped = value.strip()
    if not stripped:
        raise ValueError("Empty odds value")
    if stripped[0] in {"+", "-"}:
        return int(stripped)
    return int(f"+{stripped}")


def american_to_decimal(value: OddsValue) -> float:
    """Convert an American price into European decimal odds."""

    price = normalise_american_odds(value)
    if price == 0:
        raise ValueError("American odds cannot be zero")
    if price > 0:
        return 1.0 + price / 100.0
    return 1.0 + 100.0 / -price


def decimal_to_american(decimal_odds: float) -> int:
    """Convert decimal odds to their American representation."""

    if decimal_odds <= 1.0:
        raise ValueError("Decimal odds must exceed 1.0")
    if decimal_odds >= 2.0:
        return int(round((decimal_odds - 1.0) * 100.0))
    return int(round(-100.0 / (decimal_odds - 1.0)))


def implied_probability_from_decimal(decimal_odds: float) -> float:
    """Return the implied win probability from decimal odds."""

    if decimal_odds <= 1.0:
        raise ValueError("Decimal odds must exceed 1.0")
    return 1.0 / decimal_odds


def american_odds_to_implied_probability(value: OddsValue) -> float:
    """Return the implied probability from American odds."""

    decimal = american_to_decimal(value)
    return implied_probability_from_decimal(decimal)


def probability_to_american_odds(probability: float) -> int | None:
    """Convert a simulated probability into an American price.

    Favourites (``probability >= 0.5``) get negative odds, underdogs
    positive.  Certain outcomes and impossible outcomes have no price, so
    ``None`` is returned outside the open interval ``(0, 1)``.  Halves round
    towards positive infinity, so ``0.5`` prices at ``-100``.
    """

    if probability <= 0.0 or probability >= 1.0:
        return None
    if probability >= 0.5:
        return _round_half_up(probability / (1.0 - probability) * -100.0)
    return _round_half_up((1.0 - probability) / probability * 100.0)
