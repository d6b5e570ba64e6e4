import pytest
from hypothesis import given, strategies as st

from cupodds.betting.utils import (
    american_odds_to_implied_probability,
    american_to_decimal,
    decimal_to_american,
    normalise_american_odds,
    probability_to_american_odds,
)


@pytest.mark.parametrize(
    ("probability", "expected"),
    [
        (0.7, -233),
        (0.3, 233),
        (0.5, -100),
        (0.25, 300),
        (0.8, -400),
    ],
)
def test_probability_to_american_odds(probability: float, expected: int) -> None:
    assert probability_to_american_odds(probability) == expected


@pytest.mark.parametrize("probability", [0.0, 1.0, -0.2, 1.5])
def test_probability_extremes_have_no_price(probability: float) -> None:
    assert probability_to_american_odds(probability) is None


@given(st.floats(min_value=0.001, max_value=0.999, allow_nan=False))
def test_odds_round_trip(probability: float) -> None:
    odds = probability_to_american_odds(probability)

    assert odds is not None
    assert abs(american_odds_to_implied_probability(odds) - probability) < 0.002


def test_american_decimal_conversions() -> None:
    assert american_to_decimal(+150) == pytest.approx(2.5)
    assert american_to_decimal("-200") == pytest.approx(1.5)
    assert decimal_to_american(2.5) == 150
    assert decimal_to_american(1.5) == -200
    assert normalise_american_odds("120") == 120


def test_zero_american_odds_rejected() -> None:
    with pytest.raises(ValueError):
        american_to_decimal(0)
