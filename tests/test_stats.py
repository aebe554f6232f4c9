"""Tests for rounding helpers."""

import pytest

from monitor_ia.stats import mean, percent, round_half_up


@pytest.mark.parametrize('value, ndigits, expected', [
    (2.5, 0, 3),
    (0.5, 0, 1),
    (1.25, 1, 1.3),
    (2 / 3, 2, 0.67),
    (7 / 3, 1, 2.3),
])
def test_round_half_up(value, ndigits, expected):
    assert round_half_up(value, ndigits) == expected


def test_percent():
    assert percent([1, 2, 3], lambda n: n > 1) == 67
    assert percent([], lambda n: True) == 0


def test_mean():
    assert mean([1, 2]) == 1.5
    assert mean([]) == 0
