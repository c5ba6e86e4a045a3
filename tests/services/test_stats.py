from __future__ import annotations

import pytest

from academy.services.stats import mean, percent, percent_remaining, round2


@pytest.mark.parametrize(
    ("value", "expected"),
    [(12.345, 12.35), (0.125, 0.13), (33.333, 33.33), (62.5, 62.5), (0.0, 0.0)],
)
def test_round2_rounds_half_up(value: float, expected: float) -> None:
    assert round2(value) == expected


def test_percent() -> None:
    assert percent(1, 3) == 33.33
    assert percent(2, 3) == 66.67
    assert percent(4, 4) == 100.0
    assert percent(5, 0) == 0.0
    assert percent(2469, 20000) == 12.35


@pytest.mark.parametrize(
    ("part", "whole", "expected"),
    [(4, 10, 60.0), (2469, 20000, 87.66), (1, 3, 66.67), (3, 3, 0.0), (0, 0, 0.0)],
)
def test_percent_remaining_rounds_once(part: int, whole: int, expected: float) -> None:
    assert percent_remaining(part, whole) == expected


def test_mean() -> None:
    assert mean([100, 100, 50, 0]) == 62.5
    assert mean(iter([1, 2])) == 1.5
    assert mean([]) == 0.0
