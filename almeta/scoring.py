"""Latency scores built from the mean and standard deviation of observations."""

from __future__ import annotations

import math
from collections.abc import Sequence


def mean(data: Sequence[int]) -> float | None:
    """Return the mean of the data, or None if there is none."""
    if not data:
        return None
    return sum(data) / len(data)


def std_deviation_and_mean(data: Sequence[int]) -> tuple[float, float] | None:
    """Return (population standard deviation, mean), or None with fewer than three values."""
    data_mean = mean(data)
    if data_mean is None or len(data) <= 2:
        return None
    variance = sum((data_mean - value) ** 2 for value in data) / len(data)
    return math.sqrt(variance), data_mean


def calculate_score(observations: Sequence[int]) -> tuple[float, float] | None:
    """Return (upper bound, lower bound): the mean plus and minus one deviation."""
    result = std_deviation_and_mean(observations)
    if result is None:
        return None
    deviation, data_mean = result
    return data_mean + deviation, data_mean - deviation