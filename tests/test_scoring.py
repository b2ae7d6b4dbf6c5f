import statistics

import pytest

from almeta.scoring import calculate_score, mean, std_deviation_and_mean


def test_mean_of_empty_is_none():
    assert mean([]) is None


@pytest.mark.parametrize("data", [[1], [3, 5], [1, 2, 3, 4], [-7, 0, 7, 100]])
def test_mean_matches_statistics(data):
    assert mean(data) == pytest.approx(statistics.fmean(data))


@pytest.mark.parametrize("data", [[], [4], [4, 9]])
def test_too_few_values_give_none(data):
    assert std_deviation_and_mean(data) is None
    assert calculate_score(data) is None


def test_worked_example():
    assert std_deviation_and_mean([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx((2.0, 5.0))


@pytest.mark.parametrize("data", [[1, 2, 3], [10, 0, 4, 8], [-5, 5, 0, 20, 3]])
def test_deviation_is_population_deviation(data):
    deviation, data_mean = std_deviation_and_mean(data)
    assert deviation == pytest.approx(statistics.pstdev(data))
    assert data_mean == pytest.approx(statistics.fmean(data))


@pytest.mark.parametrize("data", [[1, 2, 3], [10, 0, 4, 8], [-5, 5, 0, 20, 3]])
def test_bounds_straddle_mean(data):
    ucb, lcb = calculate_score(data)
    assert ucb >= lcb
    assert (ucb + lcb) / 2 == pytest.approx(mean(data))
    assert (ucb - lcb) / 2 == pytest.approx(statistics.pstdev(data))


def test_constant_data_has_equal_bounds():
    assert calculate_score([6, 6, 6, 6]) == (6.0, 6.0)