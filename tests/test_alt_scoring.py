import math

import pytest

from almeta.alt_scoring import (
    NeighborInfo,
    calculate_cb,
    collect_all_observations,
    percentile,
)


def test_percentile_90_of_ten_is_largest():
    assert percentile([3, 1, 2, 5, 4, 6, 7, 9, 8, 10], 0.9) == 10


def test_percentile_single_value():
    assert percentile([5.0], 0.9) == 5.0


def test_percentile_empty_raises():
    with pytest.raises(ValueError):
        percentile([], 0.5)


def test_percentile_out_of_range_raises():
    with pytest.raises(ValueError):
        percentile([1.0, 2.0], 1.0)


def test_calculate_cb_single_observation_has_no_margin():
    assert calculate_cb([4.0], 1.0) == (4.0, 4.0)


def test_calculate_cb_is_symmetric_around_percentile():
    data = [1.0, 2.0, 3.0, 4.0, 5.0]
    ucb, lcb = calculate_cb(data, 0.5)
    assert ucb > lcb
    assert math.isclose((ucb + lcb) / 2, percentile(data, 0.9))


def test_calculate_cb_margin_grows_with_c():
    data = [1.0, 2.0, 3.0, 4.0]
    narrow = calculate_cb(data, 0.5)
    wide = calculate_cb(data, 2.0)
    assert wide[0] - wide[1] > narrow[0] - narrow[1]


def test_collect_all_observations_subtracts_first_sighting():
    result = collect_all_observations({1: 5.0, 2: 7.0}, {1: 0.0, 2: 0.0})
    assert sorted(result) == [5.0, 7.0]


def test_collect_all_observations_missing_first_sighting_raises():
    with pytest.raises(KeyError):
        collect_all_observations({1: 5.0}, {})


def test_observe_does_not_create_first_sighting():
    info = NeighborInfo()
    info.observe("a", 1, 3.0)
    assert 1 not in info.first_observed
    assert info.observations == {"a": {1: 3.0}}


def test_observe_lowers_known_first_sighting():
    info = NeighborInfo()
    info.first_observed[1] = 5.0
    info.observe("a", 1, 3.0)
    assert info.first_observed[1] == 3.0
    info.observe("b", 1, 4.0)
    assert info.first_observed[1] == 3.0


def test_who_to_purge_empty_is_none():
    assert NeighborInfo().who_to_purge(0.5) is None


def test_who_to_purge_picks_slow_neighbor():
    info = NeighborInfo()
    info.first_observed[1] = 0.0
    info.observe("a", 1, 0.0)
    info.observe("b", 1, 10.0)
    assert info.who_to_purge(0.5) == "b"


def test_who_to_purge_equal_neighbors_is_none():
    info = NeighborInfo()
    info.first_observed[1] = 0.0
    info.observe("a", 1, 2.0)
    info.observe("b", 1, 2.0)
    assert info.who_to_purge(0.5) is None


def test_who_to_purge_without_first_sighting_raises():
    info = NeighborInfo()
    info.observe("a", 1, 2.0)
    with pytest.raises(KeyError):
        info.who_to_purge(0.5)


def test_collect_garbage_after_limit():
    info = NeighborInfo()
    info.first_observed.update({1: 5.0, 2: 20.0})
    info.observe("a", 1, 5.0)
    info.observe("a", 2, 20.0)
    info.collect_garbage_after_limit(12.0)
    assert info.observations == {"a": {2: 20.0}}
    assert info.first_observed == {2: 20.0}


def test_collect_garbage_last_30s_keeps_earliest_thirty():
    info = NeighborInfo()
    for packet_id in range(35):
        info.first_observed[packet_id] = float(packet_id)
        info.observe("a", packet_id, float(packet_id))
    info.collect_garbage_last_30s()
    assert set(info.observations["a"]) == set(range(30))
    assert set(info.first_observed) == set(range(30))