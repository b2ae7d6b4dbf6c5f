"""Neighbour purging by confidence bounds on the 90th percentile of relay delays."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .ids import PeerID

_RECENT_LIMIT = 30


def percentile(observations: Sequence[float], fraction: float) -> float:
    """Return the observation at the given fraction of the sorted data."""
    ordered = sorted(observations)
    if not ordered:
        raise ValueError("no observations to take a percentile of")
    index = math.floor(fraction * len(ordered))
    if not 0 <= index < len(ordered):
        raise ValueError(f"fraction {fraction} is outside the observations")
    return ordered[index]


def calculate_cb(observations: Sequence[float], c: float) -> tuple[float, float]:
    """Return (upper, lower) confidence bounds around the 90th percentile."""
    percentile_90 = percentile(observations, 0.9)
    count = len(observations)
    margin = c * math.sqrt(math.log(count) / (2.0 * count))
    return percentile_90 + margin, percentile_90 - margin


def collect_all_observations(
    observations_map: Mapping[int, float], first_observed: Mapping[int, float]
) -> list[float]:
    """Return each observation's delay behind the first sighting of its packet.

    Raises KeyError if a packet has no first sighting recorded.
    """
    return [
        observation - first_observed[packet_id]
        for packet_id, observation in observations_map.items()
    ]


@dataclass
class NeighborInfo:
    """Observations of when each neighbour delivered which packet."""

    first_observed: dict[int, float] = field(default_factory=dict)
    observations: dict[PeerID, dict[int, float]] = field(default_factory=dict)

    def observe(self, peer_id: str, packet_id: int, observation: float) -> None:
        """Record a delivery; lowers an already known first sighting of the packet."""
        previous = self.first_observed.get(packet_id)
        if previous is not None and observation < previous:
            self.first_observed[packet_id] = observation
        self.observations.setdefault(PeerID(peer_id), {})[packet_id] = observation

    def who_to_purge(self, c: float) -> PeerID | None:
        """Return the neighbour to disconnect, if one is clearly slower than another."""
        to_disconnect = None
        max_lcb = -math.inf
        min_ucb = math.inf
        for neighbor_id, observations_map in self.observations.items():
            delays = collect_all_observations(observations_map, self.first_observed)
            ucb, lcb = calculate_cb(delays, c)
            if lcb > max_lcb:
                max_lcb = lcb
                to_disconnect = neighbor_id
            min_ucb = min(min_ucb, ucb)
        return to_disconnect if max_lcb > min_ucb else None

    def collect_garbage_after_limit(self, limit: float) -> None:
        """Forget observations made before limit."""
        for peer_id, observations_map in list(self.observations.items()):
            self.observations[peer_id] = {
                packet_id: observation
                for packet_id, observation in observations_map.items()
                if observation >= limit
            }
        self.first_observed = {
            packet_id: observation
            for packet_id, observation in self.first_observed.items()
            if observation >= limit
        }

    def collect_garbage_last_30s(self) -> None:
        """Keep only the thirty earliest observations of each neighbour."""
        keep: set[int] = set()
        for peer_id, observations_map in list(self.observations.items()):
            earliest = sorted(observations_map, key=observations_map.__getitem__)[:_RECENT_LIMIT]
            if len(observations_map) > _RECENT_LIMIT:
                kept = set(earliest)
                self.observations[peer_id] = {
                    packet_id: observation
                    for packet_id, observation in observations_map.items()
                    if packet_id in kept
                }
            keep.update(earliest)
        self.first_observed = {
            packet_id: observation
            for packet_id, observation in self.first_observed.items()
            if packet_id in keep
        }