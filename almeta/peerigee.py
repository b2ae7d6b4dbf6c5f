"""Neighbour selection by how late each neighbour relays packets seen elsewhere first."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field

from .ids import PeerID
from .scoring import calculate_score

IDEAL_NUMBER_OF_NEIGHBORS = 8
_MIN_SIGHTINGS = 3
_RECENT_LIMIT = 30


def collect_observations(
    observations_map: Mapping[int, int],
    count_and_first_observed: Mapping[int, tuple[int, int]],
) -> list[int]:
    """Return the delays behind the first sighting for packets seen at least three times."""
    delays = []
    for packet_id, observation in observations_map.items():
        seen = count_and_first_observed.get(packet_id)
        if seen is None:
            continue
        times_observed, first_observation = seen
        if times_observed >= _MIN_SIGHTINGS:
            delays.append(observation - first_observation)
    return delays


def get_a_list(keepers: Mapping[PeerID, float], length: int) -> list[PeerID]:
    """Return up to length peers with the lowest scores, best first."""
    return sorted(keepers, key=keepers.__getitem__)[:length]


@dataclass
class Peerigee:
    """Tracks when each neighbour delivers packets and picks one to drop."""

    count_and_first_observed: dict[int, tuple[int, int]] = field(default_factory=dict)
    observations: dict[PeerID, dict[int, int]] = field(default_factory=dict)
    keepers: list[PeerID] = field(default_factory=list)

    def observe(self, peer_id: str, packet_id: int, observation: int) -> None:
        """Record that peer_id delivered packet_id at time observation."""
        seen = self.count_and_first_observed.get(packet_id)
        if seen is None:
            self.count_and_first_observed[packet_id] = (1, observation)
        else:
            count, first = seen
            self.count_and_first_observed[packet_id] = (count + 1, min(first, observation))
        self.observations.setdefault(PeerID(peer_id), {}).setdefault(packet_id, observation)

    def is_keeper(self, peer_id: str) -> bool:
        """Return whether the peer is among the best scored neighbours."""
        return peer_id in self.keepers

    def peerigee(self) -> PeerID | None:
        """Refresh the keepers and return the neighbour to drop, if one is clearly worst."""
        victim = None
        scores: dict[PeerID, float] = {}
        max_lcb = -math.inf
        min_ucb = math.inf
        for neighbor_id, observations_map in self.observations.items():
            score = calculate_score(
                collect_observations(observations_map, self.count_and_first_observed)
            )
            if score is None:
                continue
            ucb, lcb = score
            if lcb > max_lcb:
                max_lcb = lcb
                victim = neighbor_id
            scores[neighbor_id] = lcb
            min_ucb = min(min_ucb, ucb)
        self.keepers = get_a_list(scores, IDEAL_NUMBER_OF_NEIGHBORS)
        return victim if max_lcb > min_ucb else None

    def collect_garbage_after_limit(self, limit: int) -> None:
        """Forget observations made before limit."""
        for peer_id, observations_map in list(self.observations.items()):
            self.observations[peer_id] = {
                packet_id: observation
                for packet_id, observation in observations_map.items()
                if observation >= limit
            }
        self.count_and_first_observed = {
            packet_id: seen
            for packet_id, seen in self.count_and_first_observed.items()
            if seen[1] >= limit
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
        self.count_and_first_observed = {
            packet_id: seen
            for packet_id, seen in self.count_and_first_observed.items()
            if packet_id in keep
        }