"""A three-peer network simulated in memory, driving nodes through their command queues."""

from __future__ import annotations

import argparse
import sys
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, TextIO

from .command import (
    AddICE,
    AnswerOffer,
    Command,
    GenerateAnswer,
    GenerateOffer,
    Send,
    SendDirect,
    UserAnswer,
    UserOffer,
)
from .ids import LinkID, OfferID
from .node import Node

NUMBER_OF_PEERS = 3
MAX_ROUNDS = 10
_PEER_NAMES = ("PeerA", "PeerB", "PeerC")


def _ints(data: Any, names: Sequence[str], owner: str) -> list[int]:
    if not isinstance(data, dict):
        raise ValueError(f"{owner} must be a JSON object")
    values = []
    for name in names:
        if name not in data:
            raise ValueError(f"{owner} is missing field {name!r}")
        value = data[name]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{owner} field {name!r} must be an integer")
        values.append(value)
    return values


@dataclass(frozen=True)
class Connection:
    """The far end of a simulated link: which peer, and its link id there."""

    peer_idx: int
    link_id: LinkID


@dataclass(frozen=True)
class SimAnswer:
    """A simulated answer naming both ends of the link it sets up."""

    debug_name: ClassVar[str] = "Answer"

    offering_peer_idx: int
    offering_link_id: LinkID
    answering_peer_idx: int
    answering_link_id: LinkID

    def to_json(self) -> dict[str, int]:
        """Return the wire form."""
        return {
            "offering_peer_idx": self.offering_peer_idx,
            "offering_link_id": self.offering_link_id.to_inner(),
            "answering_peer_idx": self.answering_peer_idx,
            "answering_link_id": self.answering_link_id.to_inner(),
        }

    @classmethod
    def from_json(cls, data: Any) -> SimAnswer:
        """Build from the wire form; raise ValueError if malformed."""
        offering_idx, offering_link, answering_idx, answering_link = _ints(
            data,
            ("offering_peer_idx", "offering_link_id", "answering_peer_idx", "answering_link_id"),
            "answer",
        )
        return cls(offering_idx, LinkID(offering_link), answering_idx, LinkID(answering_link))


@dataclass(frozen=True)
class SimOffer:
    """A simulated offer naming the peer and link it was made on."""

    debug_name: ClassVar[str] = "Offer"

    offering_peer_idx: int
    offering_link_id: LinkID

    def to_json(self) -> dict[str, int]:
        """Return the wire form."""
        return {
            "offering_peer_idx": self.offering_peer_idx,
            "offering_link_id": self.offering_link_id.to_inner(),
        }

    @classmethod
    def from_json(cls, data: Any) -> SimOffer:
        """Build from the wire form; raise ValueError if malformed."""
        offering_idx, offering_link = _ints(
            data, ("offering_peer_idx", "offering_link_id"), "offer"
        )
        return cls(offering_idx, LinkID(offering_link))


def _encode(value: Any) -> Any:
    if isinstance(value, (SimAnswer, SimOffer)):
        return value.to_json()
    raise TypeError(f"cannot encode {type(value).__name__}")


class NetworkSim:
    """Three nodes wired together in memory; the first two start with an offer for the user."""

    def __init__(self, out: TextIO | None = None) -> None:
        self.out = out if out is not None else sys.stdout
        self.peers = [
            Node(name, state, _encode, SimAnswer.from_json, SimOffer.from_json)
            for state, name in enumerate(_PEER_NAMES, start=1)
        ]
        self.peers_channel_to_link: list[dict[LinkID, Connection]] = [
            {} for _ in range(NUMBER_OF_PEERS)
        ]
        self.link_id_gen_state = [0] * NUMBER_OF_PEERS
        self.user_offers_to_be_routed: list[tuple[int, SimOffer, OfferID]] = []
        self.answered_queue: list[SimAnswer] = []
        self.peers[0].generate_offer(None)
        self.peers[1].generate_offer(None)

    def _say(self, text: str) -> None:
        print(text, file=self.out)

    def _connection(self, peer_idx: int, link_id: LinkID) -> Connection:
        try:
            return self.peers_channel_to_link[peer_idx][link_id]
        except KeyError:
            raise LookupError(f"peer {peer_idx} has no channel for link {link_id}") from None

    def _run_command(
        self, peer_idx: int, peer: Node, command: Command, messages: list[tuple[Connection, str]]
    ) -> None:
        match command:
            case AddICE():
                raise RuntimeError("the simulated transport has no ICE candidates to add")
            case AnswerOffer(answer=answer):
                self.answered_queue.append(answer)
            case GenerateAnswer(link_id=link_id, offer=offer):
                self.peers_channel_to_link[offer.offering_peer_idx][offer.offering_link_id] = (
                    Connection(peer_idx, link_id)
                )
                self.peers_channel_to_link[peer_idx][link_id] = Connection(
                    offer.offering_peer_idx, offer.offering_link_id
                )
                answer = SimAnswer(
                    offer.offering_peer_idx, offer.offering_link_id, peer_idx, link_id
                )
                peer.on_answer_generated(link_id, answer)
            case GenerateOffer(link_id=link_id):
                self._say(f"incrementing peer{peer_idx}'s link gen")
                self.link_id_gen_state[peer_idx] += 1
                peer.on_offer_generated(link_id, SimOffer(peer_idx, link_id))
            case Send(link_id=link_id, packet=packet):
                messages.append((self._connection(peer_idx, link_id), packet.dumps(_encode)))
            case SendDirect(link_id=link_id, packet=packet):
                messages.append((self._connection(peer_idx, link_id), packet.dumps()))
            case UserAnswer(answer=answer):
                prev_peer_idx = (peer_idx - 1) % NUMBER_OF_PEERS
                self._say(f"send answer to peer {prev_peer_idx}")
                self.peers[prev_peer_idx].receive_answer(answer.offering_link_id, answer)
            case UserOffer(link_id=link_id, offer=offer):
                next_peer_idx = (peer_idx + 1) % NUMBER_OF_PEERS
                self.user_offers_to_be_routed.append(
                    (next_peer_idx, offer, OfferID(link_id.to_inner()))
                )
            case _:
                raise RuntimeError(f"unknown command {type(command).__name__}")

    def sim(self) -> int:
        """Run up to ten rounds, stopping early when nothing happens; return the rounds used."""
        for round_number in range(MAX_ROUNDS):
            busy = False
            self._say(f"    Round {round_number}:")
            messages: list[tuple[Connection, str]] = []
            for peer_idx, peer in enumerate(self.peers):
                commands, peer.command_queue = peer.command_queue, deque()
                for command in commands:
                    busy = True
                    self._say(f"Peer {peer_idx} Command: {command.dumps(_encode)}")
                    self._run_command(peer_idx, peer, command, messages)

            answered, self.answered_queue = self.answered_queue, []
            for answer in answered:
                busy = True
                self._say(
                    f"notifing peer at {answer.offering_link_id} of incoming channel establishment"
                )
                self.peers[answer.offering_peer_idx].link_established(answer.offering_link_id)
                self._say(
                    f"notifing peer at {answer.answering_link_id} of outgoing channel establishment"
                )
                self.peers[answer.answering_peer_idx].link_established(answer.answering_link_id)

            offers, self.user_offers_to_be_routed = self.user_offers_to_be_routed, []
            for peer_idx, offer, offer_id in offers:
                self._say(f"notifing {peer_idx} of offer")
                busy = True
                self.peers[peer_idx].receive_offer(offer, offer_id, None)

            for connection, message in messages:
                busy = True
                self._say(f"Peer {connection.peer_idx} Message: {message}")
                self.peers[connection.peer_idx].receive_packet(connection.link_id, message, 1)

            if not busy:
                self._say(f"Done after {round_number} rounds")
                return round_number
        return MAX_ROUNDS


def main(argv: Sequence[str] | None = None) -> int:
    """Run the three-peer simulation and print each peer's neighbours."""
    parser = argparse.ArgumentParser(description="Simulate a small overlay network.")
    parser.parse_args(argv)
    sim = NetworkSim()
    sim.sim()
    sim.peers[1].tick()
    sim.sim()
    for idx, peer in enumerate(sim.peers):
        print(f"Peer {idx}: {[str(p) for p in peer.get_neighbors()]}")
    return 0