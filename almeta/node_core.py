"""Node state and behaviour: links, offers and answers, routing table and neighbour upkeep."""

from __future__ import annotations

import json
import logging
import random
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable

from .command import (
    AnswerOffer,
    Command,
    GenerateAnswer,
    GenerateOffer,
    Send,
    SendDirect,
    UserAnswer,
    UserOffer,
)
from .direct_packet import (
    DearJohn,
    DirectBody,
    DirectPacket,
    Greetings,
    RouteTraceFromOriginatorToTarget,
    RoutingInformationExchange,
)
from .ids import ICE, Incoming, LinkID, OfferID, Outgoing, PeerID, RoutingEntry
from .packet import Answer as AnswerBody
from .packet import Offer as OfferBody
from .packet import Packet, PacketBody, RequestOffer
from .peerigee import IDEAL_NUMBER_OF_NEIGHBORS, Peerigee

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "Rust:0.1"
USER = PeerID("User")
USER_LINK = LinkID(0)

Encoder = Callable[[Any], Any]
Decoder = Callable[[Any], Any]


@dataclass
class LinkInfo:
    """What is known about the protocol spoken on an established link."""

    protocol_in: str | None = None
    protocol_out: str | None = None
    post_init_greeting: bool = False


class NodeCore:
    """A peer of the overlay; the transport drives it and drains command_queue."""

    def __init__(
        self,
        my_id: str,
        state: int,
        encode: Encoder | None = None,
        decode_answer: Decoder | None = None,
        decode_offer: Decoder | None = None,
    ) -> None:
        self._rng = random.Random(state)
        self.command_queue: deque[Command] = deque()
        self.my_id = PeerID(my_id)
        self.neighbors: dict[PeerID, LinkID] = {}
        self.routing_table: dict[PeerID, RoutingEntry] = {}
        self._link_id_generator_state = 0
        self.incoming: dict[OfferID, Incoming] = {}
        self.outgoing: dict[LinkID, Outgoing] = {}
        self.link_info: dict[LinkID, LinkInfo] = {}
        self.peerigee = Peerigee()
        self.encode = encode
        self.decode_answer = decode_answer
        self.decode_offer = decode_offer

    # links, offers and answers

    def link_closed(self, link_id: LinkID) -> None:
        """Forget everything about a link that went down."""
        self.neighbors = {
            peer_id: neighbor_link
            for peer_id, neighbor_link in self.neighbors.items()
            if neighbor_link != link_id
        }
        self.incoming.pop(self._offer_id_of(link_id), None)
        self.outgoing.pop(link_id, None)
        self.link_info.pop(link_id, None)
        self.eval_neighbors()

    def link_established(self, link_id: LinkID) -> None:
        """Start talking on a newly established link by greeting the other side."""
        logger.debug("connection established on link:%s", link_id)
        self.incoming.pop(self._offer_id_of(link_id), None)
        self.outgoing.pop(link_id, None)
        self.link_info[link_id] = LinkInfo()
        self.send_direct(
            link_id, Greetings(me=self.my_id, supported_versions=(PROTOCOL_VERSION,))
        )

    def get_answer_json_by_id(self, link_id: LinkID) -> str | None:
        """Return the answer made on a link as packet JSON for the user, if there is one."""
        outgoing = self.outgoing.get(link_id)
        if outgoing is None or outgoing.answer is None:
            return None
        body = AnswerBody(outgoing.answer, outgoing.offer_id, tuple(outgoing.ice))
        return self._user_json(body)

    def get_neighbors(self) -> list[PeerID]:
        """Return the peers we are directly linked to."""
        return list(self.neighbors)

    def get_offer_json_by_id(self, offer_id: OfferID) -> str | None:
        """Return the offer with this id as packet JSON for the user, if there is one."""
        incoming = self.incoming.get(offer_id)
        if incoming is None or incoming.offer is None:
            return None
        body = OfferBody(incoming.offer, offer_id, tuple(incoming.ice))
        return self._user_json(body)

    def generate_offer(self, for_peer: str | None = None) -> tuple[LinkID, OfferID]:
        """Ask the transport for an offer on a new link, meant for for_peer or the user."""
        number = self._next_link_number()
        link_id, offer_id = LinkID(number), OfferID(number)
        peer = PeerID(for_peer) if for_peer is not None else None
        self.incoming[offer_id] = Incoming(None, [], peer)
        self.command_queue.append(GenerateOffer(link_id))
        return link_id, offer_id

    def on_answer_generated(self, link_id: LinkID, answer: Any) -> None:
        """Deliver an answer the transport made, to the peer that offered or to the user."""
        logger.debug("node %s got back answer %r for channel %s", self.my_id, answer, link_id)
        outgoing = self.outgoing.get(link_id)
        if outgoing is None:
            logger.error("couldn't find outgoing %s", link_id)
            return
        outgoing.answer = answer
        if outgoing.peer is None:
            self.command_queue.append(UserAnswer(link_id, answer))
            return
        self.send_to(outgoing.peer, AnswerBody(answer, outgoing.offer_id, tuple(outgoing.ice)))

    def on_offer_generated(self, link_id: LinkID, offer: Any) -> None:
        """Deliver an offer the transport made, to the peer it is for or to the user."""
        offer_id = self._offer_id_of(link_id)
        incoming = self.incoming.get(offer_id)
        if incoming is None:
            logger.error("incoming %s not found", link_id)
            return
        incoming.offer = offer
        if incoming.for_peer is not None:
            logger.debug("received offer for %s on channel %s", incoming.for_peer, link_id)
            self.send_to(incoming.for_peer, OfferBody(offer, offer_id, tuple(incoming.ice)))
        else:
            logger.debug("received offer for user on channel %s", link_id)
            self.command_queue.append(UserOffer(link_id, offer))

    def receive_answer(self, link_id: LinkID, answer: Any) -> None:
        """Apply an answer to the offer made on a link."""
        logger.debug("%s received answer", self.my_id)
        self.command_queue.append(AnswerOffer(link_id, answer))

    def receive_offer(self, offer: Any, offer_id: OfferID, peer: str | None = None) -> LinkID:
        """Ask the transport to answer an offer on a new link; return that link."""
        link_id = LinkID(self._next_link_number())
        origin = PeerID(peer) if peer is not None else None
        self.outgoing[link_id] = Outgoing(offer_id, None, [], origin)
        self.command_queue.append(GenerateAnswer(link_id, offer))
        logger.debug("receive_offer linkID:%s", link_id)
        return link_id

    def add_ice(self, link_id: LinkID, ice: ICE) -> None:
        """Record a local ICE candidate for a link being set up."""
        incoming = self.incoming.get(self._offer_id_of(link_id))
        if incoming is not None:
            incoming.ice.append(ice)
            return
        outgoing = self.outgoing.get(link_id)
        if outgoing is not None:
            outgoing.ice.append(ice)

    # sending

    def get_next_hop_to(self, peer_id: str) -> LinkID | None:
        """Return the link to send through to reach a peer, or None if unknown."""
        if peer_id == USER:
            return USER_LINK
        neighbor = self.neighbors.get(PeerID(peer_id))
        if neighbor is not None:
            return neighbor
        entry = self.routing_table.get(PeerID(peer_id))
        return entry.next_hop if entry is not None else None

    def send_direct(self, link_id: LinkID, packet: DirectPacket | DirectBody) -> None:
        """Queue a direct packet (or a body, which gets its checksum) for a link."""
        if isinstance(packet, DirectBody):
            packet = DirectPacket.from_body(packet)
        self.command_queue.append(SendDirect(link_id, packet))

    def send_packet(self, packet: Packet) -> None:
        """Forward a routed packet towards its destination."""
        link_id = self.get_next_hop_to(packet.destination)
        if link_id is None:
            logger.error("Couldn't find next node to %s", packet.destination)
            return
        self.command_queue.append(Send(link_id, packet))

    def send_overriding_routing(
        self, link_id: LinkID, destination: str, packet_body: PacketBody
    ) -> None:
        """Send a packet to destination over the given link, ignoring the routing table."""
        packet = Packet.new(self.my_id, destination, packet_body)
        self.command_queue.append(Send(link_id, packet))

    def send_to(self, destination: str, packet_body: PacketBody) -> None:
        """Send a packet from us to destination along the best known route."""
        link_id = self.get_next_hop_to(destination)
        if link_id is None:
            logger.error("Couldn't find next node to %s", destination)
            return
        packet = Packet.new(self.my_id, destination, packet_body)
        self.command_queue.append(Send(link_id, packet))

    def direct_broadcast(self, exclude: LinkID | None, packet: DirectPacket | DirectBody) -> None:
        """Send a direct packet to every neighbour except the one on exclude."""
        if isinstance(packet, DirectBody):
            packet = DirectPacket.from_body(packet)
        for neighbor_link in self.neighbors.values():
            if neighbor_link == exclude:
                continue
            self.command_queue.append(SendDirect(neighbor_link, packet))

    # routing

    def update_routing_table(
        self, link_id: LinkID, entries: Iterable[tuple[str, int]]
    ) -> None:
        """Merge a neighbour's routing costs, learnt over link_id, into our table."""
        entries = list(entries)
        logger.debug("routing table %r, new entries %r", self.routing_table, entries)
        for peer, routing_cost in entries:
            peer_id = PeerID(peer)
            if peer_id == self.my_id:
                continue
            current = self.routing_table.get(peer_id)
            if current is None:
                logger.debug("%s adding %s to RT", self.my_id, peer_id)
                self.routing_table[peer_id] = RoutingEntry(link_id, routing_cost + 1)
            elif routing_cost <= current.routing_cost:
                self.routing_table[peer_id] = RoutingEntry(link_id, routing_cost + 1)
            elif link_id == current.next_hop:
                self.send_direct(
                    link_id,
                    RouteTraceFromOriginatorToTarget(target=peer_id, trace=(self.my_id,)),
                )
        self.eval_neighbors()

    def eval_neighbors(self) -> None:
        """Drop a clearly slow neighbour and ask known peers for offers while we have too few."""
        victim = self.peerigee.peerigee()
        if victim is not None:
            victim_link = self.neighbors.get(victim)
            if victim_link is not None:
                self.send_direct(victim_link, DearJohn())
        number_of_neighbors = len(self.neighbors)
        if number_of_neighbors > IDEAL_NUMBER_OF_NEIGHBORS:
            logger.debug("%s has enough neighbors", self.my_id)
            return
        available = [peer for peer in self.routing_table if peer not in self.neighbors]
        logger.debug("%s has available:%r", self.my_id, available)
        for asked in range(IDEAL_NUMBER_OF_NEIGHBORS - number_of_neighbors):
            if not available:
                logger.debug("%s exhausted available peers after %d", self.my_id, asked)
                break
            peer_id = available.pop(self._rng.randrange(len(available)))
            self.send_to(peer_id, RequestOffer())

    def share_routing_info(self) -> None:
        """Send every neighbour our routing costs, leaving out the entry for that neighbour."""
        routing_info = [
            (peer_id, entry.routing_cost) for peer_id, entry in self.routing_table.items()
        ]
        for neighbor_peer_id, neighbor_link_id in list(self.neighbors.items()):
            entries = tuple(item for item in routing_info if item[0] != neighbor_peer_id)
            self.send_direct(neighbor_link_id, RoutingInformationExchange(entries=entries))

    def tick(self) -> None:
        """Periodic upkeep: re-evaluate neighbours, then share routing information."""
        self.eval_neighbors()
        self.share_routing_info()

    # internals

    def _next_link_number(self) -> int:
        self._link_id_generator_state += 1
        return self._link_id_generator_state

    def _user_json(self, body: PacketBody) -> str | None:
        packet = Packet.new(USER, self.my_id, body)
        try:
            return packet.dumps(self.encode)
        except (TypeError, ValueError):
            return None

    def _is_keeper(self, peer_id: str) -> bool:
        """Return whether we want to keep the link to a peer."""
        if len(self.neighbors) < IDEAL_NUMBER_OF_NEIGHBORS:
            return True
        return self.peerigee.is_keeper(peer_id)

    def _peer_id_from_link_id(self, link_id: LinkID) -> PeerID | None:
        for peer_id, neighbor_link in self.neighbors.items():
            if neighbor_link == link_id:
                return peer_id
        return None

    @staticmethod
    def _offer_id_of(link_id: LinkID) -> OfferID:
        return OfferID(link_id.to_inner())

    @staticmethod
    def _link_id_of(offer_id: OfferID) -> LinkID:
        return LinkID(offer_id.to_inner())

    def _post_greeting(self, link_id: LinkID) -> None:
        """Send routing information once the protocol on a link is settled."""
        them = self._peer_id_from_link_id(link_id)
        routing_info = tuple(
            (peer_id, entry.routing_cost)
            for peer_id, entry in self.routing_table.items()
            if them is None or peer_id == them
        )
        if routing_info:
            self.send_direct(link_id, RoutingInformationExchange(entries=routing_info))