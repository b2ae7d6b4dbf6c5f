"""A complete overlay node: reacts to direct and routed packets arriving on its links."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from . import direct_packet as direct
from . import packet as routed
from .command import AddICE, AnswerOffer
from .direct_packet import DirectBody, DirectPacket
from .ids import LinkID, PeerID, RoutingEntry
from .node_core import PROTOCOL_VERSION, NodeCore

logger = logging.getLogger(__name__)


class Node(NodeCore):
    """An overlay peer that handles the packets its transport hands to it."""

    def receive_packet(self, link_id: LinkID, packet: str, timestamp: int) -> None:
        """Parse packet text received on a link and handle it; reply InvalidPacket if unreadable."""
        if link_id not in self.link_info:
            self.send_direct(link_id, direct.InvalidPacket())
            return
        try:
            parsed = routed.Packet.loads(packet, self.decode_answer, self.decode_offer)
        except (ValueError, TypeError):
            pass
        else:
            self.receive_routed_packet(link_id, parsed, timestamp)
            return
        try:
            direct_packet = DirectPacket.loads(packet)
        except (ValueError, TypeError):
            self.send_direct(link_id, direct.InvalidPacket())
            return
        self.receive_direct(link_id, direct_packet, timestamp)

    def receive_direct(self, link_id: LinkID, packet: DirectPacket, timestamp: int) -> None:
        """Handle a direct packet from the neighbour on a link; packets that fail their checksum are dropped."""
        logger.debug("processing direct %s packet", PROTOCOL_VERSION)
        if not packet.verify():
            return
        self._observe(link_id, packet.md5, timestamp)
        if not self._handle_direct(link_id, packet.body):
            return
        info = self.link_info.get(link_id)
        if info is None:
            logger.debug("no link info for %s", link_id)
            return
        if info.protocol_out is not None and not info.post_init_greeting:
            logger.debug("sending post greeting on %s", link_id)
            info.post_init_greeting = True
            self._post_greeting(link_id)

    def receive_routed_packet(self, link_id: LinkID, packet: routed.Packet, timestamp: int) -> None:
        """Handle a routed packet addressed to us, or forward it towards its destination."""
        if not packet.verify():
            return
        self._observe(link_id, packet.md5, timestamp)
        if packet.destination != self.my_id:
            self.send_packet(packet)
            return
        source = packet.source
        match packet.body:
            case routed.Answer(answer=answer, offer_id=offer_id, ice=ice):
                answer_link = self._link_id_of(offer_id)
                self.command_queue.append(AnswerOffer(answer_link, answer))
                self.command_queue.extend(AddICE(answer_link, item) for item in ice)
            case routed.InvalidPacket():
                logger.error("got a reply that I sent an invalid packet")
            case routed.Offer(offer=offer, offer_id=offer_id, ice=ice):
                new_link = self.receive_offer(offer, offer_id, None)
                self.command_queue.extend(AddICE(new_link, item) for item in ice)
            case routed.NewICE(link_id=ice_link, ice=ice):
                incoming = self.incoming.get(self._offer_id_of(ice_link))
                if incoming is None:
                    logger.error("couldn't find an incoming for %s", ice_link)
                    return
                incoming.ice.append(ice)
            case routed.RequestOffer():
                self.generate_offer(source)
            case routed.RequestTraceToMe():
                next_hop = self.get_next_hop_to(source)
                if next_hop is None:
                    return
                self.send_direct(
                    next_hop,
                    direct.RouteTraceToOriginatorFromTarget(originator=source, trace=(self.my_id,)),
                )
            case routed.ReturnRouteTrace(trace=trace):
                self._on_return_route_trace(link_id, source, trace)
            case body:
                raise RuntimeError(f"no handler for routed {type(body).__name__} message")

    # direct handling

    def _observe(self, link_id: LinkID, md5: str, timestamp: int) -> None:
        peer_id = self._peer_id_from_link_id(link_id)
        if peer_id is None:
            return
        try:
            packet_id = int(md5, 16)
        except ValueError:
            return
        self.peerigee.observe(peer_id, packet_id, timestamp)

    def _handle_direct(self, link_id: LinkID, body: DirectBody) -> bool:
        """Handle a body; return False when handling stopped before the post-greeting check."""
        match body:
            case direct.DearJohn():
                peer_id = self._peer_id_from_link_id(link_id)
                if peer_id is None:
                    return False
                if not self._is_keeper(peer_id):
                    self.send_direct(link_id, direct.Goodbye())
            case direct.DistanceIncrease(peer=peer, trace=trace):
                return self._on_distance_increase(link_id, peer, trace)
            case direct.Greetings(me=me, supported_versions=versions):
                self._on_greetings(link_id, me, versions)
            case direct.LostRouteTo(peer=peer):
                entry = self.routing_table.get(peer)
                if entry is None:
                    return False
                if entry.next_hop == link_id:
                    self.direct_broadcast(None, direct.LostRouteTo(peer=peer))
                else:
                    self.send_direct(
                        link_id,
                        direct.RoutingInformationExchange(entries=((peer, entry.routing_cost),)),
                    )
            case direct.Me() | direct.NotYouAgain():
                pass
            case direct.RouteTraceFromOriginatorToTarget(target=target, trace=trace):
                return self._on_trace_to_target(target, trace)
            case direct.RouteTraceToOriginatorFromTarget(originator=originator, trace=trace):
                return self._on_trace_to_originator(originator, trace)
            case direct.RoutingInformationExchange(entries=entries):
                self.update_routing_table(link_id, entries)
            case direct.TellItToMeIn(version=version):
                info = self.link_info.get(link_id)
                if info is not None:
                    info.protocol_out = version
            case direct.Who():
                self.send_direct(link_id, direct.Me(me=self.my_id))
            case _:
                raise RuntimeError(f"no handler for direct {type(body).__name__} message")
        return True

    def _on_distance_increase(self, link_id: LinkID, peer: PeerID, trace: Sequence[PeerID]) -> bool:
        if peer == self.my_id:
            return False
        next_hop = self.get_next_hop_to(peer)
        if next_hop is None:
            return False
        if link_id != next_hop:
            return True
        if self.my_id in trace:
            self.direct_broadcast(None, direct.LostRouteTo(peer=peer))
            return False
        extended = (*trace, self.my_id)
        logger.debug("%s adding %s to RT", self.my_id, peer)
        self.routing_table[peer] = RoutingEntry(next_hop, len(extended))
        self.direct_broadcast(link_id, direct.DistanceIncrease(peer=peer, trace=extended))
        return True

    def _on_greetings(self, link_id: LinkID, me: PeerID, versions: Sequence[str]) -> None:
        if PROTOCOL_VERSION not in versions:
            self.send_direct(link_id, direct.UnknownVersion())
            return
        if me in self.neighbors:
            logger.debug("Greetings %s was in neighbors", me)
            self.send_direct(link_id, direct.NotYouAgain())
            return
        info = self.link_info.get(link_id)
        if info is not None:
            info.protocol_out = PROTOCOL_VERSION
        logger.debug("%s adding %s to neighbors and RT", self.my_id, me)
        self.neighbors[me] = link_id
        self.routing_table[me] = RoutingEntry(link_id, 0)
        self.send_direct(link_id, direct.TellItToMeIn(version=PROTOCOL_VERSION))

    def _on_trace_to_target(self, target: PeerID, trace: Sequence[PeerID]) -> bool:
        if not trace:
            return False
        if target == self.my_id:
            self.send_to(trace[0], routed.ReturnRouteTrace(trace=tuple(trace)))
            return False
        next_hop = self.get_next_hop_to(target)
        if next_hop is None:
            return False
        self.send_direct(
            next_hop,
            direct.RouteTraceFromOriginatorToTarget(target=target, trace=(*trace, self.my_id)),
        )
        return True

    def _on_trace_to_originator(self, originator: PeerID, trace: Sequence[PeerID]) -> bool:
        if not trace:
            logger.warning("received empty route trace for %s", originator)
            return False
        if originator == self.my_id:
            return False
        next_hop = self.get_next_hop_to(originator)
        if next_hop is None:
            return False
        self.send_direct(
            next_hop,
            direct.RouteTraceToOriginatorFromTarget(
                originator=originator, trace=(*trace, self.my_id)
            ),
        )
        return True

    def _on_return_route_trace(
        self, link_id: LinkID, source: PeerID, trace: Sequence[PeerID]
    ) -> None:
        if not trace or trace[0] != self.my_id:
            logger.warning("got a trace that didn't start with us")
            return
        if len(trace) < 2:
            return
        first_hop = trace[1]
        next_hop = self.get_next_hop_to(source)
        if next_hop is None:
            return
        next_hop_peer = self._peer_id_from_link_id(next_hop)
        if next_hop_peer is None:
            logger.warning("routing through link %s that leads to no neighbor", next_hop)
            return
        if next_hop_peer != first_hop:
            return
        rest = trace[1:]
        if self.my_id in rest:
            # The route to source loops back through us: forget it and tell everyone.
            self.routing_table.pop(source, None)
            self.direct_broadcast(None, direct.LostRouteTo(peer=source))
            return
        logger.debug("%s adding %s to RT", self.my_id, source)
        # The trace leaves out source itself, hence one more hop than it lists after us.
        self.routing_table[source] = RoutingEntry(next_hop, len(rest) + 1)
        self.direct_broadcast(
            link_id, direct.DistanceIncrease(peer=source, trace=tuple(trace))
        )