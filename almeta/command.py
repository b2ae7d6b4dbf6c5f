"""Commands a node queues for the transport layer that drives it."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from .direct_packet import DirectPacket
from .ids import ICE, LinkID
from .packet import Packet

Encoder = Callable[[Any], Any]


def _identity(value: Any) -> Any:
    return value


class Command(ABC):
    """Base of every command; each subclass is one kind."""

    link_id: LinkID

    def __post_init__(self) -> None:
        if not isinstance(self.link_id, LinkID):
            raise TypeError("link_id must be a LinkID")

    @abstractmethod
    def _payload(self, encode: Encoder) -> Any:
        """Return the fields of the command in wire form."""

    def to_json(self, encode: Encoder | None = None) -> dict[str, Any]:
        """Return the wire form; encode turns answers and offers into JSON values."""
        return {type(self).__name__: self._payload(encode or _identity)}

    def dumps(self, encode: Encoder | None = None) -> str:
        """Serialise to compact JSON text."""
        return json.dumps(self.to_json(encode), separators=(",", ":"), ensure_ascii=False)

    def __str__(self) -> str:
        return self.dumps()


@dataclass(frozen=True)
class AddICE(Command):
    """Add a remote ICE candidate to a link."""

    link_id: LinkID
    ice: ICE

    def __post_init__(self) -> None:
        super().__post_init__()
        if not isinstance(self.ice, ICE):
            raise TypeError("ice must be an ICE candidate")

    def _payload(self, encode: Encoder) -> Any:
        return {"link_id": self.link_id.to_inner(), "ice": self.ice.to_json()}


@dataclass(frozen=True)
class AnswerOffer(Command):
    """Apply a received answer to the offer made on a link."""

    link_id: LinkID
    answer: Any

    def _payload(self, encode: Encoder) -> Any:
        return {"link_id": self.link_id.to_inner(), "answer": encode(self.answer)}


@dataclass(frozen=True)
class GenerateAnswer(Command):
    """Generate an answer on a link for a received offer."""

    link_id: LinkID
    offer: Any

    def _payload(self, encode: Encoder) -> Any:
        return {"link_id": self.link_id.to_inner(), "offer": encode(self.offer)}


@dataclass(frozen=True)
class GenerateOffer(Command):
    """Generate an offer on a new link."""

    link_id: LinkID

    def _payload(self, encode: Encoder) -> Any:
        return self.link_id.to_inner()


@dataclass(frozen=True)
class Send(Command):
    """Send a routed packet over a link."""

    link_id: LinkID
    packet: Packet

    def __post_init__(self) -> None:
        super().__post_init__()
        if not isinstance(self.packet, Packet):
            raise TypeError("packet must be a Packet")

    def _payload(self, encode: Encoder) -> Any:
        return {"link_id": self.link_id.to_inner(), "packet": self.packet.to_json(encode)}


@dataclass(frozen=True)
class SendDirect(Command):
    """Send a direct packet to the neighbour on a link."""

    link_id: LinkID
    packet: DirectPacket

    def __post_init__(self) -> None:
        super().__post_init__()
        if not isinstance(self.packet, DirectPacket):
            raise TypeError("packet must be a DirectPacket")

    def _payload(self, encode: Encoder) -> Any:
        return {"link_id": self.link_id.to_inner(), "packet": self.packet.to_json()}


@dataclass(frozen=True)
class UserAnswer(Command):
    """Hand an answer generated on a link to the user."""

    link_id: LinkID
    answer: Any

    def _payload(self, encode: Encoder) -> Any:
        return {"link_id": self.link_id.to_inner(), "answer": encode(self.answer)}


@dataclass(frozen=True)
class UserOffer(Command):
    """Hand an offer generated on a link to the user."""

    link_id: LinkID
    offer: Any

    def _payload(self, encode: Encoder) -> Any:
        return {"link_id": self.link_id.to_inner(), "offer": encode(self.offer)}