"""Packets routed across the overlay: bodies, checksums and wire form."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

from .ids import ICE, LinkID, OfferID, PeerID, debug_repr

Encoder = Callable[[Any], Any]
Decoder = Callable[[Any], Any]


def _identity(value: Any) -> Any:
    return value


def _md5_hex(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def _field(payload: dict, key: str, owner: str) -> Any:
    try:
        return payload[key]
    except KeyError:
        raise ValueError(f"{owner} is missing field {key!r}") from None


def _int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what} must be an integer")
    return value


def _peer(value: Any, what: str) -> PeerID:
    if not isinstance(value, str):
        raise ValueError(f"{what} must be a string")
    return PeerID(value)


def _decoded(decode: Decoder, value: Any, what: str) -> Any:
    try:
        return decode(value)
    except (TypeError, KeyError) as exc:
        raise ValueError(f"{what}: {exc}") from exc


def _ices(value: Any, owner: str) -> tuple[ICE, ...]:
    if not isinstance(value, list):
        raise ValueError(f"{owner} ICE must be a list")
    return tuple(ICE.from_json(item) for item in value)


def _payload_dict(payload: Any, owner: str) -> dict:
    if not isinstance(payload, dict):
        raise ValueError(f"{owner} needs an object of fields")
    return payload


class PacketBody:
    """Base of every routed packet body; each subclass is one kind of message."""

    _variants: ClassVar[dict[str, type[PacketBody]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        PacketBody._variants[cls.__name__] = cls

    def to_canonical_form(self) -> str:
        """Return the text the packet checksum is built from."""
        return type(self).__name__

    def _payload(self, encode: Encoder) -> Any:
        return None

    @classmethod
    def _from_payload(cls, payload: Any, decode_answer: Decoder, decode_offer: Decoder) -> PacketBody:
        if payload is not None:
            raise ValueError(f"{cls.__name__} carries no fields")
        return cls()

    def to_json(self, encode: Encoder | None = None) -> Any:
        """Return the wire form; encode turns answers and offers into JSON values."""
        name = type(self).__name__
        payload = self._payload(encode or _identity)
        return name if payload is None else {name: payload}

    @staticmethod
    def from_json(
        data: Any,
        decode_answer: Decoder | None = None,
        decode_offer: Decoder | None = None,
    ) -> PacketBody:
        """Build a body from its wire form; raise ValueError if malformed."""
        if isinstance(data, str):
            name, payload = data, None
        elif isinstance(data, dict) and len(data) == 1:
            ((name, payload),) = data.items()
        else:
            raise ValueError("packet body must be a name or a single-key object")
        cls = PacketBody._variants.get(name)
        if cls is None:
            raise ValueError(f"unknown packet body {name!r}")
        return cls._from_payload(payload, decode_answer or _identity, decode_offer or _identity)


def _check_offer_parts(body: Any) -> None:
    if not isinstance(body.offer_id, OfferID):
        raise TypeError("offer_id must be an OfferID")
    ice = tuple(body.ice)
    if not all(isinstance(item, ICE) for item in ice):
        raise TypeError("ice must hold ICE candidates")
    object.__setattr__(body, "ice", ice)


@dataclass(frozen=True)
class Answer(PacketBody):
    """An answer to the offer with offer_id, with the answering side's candidates."""

    answer: Any
    offer_id: OfferID
    ice: tuple[ICE, ...] = ()

    def __post_init__(self) -> None:
        _check_offer_parts(self)

    def to_canonical_form(self) -> str:
        return f"Answer:{debug_repr(self.answer)}:{self.offer_id}:{debug_repr(list(self.ice))}"

    def _payload(self, encode: Encoder) -> Any:
        return {
            "Answer": encode(self.answer),
            "OfferID": self.offer_id.to_inner(),
            "ICE": [item.to_json() for item in self.ice],
        }

    @classmethod
    def _from_payload(cls, payload: Any, decode_answer: Decoder, decode_offer: Decoder) -> Answer:
        payload = _payload_dict(payload, "Answer")
        return cls(
            _decoded(decode_answer, _field(payload, "Answer", "Answer"), "Answer"),
            OfferID(_int(_field(payload, "OfferID", "Answer"), "OfferID")),
            _ices(_field(payload, "ICE", "Answer"), "Answer"),
        )


@dataclass(frozen=True)
class Offer(PacketBody):
    """An offer with its id and the offering side's candidates."""

    offer: Any
    offer_id: OfferID
    ice: tuple[ICE, ...] = ()

    def __post_init__(self) -> None:
        _check_offer_parts(self)

    def to_canonical_form(self) -> str:
        return f"Offer:{debug_repr(self.offer)}:{self.offer_id}:{debug_repr(list(self.ice))}"

    def _payload(self, encode: Encoder) -> Any:
        return {
            "Offer": encode(self.offer),
            "OfferID": self.offer_id.to_inner(),
            "ICE": [item.to_json() for item in self.ice],
        }

    @classmethod
    def _from_payload(cls, payload: Any, decode_answer: Decoder, decode_offer: Decoder) -> Offer:
        payload = _payload_dict(payload, "Offer")
        return cls(
            _decoded(decode_offer, _field(payload, "Offer", "Offer"), "Offer"),
            OfferID(_int(_field(payload, "OfferID", "Offer"), "OfferID")),
            _ices(_field(payload, "ICE", "Offer"), "Offer"),
        )


@dataclass(frozen=True)
class InvalidPacket(PacketBody):
    """The packet the destination received could not be understood."""


@dataclass(frozen=True)
class Goodbye(PacketBody):
    """The sender is leaving."""


@dataclass(frozen=True)
class NewICE(PacketBody):
    """A further ICE candidate for a link."""

    link_id: LinkID
    ice: ICE

    def __post_init__(self) -> None:
        if not isinstance(self.link_id, LinkID):
            raise TypeError("link_id must be a LinkID")
        if not isinstance(self.ice, ICE):
            raise TypeError("ice must be an ICE candidate")

    def to_canonical_form(self) -> str:
        return f"NewICE:{self.link_id}:{debug_repr(self.ice)}"

    def _payload(self, encode: Encoder) -> Any:
        return {"LinkID": self.link_id.to_inner(), "ICE": self.ice.to_json()}

    @classmethod
    def _from_payload(cls, payload: Any, decode_answer: Decoder, decode_offer: Decoder) -> NewICE:
        payload = _payload_dict(payload, "NewICE")
        return cls(
            LinkID(_int(_field(payload, "LinkID", "NewICE"), "LinkID")),
            ICE.from_json(_field(payload, "ICE", "NewICE")),
        )


@dataclass(frozen=True)
class RequestOffer(PacketBody):
    """Asks the destination to make an offer for the sender."""


@dataclass(frozen=True)
class RequestTraceToMe(PacketBody):
    """Asks the destination to trace its route back to the sender."""


@dataclass(frozen=True)
class ReturnRouteTrace(PacketBody):
    """A completed route trace sent back to the peer that started it."""

    trace: tuple[PeerID, ...]

    def __post_init__(self) -> None:
        trace = tuple(self.trace)
        if not all(isinstance(item, str) for item in trace):
            raise TypeError("trace must hold peer ids")
        object.__setattr__(self, "trace", tuple(PeerID(item) for item in trace))

    def to_canonical_form(self) -> str:
        return f"ReturnRouteTrace:{debug_repr(list(self.trace))}"

    def _payload(self, encode: Encoder) -> Any:
        return {"trace": [str(item) for item in self.trace]}

    @classmethod
    def _from_payload(
        cls, payload: Any, decode_answer: Decoder, decode_offer: Decoder
    ) -> ReturnRouteTrace:
        payload = _payload_dict(payload, "ReturnRouteTrace")
        trace = _field(payload, "trace", "ReturnRouteTrace")
        if not isinstance(trace, list):
            raise ValueError("ReturnRouteTrace trace must be a list")
        return cls(tuple(_peer(item, "trace entry") for item in trace))


def _canonical(source: str, destination: str, body: PacketBody) -> str:
    return f"Packet:{source}:{destination}:{debug_repr(body.to_canonical_form())}"


@dataclass(frozen=True)
class Packet:
    """A body routed from source to destination, with its checksum."""

    source: PeerID
    destination: PeerID
    body: PacketBody
    md5: str

    def __post_init__(self) -> None:
        for name in ("source", "destination"):
            value = getattr(self, name)
            if not isinstance(value, str):
                raise TypeError(f"{name} must be a peer id")
            object.__setattr__(self, name, PeerID(value))
        if not isinstance(self.body, PacketBody):
            raise TypeError("body must be a PacketBody")
        if not isinstance(self.md5, str):
            raise TypeError("md5 must be a string")

    @classmethod
    def new(cls, source: str, destination: str, body: PacketBody) -> Packet:
        """Build a packet, computing its checksum."""
        return cls(
            PeerID(source), PeerID(destination), body, _md5_hex(_canonical(source, destination, body))
        )

    def to_canonical_form(self) -> str:
        """Return the text the checksum is computed over."""
        return _canonical(self.source, self.destination, self.body)

    def checksum(self) -> str:
        """Return the lowercase hex MD5 of the canonical form."""
        return _md5_hex(self.to_canonical_form())

    def verify(self) -> bool:
        """Return whether the stored checksum matches the packet."""
        return self.md5 == self.checksum()

    def to_json(self, encode: Encoder | None = None) -> dict[str, Any]:
        """Return the wire form as JSON-compatible values."""
        return {
            "Source": str(self.source),
            "Destination": str(self.destination),
            "Body": self.body.to_json(encode),
            "MD5": self.md5,
        }

    @classmethod
    def from_json(
        cls,
        data: Any,
        decode_answer: Decoder | None = None,
        decode_offer: Decoder | None = None,
    ) -> Packet:
        """Build a packet from its wire form; raise ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("packet must be a JSON object")
        md5 = _field(data, "MD5", "packet")
        if not isinstance(md5, str):
            raise ValueError("packet MD5 must be a string")
        return cls(
            _peer(_field(data, "Source", "packet"), "Source"),
            _peer(_field(data, "Destination", "packet"), "Destination"),
            PacketBody.from_json(_field(data, "Body", "packet"), decode_answer, decode_offer),
            md5,
        )

    def dumps(self, encode: Encoder | None = None) -> str:
        """Serialise to compact JSON text."""
        return json.dumps(self.to_json(encode), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def loads(
        cls,
        text: str,
        decode_answer: Decoder | None = None,
        decode_offer: Decoder | None = None,
    ) -> Packet:
        """Parse JSON text; raise ValueError if it is not a packet."""
        return cls.from_json(json.loads(text), decode_answer, decode_offer)


@dataclass(frozen=True)
class UserJSON:
    """A body addressed to a destination, as handed over by the user."""

    destination: PeerID
    type: PacketBody

    def __post_init__(self) -> None:
        if not isinstance(self.destination, str):
            raise TypeError("destination must be a peer id")
        object.__setattr__(self, "destination", PeerID(self.destination))
        if not isinstance(self.type, PacketBody):
            raise TypeError("type must be a PacketBody")

    def to_json(self, encode: Encoder | None = None) -> dict[str, Any]:
        """Return the wire form as JSON-compatible values."""
        return {"Destination": str(self.destination), "Type": self.type.to_json(encode)}

    @classmethod
    def from_json(
        cls,
        data: Any,
        decode_answer: Decoder | None = None,
        decode_offer: Decoder | None = None,
    ) -> UserJSON:
        """Build from the wire form; raise ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("user JSON must be an object")
        return cls(
            _peer(_field(data, "Destination", "user JSON"), "Destination"),
            PacketBody.from_json(_field(data, "Type", "user JSON"), decode_answer, decode_offer),
        )