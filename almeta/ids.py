"""Identifiers and small records shared across the overlay: peers, links, offers, ICE candidates."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

AnswerT = TypeVar("AnswerT")
OfferT = TypeVar("OfferT")

_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1
_U32_MAX = 2**32 - 1


class PeerID(str):
    """Identifier of a peer; compares and hashes like the plain string it wraps."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"PeerID({str.__repr__(self)})"


@dataclass(frozen=True, order=True)
class _IntID:
    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(
                f"{type(self).__name__} needs an int, got {type(self.value).__name__}"
            )
        if not _I32_MIN <= self.value <= _I32_MAX:
            raise ValueError(f"{type(self).__name__} {self.value} is out of 32-bit range")

    def __str__(self) -> str:
        return str(self.value)


class OfferID(_IntID):
    """Identifier of an offer, shared with the peer it is sent to."""

    def to_inner(self) -> int:
        """Return the wrapped integer."""
        return self.value


class LinkID(_IntID):
    """Identifier of a local link (a channel to a neighbour)."""

    def to_inner(self) -> int:
        """Return the wrapped integer."""
        return self.value


@dataclass(frozen=True)
class ICE:
    """An ICE candidate."""

    media: str
    index: int
    name: str

    def to_json(self) -> dict[str, Any]:
        """Return the wire form of the candidate."""
        return {"Media": self.media, "Index": self.index, "Name": self.name}

    @classmethod
    def from_json(cls, data: Any) -> ICE:
        """Build a candidate from its wire form; raise ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("ICE must be a JSON object")
        try:
            media, index, name = data["Media"], data["Index"], data["Name"]
        except KeyError as exc:
            raise ValueError(f"ICE is missing field {exc.args[0]!r}") from None
        if not isinstance(media, str) or not isinstance(name, str):
            raise ValueError("ICE media and name must be strings")
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValueError("ICE index must be an integer")
        return cls(media, index, name)


@dataclass(frozen=True, order=True)
class RoutingEntry:
    """The link to route through towards a peer and the cost of that route."""

    next_hop: LinkID
    routing_cost: int

    def __post_init__(self) -> None:
        if not isinstance(self.next_hop, LinkID):
            raise TypeError("next_hop must be a LinkID")
        if isinstance(self.routing_cost, bool) or not isinstance(self.routing_cost, int):
            raise TypeError("routing_cost must be an int")
        if not 0 <= self.routing_cost <= _U32_MAX:
            raise ValueError(f"routing cost {self.routing_cost} is out of range")


@dataclass
class Outgoing(Generic[AnswerT]):
    """State of a link we are answering an offer on."""

    offer_id: OfferID
    answer: AnswerT | None = None
    ice: list[ICE] = field(default_factory=list)
    peer: PeerID | None = None


@dataclass
class Incoming(Generic[OfferT]):
    """State of a link we made an offer for."""

    offer: OfferT | None = None
    ice: list[ICE] = field(default_factory=list)
    for_peer: PeerID | None = None


_STR_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\0": "\\0",
}


def _debug_str(text: str) -> str:
    parts = []
    for ch in text:
        if ch in _STR_ESCAPES:
            parts.append(_STR_ESCAPES[ch])
        elif ch.isprintable():
            parts.append(ch)
        else:
            parts.append(f"\\u{{{ord(ch):x}}}")
    return '"' + "".join(parts) + '"'


def _debug_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return repr(value).replace("e+", "e")


def debug_repr(value: Any) -> str:
    """Render a value in the debug notation that canonical packet forms are built from."""
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, PeerID):
        return f"PeerID({_debug_str(value)})"
    if isinstance(value, str):
        return _debug_str(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _debug_float(value)
    if isinstance(value, _IntID):
        return f"{type(value).__name__}({value.value})"
    if isinstance(value, list):
        return "[" + ", ".join(debug_repr(item) for item in value) + "]"
    if isinstance(value, tuple):
        inner = ", ".join(debug_repr(item) for item in value)
        return f"({inner},)" if len(value) == 1 else f"({inner})"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        name = getattr(type(value), "debug_name", type(value).__name__)
        fields = dataclasses.fields(value)
        if not fields:
            return name
        inner = ", ".join(f"{f.name}: {debug_repr(getattr(value, f.name))}" for f in fields)
        return f"{name} {{ {inner} }}"
    raise TypeError(f"no debug form for {type(value).__name__}")