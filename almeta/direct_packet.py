"""Packets exchanged directly between neighbours, with their checksums and wire form."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

from .ids import PeerID, debug_repr

_U32_MAX = 2**32 - 1


def _peer(value: Any) -> PeerID:
    if not isinstance(value, str):
        raise TypeError(f"peer id must be a string, got {type(value).__name__}")
    return PeerID(value)


def _text(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return str(value)


def _sequence(value: Any) -> list | tuple:
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"expected a sequence, got {type(value).__name__}")
    return value


def _peers(value: Any) -> tuple[PeerID, ...]:
    return tuple(_peer(item) for item in _sequence(value))


def _texts(value: Any) -> tuple[str, ...]:
    return tuple(_text(item) for item in _sequence(value))


def _entry(item: Any) -> tuple[PeerID, int]:
    pair = _sequence(item)
    if len(pair) != 2:
        raise TypeError("routing entry must be a pair")
    peer, cost = pair
    if isinstance(cost, bool) or not isinstance(cost, int):
        raise TypeError("routing cost must be an integer")
    if not 0 <= cost <= _U32_MAX:
        raise ValueError(f"routing cost {cost} is out of range")
    return _peer(peer), cost


def _entries(value: Any) -> tuple[tuple[PeerID, int], ...]:
    return tuple(_entry(item) for item in _sequence(value))


def _plain(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, str):
        return str(value)
    return value


_Field = tuple[str, str, Callable[[Any], Any]]


class DirectBody:
    """Base of every direct packet body; each subclass is one kind of message."""

    _fields: ClassVar[tuple[_Field, ...]] = ()
    _variants: ClassVar[dict[str, type[DirectBody]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        DirectBody._variants[cls.__name__] = cls

    def __post_init__(self) -> None:
        for attr, _key, convert in self._fields:
            object.__setattr__(self, attr, convert(getattr(self, attr)))

    def to_canonical_form(self) -> str:
        """Return the text the checksum is computed over."""
        parts = ["Direct", type(self).__name__]
        for attr, _key, _convert in self._fields:
            value = getattr(self, attr)
            parts.append(debug_repr(list(value)) if isinstance(value, tuple) else str(value))
        return ":".join(parts)

    def checksum(self) -> str:
        """Return the lowercase hex MD5 of the canonical form."""
        return hashlib.md5(self.to_canonical_form().encode("utf-8")).hexdigest()

    def to_json(self) -> Any:
        """Return the wire form: the name for bare messages, otherwise a one-key object."""
        name = type(self).__name__
        if not self._fields:
            return name
        return {name: {key: _plain(getattr(self, attr)) for attr, key, _c in self._fields}}

    @staticmethod
    def from_json(data: Any) -> DirectBody:
        """Build a body from its wire form; raise ValueError if malformed."""
        if isinstance(data, str):
            name, payload = data, None
        elif isinstance(data, dict) and len(data) == 1:
            ((name, payload),) = data.items()
        else:
            raise ValueError("direct body must be a name or a single-key object")
        cls = DirectBody._variants.get(name)
        if cls is None:
            raise ValueError(f"unknown direct body {name!r}")
        if not cls._fields:
            if payload is not None:
                raise ValueError(f"{name} carries no fields")
            return cls()
        if not isinstance(payload, dict):
            raise ValueError(f"{name} needs an object of fields")
        try:
            kwargs = {attr: convert(payload[key]) for attr, key, convert in cls._fields}
        except KeyError as exc:
            raise ValueError(f"{name} is missing field {exc.args[0]!r}") from None
        except TypeError as exc:
            raise ValueError(f"{name}: {exc}") from exc
        return cls(**kwargs)


@dataclass(frozen=True)
class DearJohn(DirectBody):
    """Asks the neighbour whether it minds being disconnected."""


@dataclass(frozen=True)
class DistanceIncrease(DirectBody):
    """The distance to a peer went up; trace is the route it now takes."""

    peer: PeerID
    trace: tuple[PeerID, ...]
    _fields = (("peer", "peer", _peer), ("trace", "trace", _peers))


@dataclass(frozen=True)
class Goodbye(DirectBody):
    """Announces that the link is being dropped."""


@dataclass(frozen=True)
class Greetings(DirectBody):
    """First message on a new link: who we are and which protocol versions we speak."""

    me: PeerID
    supported_versions: tuple[str, ...]
    _fields = (("me", "Me", _peer), ("supported_versions", "SupportedVersions", _texts))


@dataclass(frozen=True)
class InvalidPacket(DirectBody):
    """The last packet received could not be understood."""


@dataclass(frozen=True)
class InvalidSalutation(DirectBody):
    """The greeting received was not acceptable."""


@dataclass(frozen=True)
class LostRouteTo(DirectBody):
    """The sender no longer knows a route to the peer."""

    peer: PeerID
    _fields = (("peer", "Peer", _peer),)


@dataclass(frozen=True)
class Me(DirectBody):
    """Answer to Who."""

    me: PeerID
    _fields = (("me", "Me", _peer),)


@dataclass(frozen=True)
class NotYouAgain(DirectBody):
    """The greeting peer is already a neighbour."""


@dataclass(frozen=True)
class RouteTraceFromOriginatorToTarget(DirectBody):
    """A route trace travelling towards target; the originator is the first in trace."""

    target: PeerID
    trace: tuple[PeerID, ...]
    _fields = (("target", "Target", _peer), ("trace", "Trace", _peers))


@dataclass(frozen=True)
class RouteTraceToOriginatorFromTarget(DirectBody):
    """A route trace travelling back to originator; the target is the first in trace."""

    originator: PeerID
    trace: tuple[PeerID, ...]
    _fields = (("originator", "Originator", _peer), ("trace", "trace", _peers))


@dataclass(frozen=True)
class RoutingInformationExchange(DirectBody):
    """The sender's routing costs; add one to get the cost through the sender."""

    entries: tuple[tuple[PeerID, int], ...]
    _fields = (("entries", "Entries", _entries),)


@dataclass(frozen=True)
class TellItToMeIn(DirectBody):
    """Chooses the protocol version to speak on the link."""

    version: str
    _fields = (("version", "Version", _text),)


@dataclass(frozen=True)
class UnknownVersion(DirectBody):
    """None of the offered protocol versions is supported."""


@dataclass(frozen=True)
class Who(DirectBody):
    """Asks the neighbour for its peer id."""


@dataclass(frozen=True)
class DirectPacket:
    """A direct body together with its checksum."""

    md5: str
    body: DirectBody

    @classmethod
    def from_body(cls, body: DirectBody) -> DirectPacket:
        """Wrap a body, computing its checksum."""
        return cls(body.checksum(), body)

    def verify(self) -> bool:
        """Return whether the stored checksum matches the body."""
        return self.md5 == self.body.checksum()

    def to_json(self) -> dict[str, Any]:
        """Return the wire form as JSON-compatible values."""
        return {"md5": self.md5, "body": self.body.to_json()}

    @classmethod
    def from_json(cls, data: Any) -> DirectPacket:
        """Build a packet from its wire form; raise ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("direct packet must be a JSON object")
        try:
            md5, body = data["md5"], data["body"]
        except KeyError as exc:
            raise ValueError(f"direct packet is missing field {exc.args[0]!r}") from None
        if not isinstance(md5, str):
            raise ValueError("direct packet md5 must be a string")
        return cls(md5, DirectBody.from_json(body))

    def dumps(self) -> str:
        """Serialise to compact JSON text."""
        return json.dumps(self.to_json(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def loads(cls, text: str) -> DirectPacket:
        """Parse JSON text; raise ValueError if it is not a direct packet."""
        return cls.from_json(json.loads(text))