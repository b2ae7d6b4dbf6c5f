import dataclasses
import hashlib
import json

import pytest

from almeta.ids import ICE, LinkID, OfferID
from almeta.packet import (
    Answer,
    Goodbye,
    InvalidPacket,
    NewICE,
    Offer,
    Packet,
    PacketBody,
    RequestOffer,
    RequestTraceToMe,
    ReturnRouteTrace,
    UserJSON,
)


def _ice():
    return ICE("media", 1, "name")


BODIES = {
    "answer": lambda: Answer("Answer", OfferID(1), (_ice(),)),
    "offer": lambda: Offer("Offer", OfferID(1), (_ice(),)),
    "invalid_packet": lambda: InvalidPacket(),
    "goodbye": lambda: Goodbye(),
    "new_ice": lambda: NewICE(LinkID(1), _ice()),
    "request_offer": lambda: RequestOffer(),
    "request_trace_to_me": lambda: RequestTraceToMe(),
    "return_route_trace": lambda: ReturnRouteTrace(("A", "B")),
}


@pytest.mark.parametrize("name", sorted(BODIES))
def test_verify(name):
    packet = Packet.new("A", "B", BODIES[name]())
    assert packet.verify() is True


@pytest.mark.parametrize("name", sorted(BODIES))
def test_json_round_trip(name):
    packet = Packet.new("A", "B", BODIES[name]())
    assert Packet.loads(packet.dumps()) == packet


@pytest.mark.parametrize("name", sorted(BODIES))
def test_from_json_of_to_json(name):
    packet = Packet.new("A", "B", BODIES[name]())
    assert Packet.from_json(packet.to_json()) == packet


@pytest.mark.parametrize("name", sorted(BODIES))
def test_tampered_checksum_fails(name):
    packet = Packet.new("A", "B", BODIES[name]())
    assert dataclasses.replace(packet, md5="0" * 32).verify() is False


def test_changed_destination_fails_verify():
    packet = Packet.new("A", "B", RequestOffer())
    assert dataclasses.replace(packet, destination="C").verify() is False


def test_md5_is_digest_of_canonical_form():
    packet = Packet.new("A", "B", Goodbye())
    expected = hashlib.md5(packet.to_canonical_form().encode("utf-8")).hexdigest()
    assert packet.md5 == expected
    assert packet.checksum() == expected


def test_unit_canonical_form():
    packet = Packet.new("A", "B", RequestOffer())
    assert packet.to_canonical_form() == 'Packet:A:B:"RequestOffer"'


def test_answer_canonical_form():
    body = BODIES["answer"]()
    assert body.to_canonical_form() == (
        'Answer:"Answer":1:[ICE { media: "media", index: 1, name: "name" }]'
    )


def test_new_ice_canonical_form():
    body = BODIES["new_ice"]()
    assert body.to_canonical_form() == 'NewICE:1:ICE { media: "media", index: 1, name: "name" }'


def test_return_route_trace_canonical_form_is_escaped_in_packet():
    body = BODIES["return_route_trace"]()
    assert body.to_canonical_form() == 'ReturnRouteTrace:[PeerID("A"), PeerID("B")]'
    packet = Packet.new("A", "B", body)
    assert packet.to_canonical_form() == (
        'Packet:A:B:"ReturnRouteTrace:[PeerID(\\"A\\"), PeerID(\\"B\\")]"'
    )


def test_packet_wire_keys_and_unit_body():
    wire = Packet.new("A", "B", RequestOffer()).to_json()
    assert list(wire) == ["Source", "Destination", "Body", "MD5"]
    assert wire["Body"] == "RequestOffer"
    assert wire["Source"] == "A"


def test_answer_wire_form():
    assert BODIES["answer"]().to_json() == {
        "Answer": {
            "Answer": "Answer",
            "OfferID": 1,
            "ICE": [{"Media": "media", "Index": 1, "Name": "name"}],
        }
    }


def test_new_ice_and_trace_wire_form():
    assert BODIES["new_ice"]().to_json() == {
        "NewICE": {"LinkID": 1, "ICE": {"Media": "media", "Index": 1, "Name": "name"}}
    }
    assert BODIES["return_route_trace"]().to_json() == {"ReturnRouteTrace": {"trace": ["A", "B"]}}


def test_custom_encoding_round_trip():
    packet = Packet.new("A", "B", Offer("offer", OfferID(2)))
    text = packet.dumps(encode=str.upper)
    assert json.loads(text)["Body"]["Offer"]["Offer"] == "OFFER"
    restored = Packet.loads(text, decode_offer=str.lower)
    assert restored == packet
    assert restored.verify() is True


def test_unit_body_accepts_null_payload():
    assert PacketBody.from_json({"Goodbye": None}) == Goodbye()


@pytest.mark.parametrize(
    "data",
    [
        "Nope",
        {"Answer": {"Answer": "a"}},
        {"Answer": {"Answer": "a", "OfferID": "x", "ICE": []}},
        {"NewICE": {"LinkID": 1, "ICE": {"Media": "m"}}},
        {"Goodbye": {"x": 1}},
        {"ReturnRouteTrace": {"trace": [1]}},
        ["Goodbye"],
    ],
)
def test_malformed_bodies_rejected(data):
    with pytest.raises(ValueError):
        PacketBody.from_json(data)


def test_malformed_packets_rejected():
    with pytest.raises(ValueError):
        Packet.from_json([])
    with pytest.raises(ValueError):
        Packet.from_json({"Source": "A", "Destination": "B", "Body": "Goodbye"})
    with pytest.raises(ValueError):
        Packet.loads("not json")


def test_answer_needs_offer_id():
    with pytest.raises(TypeError):
        Answer("a", 1)


def test_user_json_round_trip():
    user = UserJSON("B", BODIES["offer"]())
    wire = user.to_json()
    assert list(wire) == ["Destination", "Type"]
    assert wire["Type"] == BODIES["offer"]().to_json()
    assert UserJSON.from_json(json.loads(json.dumps(wire))) == user


def test_user_json_rejects_non_object():
    with pytest.raises(ValueError):
        UserJSON.from_json("B")