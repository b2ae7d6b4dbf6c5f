import json

import pytest

from almeta.command import (
    AddICE,
    AnswerOffer,
    GenerateAnswer,
    GenerateOffer,
    Send,
    SendDirect,
    UserAnswer,
    UserOffer,
)
from almeta.direct_packet import DirectPacket, Who
from almeta.ids import ICE, LinkID
from almeta.packet import Packet, RequestOffer


def test_generate_offer_wire_form():
    command = GenerateOffer(LinkID(3))
    assert command.to_json() == {"GenerateOffer": 3}
    assert command.dumps() == '{"GenerateOffer":3}'


def test_str_is_json_text():
    command = GenerateOffer(LinkID(3))
    assert str(command) == command.dumps()


def test_add_ice_wire_form():
    ice = ICE("audio", 0, "candidate")
    command = AddICE(LinkID(1), ice)
    assert command.to_json() == {"AddICE": {"link_id": 1, "ice": ice.to_json()}}


@pytest.mark.parametrize(
    "command",
    [
        AnswerOffer(LinkID(1), "answer"),
        GenerateAnswer(LinkID(2), "offer"),
        UserAnswer(LinkID(3), "answer"),
        UserOffer(LinkID(4), "offer"),
        GenerateOffer(LinkID(5)),
        AddICE(LinkID(6), ICE("m", 2, "n")),
    ],
)
def test_text_matches_wire_form(command):
    assert json.loads(command.dumps()) == command.to_json()
    assert list(command.to_json()) == [type(command).__name__]


def test_encoder_applied_to_answer_and_offer():
    assert AnswerOffer(LinkID(1), 5).to_json(encode=str) == {
        "AnswerOffer": {"link_id": 1, "answer": "5"}
    }
    assert UserOffer(LinkID(2), 7).to_json(encode=str) == {
        "UserOffer": {"link_id": 2, "offer": "7"}
    }


def test_send_carries_packet_wire_form():
    packet = Packet.new("A", "B", RequestOffer())
    command = Send(LinkID(2), packet)
    assert command.to_json() == {"Send": {"link_id": 2, "packet": packet.to_json()}}


def test_send_direct_carries_direct_packet():
    packet = DirectPacket.from_body(Who())
    wire = SendDirect(LinkID(4), packet).to_json()
    assert wire["SendDirect"]["packet"] == packet.to_json()
    assert DirectPacket.from_json(wire["SendDirect"]["packet"]) == packet


def test_link_id_must_be_link_id():
    with pytest.raises(TypeError):
        GenerateOffer(3)


def test_send_direct_rejects_routed_packet():
    with pytest.raises(TypeError):
        SendDirect(LinkID(1), Packet.new("A", "B", RequestOffer()))