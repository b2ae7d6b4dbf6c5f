import pytest

from almeta.ids import (
    ICE,
    Incoming,
    LinkID,
    OfferID,
    Outgoing,
    PeerID,
    RoutingEntry,
    debug_repr,
)


def test_peer_id_equals_and_hashes_like_string():
    peer = PeerID("alpha")
    assert peer == "alpha"
    assert {peer: 1}["alpha"] == 1
    assert str(peer) == "alpha"
    assert f"{peer}" == "alpha"


def test_peer_id_ordering_follows_text():
    assert sorted([PeerID("b"), PeerID("a")]) == ["a", "b"]


def test_offer_id_to_inner_and_display():
    offer = OfferID(5)
    assert offer.to_inner() == 5
    assert int(str(offer)) == 5


def test_link_id_to_inner_and_display():
    link = LinkID(7)
    assert link.to_inner() == 7
    assert int(str(link)) == 7


def test_int_ids_order_and_equality():
    assert OfferID(1) < OfferID(2)
    assert LinkID(3) == LinkID(3)
    assert LinkID(1) != OfferID(1)


def test_int_id_conversion_between_kinds_keeps_value():
    link = LinkID(42)
    assert OfferID(link.to_inner()).to_inner() == link.to_inner()


def test_int_id_rejects_bool_and_non_int():
    with pytest.raises(TypeError):
        OfferID(True)
    with pytest.raises(TypeError):
        LinkID("1")


def test_int_id_rejects_out_of_range():
    with pytest.raises(ValueError):
        OfferID(2**31)
    with pytest.raises(ValueError):
        LinkID(-(2**31) - 1)


def test_ice_json_round_trip():
    ice = ICE("media", 1, "name")
    data = ice.to_json()
    assert set(data) == {"Media", "Index", "Name"}
    assert data["Media"] == "media"
    assert ICE.from_json(data) == ice


def test_ice_from_json_missing_field():
    with pytest.raises(ValueError):
        ICE.from_json({"Media": "m", "Index": 0})


def test_ice_from_json_wrong_type():
    with pytest.raises(ValueError):
        ICE.from_json({"Media": "m", "Index": "0", "Name": "n"})
    with pytest.raises(ValueError):
        ICE.from_json(["m", 0, "n"])


def test_routing_entry_orders_by_link_then_cost():
    entries = [RoutingEntry(LinkID(2), 1), RoutingEntry(LinkID(1), 5), RoutingEntry(LinkID(1), 3)]
    assert sorted(entries) == [
        RoutingEntry(LinkID(1), 3),
        RoutingEntry(LinkID(1), 5),
        RoutingEntry(LinkID(2), 1),
    ]


def test_routing_entry_rejects_negative_cost():
    with pytest.raises(ValueError):
        RoutingEntry(LinkID(1), -1)


def test_routing_entry_requires_link_id():
    with pytest.raises(TypeError):
        RoutingEntry(1, 0)


def test_outgoing_defaults_and_independent_lists():
    first = Outgoing(OfferID(1))
    second = Outgoing(OfferID(2))
    first.ice.append(ICE("m", 0, "n"))
    assert first.answer is None and first.peer is None
    assert second.ice == []
    assert len(first.ice) == 1


def test_incoming_holds_values():
    incoming = Incoming("offer", [ICE("m", 0, "n")], PeerID("p"))
    assert incoming.offer == "offer"
    assert incoming.for_peer == "p"
    assert Incoming().ice == []


def test_debug_repr_peer_id():
    assert debug_repr(PeerID("A")) == 'PeerID("A")'


def test_debug_repr_ice_struct():
    assert debug_repr(ICE("media", 1, "name")) == 'ICE { media: "media", index: 1, name: "name" }'


def test_debug_repr_offer_id():
    assert debug_repr(OfferID(69)) == "OfferID(69)"


def test_debug_repr_list_wraps_items():
    text = debug_repr(["x", "y"])
    assert text.startswith("[") and text.endswith("]")
    assert debug_repr("x") in text and debug_repr("y") in text


def test_debug_repr_escapes_quotes():
    assert '\\"' in debug_repr('a"b')
    assert debug_repr('a"b').count('"') == 3


def test_debug_repr_unknown_type():
    with pytest.raises(TypeError):
        debug_repr(object())