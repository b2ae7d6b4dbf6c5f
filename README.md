# almeta

The logic of a peer in a peer-to-peer mesh, without any transport of its own.
A node never opens sockets or data channels. You report events to it, and it
puts `Command` objects on its `command_queue` (a `collections.deque`). Your
transport layer takes the commands off the queue and carries them out. A
command asks the transport to generate an offer, answer an offer, apply an
answer, add an ICE candidate, or send a packet over a link.

## What it provides

- `almeta.ids` holds the identifiers and small records: `PeerID`, `LinkID`,
  `OfferID`, `ICE`, `RoutingEntry`, `Incoming` and `Outgoing`. It also has
  `debug_repr`, which renders the notation that checksums are computed over.
- `almeta.direct_packet` holds the link-local messages. These are `Greetings`,
  `TellItToMeIn`, `Who`/`Me`, `NotYouAgain`, `RoutingInformationExchange`,
  `LostRouteTo`, `DistanceIncrease`, `DearJohn`, `Goodbye`, the two
  route-trace messages, and others. `DirectPacket` seals a body with the MD5
  of its canonical form. `from_body`, `verify`, `dumps` and `loads` handle the
  checksum and the JSON.
- `almeta.packet` holds routed packets. `Packet.new(source, destination, body)`
  builds one and computes its checksum. The bodies are `Answer`, `Offer`,
  `NewICE`, `RequestOffer`, `RequestTraceToMe`, `ReturnRouteTrace`,
  `InvalidPacket` and `Goodbye`. `UserJSON` pairs a body with a destination.
  Answers and offers can be any value. You pass `encode`/`decode_answer`/
  `decode_offer` callables to turn them into JSON and back.
- `almeta.command` holds the commands: `AddICE`, `AnswerOffer`,
  `GenerateAnswer`, `GenerateOffer`, `Send`, `SendDirect`, `UserAnswer` and
  `UserOffer`. `str(command)` gives the command's compact JSON.
- `almeta.peerigee` and `almeta.scoring` score neighbours. `Peerigee` records
  when each neighbour delivers a packet. Only packets seen at least three
  times are scored. For each neighbour it uses the mean and the standard
  deviation of that neighbour's delay behind the first sighting. It keeps the
  best eight as keepers, and it names a neighbour to drop when one is clearly
  slower than another.
- `almeta.alt_scoring` offers another scorer. `NeighborInfo.who_to_purge(c)`
  compares confidence bounds around the 90th percentile of each neighbour's
  delays.
- `almeta.node_core` and `almeta.node` hold the node itself. `NodeCore` holds
  the links, the offers and answers, the routing table and the upkeep of the
  neighbour set. `Node` adds packet handling on top:
  - the greeting handshake on a new link;
  - distance-vector routing, with route traces to detect loops;
  - `LostRouteTo` and `DistanceIncrease` propagation;
  - forwarding of packets meant for other peers.

## Installing

```
pip install .
```

To install the test dependencies as well:

```
pip install .[test]
```

## A short example

```python
from almeta.direct_packet import DirectPacket, Who
from almeta.node import Node

node = Node("PeerA", 1)

link_id, offer_id = node.generate_offer(None)
# The host takes GenerateOffer off node.command_queue, creates the offer,
# and reports it back; with no peer named, the node queues UserOffer:
node.on_offer_generated(link_id, "offer-sdp")

# When the data channel opens, the node queues a Greetings message:
node.link_established(link_id)

# Hand every packet that arrives on the link to the node, with a timestamp:
node.receive_packet(link_id, DirectPacket.from_body(Who()).dumps(), 0)

while node.command_queue:
    command = node.command_queue.popleft()
    print(command)
```

The arguments after the node's id and random seed are optional. They are
`encode`, `decode_answer` and `decode_offer`. Give them when your answers and
offers are not plain JSON values.

Call `tick()` for periodic upkeep. It evaluates the neighbours first. That
may send `DearJohn` to one that is clearly slower. While the node has no more
than eight neighbours, it also asks peers from its routing table for offers.
Then it shares the node's routing costs with each neighbour.

## Running the simulation

The simulation runs three peers in memory. They connect to each other through
offers and answers meant for the user. Then the second peer ticks and the
simulation runs again:

```
almeta-sim
```

The command prints the commands and messages of each round, then each peer's
neighbours. `almeta.simulation.NetworkSim` can also be driven from code. Its
`sim()` returns the number of rounds it used.

## What it does not do

- The package has no transport of its own. It carries no WebRTC, sockets or
  timers. The host has to deliver packets, report links opening and closing,
  and call `tick()`.
- `Node` has no handling for some messages, and raises `RuntimeError` when it
  meets one:
  - the direct messages `Goodbye`, `InvalidPacket`, `InvalidSalutation` and
    `UnknownVersion`;
  - the routed `Goodbye` body.
- Nothing is stored. All state lives in memory.
- The node writes diagnostics through the standard `logging` module only.

## Tests

```
pytest
```