"""Peer-to-peer mesh node logic: identifiers, checksummed packets, commands, routing and neighbour scoring."""

__version__ = "0.1.0"

__all__ = [
    "alt_scoring",
    "command",
    "direct_packet",
    "ids",
    "node",
    "node_core",
    "packet",
    "peerigee",
    "scoring",
    "simulation",
]