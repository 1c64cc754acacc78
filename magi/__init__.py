"""Building blocks for an OP stack rollup node: engine types, blob decoding, gossip checks."""

__version__ = "0.1.0"