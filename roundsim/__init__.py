"""Round-based simulation of distributed algorithms."""

__version__ = "0.1.0"

__all__ = [
    "network",
    "kademlia",
    "datalink",
    "linear_chord",
    "pbft",
    "paxos",
    "raft",
    "shard_model",
]