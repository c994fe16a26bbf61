"""Data model and run-wide settings for the sharded consensus protocol."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass
class SmartShardsMember:
    """A member of a shard as seen by the other members."""

    peer_id: int = -1
    leader: bool = False
    shards: set[int] = field(default_factory=set)


@dataclass
class SmartShardsMessage:
    sender_id: int = -1
    trans: int = -1
    cross_shard_transaction: bool = False
    shard: int = -1
    message_type: str = ""
    round_submitted: int = 0
    # kind of churn ("leave", "join", "join2") and the id of the churning peer
    churning_nodes: list[tuple[str, int]] = field(default_factory=list)
    members: list[SmartShardsMember] = field(default_factory=list)


# experiment parameter name -> (attribute, conversion)
_PARAMETERS = {
    "s": ("number_of_shards", int),
    "churnRate": ("churn_rate", int),
    "maxLeaveDelay": ("max_leave_delay", int),
    "ChurnOption": ("churn_option", int),
    "creationThreshold": ("creation_threshold", float),
    "removalThreshold": ("removal_threshold", float),
    "flipRound": ("flip_round", int),
}


@dataclass
class ShardSettings:
    """Values shared by every peer of one sharded run.

    ``churn_option``: 0 joins two random shards, 1 joins one and is routed to
    a second, 2 permits no churn, 3 is like 1 but balances routed joins.
    ``flip_round`` of -1 allows joins and leaves throughout; otherwise only
    joins happen before it and only leaves after it.
    """

    current_transaction: int = 1
    next_joining_node: int = 0
    number_of_shards: int = 0
    churn_rate: int = 0
    max_leave_delay: int = 10000
    churn_option: int = 0
    creation_threshold: float = 10000.0
    removal_threshold: float = -1.0
    flip_round: int = -1
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def reset(self) -> None:
        """Restore every setting to its default."""
        defaults = ShardSettings()
        with self._lock:
            self.current_transaction = defaults.current_transaction
            self.next_joining_node = defaults.next_joining_node
            self.number_of_shards = defaults.number_of_shards
            self.churn_rate = defaults.churn_rate
            self.max_leave_delay = defaults.max_leave_delay
            self.churn_option = defaults.churn_option
            self.creation_threshold = defaults.creation_threshold
            self.removal_threshold = defaults.removal_threshold
            self.flip_round = defaults.flip_round

    def update(self, parameters: Mapping[str, Any]) -> None:
        """Take the settings present in an experiment's parameters."""
        for key, (attribute, convert) in _PARAMETERS.items():
            if key in parameters:
                setattr(self, attribute, convert(parameters[key]))

    def next_transaction(self) -> int:
        """Return a fresh transaction id; safe to call from several threads."""
        with self._lock:
            value = self.current_transaction
            self.current_transaction += 1
            return value