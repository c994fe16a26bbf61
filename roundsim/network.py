"""Round-based message-passing network: peers, packets and the simulation loop."""

from __future__ import annotations

import copy
import random
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Sequence


@dataclass(frozen=True)
class Packet:
    """A message in flight from one peer to another."""

    round_sent: int
    target: int
    source: int
    message: Any


@dataclass
class _RoundContext:
    """State shared by every peer taking part in one test run."""

    rng: random.Random
    round: int = 0
    last_round: int = 0
    log: dict = field(default_factory=dict)
    shared: dict = field(default_factory=dict)


class Peer(ABC):
    """A node of the simulated network.

    Subclasses implement :meth:`perform_computation`, which runs once per
    round for every peer, and may override :meth:`init_parameters` and
    :meth:`end_of_round`, which run once per test and once per round on the
    first peer only.
    """

    def __init__(self, peer_id):
        self.peer_id = peer_id
        self._neighbors: list[int] = []
        self._inbox: deque[Packet] = deque()
        self.outbox: list[Packet] = []
        self._context = _RoundContext(rng=random.Random())

    @property
    def neighbors(self) -> tuple[int, ...]:
        return tuple(self._neighbors)

    @property
    def round(self) -> int:
        return self._context.round

    @property
    def last_round(self) -> int:
        return self._context.last_round

    @property
    def log(self) -> dict:
        """The log of the current test; written by ``end_of_round``."""
        return self._context.log

    @property
    def shared(self) -> dict:
        """Values shared by all peers of the current test."""
        return self._context.shared

    def add_neighbor(self, peer_id) -> None:
        """Connect to ``peer_id``; duplicates and self-links are ignored."""
        if peer_id != self.peer_id and peer_id not in self._neighbors:
            self._neighbors.append(peer_id)

    def receive(self, packet: Packet) -> None:
        self._inbox.append(packet)

    def drain_inbox(self) -> Iterator[Packet]:
        """Yield and remove received packets in arrival order."""
        while self._inbox:
            yield self._inbox.popleft()

    def inbox_empty(self) -> bool:
        return not self._inbox

    def unicast(self, target, message) -> None:
        """Queue a copy of ``message`` for delivery to ``target``."""
        self.outbox.append(
            Packet(self.round, target, self.peer_id, copy.deepcopy(message))
        )

    def broadcast(self, message) -> None:
        for neighbor in self._neighbors:
            self.unicast(neighbor, message)

    def clear_messages(self) -> None:
        self._inbox.clear()
        self.outbox.clear()

    def rand_mod(self, n) -> int:
        """Return a random integer in ``[0, n)``."""
        if n <= 0:
            raise ValueError(f"rand_mod needs a positive bound, got {n}")
        return self._context.rng.randrange(n)

    def is_last_round(self) -> bool:
        return self.round == self.last_round

    def init_parameters(self, peers: Sequence["Peer"], parameters: dict) -> None:
        """Configure the peers from the experiment's parameters."""

    @abstractmethod
    def perform_computation(self) -> None:
        """Run one step of the algorithm with the messages received."""

    def end_of_round(self, peers: Sequence["Peer"]) -> None:
        """Gather metrics once per round after all peers have computed."""


def _connect(peers: list[Peer], kind: str) -> None:
    count = len(peers)
    if kind == "complete":
        for peer in peers:
            for other in peers:
                peer.add_neighbor(other.peer_id)
    elif kind == "star":
        for peer in peers[1:]:
            peers[0].add_neighbor(peer.peer_id)
            peer.add_neighbor(peers[0].peer_id)
    elif kind == "ring":
        for index, peer in enumerate(peers):
            peer.add_neighbor(peers[(index + 1) % count].peer_id)
            peer.add_neighbor(peers[(index - 1) % count].peer_id)
    elif kind == "unidirectionalRing":
        for index, peer in enumerate(peers):
            peer.add_neighbor(peers[(index + 1) % count].peer_id)
    elif kind == "chain":
        for left, right in zip(peers, peers[1:]):
            left.add_neighbor(right.peer_id)
            right.add_neighbor(left.peer_id)
    elif kind != "none":
        raise ValueError(f"unknown topology type: {kind!r}")


class Simulation:
    """Runs experiments over peers built by ``peer_factory``."""

    def __init__(self, peer_factory: Callable[[int], Peer], seed=None):
        self.peer_factory = peer_factory
        self._rng = random.Random(seed)

    def run(self, experiment: dict) -> list[dict]:
        """Run every test of ``experiment`` and return one log per test."""
        tests = int(experiment.get("tests", 1))
        if tests < 0:
            raise ValueError("number of tests cannot be negative")
        return [self._run_test(experiment) for _ in range(tests)]

    def _run_test(self, experiment: dict) -> dict:
        topology = experiment.get("topology", {})
        initial = int(topology.get("initialPeers", 0))
        total = int(topology.get("totalPeers", initial))
        if initial < 0 or total < initial:
            raise ValueError("totalPeers must be at least initialPeers")
        rounds = int(experiment.get("rounds", 0))
        if rounds < 0:
            raise ValueError("number of rounds cannot be negative")
        max_delay = int(experiment.get("distribution", {}).get("maxDelay", 1))
        if max_delay < 1:
            raise ValueError("maxDelay must be at least 1")

        context = _RoundContext(rng=self._rng, last_round=rounds - 1)
        peers = [self.peer_factory(peer_id) for peer_id in range(total)]
        for peer in peers:
            peer._context = context
        _connect(peers[:initial], topology.get("type", "complete"))
        by_id = {peer.peer_id: peer for peer in peers}

        if peers:
            peers[0].init_parameters(peers, experiment.get("parameters", {}))

        pending: dict[int, list[Packet]] = defaultdict(list)
        for current in range(rounds):
            context.round = current
            for packet in pending.pop(current, []):
                target = by_id.get(packet.target)
                if target is not None:
                    target.receive(packet)
            for peer in peers:
                peer.perform_computation()
            if peers:
                peers[0].end_of_round(peers)
            for peer in peers:
                for packet in peer.outbox:
                    delay = 1 if max_delay == 1 else self._rng.randint(1, max_delay)
                    pending[current + delay].append(packet)
                peer.outbox.clear()
        return context.log