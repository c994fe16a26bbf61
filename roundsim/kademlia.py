"""Kademlia-style routing over binary identifiers."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass

from roundsim.network import Peer


@dataclass
class KademliaMessage:
    req_id: int = -1
    bin_id: str = ""
    action: str = ""  # "R" for a routed request
    round_submitted: int = 0
    hops: int = 0


@dataclass(frozen=True)
class KademliaFinger:
    peer_id: int
    bin_id: str
    group: int  # index of the first bit that differs from the owner


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator


def _first_difference(left: str, right: str):
    return next((j for j, (a, b) in enumerate(zip(left, right)) if a != b), None)


class KademliaPeer(Peer):
    """A peer that routes requests by fixing one differing bit per hop."""

    def __init__(self, peer_id):
        super().__init__(peer_id)
        self.binary_id_size = 0
        self.fingers: list[KademliaFinger] = []
        self.requests_satisfied = 0
        self.total_hops = 0
        self.latency = 0
        self.alive = True
        self.own_binary_id = "-1"

    def _build_fingers(self) -> None:
        count = len(self.neighbors)
        self.binary_id_size = math.ceil(math.log2(count)) if count > 1 else 0
        self.own_binary_id = self.binary_id(self.peer_id)
        grouped: list[list[KademliaFinger]] = [[] for _ in range(self.binary_id_size)]
        for neighbor in self.neighbors:
            bin_id = self.binary_id(neighbor)
            group = _first_difference(bin_id, self.own_binary_id)
            if group is not None:
                grouped[group].append(KademliaFinger(neighbor, bin_id, group))
        for candidates in grouped:
            if candidates:
                self.fingers.insert(0, candidates[self.rand_mod(len(candidates))])

    def perform_computation(self) -> None:
        if not self.alive:
            return
        if self.round == 0 and not self.fingers:
            self._build_fingers()
        for packet in self.drain_inbox():
            message = packet.message
            if message.action != "R":
                continue
            if message.req_id == self.peer_id:
                self.requests_satisfied += 1
                self.latency += self.round - message.round_submitted
                self.total_hops += message.hops
            else:
                self.send_message(self.find_route(message.bin_id), message)

    def end_of_round(self, peers) -> None:
        peers[self.rand_mod(len(self.neighbors)) + 1].submit_trans()
        satisfied = sum(p.requests_satisfied for p in peers)
        hops = sum(p.total_hops for p in peers)
        self.log.setdefault("averageHops", []).append(_ratio(hops, satisfied))

    def binary_id(self, peer_id) -> str:
        """Return ``peer_id`` as a string of ``binary_id_size`` bits."""
        bits = []
        for power in (2**i for i in range(self.binary_id_size - 1, -1, -1)):
            if peer_id >= power:
                peer_id -= power
                bits.append("1")
            else:
                bits.append("0")
        return "".join(bits)

    def send_message(self, peer, message: KademliaMessage) -> None:
        self.unicast(peer, dataclasses.replace(message, hops=message.hops + 1))

    def submit_trans(self) -> None:
        req_id = self.rand_mod(len(self.neighbors) + 1)
        message = KademliaMessage(
            req_id=req_id,
            bin_id=self.binary_id(req_id),
            action="R",
            round_submitted=self.round,
        )
        if req_id == self.peer_id:
            self.requests_satisfied += 1
            self.total_hops += message.hops
        else:
            self.send_message(self.find_route(message.bin_id), message)
        self.shared["current_transaction"] = self.shared.get("current_transaction", 1) + 1

    def find_route(self, bin_id: str) -> int:
        """Return the finger covering ``bin_id``'s group, or -1 if none does."""
        group = _first_difference(bin_id, self.own_binary_id)
        if group is None:
            group = -1
        return next((f.peer_id for f in self.fingers if f.group == group), -1)