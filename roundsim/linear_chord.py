"""Linear Chord: peers keep short sorted lists of higher and lower neighbours."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from typing import Callable

from roundsim.network import Peer

_STALE_AFTER = 20
_HEARTBEAT_EVERY = 5


@dataclass
class LinearChordMessage:
    req_id: int = -1
    action: str = ""  # "R" for a routed request, "N" for a neighbour notice
    round_submitted: int = 0
    hops: int = 0


@dataclass
class LinearChordFinger:
    peer_id: int
    round_updated: int = 0


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator


class LinearChordPeer(Peer):
    """A peer on a line that routes requests towards their target id."""

    def __init__(self, peer_id):
        super().__init__(peer_id)
        self.successor: list[LinearChordFinger] = []
        self.predecessor: list[LinearChordFinger] = []
        self.requests_satisfied = 0
        self.total_hops = 0
        self.latency = 0
        self.redundant_size = 2
        self.alive = True

    def _finger(self, peer_id) -> LinearChordFinger:
        return LinearChordFinger(peer_id, self.round)

    def _build_fingers(self) -> None:
        for neighbor in self.neighbors:
            if neighbor < self.peer_id:
                self.predecessor.insert(0, self._finger(neighbor))
            elif neighbor > self.peer_id:
                self.successor.insert(0, self._finger(neighbor))

    def perform_computation(self) -> None:
        if not self.alive:
            return
        if self.round == 0 and not self.successor and not self.predecessor:
            self._build_fingers()
        if self.round % _HEARTBEAT_EVERY == 0:
            self.heart_beat()
        for packet in self.drain_inbox():
            message = packet.message
            if message.action == "R":
                self._route_request(message, count_latency=True)
            elif message.req_id != self.peer_id:
                self._handle_notice(message)

    def _satisfy(self, message: LinearChordMessage, count_latency: bool) -> None:
        self.requests_satisfied += 1
        if count_latency:
            self.latency += self.round - message.round_submitted
        self.total_hops += message.hops

    def _route_request(self, message: LinearChordMessage, *, count_latency: bool) -> None:
        req_id = message.req_id
        if req_id == self.peer_id:
            self._satisfy(message, count_latency)
        elif req_id > self.peer_id:
            if self.successor:
                following = self.successor[0].peer_id
                if req_id < following or following < self.peer_id:
                    self._satisfy(message, count_latency)
                else:
                    self.send_message(following, message)
        elif self.predecessor:
            self.send_message(self.predecessor[0].peer_id, message)
        else:
            self.send_message(self.peer_id, message)

    def _insert_ordered(
        self,
        fingers: list[LinearChordFinger],
        req_id: int,
        comes_before: Callable[[int, int], bool],
    ) -> bool:
        for index, finger in enumerate(fingers):
            if comes_before(req_id, finger.peer_id):
                fingers.insert(index, self._finger(req_id))
                return True
            if req_id == finger.peer_id:
                finger.round_updated = self.round
                return False
        return False

    def _handle_notice(self, message: LinearChordMessage) -> None:
        req_id = message.req_id
        added = False
        if req_id > self.peer_id:
            fingers = self.successor
            if not fingers:
                fingers.insert(0, self._finger(req_id))
                added = True
            elif len(fingers) == 1 and req_id != fingers[0].peer_id:
                if req_id < fingers[0].peer_id:
                    fingers.insert(0, self._finger(req_id))
                else:
                    fingers.append(self._finger(req_id))
                added = True
            else:
                added = self._insert_ordered(fingers, req_id, lambda a, b: a < b)
                if not added:
                    self.send_message(fingers[0].peer_id, message)
        elif req_id < self.peer_id:
            fingers = self.predecessor
            if not fingers:
                fingers.insert(0, self._finger(req_id))
            if len(fingers) == 1 and req_id != fingers[0].peer_id:
                if req_id > fingers[0].peer_id:
                    fingers.insert(0, self._finger(req_id))
                else:
                    fingers.append(self._finger(req_id))
            else:
                added = self._insert_ordered(fingers, req_id, lambda a, b: a > b)
                if not added:
                    self.send_message(fingers[0].peer_id, message)
        if added:
            self._announce(req_id, message)

    def _announce(self, req_id: int, message: LinearChordMessage) -> None:
        for finger in [*self.successor, *self.predecessor]:
            if finger.peer_id != req_id:
                self.send_message(finger.peer_id, message)
                reply_id = finger.peer_id
            else:
                reply_id = self.peer_id
            self.send_message(req_id, LinearChordMessage(req_id=reply_id, action="N"))
        self._trim(self.successor)
        self._trim(self.predecessor)

    def _trim(self, fingers: list[LinearChordFinger]) -> None:
        index = self.redundant_size
        while index < len(fingers):
            fingers.pop()
            index += 1

    def end_of_round(self, peers) -> None:
        self.shared["number_of_nodes"] = len(peers)
        peers[self.rand_mod(len(peers))].submit_trans()
        satisfied = sum(p.requests_satisfied for p in peers)
        hops = sum(p.total_hops for p in peers)
        self.log.setdefault("averageHops", []).append(_ratio(hops, satisfied))

    def heart_beat(self) -> None:
        """Notify fresh fingers that this peer is alive and drop stale ones."""
        if not self.alive:
            return
        notice = LinearChordMessage(req_id=self.peer_id, action="N")
        for fingers in (self.successor, self.predecessor):
            fresh = [f for f in fingers if f.round_updated + _STALE_AFTER > self.round]
            for finger in fresh:
                self.send_message(finger.peer_id, notice)
            fingers[:] = fresh

    def send_message(self, peer, message: LinearChordMessage) -> None:
        self.unicast(peer, dataclasses.replace(message, hops=message.hops + 1))

    def submit_trans(self) -> None:
        req_id = self.rand_mod(self.shared.get("number_of_nodes", 0))
        message = LinearChordMessage(req_id=req_id, action="R", round_submitted=self.round)
        self._route_request(message, count_latency=False)
        self.shared["current_transaction"] = self.shared.get("current_transaction", 1) + 1