"""Stable data link: a sender retransmits until enough acknowledgements arrive."""

from __future__ import annotations

import math
from dataclasses import dataclass

from roundsim.network import Peer


@dataclass
class StableDataLinkMessage:
    action: str = ""  # "data" or "ack"
    message_num: int = 0
    round_submitted: int = 0


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator


class StableDataLinkPeer(Peer):
    """Peer 0 sends data to peer 1, which acknowledges each copy."""

    def __init__(self, peer_id):
        super().__init__(peer_id)
        self.c = 1
        self.requests_satisfied = 0
        self.messages_sent = 0
        self.ack = 0
        self.message_loss_num = 0
        self.message_loss_den = 1
        self.time_out_rate = 4
        self.previous_message_round = 0
        self.alive = True

    @property
    def _current_transaction(self) -> int:
        return self.shared.get("current_transaction", 1)

    def perform_computation(self) -> None:
        if not self.alive:
            return
        if self.round == 0 and self.peer_id == 0:
            self.submit_trans(self._current_transaction)
        if self.previous_message_round + self.time_out_rate < self.round:
            action, target = ("data", 1) if self.peer_id == 0 else ("ack", 0)
            self.previous_message_round = self.round
            self.send_message(
                target,
                StableDataLinkMessage(action, self._current_transaction - 1, self.round),
            )
        for packet in self.drain_inbox():
            message = packet.message
            if self.rand_mod(self.message_loss_den) < self.message_loss_num:
                continue
            if message.action == "ack":
                self.ack += 1
                self.previous_message_round = self.round
                if self.ack < 3 * self.c + 2:
                    message.action = "data"
                    self.send_message(1, message)
                else:
                    self.requests_satisfied += 1
                    self.submit_trans(self._current_transaction)
                    self.ack = 0
            elif message.action == "data":
                message.action = "ack"
                self.previous_message_round = self.round
                self.send_message(0, message)

    def end_of_round(self, peers) -> None:
        satisfied = sum(p.requests_satisfied for p in peers)
        messages = sum(p.messages_sent for p in peers)
        self.log.setdefault("utility", []).append(_ratio(satisfied, messages) * 100)

    def send_message(self, peer, message: StableDataLinkMessage) -> None:
        self.unicast(peer, message)
        self.messages_sent += 1

    def submit_trans(self, tran_id) -> None:
        self.send_message(1, StableDataLinkMessage("data", tran_id, self.round))
        self.shared["current_transaction"] = self._current_transaction + 1