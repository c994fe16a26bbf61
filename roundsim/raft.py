"""Raft-style leader election with a leader that replicates transactions."""

from __future__ import annotations

import math
from dataclasses import dataclass

from roundsim.network import Peer


@dataclass
class RaftMessage:
    sender_id: int = -1
    trans: int = -1  # transaction id; for a vote, the id of the peer voted for
    term_num: int = -1
    message_type: str = ""  # "vote", "elect", "request" or "respondRequest"
    round_submitted: int = 0


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator


class RaftPeer(Peer):
    """A peer that follows the current leader or stands for election on timeout."""

    TIME_OUT_SPACING = 100
    TIME_OUT_RANDOM = 5

    def __init__(self, peer_id):
        super().__init__(peer_id)
        self.candidate = -1
        self.requests_satisfied = 0
        self.latency = 0
        self.time_out_round = 100
        self.term = 0
        self.leader_id = 0
        self.votes: list[int] = []
        self.replys: dict[int, list[int]] = {}

    @property
    def _current_transaction(self) -> int:
        return self.shared.get("current_transaction", 1)

    def perform_computation(self) -> None:
        self.check_in_stream()
        if self.round == 0:
            self.submit_trans(self._current_transaction)
        if self.time_out_round <= self.round:
            self.candidate = self.peer_id
            self.leader_id = -1
            self.term += 1
            self.votes.clear()
            self.reset_timer()
            self.broadcast(
                RaftMessage(
                    sender_id=self.peer_id,
                    term_num=self.term,
                    message_type="elect",
                )
            )

    def end_of_round(self, peers) -> None:
        satisfied = float(sum(p.requests_satisfied for p in peers))
        latency = sum(p.latency for p in peers)
        self.log.setdefault("latency", []).append(_ratio(latency, satisfied))

    def check_in_stream(self) -> None:
        """Respond to every message received this round."""
        for packet in self.drain_inbox():
            message = packet.message
            kind = message.message_type
            if kind == "request":
                self._on_request(message)
            elif kind == "respondRequest":
                self._on_respond_request(message)
            elif kind == "vote":
                self._on_vote(message)
            elif kind == "elect":
                self._on_elect(message)

    def _on_request(self, message: RaftMessage) -> None:
        if self.term > message.term_num:
            return
        self.term = message.term_num
        self.leader_id = message.sender_id
        self.votes.clear()
        self.candidate = -1
        self.reset_timer()
        self.send_message(
            message.sender_id,
            RaftMessage(
                sender_id=self.peer_id,
                trans=message.trans,
                message_type="respondRequest",
                round_submitted=message.round_submitted,
            ),
        )

    def _on_respond_request(self, message: RaftMessage) -> None:
        replies = self.replys.setdefault(message.trans, [])
        replies.append(message.sender_id)
        if len(replies) == len(self.neighbors) // 2:
            self.requests_satisfied += 1
            self.latency += self.round - message.round_submitted
            self.submit_trans(self._current_transaction)

    def _on_vote(self, message: RaftMessage) -> None:
        if self.leader_id == self.peer_id or message.trans != self.peer_id:
            return
        self.votes.append(message.sender_id)
        if len(self.votes) > len(self.neighbors) // 2:
            self.reset_timer()
            self.leader_id = self.peer_id
            self.candidate = -1
            self.votes.clear()
            self.submit_trans(self._current_transaction)

    def _on_elect(self, message: RaftMessage) -> None:
        if self.term >= message.term_num:
            return
        self.leader_id = message.sender_id
        self.term = message.term_num
        self.votes.clear()
        self.candidate = message.sender_id
        self.reset_timer()
        self.send_message(
            message.sender_id,
            RaftMessage(
                sender_id=self.peer_id,
                trans=message.sender_id,
                term_num=message.term_num,
                message_type="vote",
                round_submitted=message.round_submitted,
            ),
        )

    def submit_trans(self, tran_id) -> None:
        """Broadcast a transaction request if this peer is the leader."""
        if self.leader_id != self.peer_id:
            return
        self.broadcast(
            RaftMessage(
                sender_id=self.peer_id,
                trans=tran_id,
                term_num=self.term,
                message_type="request",
                round_submitted=self.round,
            )
        )
        self.reset_timer()
        self.shared["current_transaction"] = self._current_transaction + 1

    def reset_timer(self) -> None:
        """Schedule the next election timeout a little over a hundred rounds ahead."""
        self.time_out_round = (
            self.rand_mod(self.TIME_OUT_RANDOM) + self.TIME_OUT_SPACING + self.round
        )

    def send_message(self, peer, message: RaftMessage) -> None:
        self.unicast(peer, message)