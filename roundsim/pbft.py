"""PBFT consensus with a fixed leader, one transaction at a time."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass

from roundsim.network import Peer


@dataclass
class PBFTMessage:
    sender_id: int = -1
    trans: int = -1
    sequence_num: int = -1
    message_type: str = ""  # "trans", "pre-prepare", "prepare" or "commit"
    round_submitted: int = 0


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator


class PBFTPeer(Peer):
    """A replica; peer 0 is the leader that proposes transactions."""

    def __init__(self, peer_id):
        super().__init__(peer_id)
        self.status = "pre-prepare"
        self.sequence_num = 0
        self.received_messages: list[list[PBFTMessage]] = []
        self.transactions: list[PBFTMessage] = []
        self.confirmed_trans: list[PBFTMessage] = []
        self.latency = 0
        self.submit_rate = 20

    @property
    def _current_transaction(self) -> int:
        return self.shared.get("current_transaction", 1)

    def perform_computation(self) -> None:
        if self.peer_id == 0 and self.round == 0:
            self.submit_trans(self._current_transaction)
        self.check_in_stream()
        self.check_contents()

    def end_of_round(self, peers) -> None:
        length = len(peers[0].confirmed_trans)
        self.log.setdefault("latency", []).append(_ratio(self.latency, length))

    def check_in_stream(self) -> None:
        """File received messages as transactions or by sequence number."""
        for packet in self.drain_inbox():
            message = packet.message
            if message.message_type == "trans":
                self.transactions.append(message)
            else:
                while len(self.received_messages) < message.sequence_num + 1:
                    self.received_messages.append([])
                self.received_messages[message.sequence_num].append(message)

    def _record(self, message: PBFTMessage) -> None:
        self.broadcast(message)
        self.received_messages[self.sequence_num].append(message)

    def _count(self, kind: str) -> int:
        return sum(
            1 for m in self.received_messages[self.sequence_num] if m.message_type == kind
        )

    def _quorum_reached(self, kind: str) -> bool:
        return self._count(kind) > len(self.neighbors) * 2 // 3

    def check_contents(self) -> None:
        """Advance the consensus phase as far as the messages allow."""
        if self.peer_id == 0 and self.status == "pre-prepare":
            confirmed = {m.trans for m in self.confirmed_trans}
            proposal = next(
                (t for t in self.transactions if t.trans not in confirmed), None
            )
            if proposal is not None:
                self.status = "prepare"
                message = dataclasses.replace(
                    proposal,
                    message_type="pre-prepare",
                    sender_id=self.peer_id,
                    sequence_num=self.sequence_num,
                )
                if len(self.received_messages) < self.sequence_num + 1:
                    self.received_messages.append([])
                self._record(message)
        elif (
            self.status == "pre-prepare"
            and len(self.received_messages) >= self.sequence_num + 1
        ):
            for message in list(self.received_messages[self.sequence_num]):
                if message.message_type == "pre-prepare":
                    self.status = "prepare"
                    self._record(
                        dataclasses.replace(
                            message, message_type="prepare", sender_id=self.peer_id
                        )
                    )

        if self.status == "prepare" and self._quorum_reached("prepare"):
            self.status = "commit"
            first = self.received_messages[self.sequence_num][0]
            self._record(
                dataclasses.replace(first, message_type="commit", sender_id=self.peer_id)
            )

        if self.status == "commit" and self._quorum_reached("commit"):
            self.status = "pre-prepare"
            first = self.received_messages[self.sequence_num][0]
            self.confirmed_trans.append(first)
            self.latency += self.round - first.round_submitted
            self.sequence_num += 1
            if self.peer_id == 0:
                self.submit_trans(self._current_transaction)
            self.check_contents()

    def submit_trans(self, tran_id) -> None:
        message = PBFTMessage(
            sender_id=self.peer_id,
            trans=tran_id,
            message_type="trans",
            round_submitted=self.round,
        )
        self.broadcast(message)
        self.transactions.append(message)
        self.shared["current_transaction"] = self._current_transaction + 1