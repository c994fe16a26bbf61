"""Multi-Paxos without a distinguished leader, one slot after another."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

from roundsim.network import Peer

Ballot = tuple[int, int]  # (ballot index, peer id); compared element by element

_NO_BALLOT: Ballot = (-1, -1)
_TIMEOUT = 8


@dataclass
class PaxosMessage:
    sender_id: int = -1
    last_voted: Ballot = _NO_BALLOT
    ballot_num: Ballot = _NO_BALLOT
    message_type: str = ""  # NextBallot, LastMessage, BeginBallot, Voted, Success
    decree: str = ""
    slot_number: int = -1


@dataclass
class Ledger:
    """State a peer keeps in stable storage."""

    last_tried: Ballot = _NO_BALLOT
    prev_bal: Ballot = _NO_BALLOT
    ledger_decree: str = ""
    next_bal: Ballot = _NO_BALLOT
    outcome: str = ""
    current_slot: int = 0


class PaperStatus(Enum):
    IDLE = "idle"
    TRYING = "trying"
    POLLING = "polling"


@dataclass
class Paper:
    """State a peer may lose when it crashes."""

    status: PaperStatus = PaperStatus.IDLE
    prev_votes: list[PaxosMessage] = field(default_factory=list)
    quorum: set[int] = field(default_factory=set)
    voters: set[int] = field(default_factory=set)
    paper_decree: int = -1
    timer: int = 0


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator


class PaxosPeer(Peer):
    """A peer that both proposes ballots and votes on those of others."""

    def __init__(self, peer_id):
        super().__init__(peer_id)
        self.ledger = Ledger()
        self.paper = Paper()
        self.ballot_index = 0
        self.received_messages: list[list[PaxosMessage]] = []
        self.confirmed_trans: dict[int, str] = {}
        self.latency = 0
        self.throughput = 0
        self.round_sent = -1
        self.submit_rate = 20

    def clear_state(self) -> None:
        """Reset the ledger and the paper to their defaults."""
        self.paper = Paper()
        self.ledger = Ledger()

    def _advance_slot(self) -> None:
        next_slot = self.ledger.current_slot + 1
        self.clear_state()
        self.ledger.current_slot = next_slot

    def check_in_stream(self) -> None:
        """React to every message received this round."""
        for packet in self.drain_inbox():
            message = packet.message
            kind = message.message_type
            current = message.slot_number == self.ledger.current_slot
            if kind == "NextBallot" and current:
                self._on_next_ballot(message)
            elif kind == "LastMessage" and current:
                self._on_last_message(message)
            elif kind == "BeginBallot" and current:
                self._on_begin_ballot(message)
            elif kind == "Voted" and current:
                self._on_voted(message)
            elif kind == "Success":
                self.ledger.outcome = message.decree
                self.confirmed_trans.setdefault(message.slot_number, message.decree)
                self._advance_slot()

    def _on_next_ballot(self, message: PaxosMessage) -> None:
        ledger = self.ledger
        if message.ballot_num > ledger.next_bal and message.ballot_num > ledger.last_tried:
            paper = self.paper
            if paper.status is not PaperStatus.IDLE:
                paper.status = PaperStatus.IDLE
                paper.quorum.clear()
                paper.prev_votes.clear()
                paper.voters.clear()
                paper.paper_decree = -1
            paper.timer = 0
            ledger.next_bal = message.ballot_num
            self.send_message(message.sender_id, self.last_message())

    def _on_last_message(self, message: PaxosMessage) -> None:
        paper = self.paper
        if paper.status is not PaperStatus.TRYING:
            return
        paper.prev_votes.append(message)
        # the proposer counts itself, so half of the neighbours make a majority
        if len(paper.prev_votes) >= len(self.neighbors) // 2:
            poll = self.begin_ballot()
            paper.quorum.update(vote.sender_id for vote in paper.prev_votes)
            for member in sorted(paper.quorum):
                self.send_message(member, poll)

    def _on_begin_ballot(self, message: PaxosMessage) -> None:
        ledger = self.ledger
        if message.ballot_num == ledger.next_bal and message.ballot_num > ledger.prev_bal:
            ledger.prev_bal = message.ballot_num
            ledger.ledger_decree = message.decree
            self.paper.timer = 0
            self.send_message(message.sender_id, self.voted())

    def _on_voted(self, message: PaxosMessage) -> None:
        paper = self.paper
        if paper.status is not PaperStatus.POLLING:
            return
        paper.voters.add(message.sender_id)
        if len(paper.voters) == len(paper.prev_votes):
            self.ledger.outcome = message.decree
            self.broadcast(self.success())
            self.latency += self.round - self.round_sent
            self.throughput += 1
            self.confirmed_trans.setdefault(self.ledger.current_slot, self.ledger.outcome)
            self._advance_slot()

    def next_ballot(self) -> PaxosMessage:
        """Start trying a new ballot numbered above every promise seen."""
        ledger = self.ledger
        while self.ballot_index <= ledger.next_bal[0]:
            self.ballot_index += 1
        if ledger.next_bal[0] == -1:
            self.ballot_index = 1
        ledger.last_tried = (self.ballot_index, self.peer_id)

        self.paper.status = PaperStatus.TRYING
        self.paper.prev_votes.clear()
        self.paper.quorum.clear()
        self.paper.voters.clear()
        return PaxosMessage(
            sender_id=self.peer_id,
            ballot_num=ledger.last_tried,
            message_type="NextBallot",
            slot_number=ledger.current_slot,
        )

    def last_message(self) -> PaxosMessage:
        """Report the last vote cast, promising the current ballot."""
        ledger = self.ledger
        return PaxosMessage(
            sender_id=self.peer_id,
            last_voted=ledger.prev_bal,
            ballot_num=ledger.next_bal,
            message_type="LastMessage",
            decree=ledger.ledger_decree,
            slot_number=ledger.current_slot,
        )

    def begin_ballot(self) -> PaxosMessage:
        """Ask the quorum to vote, on the latest decree reported or a random one."""
        largest = self.paper.prev_votes[0]
        for vote in self.paper.prev_votes:
            if vote.ballot_num > largest.ballot_num:
                largest = vote
        decree = largest.decree or chr(ord("A") + self.rand_mod(26))

        self.paper.status = PaperStatus.POLLING
        self.paper.voters.clear()
        return PaxosMessage(
            sender_id=self.peer_id,
            ballot_num=self.ledger.last_tried,
            message_type="BeginBallot",
            decree=decree,
            slot_number=self.ledger.current_slot,
        )

    def voted(self) -> PaxosMessage:
        """Vote for the promised ballot and remember having done so."""
        ledger = self.ledger
        message = PaxosMessage(
            sender_id=self.peer_id,
            ballot_num=ledger.next_bal,
            message_type="Voted",
            decree=ledger.ledger_decree,
            slot_number=ledger.current_slot,
        )
        ledger.prev_bal = ledger.next_bal
        return message

    def success(self) -> PaxosMessage:
        """Announce the decree chosen for the current slot."""
        ledger = self.ledger
        return PaxosMessage(
            sender_id=self.peer_id,
            ballot_num=ledger.last_tried,
            message_type="Success",
            decree=ledger.outcome,
            slot_number=ledger.current_slot,
        )

    def send_message(self, peer, message: PaxosMessage) -> None:
        self.unicast(peer, message)

    def submit_ballot(self) -> None:
        """Propose a ballot when idle: at once at first, later after a timeout."""
        if self.paper.status is not PaperStatus.IDLE:
            return
        if self.ledger.next_bal[0] != -1 and self.paper.timer <= _TIMEOUT:
            self.paper.timer += 1
            return
        self.broadcast(self.next_ballot())
        self.round_sent = self.round

    def perform_computation(self) -> None:
        self.check_in_stream()
        self.submit_ballot()

    def end_of_round(self, peers) -> None:
        satisfied = float(sum(p.throughput for p in peers))
        latency = sum(p.latency for p in peers)
        self.log.setdefault("latency", []).append(_ratio(latency, satisfied))
        self.log.setdefault("throughput", []).append(satisfied)