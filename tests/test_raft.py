import math

from roundsim.network import Packet, Simulation
from roundsim.raft import RaftMessage, RaftPeer


def _peer(peer_id, neighbors):
    peer = RaftPeer(peer_id)
    for neighbor in neighbors:
        peer.add_neighbor(neighbor)
    return peer


def _deliver(peer, source, message):
    peer.receive(Packet(0, peer.peer_id, source, message))


def test_reset_timer_stays_within_window():
    peer = _peer(1, [0, 2])
    for _ in range(50):
        peer.reset_timer()
        low = RaftPeer.TIME_OUT_SPACING
        high = RaftPeer.TIME_OUT_SPACING + RaftPeer.TIME_OUT_RANDOM - 1
        assert low <= peer.time_out_round <= high


def test_submit_trans_by_follower_sends_nothing():
    peer = _peer(1, [0, 2])
    peer.submit_trans(7)
    assert peer.outbox == []
    assert "current_transaction" not in peer.shared


def test_submit_trans_by_leader_broadcasts_request():
    peer = _peer(0, [1, 2, 3])
    peer.submit_trans(7)
    assert sorted(p.target for p in peer.outbox) == [1, 2, 3]
    assert all(p.message.message_type == "request" for p in peer.outbox)
    assert all(p.message.trans == 7 for p in peer.outbox)
    assert peer.shared["current_transaction"] == 2


def test_request_with_newer_term_is_acknowledged():
    peer = _peer(1, [0, 2])
    _deliver(peer, 0, RaftMessage(sender_id=0, trans=4, term_num=3,
                                  message_type="request", round_submitted=0))
    peer.check_in_stream()
    assert peer.term == 3
    assert peer.leader_id == 0
    assert len(peer.outbox) == 1
    reply = peer.outbox[0]
    assert reply.target == 0
    assert reply.message.message_type == "respondRequest"
    assert reply.message.trans == 4


def test_request_with_older_term_is_ignored():
    peer = _peer(1, [0, 2])
    peer.term = 5
    _deliver(peer, 2, RaftMessage(sender_id=2, trans=4, term_num=3, message_type="request"))
    peer.check_in_stream()
    assert peer.outbox == []
    assert peer.leader_id == 0


def test_elect_with_newer_term_earns_a_vote():
    peer = _peer(1, [0, 2])
    _deliver(peer, 2, RaftMessage(sender_id=2, term_num=1, message_type="elect"))
    peer.check_in_stream()
    assert peer.term == 1
    assert peer.candidate == 2
    vote = peer.outbox[0]
    assert vote.target == 2
    assert vote.message.message_type == "vote"
    assert vote.message.trans == 2


def test_majority_of_votes_makes_a_leader():
    peer = _peer(1, [0, 2, 3, 4])
    peer.leader_id = -1
    for voter in (0, 2, 3):
        _deliver(peer, voter, RaftMessage(sender_id=voter, trans=1, message_type="vote"))
    peer.check_in_stream()
    assert peer.leader_id == 1
    assert peer.votes == []
    requests = [p for p in peer.outbox if p.message.message_type == "request"]
    assert sorted(p.target for p in requests) == [0, 2, 3, 4]


def test_timeout_starts_an_election():
    peer = _peer(1, [0, 2])
    peer.time_out_round = 0
    peer.perform_computation()
    assert peer.term == 1
    assert peer.candidate == 1
    assert peer.leader_id == -1
    assert sorted(p.target for p in peer.outbox) == [0, 2]
    assert all(p.message.message_type == "elect" for p in peer.outbox)


def test_simulation_reports_latency():
    sim = Simulation(RaftPeer, seed=1)
    logs = sim.run({
        "tests": 1,
        "rounds": 6,
        "topology": {"type": "complete", "initialPeers": 5, "totalPeers": 5},
    })
    latency = logs[0]["latency"]
    assert len(latency) == 6
    assert math.isnan(latency[0]) and math.isnan(latency[1])
    assert latency[2:] == [2.0, 2.0, 2.0, 2.0]