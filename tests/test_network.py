import pytest

from roundsim.network import Packet, Peer, Simulation


class RecorderPeer(Peer):
    def __init__(self, peer_id):
        super().__init__(peer_id)
        self.received = []
        self.last_flags = []
        self.draws = []

    def perform_computation(self):
        self.last_flags.append(self.is_last_round())
        self.draws.append(self.rand_mod(1000))
        for packet in self.drain_inbox():
            self.received.append((self.round, packet))
        if self.round == 0 and self.peer_id == 0:
            self.broadcast({"hello": self.peer_id})

    def end_of_round(self, peers):
        self.log.setdefault("rounds", []).append(self.round)


def build(experiment, seed=1):
    created = []

    def factory(peer_id):
        peer = RecorderPeer(peer_id)
        created.append(peer)
        return peer

    logs = Simulation(factory, seed).run(experiment)
    return created, logs


def experiment(peers=4, kind="complete", rounds=3, **extra):
    exp = {"topology": {"type": kind, "initialPeers": peers}, "rounds": rounds}
    exp.update(extra)
    return exp


def test_complete_topology_connects_every_pair():
    peers, _ = build(experiment(peers=4))
    assert peers[0].neighbors == (1, 2, 3)
    assert peers[2].neighbors == (0, 1, 3)


def test_ring_topology():
    peers, _ = build(experiment(peers=5, kind="ring", tests=1))
    assert set(peers[0].neighbors) == {1, 4}
    assert all(len(p.neighbors) == 2 for p in peers)


def test_star_topology():
    peers, _ = build(experiment(peers=4, kind="star"))
    assert peers[0].neighbors == (1, 2, 3)
    assert all(p.neighbors == (0,) for p in peers[1:])


def test_extra_peers_start_unconnected():
    exp = {"topology": {"type": "complete", "initialPeers": 2, "totalPeers": 4}, "rounds": 1}
    peers, _ = build(exp)
    assert len(peers) == 4
    assert peers[0].neighbors == (1,)
    assert peers[3].neighbors == ()


def test_broadcast_delivered_next_round():
    peers, _ = build(experiment(peers=4))
    assert peers[0].received == []
    for peer in peers[1:]:
        assert len(peer.received) == 1
        round_received, packet = peer.received[0]
        assert round_received == 1
        assert packet.source == 0
        assert packet.target == peer.peer_id
        assert packet.message == {"hello": 0}


def test_max_delay_bounds_delivery():
    peers, _ = build(experiment(peers=6, rounds=6, distribution={"maxDelay": 3}))
    for peer in peers[1:]:
        assert len(peer.received) == 1
        assert 1 <= peer.received[0][0] <= 3


def test_one_log_per_test_and_end_of_round_each_round():
    _, logs = build(experiment(rounds=3, tests=2))
    assert len(logs) == 2
    assert all(log["rounds"] == [0, 1, 2] for log in logs)


def test_last_round_flag():
    peers, _ = build(experiment(rounds=3))
    assert peers[1].last_flags == [False, False, True]


def test_unknown_topology_raises():
    with pytest.raises(ValueError):
        build(experiment(kind="hypercube"))


def test_bad_delay_raises():
    with pytest.raises(ValueError):
        build(experiment(distribution={"maxDelay": 0}))


def test_same_seed_same_draws():
    first, _ = build(experiment(rounds=5), seed=42)
    second, _ = build(experiment(rounds=5), seed=42)
    assert [p.draws for p in first] == [p.draws for p in second]


def test_rand_mod_range_and_error():
    peer = RecorderPeer(0)
    draws = [Peer.rand_mod(peer, 5) for _ in range(100)]
    assert all(0 <= value < 5 for value in draws)
    with pytest.raises(ValueError):
        Peer.rand_mod(peer, 0)


def test_add_neighbor_ignores_duplicates_and_self():
    peer = RecorderPeer(3)
    Peer.add_neighbor(peer, 1)
    Peer.add_neighbor(peer, 1)
    Peer.add_neighbor(peer, 3)
    assert peer.neighbors == (1,)


def test_unicast_copies_message():
    peer = RecorderPeer(0)
    message = {"value": [1]}
    Peer.unicast(peer, 2, message)
    message["value"].append(2)
    assert peer.outbox[0].message == {"value": [1]}
    assert peer.outbox[0].target == 2


def test_drain_inbox_fifo_and_empty():
    peer = RecorderPeer(0)
    assert peer.inbox_empty()
    peer.receive(Packet(0, 0, 1, "a"))
    peer.receive(Packet(0, 0, 2, "b"))
    assert not peer.inbox_empty()
    assert [p.message for p in peer.drain_inbox()] == ["a", "b"]
    assert peer.inbox_empty()


def test_clear_messages():
    peer = RecorderPeer(0)
    peer.add_neighbor(1)
    peer.receive(Packet(0, 0, 1, "x"))
    peer.broadcast("y")
    peer.clear_messages()
    assert peer.inbox_empty()
    assert peer.outbox == []


def test_peer_is_abstract():
    with pytest.raises(TypeError):
        Peer(0)