# roundsim

A round-based simulator for distributed algorithms. A set of peers runs in
lock-step rounds. In each round, every peer reads the messages delivered to
it, does its computation and queues new messages. After that, the first peer's
`end_of_round` hook collects metrics for the whole network into the test's
log.

## Algorithms

Each algorithm is a subclass of `roundsim.network.Peer` with its own message
dataclass:

- `roundsim.kademlia.KademliaPeer`: Kademlia-style routing over binary
  identifiers. It logs `averageHops`.
- `roundsim.linear_chord.LinearChordPeer`: Linear Chord with successor and
  predecessor lists and heartbeats. It logs `averageHops`.
- `roundsim.pbft.PBFTPeer`: PBFT consensus, with peer 0 as the leader. It logs
  `latency`.
- `roundsim.paxos.PaxosPeer`: Multi-Paxos without a leader. It logs `latency`
  and `throughput`.
- `roundsim.raft.RaftPeer`: Raft leader election and replication. It logs
  `latency`.
- `roundsim.datalink.StableDataLinkPeer`: a stable data link from peer 0 to
  peer 1. It logs `utility`.

`roundsim.shard_model` holds the data model for a sharded protocol:
`SmartShardsMember`, `SmartShardsMessage` and `ShardSettings`.
`ShardSettings` has `reset`, `update` and the thread-safe `next_transaction`.

## Installation

```
pip install .
```

## Running a simulation

Create a `roundsim.network.Simulation` with a peer factory and an optional
seed. Then call `run` with one experiment dictionary. It returns one log
dictionary per test:

```python
from roundsim.network import Simulation
from roundsim.pbft import PBFTPeer

experiment = {
    "topology": {"type": "complete", "initialPeers": 4, "totalPeers": 4},
    "rounds": 20,
    "tests": 1,
    "distribution": {"maxDelay": 1},
    "parameters": {},
}
logs = Simulation(PBFTPeer, seed=1).run(experiment)
print(logs[0]["latency"])
```

An experiment dictionary has these keys:

- `topology`: holds `type`, `initialPeers` and `totalPeers`.
  - `type` is one of `complete`, `star`, `ring`, `unidirectionalRing`,
    `chain` or `none`. It defaults to `complete`.
  - Only the first `initialPeers` peers are connected.
  - `totalPeers` defaults to `initialPeers`.
- `rounds`: the number of rounds.
- `tests`: the number of tests. It defaults to 1.
- `distribution.maxDelay`: each message takes between 1 and `maxDelay`
  rounds to arrive. It defaults to 1.
- `parameters`: passed to the first peer's `init_parameters`.

Invalid values raise `ValueError`. These include a negative round count,
`totalPeers` below `initialPeers`, a `maxDelay` below 1 and an unknown
topology type.

## What the package does not do

- There is no command-line program, and nothing reads experiment files from
  disk. Load the JSON yourself and pass each experiment to
  `Simulation.run`.
- The sharded protocol has only its data model and settings. The package
  includes no peer class that runs it.

## Tests

```
pip install .[test]
pytest
```