import copy
import threading

import pytest

from roundsim.shard_model import ShardSettings, SmartShardsMember, SmartShardsMessage


def test_update_reads_known_parameters():
    settings = ShardSettings()
    settings.update({
        "s": 4,
        "churnRate": 2,
        "maxLeaveDelay": 30,
        "ChurnOption": 3,
        "creationThreshold": 12,
        "removalThreshold": 1.5,
        "flipRound": 40,
        "intersections": 9,
    })
    assert settings.number_of_shards == 4
    assert settings.churn_rate == 2
    assert settings.max_leave_delay == 30
    assert settings.churn_option == 3
    assert settings.creation_threshold == 12.0
    assert isinstance(settings.creation_threshold, float)
    assert settings.removal_threshold == 1.5
    assert settings.flip_round == 40


def test_update_leaves_missing_parameters_alone():
    settings = ShardSettings()
    settings.update({"churnRate": 5})
    assert settings == ShardSettings(churn_rate=5)


def test_update_rejects_non_numeric_value():
    settings = ShardSettings()
    with pytest.raises(ValueError):
        settings.update({"s": "many"})


def test_reset_restores_defaults():
    settings = ShardSettings()
    settings.update({"s": 3, "churnRate": 1, "flipRound": 9})
    settings.next_joining_node = 12
    settings.next_transaction()
    settings.reset()
    assert settings == ShardSettings()


def test_next_transaction_counts_up():
    settings = ShardSettings()
    first = settings.next_transaction()
    second = settings.next_transaction()
    assert second == first + 1
    assert settings.current_transaction == second + 1


def test_next_transaction_is_unique_across_threads():
    settings = ShardSettings()
    start = settings.current_transaction
    results = [[] for _ in range(10)]

    def take(bucket):
        for _ in range(100):
            bucket.append(settings.next_transaction())

    threads = [threading.Thread(target=take, args=(bucket,)) for bucket in results]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    everything = [value for bucket in results for value in bucket]
    assert sorted(everything) == list(range(start, start + 1000))
    assert settings.current_transaction == start + 1000


def test_message_defaults_are_not_shared():
    first = SmartShardsMessage()
    second = SmartShardsMessage()
    first.churning_nodes.append(("join", 3))
    first.members.append(SmartShardsMember(peer_id=3))
    assert second.churning_nodes == []
    assert second.members == []


def test_message_copy_is_independent():
    member = SmartShardsMember(peer_id=2, leader=True, shards={0, 1})
    message = SmartShardsMessage(shard=1, members=[member])
    duplicate = copy.deepcopy(message)
    duplicate.members[0].shards.add(5)
    assert message.members[0].shards == {0, 1}
    assert duplicate == SmartShardsMessage(
        shard=1, members=[SmartShardsMember(peer_id=2, leader=True, shards={0, 1, 5})]
    )