"""Tests for OffsetStore module"""

import logging
from threading import Thread

import pytest

from manual_commit_kafka_client.kafka_utils import PartitionKey, Record
from manual_commit_kafka_client.offset_store import OffsetStore


def _record(offset: int, partition: int = 0, topic: str = "test-topic") -> Record:
    return Record(
        topic=topic, partition=partition, offset=offset, key=None, value="data"
    )


@pytest.mark.parametrize(
    "offsets,expected",
    [
        pytest.param([10], 10, id="single_record"),
        pytest.param([10, 11, 12], 12, id="sequential_records"),
        pytest.param([10, 12, 11], 12, id="older_offset_does_not_move_back"),
        pytest.param([0], 0, id="offset_zero_is_stored"),
    ],
)
def test_offset_store_keeps_latest_offset(offsets: list[int], expected: int) -> None:
    store = OffsetStore()
    for offset in offsets:
        store.update(_record(offset))
    assert store.get(PartitionKey("test-topic", 0)) == expected


def test_offset_store_update_return_values(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG)
    store = OffsetStore()

    assert store.update(_record(5)) is True
    assert store.update(_record(5)) is False
    assert store.update(_record(4)) is False
    assert store.update(_record(6)) is True
    assert any("Ignoring offset 4" in msg for msg in caplog.messages)


def test_offset_store_partitions_are_independent() -> None:
    store = OffsetStore()
    store.update(_record(100, partition=0))
    store.update(_record(3, partition=1))
    store.update(_record(7, partition=0, topic="other-topic"))

    assert store.get(PartitionKey("test-topic", 0)) == 100
    assert store.get(PartitionKey("test-topic", 1)) == 3
    assert store.get(PartitionKey("other-topic", 0)) == 7
    assert store.get(PartitionKey("test-topic", 2)) is None
    assert len(store) == 3
    assert PartitionKey("test-topic", 1) in store
    assert PartitionKey("test-topic", 2) not in store


def test_offset_store_to_commit_increments_offsets() -> None:
    store = OffsetStore()
    store.update(_record(12, partition=0))
    store.update(_record(40, partition=1))

    all_offsets = {
        (tp.topic, tp.partition, tp.offset) for tp in store.to_commit()
    }
    assert all_offsets == {("test-topic", 0, 13), ("test-topic", 1, 41)}

    selected = store.to_commit(
        [PartitionKey("test-topic", 1), PartitionKey("test-topic", 5)]
    )
    assert [(tp.topic, tp.partition, tp.offset) for tp in selected] == [
        ("test-topic", 1, 41)
    ]


def test_offset_store_discard_and_clear() -> None:
    store = OffsetStore()
    store.update(_record(1, partition=0))
    store.update(_record(2, partition=1))
    store.update(_record(3, partition=2))

    store.discard([PartitionKey("test-topic", 1), PartitionKey("test-topic", 9)])
    assert sorted(store.items()) == [
        (PartitionKey("test-topic", 0), 1),
        (PartitionKey("test-topic", 2), 3),
    ]

    store.clear()
    assert len(store) == 0
    assert store.items() == []


def test_offset_store_concurrent_writers() -> None:
    """Concurrent writers to different partitions never lose an update."""
    store = OffsetStore()

    def write(partition: int) -> None:
        for offset in range(1000):
            store.update(_record(offset, partition=partition))

    threads = [Thread(target=write, args=(partition,)) for partition in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert {key.partition: offset for key, offset in store.items()} == {
        0: 999,
        1: 999,
        2: 999,
        3: 999,
    }
