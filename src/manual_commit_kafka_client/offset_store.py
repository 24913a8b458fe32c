"""Module for handling local Kafka offsets memory"""

import logging
from threading import Lock
from typing import Iterable

from confluent_kafka import TopicPartition

from .kafka_utils import PartitionKey, Record

LOGGER = logging.getLogger(__name__)


class OffsetStore:
    """
    Class for handling local memory of the latest processed offset
    in each partition.

    Offsets are integers, specifying an index of each message in a partition.
    Each Kafka topic is divided into partitions, each partition can be
    consumed at most by ONE consumer within a consumer group.

    The store remembers the offset of the last record which was delivered
    successfully. This is the position a consumer is moved back to when
    committing fails, so that nothing marked as processed is skipped
    without an attempt to commit it again.

    Offsets only move forward for each partition. The store can be shared
    between multiple consumption loops, in that case the last writer
    of a partition wins.
    """

    def __init__(self) -> None:
        self.__offsets: dict[PartitionKey, int] = {}
        self.__access_lock = Lock()  # For handling multithreaded access

    def update(self, record: Record) -> bool:
        """
        Mark the record as processed.
        Args:
            record: record that was delivered
        Returns:
            True if the stored offset moved, False if the store
            already holds the same or a newer offset
        """
        partition_key = record.partition_key
        with self.__access_lock:
            current = self.__offsets.get(partition_key)
            if current is not None and current > record.offset:
                LOGGER.debug(
                    "Ignoring offset %s in topic %s and partition %d, "
                    "offset %s is already stored.",
                    record.offset,
                    record.topic,
                    record.partition,
                    current,
                )
                return False
            self.__offsets[partition_key] = record.offset
        return current != record.offset

    def get(self, partition_key: PartitionKey) -> int | None:
        """
        Returns: the latest processed offset or None if nothing
            from this partition was processed yet
        """
        with self.__access_lock:
            return self.__offsets.get(partition_key)

    def items(self) -> list[tuple[PartitionKey, int]]:
        """Snapshot of all stored offsets."""
        with self.__access_lock:
            return list(self.__offsets.items())

    def to_commit(
        self, partition_keys: Iterable[PartitionKey] | None = None
    ) -> list[TopicPartition]:
        """
        Create committable objects from the stored offsets. Kafka expects
        the offset of the next message to read, hence the increment.
        Args:
            partition_keys: partitions to include, all of them if omitted
        Returns: list of committable offsets
        """
        with self.__access_lock:
            if partition_keys is None:
                selected = list(self.__offsets.items())
            else:
                selected = [
                    (key, self.__offsets[key])
                    for key in partition_keys
                    if key in self.__offsets
                ]
        return [key.to_topic_partition(offset + 1) for key, offset in selected]

    def discard(self, partition_keys: Iterable[PartitionKey]) -> None:
        """
        Forget offsets of the given partitions. This happens
        when the partitions are revoked during rebalancing.
        """
        with self.__access_lock:
            for partition_key in partition_keys:
                offset = self.__offsets.pop(partition_key, None)
                if offset is None:
                    continue
                LOGGER.debug(
                    "Forgetting offset %s of topic %s and partition %d.",
                    offset,
                    partition_key.topic,
                    partition_key.partition,
                )

    def clear(self) -> None:
        """Forget all offsets."""
        with self.__access_lock:
            self.__offsets.clear()

    def __len__(self) -> int:
        with self.__access_lock:
            return len(self.__offsets)

    def __contains__(self, partition_key: object) -> bool:
        with self.__access_lock:
            return partition_key in self.__offsets
