"""Module for reacting to consumer group rebalancing"""

import logging
from contextlib import nullcontext
from threading import Lock
from typing import Any, Callable, ContextManager

from confluent_kafka import Consumer, KafkaException, TopicPartition

from .kafka_utils import PartitionKey
from .offset_store import OffsetStore

LOGGER = logging.getLogger(__name__)


class RebalanceListener:
    """
    Receives notifications about partitions being revoked from or
    assigned to a consumer. The callbacks are executed by the Kafka
    client from within poll, in the thread of the consumption loop.

    On revocation, progress of the revoked partitions is committed if
    possible and their offsets are forgotten. This way a partition that
    moves away and comes back later is never moved to a stale position.
    Offsets of assigned partitions are filled in again as their records
    are delivered.
    """

    def __init__(
        self,
        offset_store: OffsetStore,
        manual_commit: bool = True,
        paused: Callable[[], ContextManager[Any]] = nullcontext,
    ):
        """
        Args:
            offset_store: offsets of the consumer this listener belongs to
            manual_commit: commit progress of revoked partitions
            paused: context manager factory wrapping each notification,
                the consumer uses it to mark itself as paused
        """
        self.__offset_store = offset_store
        self.__manual_commit = manual_commit
        self.__paused = paused
        self.__assigned: set[PartitionKey] = set()
        self.__assigned_lock = Lock()

    @property
    def assigned(self) -> set[PartitionKey]:
        """Partitions currently assigned to the consumer."""
        with self.__assigned_lock:
            return set(self.__assigned)

    def on_assign(self, _: Consumer, partitions: list[TopicPartition]) -> None:
        """
        Callback when partitions are assigned during rebalancing.
        """
        with self.__paused():
            LOGGER.warning("Partitions assigned to this node during rebalancing:")
            for partition in partitions:
                LOGGER.warning(
                    "Rebalanced to this node: topic %s, partition %d",
                    partition.topic,
                    partition.partition,
                )
            with self.__assigned_lock:
                self.__assigned.update(
                    PartitionKey.from_topic_partition(partition)
                    for partition in partitions
                )

    def on_revoke(self, consumer: Consumer, partitions: list[TopicPartition]) -> None:
        """
        Callback when partitions are revoked during rebalancing.
        """
        with self.__paused():
            LOGGER.warning("Partitions revoked from this node during rebalancing:")
            for partition in partitions:
                LOGGER.warning(
                    "Revoked from this node: topic %s, partition %d",
                    partition.topic,
                    partition.partition,
                )
            self.__release(consumer, partitions, commit=self.__manual_commit)

    def on_lost(self, consumer: Consumer, partitions: list[TopicPartition]) -> None:
        """
        Callback when partitions were lost without a regular revocation,
        for example after a session timeout. Nothing can be committed
        for these anymore.
        """
        with self.__paused():
            for partition in partitions:
                LOGGER.warning(
                    "Lost partition: topic %s, partition %d. Messages processed "
                    "since the last commit may be processed again by another node.",
                    partition.topic,
                    partition.partition,
                )
            self.__release(consumer, partitions, commit=False)

    def __release(
        self, consumer: Consumer, partitions: list[TopicPartition], commit: bool
    ) -> None:
        revoked_keys = [
            PartitionKey.from_topic_partition(partition) for partition in partitions
        ]
        if commit:
            self.__commit_revoked(consumer, revoked_keys)
        self.__offset_store.discard(revoked_keys)
        with self.__assigned_lock:
            self.__assigned.difference_update(revoked_keys)

    def __commit_revoked(
        self, consumer: Consumer, revoked_keys: list[PartitionKey]
    ) -> None:
        committable = self.__offset_store.to_commit(revoked_keys)
        if not committable:
            return
        try:
            consumer.commit(offsets=committable, asynchronous=False)
        except KafkaException as err:
            # The partitions are moving to another node anyway
            LOGGER.warning(
                "Offsets %s could not be committed before revocation: %s. "
                "The messages may be processed again after rebalancing "
                "is complete.",
                [(tp.topic, tp.partition, tp.offset) for tp in committable],
                err,
            )
