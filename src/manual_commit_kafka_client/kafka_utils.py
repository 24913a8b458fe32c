"""Module for kafka utility functions"""

import logging
from typing import NamedTuple, TypeVar

from confluent_kafka import Consumer, KafkaException, Message, Producer, TopicPartition

LOGGER = logging.getLogger(__name__)

Client = TypeVar("Client", Producer, Consumer)


class PartitionKey(NamedTuple):
    """
    Consistently hashable information about a partition.
    Can be used as keys in a dictionary.
    """

    topic: str
    partition: int

    @staticmethod
    def from_message(message: Message) -> "PartitionKey":
        """
        Create a PartitionKey from a Kafka message.
        Args:
            message: Kafka message object
        Returns: hashable info about a partition
        """
        message_topic = message.topic()
        message_partition = message.partition()
        # Polled messages always carry both, only hand-made
        # message objects can miss them
        assert message_topic is not None and message_partition is not None, (
            "Invalid message cannot be converted to partition key"
        )
        return PartitionKey(message_topic, message_partition)

    @staticmethod
    def from_topic_partition(partition: TopicPartition) -> "PartitionKey":
        """Drop the offset information of a TopicPartition."""
        return PartitionKey(partition.topic, partition.partition)

    def to_topic_partition(self, offset: int) -> TopicPartition:
        """
        Create a Kafka object usable for seeking and committing.
        Args:
            offset: The offset to point to
        Returns: The Kafka partition object
        """
        return TopicPartition(topic=self.topic, partition=self.partition, offset=offset)


class Record(NamedTuple):
    """Decoded Kafka message."""

    topic: str
    partition: int
    offset: int
    key: str | None
    value: str

    @property
    def partition_key(self) -> PartitionKey:
        """Partition this record belongs to."""
        return PartitionKey(self.topic, self.partition)

    @staticmethod
    def from_message(message: Message) -> "Record":
        """
        Decode a polled Kafka message. Missing value is decoded
        as an empty string.
        """
        partition_key = PartitionKey.from_message(message)
        offset = message.offset()
        assert offset is not None, "Message has to have an offset to be decoded!"
        raw_key = message.key()
        raw_value = message.value()
        return Record(
            topic=partition_key.topic,
            partition=partition_key.partition,
            offset=offset,
            key=_decode(raw_key) if raw_key is not None else None,
            value=_decode(raw_value) if raw_value is not None else "",
        )


def _decode(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return raw


def perform_healthcheck_using_client(client: Client) -> bool:
    """
    Programmatically check if we are able to read from Kafka
    using the provided client.
    """
    try:
        client.list_topics(timeout=5)
        return True
    except KafkaException as e:
        LOGGER.warning("Error while connecting to Kafka %s", e)
        return False
