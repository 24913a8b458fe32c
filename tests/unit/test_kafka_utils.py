"""Tests for kafka_utils module"""

from unittest.mock import MagicMock

import pytest
from confluent_kafka import KafkaException, TopicPartition

from manual_commit_kafka_client.kafka_utils import (
    PartitionKey,
    Record,
    perform_healthcheck_using_client,
)
from tests import make_message


def test_partition_key_round_trip() -> None:
    """Test that PartitionKey can be converted to TopicPartition and back."""
    partition_key = PartitionKey.from_message(
        make_message(150, topic="test-topic", partition=3)
    )

    assert partition_key.topic == "test-topic"
    assert partition_key.partition == 3

    topic_partition = partition_key.to_topic_partition(150)

    assert isinstance(topic_partition, TopicPartition)
    assert topic_partition.topic == "test-topic"
    assert topic_partition.partition == 3
    assert topic_partition.offset == 150
    assert PartitionKey.from_topic_partition(topic_partition) == partition_key


def test_partition_key_equality_by_value() -> None:
    offsets = {PartitionKey("foo", 1): 10}
    assert offsets[PartitionKey("foo", 1)] == 10
    assert PartitionKey("foo", 1) != PartitionKey("foo", 2)


def test_partition_key_from_invalid_message() -> None:
    message = make_message(1)
    message.partition = lambda: None
    with pytest.raises(AssertionError, match="Invalid message"):
        PartitionKey.from_message(message)


@pytest.mark.parametrize(
    "key,value,expected_key,expected_value",
    [
        pytest.param(None, b"hello", None, "hello", id="no_key"),
        pytest.param(b"id-1", b"hello", "id-1", "hello", id="bytes_key"),
        pytest.param(None, None, None, "", id="empty_value"),
        pytest.param(
            None, "čau".encode("utf-8"), None, "čau", id="utf8_value"
        ),
    ],
)
def test_record_from_message(
    key: bytes | None,
    value: bytes | None,
    expected_key: str | None,
    expected_value: str,
) -> None:
    record = Record.from_message(
        make_message(42, value=value, key=key, topic="foo", partition=2)
    )
    assert record == Record(
        topic="foo", partition=2, offset=42, key=expected_key, value=expected_value
    )
    assert record.partition_key == PartitionKey("foo", 2)


def test_perform_healthcheck_using_client() -> None:
    mock_client = MagicMock()

    assert perform_healthcheck_using_client(mock_client) is True
    mock_client.list_topics.assert_called_once_with(timeout=5)


def test_perform_healthcheck_using_client_error(
    caplog: pytest.LogCaptureFixture,
) -> None:
    mock_client = MagicMock()
    mock_client.list_topics.side_effect = KafkaException

    assert perform_healthcheck_using_client(mock_client) is False
    mock_client.list_topics.assert_called_once_with(timeout=5)
    assert any("Error while connecting to Kafka" in msg for msg in caplog.messages)
