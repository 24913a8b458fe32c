from typing import Any
from unittest.mock import MagicMock

from confluent_kafka import KafkaError, Message


def make_message(
    offset: int,
    value: bytes | None = b"payload",
    topic: str = "test-topic",
    partition: int = 0,
    key: bytes | None = None,
    error: KafkaError | None = None,
) -> MagicMock:
    """
    Mocks a polled Kafka message.
    :return: A MagicMock object acting as Kafka message in disguise.
    """
    return MagicMock(
        spec=Message,
        topic=lambda: topic,
        partition=lambda: partition,
        offset=lambda: offset,
        key=lambda: key,
        value=lambda: value,
        error=lambda: error,
    )


def consume_batches(batches: list[list[Any]], on_exhausted: Any = None) -> Any:
    """
    Create a side effect for Consumer.consume returning the given batches.
    :param batches: List of batches to return for each consume call.
    :param on_exhausted: Callable executed once all batches were returned,
        usually used to stop the tested loop.
    :return: Side effect function.
    """
    remaining = list(batches)

    def mocked_consume(*_: Any, **__: Any) -> list[Any]:
        if remaining:
            return remaining.pop(0)
        if on_exhausted is not None:
            on_exhausted()
        return []

    return mocked_consume
