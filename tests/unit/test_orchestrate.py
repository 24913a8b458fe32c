import logging
from unittest.mock import patch, MagicMock

import pytest
from confluent_kafka import KafkaException

from manual_commit_kafka_client import (
    ConsumerConfig,
    ConsumptionLoop,
    OffsetStore,
    consume_topics,
)
from manual_commit_kafka_client.orchestrate import ConsumerThread


class _NullSink:
    def receive(self, payload: str) -> None:
        pass


@pytest.fixture
def multiple_configs() -> list[ConsumerConfig]:
    return [
        ConsumerConfig(
            topic=f"topic_{i}",
            sink=_NullSink(),
            kafka_hosts=["example.com"],
            group_id=f"group_{i}",
            partitions=i + 1,
        )
        for i in range(2)
    ]


def test_thread_opens_and_runs_loop() -> None:
    loop = MagicMock(spec=ConsumptionLoop)
    thread = ConsumerThread(loop)
    assert thread.loop is loop

    thread.start()
    thread.join()

    loop.open.assert_called_once()
    loop.run.assert_called_once()


def test_thread_open_failure(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR)
    loop = MagicMock(spec=ConsumptionLoop)
    loop.open.side_effect = KafkaException("Invalid settings")
    thread = ConsumerThread(loop)

    thread.start()
    thread.join()

    loop.run.assert_not_called()
    assert any("could not be started" in msg for msg in caplog.messages)


def test_thread_stop() -> None:
    loop = MagicMock(spec=ConsumptionLoop)
    thread = ConsumerThread(loop)
    thread.start()

    thread.stop()

    loop.stop.assert_called_once()
    assert not thread.is_alive()


def test_consume_topics_creates_loops_and_threads(
    multiple_configs: list[ConsumerConfig],
) -> None:
    """Test that consume_topics starts one thread per configured partition."""
    shared_store = OffsetStore()
    with (
        patch(
            "manual_commit_kafka_client.orchestrate.ConsumerThread"
        ) as mock_thread_class,
        patch(
            "manual_commit_kafka_client.orchestrate.ConsumptionLoop"
        ) as mock_loop_class,
    ):
        mock_threads = [MagicMock(spec=ConsumerThread) for _ in range(3)]
        mock_thread_class.side_effect = mock_threads

        consume_topics(multiple_configs, offset_store=shared_store)

    # topic_0 has 1 partition, topic_1 has 2
    assert mock_loop_class.call_count == 3
    configs = [call[1]["config"] for call in mock_loop_class.call_args_list]
    assert configs == [multiple_configs[0], multiple_configs[1], multiple_configs[1]]
    for call in mock_loop_class.call_args_list:
        assert call[1]["offset_store"] is shared_store

    assert mock_thread_class.call_count == 3
    for mock_thread in mock_threads:
        mock_thread.start.assert_called_once()
        mock_thread.join.assert_called_once()
        mock_thread.stop.assert_called_once()
