"""Configuration objects used in this library"""

from dataclasses import dataclass, field
from typing import Any

from .kafka_settings import KafkaOptions, AUTH_SETTINGS
from .types import DeliverySink


@dataclass(kw_only=True)
class CommonConfig:
    """
    Configuration common for consumers and producers.
    Attributes:
        kafka_hosts: list of Kafka node URLs to connect to
        username: Kafka username, SASL authentication is only
            configured when this is filled
        password: Kafka password
        additional_settings: additional settings to pass directly to Kafka,
            these override every default of this library
    """

    kafka_hosts: list[str]
    username: str | None = field(default=None)
    password: str | None = field(default=None)
    additional_settings: dict[str, Any] = field(default_factory=dict)

    def connection_settings(self, defaults: dict[str, Any]) -> dict[str, Any]:
        """
        Build the settings dictionary for a confluent_kafka client.
        Args:
            defaults: client-specific default settings
        Returns: settings dictionary, additional settings applied last
        """
        config_dict: dict[str, Any] = {
            KafkaOptions.KAFKA_NODES: ",".join(self.kafka_hosts),
            **defaults,
        }
        if self.username is not None:
            config_dict.update(
                {
                    KafkaOptions.USERNAME: self.username,
                    KafkaOptions.PASSWORD: self.password,
                    **AUTH_SETTINGS,
                }
            )
        config_dict.update(self.additional_settings)
        return config_dict


@dataclass(kw_only=True)
class ConsumerConfig(CommonConfig):
    """
    Configuration for one consumption loop.
    Attributes:
        kafka_hosts: list of Kafka node URLs to connect to
        username: consumer username
        password: consumer password
        additional_settings: additional settings to pass directly to Kafka consumer
        topic: Topic that this consumer subscribes to
        group_id: consumer group ID to use when consuming
        sink: Object receiving each consumed payload
        auto_commit: Let the Kafka client commit offsets on its own,
            no manual commits are done by the loop then
        partitions: How many consumption loops should read this topic
            in parallel (each one gets its own thread and connection)
        batch_size: Maximal number of records fetched in one poll
        poll_timeout: Seconds to wait for a batch before polling again
        resume_on_rebalance: Keep polling when the broker reports a
            rebalance in progress instead of terminating the loop
    """

    topic: str
    group_id: str
    sink: DeliverySink
    auto_commit: bool = field(default=False)
    partitions: int = field(default=1)
    batch_size: int = field(default=500)
    poll_timeout: float = field(default=1.0)
    resume_on_rebalance: bool = field(default=False)


@dataclass(kw_only=True)
class ProducerConfig(CommonConfig):
    """
    Configuration for a producer client.
    Attributes:
        kafka_hosts: list of Kafka node URLs to connect to
        username: producer username
        password: producer password
        additional_settings: additional settings to pass directly to Kafka producer
        topic: topic name to publish to
        acks: "all" waits for all replicas, "1" for the leader only,
            "0" does not wait at all
        batch_size: size of a batch in bytes, sent once filled
        linger_ms: milliseconds to wait for a batch to fill before sending
        buffer_memory: bytes available for buffering before send() blocks
        async_calls: do not wait for the broker confirmation in send()
        buffer_wait_interval: seconds to wait before enqueueing again
            when the buffer is full
    """

    topic: str
    acks: str = field(default="all")
    batch_size: int = field(default=16384)
    linger_ms: int = field(default=0)
    buffer_memory: int = field(default=33554432)
    async_calls: bool = field(default=False)
    buffer_wait_interval: float = field(default=0.1)
