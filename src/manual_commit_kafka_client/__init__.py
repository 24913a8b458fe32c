"""Kafka client with manual offset control and at-least-once delivery"""

from .config import ConsumerConfig, ProducerConfig
from .consumer import ConsumptionLoop
from .exceptions import (
    ConsumerNotOpenError,
    KafkaClientError,
    ProducerNotOpenError,
    ProducerSendError,
)
from .kafka_utils import PartitionKey, Record
from .offset_store import OffsetStore
from .orchestrate import consume_topics
from .producer import ProducerClient
from .rebalance import RebalanceListener
from .types import DeliveryReport, DeliverySink, LoopState

__all__ = (
    "ConsumerConfig",
    "ConsumerNotOpenError",
    "ConsumptionLoop",
    "DeliveryReport",
    "DeliverySink",
    "KafkaClientError",
    "LoopState",
    "OffsetStore",
    "PartitionKey",
    "ProducerClient",
    "ProducerConfig",
    "ProducerNotOpenError",
    "ProducerSendError",
    "Record",
    "RebalanceListener",
    "consume_topics",
)
