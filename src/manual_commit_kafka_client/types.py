"""Types used in this library"""

from enum import Enum
from typing import Any, NamedTuple, Protocol

from confluent_kafka import KafkaError

from .exceptions import ProducerSendError


class DeliverySink(Protocol):
    """
    Receiver of consumed payloads. Raising from receive() marks
    the record as failed, it is logged and the loop moves on.
    """

    # pylint: disable=too-few-public-methods

    def receive(self, payload: str) -> Any:
        """Process a single payload."""


class LoopState(Enum):
    """States of a consumption loop."""

    IDLE = "idle"
    POLLING = "polling"
    DELIVERING = "delivering"
    COMMITTING = "committing"
    SEEK_RECOVERY = "seek_recovery"
    PAUSED = "paused"
    TERMINATED = "terminated"


class DeliveryReport(NamedTuple):
    """
    Outcome of a single send. When the message was not written,
    error is filled and partition and offset may be missing.
    """

    topic: str
    partition: int | None
    offset: int | None
    error: KafkaError | Exception | None = None

    @property
    def ok(self) -> bool:
        """True if the broker acknowledged the write."""
        return self.error is None

    def raise_for_error(self) -> None:
        """
        Raises: ProducerSendError if the send failed.
        """
        if self.error is not None:
            raise ProducerSendError(self)
