"""Exceptions raised by this library"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .types import DeliveryReport


class KafkaClientError(Exception):
    """Base class of all errors of this library."""


class ConsumerNotOpenError(KafkaClientError):
    """The consumption loop was used before open() or after close()."""


class ProducerNotOpenError(KafkaClientError):
    """The producer was used before open() or after close()."""


class LoopTerminated(KafkaClientError):
    """The consumption loop was asked to stop."""


class ProducerSendError(KafkaClientError):
    """A message could not be written to its topic."""

    def __init__(self, report: "DeliveryReport"):
        self.report = report
        super().__init__(f"Cannot produce to topic {report.topic}: {report.error}")
