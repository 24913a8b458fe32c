"""Kafka producer module"""

import logging
import time
from concurrent.futures import Future
from threading import Event, Thread
from typing import Callable

from confluent_kafka import KafkaError, KafkaException, Message, Producer

from .config import ProducerConfig
from .exceptions import ProducerNotOpenError
from .kafka_settings import KafkaOptions, DEFAULT_PRODUCER_SETTINGS
from .kafka_utils import perform_healthcheck_using_client
from .types import DeliveryReport

LOGGER = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1
_FLUSH_INTERVAL = 0.01


class _DeliveryPoller(Thread):
    """
    Serves delivery reports of a producer. Delivery callbacks
    are executed within this thread.
    """

    def __init__(self, producer: Producer):
        super().__init__(name="kafka-delivery-poller", daemon=True)
        self.__producer = producer
        self.__stop_event = Event()

    def run(self) -> None:
        while not self.__stop_event.is_set():
            self.__producer.poll(_POLL_INTERVAL)

    def stop(self) -> None:
        """Stop serving delivery reports and wait for the thread to exit."""
        self.__stop_event.set()
        self.join()


class ProducerClient:
    """
    Publishes string messages to a single Kafka topic.

    Messages are buffered by the Kafka client and sent in batches,
    a batch is sent when it is full or when the linger time passes.
    When the buffer is full, sending blocks until there is room again.

    Each send returns a future of its delivery report. In synchronous mode,
    send() returns only after the broker confirmed (or refused) the message.
    """

    def __init__(self, config: ProducerConfig):
        """
        Initialize a Producer.
        Parameters:
            config: The configuration object
        """
        self._config = config
        self.__producer_object: Producer | None = None
        self.__poller: _DeliveryPoller | None = None

    @property
    def topic(self) -> str:
        """Return the topic this producer produces to."""
        return self._config.topic

    @property
    def _producer(self) -> Producer:
        """
        Returns: the Kafka producer object owned by this client.
        Raises: ProducerNotOpenError if the client is not open
        """
        if self.__producer_object is None:
            raise ProducerNotOpenError(
                f"Producer of topic {self._config.topic} is not open"
            )
        return self.__producer_object

    def open(self) -> None:
        """
        Create the Kafka producer and start serving its delivery reports.
        Calling this on an open client does nothing.
        """
        if self.__producer_object is not None:
            return
        LOGGER.info("Connecting to %s", ",".join(self._config.kafka_hosts))
        config_dict = self._config.connection_settings(
            {
                **DEFAULT_PRODUCER_SETTINGS,
                KafkaOptions.ACKS: self._config.acks,
                KafkaOptions.BATCH_SIZE: self._config.batch_size,
                KafkaOptions.LINGER_MS: self._config.linger_ms,
                KafkaOptions.BUFFER_KBYTES: max(1, self._config.buffer_memory // 1024),
            }
        )
        self.__producer_object = Producer(config_dict)
        self.__poller = _DeliveryPoller(self.__producer_object)
        self.__poller.start()

    def __on_delivery(
        self,
        future: "Future[DeliveryReport]",
        error: KafkaError | None,
        message: Message | None,
    ) -> None:
        """Log the outcome of a send and resolve its future."""
        if error is not None:
            LOGGER.warning(
                "Message to topic %s was not delivered: %s",
                self._config.topic,
                error,
            )
            partition = message.partition() if message is not None else None
            report = DeliveryReport(self._config.topic, partition, None, error)
        else:
            assert message is not None, "Delivered message is always reported"
            report = DeliveryReport(
                self._config.topic, message.partition(), message.offset()
            )
            LOGGER.info(
                "Message delivered to topic %s, partition %s, offset %s",
                report.topic,
                report.partition,
                report.offset,
            )
        future.set_result(report)

    def __enqueue(
        self, value: bytes, callback: Callable[[KafkaError | None, Message], None]
    ) -> None:
        """
        Put the message to the send buffer, wait for space if it is full.
        """
        while True:
            try:
                self._producer.produce(
                    topic=self._config.topic,
                    value=value,
                    on_delivery=callback,
                )
                return
            except BufferError:
                LOGGER.debug(
                    "Send buffer of topic %s is full, waiting %s seconds",
                    self._config.topic,
                    self._config.buffer_wait_interval,
                )
                time.sleep(self._config.buffer_wait_interval)

    def send(self, message: str) -> "Future[DeliveryReport]":
        """
        Send a message to the configured topic.
        Args:
            message: string to be published, sent UTF-8 encoded
        Returns:
            future of the delivery report. In synchronous mode, the future
            is already resolved. Failures are reported within the report,
            see DeliveryReport.raise_for_error().
        Raises:
            TypeError: if message is not a string
            ProducerNotOpenError: if the client is not open
        """
        if not isinstance(message, str):
            raise TypeError(f"Message must be a string, not {type(message).__name__}")
        future: Future[DeliveryReport] = Future()
        LOGGER.debug(
            "Sending message to topic %s",
            self._config.topic,
            extra={"message_raw": message},
        )
        try:
            self.__enqueue(
                message.encode("utf-8"),
                lambda error, sent: self.__on_delivery(future, error, sent),
            )
        except KafkaException as err:
            LOGGER.warning(
                "Kafka producer cannot send to topic %s: %s", self._config.topic, err
            )
            future.set_result(DeliveryReport(self._config.topic, None, None, err))
            return future
        if not self._config.async_calls:
            future.result()
        return future

    def flush(self, timeout: float = -1) -> int:
        """
        Wait for the messages in the send buffer to be delivered.
        Delivery reports keep being served by the delivery thread,
        the calling thread only waits.
        Args:
            timeout: maximum time to wait in seconds, negative waits forever
        Returns: number of messages still waiting
        """
        producer = self._producer
        deadline = time.monotonic() + timeout if timeout >= 0 else None
        # Counts both undelivered messages and unserved delivery reports
        while remaining := len(producer):
            if deadline is not None and time.monotonic() >= deadline:
                break
            time.sleep(_FLUSH_INTERVAL)
        return remaining

    def close(self) -> None:
        """
        Finish sending all messages, block until complete.
        Calling this on a closed client does nothing.
        """
        if self.__producer_object is None:
            return
        while messages := self.flush(1):
            LOGGER.debug("Remaining messages in send queue: %d", messages)
        if self.__poller is not None:
            self.__poller.stop()
            self.__poller = None
        self.__producer_object = None

    def __enter__(self) -> "ProducerClient":
        self.open()
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def connection_healthcheck(self) -> bool:
        """Programmatically check if we are able to write to Kafka."""
        return perform_healthcheck_using_client(self._producer)
