"""Kafka consumption loop module"""

import logging
from contextlib import contextmanager
from threading import Event
from typing import Iterator

from confluent_kafka import Consumer, KafkaError, KafkaException, Message

from .config import ConsumerConfig
from .exceptions import ConsumerNotOpenError, LoopTerminated
from .kafka_settings import KafkaOptions, DEFAULT_CONSUMER_SETTINGS
from .kafka_utils import PartitionKey, Record, perform_healthcheck_using_client
from .offset_store import OffsetStore
from .rebalance import RebalanceListener
from .types import LoopState

LOGGER = logging.getLogger(__name__)

# Commit was refused because group membership changed in the meantime
COMMIT_CONFLICT_CODES = frozenset(
    {
        KafkaError.ILLEGAL_GENERATION,
        KafkaError.UNKNOWN_MEMBER_ID,
        KafkaError.REBALANCE_IN_PROGRESS,
        KafkaError.FENCED_INSTANCE_ID,
        KafkaError._ASSIGNMENT_LOST,  # pylint: disable=protected-access
    }
)


def _error_code(exception: KafkaException) -> int | None:
    """Extract the Kafka error code from the exception if there is one."""
    if exception.args and isinstance(exception.args[0], KafkaError):
        return exception.args[0].code()
    return None


class ConsumptionLoop:
    """
    Consumes a single topic with at-least-once semantics.

    Each polled batch is delivered record by record to the configured sink,
    in the order the broker returned it. The offset of every successfully
    delivered record is remembered in the offset store. After the batch
    is delivered, the stored offsets of its partitions are committed
    synchronously (unless the Kafka client commits on its own).

    A message which cannot be decoded or processed stops its partition
    for the rest of the batch. Nothing past it is committed and the consumer
    is moved back to it, so it is received again with the next poll.

    When the commit is refused because the consumer group changed in the
    meantime, the consumer is moved back to the remembered offsets. Nothing
    marked as processed is skipped without another commit attempt, at the
    cost of possible duplicate deliveries here or on another node
    which got the partition.

    One loop owns one Kafka connection and must be driven by one thread.
    """

    def __init__(
        self,
        config: ConsumerConfig,
        offset_store: OffsetStore | None = None,
    ):
        """
        Initialize a consumption loop.
        Args:
            config: The configuration object
            offset_store: Storage of processed offsets. Each loop gets
                its own if omitted, passing the same store to several
                loops shares the progress between them.
        """
        self._config = config
        self.offset_store = offset_store if offset_store is not None else OffsetStore()
        self.rebalance_listener = RebalanceListener(
            self.offset_store,
            manual_commit=not config.auto_commit,
            paused=self._paused,
        )
        self.__consumer_object: Consumer | None = None
        self.__stop_event = Event()
        self.__state = LoopState.IDLE

    @property
    def state(self) -> LoopState:
        """Current state of the loop."""
        return self.__state

    @property
    def _consumer(self) -> Consumer:
        """
        Returns: the Kafka consumer object owned by this loop.
        Raises: ConsumerNotOpenError if the loop is not open
        """
        if self.__consumer_object is None:
            raise ConsumerNotOpenError(
                f"Consumer of topic {self._config.topic} is not open"
            )
        return self.__consumer_object

    def __set_state(self, state: LoopState) -> None:
        if self.__state is not state:
            LOGGER.debug(
                "Consumer of topic %s: %s -> %s",
                self._config.topic,
                self.__state.value,
                state.value,
            )
        self.__state = state

    @contextmanager
    def _paused(self) -> Iterator[None]:
        """Mark the loop as paused for the duration of a rebalance callback."""
        previous_state = self.__state
        self.__set_state(LoopState.PAUSED)
        try:
            yield
        finally:
            self.__set_state(previous_state)

    ### Lifecycle ###

    def open(self) -> None:
        """
        Create the Kafka consumer and subscribe to the topic.
        Calling this on an open loop does nothing.
        """
        if self.__consumer_object is not None:
            return
        config_dict = self._config.connection_settings(
            {
                KafkaOptions.GROUP_ID: self._config.group_id,
                **DEFAULT_CONSUMER_SETTINGS,
                KafkaOptions.AUTO_COMMIT: self._config.auto_commit,
            }
        )
        consumer = Consumer(config_dict)
        consumer.subscribe(
            [self._config.topic],
            on_assign=self.rebalance_listener.on_assign,
            on_revoke=self.rebalance_listener.on_revoke,
            on_lost=self.rebalance_listener.on_lost,
        )
        self.__consumer_object = consumer
        LOGGER.info(
            "Subscribed to topic %s as a member of group %s",
            self._config.topic,
            self._config.group_id,
        )

    def close(self) -> None:
        """
        Close the Kafka consumer. Calling this on a closed loop does nothing.
        """
        consumer = self.__consumer_object
        if consumer is None:
            return
        self.__consumer_object = None
        try:
            LOGGER.debug("Shutting down consumer of topic %s...", self._config.topic)
            consumer.close()
        except (RuntimeError, KafkaException):  # pragma: no cover
            LOGGER.debug("Consumer already closed.")

    def __enter__(self) -> "ConsumptionLoop":
        self.open()
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    ### Steps of the loop ###

    def __check_stop(self) -> None:
        if self.__stop_event.is_set():
            raise LoopTerminated(f"Consumer of topic {self._config.topic} stopped")

    def _poll(self) -> list[Message]:
        """
        Fetch the next batch of messages, the batch may be empty.
        """
        self.__set_state(LoopState.POLLING)
        try:
            return self._consumer.consume(
                num_messages=self._config.batch_size,
                timeout=self._config.poll_timeout,
            )
        except KafkaException as err:
            if (
                _error_code(err) == KafkaError.REBALANCE_IN_PROGRESS
                and self._config.resume_on_rebalance
            ):
                LOGGER.warning(
                    "Rebalance in progress while polling topic %s, polling again.",
                    self._config.topic,
                )
                return []
            raise

    def _deliver(self, messages: list[Message]) -> set[PartitionKey]:
        """
        Pass each message to the sink and remember its offset.

        When a message cannot be decoded or processed, the rest of its
        partition's batch is skipped and the consumer is moved back
        to the failed message, so that it is received again.
        Args:
            messages: batch of Kafka messages in the order they were received
        Returns: partitions with at least one successfully delivered message
        """
        self.__set_state(LoopState.DELIVERING)
        delivered = 0
        processed: set[PartitionKey] = set()
        failed: dict[PartitionKey, int] = {}
        for message in messages:
            if error := message.error():
                if error.fatal():
                    raise KafkaException(error)
                LOGGER.debug("Consumer error: %s", error.str())
                continue
            partition_key = PartitionKey.from_message(message)
            if partition_key in failed:
                continue
            try:
                record = Record.from_message(message)
                LOGGER.debug(
                    "Delivering record from topic %s, partition %d, offset %d, key %s",
                    record.topic,
                    record.partition,
                    record.offset,
                    record.key,
                    extra={"message_raw": record.value},
                )
                self._config.sink.receive(record.value)
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.exception(
                    "Message could not be processed! Topic %s, partition %d, "
                    "offset %d.",
                    partition_key.topic,
                    partition_key.partition,
                    message.offset(),
                    extra={"message_raw": message.value()},
                )
                failed[partition_key] = message.offset()
                continue
            self.offset_store.update(record)
            processed.add(partition_key)
            delivered += 1
        LOGGER.info(
            "Processed %d out of %d messages from topic %s",
            delivered,
            len(messages),
            self._config.topic,
        )
        if failed:
            self.__set_state(LoopState.SEEK_RECOVERY)
            for partition_key, offset in failed.items():
                self.__seek(partition_key, offset)
        return processed

    def _commit(self, partition_keys: set[PartitionKey]) -> None:
        """
        Synchronously commit the processed offsets of the given partitions.
        Move back to the processed offsets if the commit is refused
        due to rebalancing.
        """
        self.__set_state(LoopState.COMMITTING)
        committable = self.offset_store.to_commit(partition_keys)
        if not committable:
            return
        try:
            self._consumer.commit(offsets=committable, asynchronous=False)
        except KafkaException as err:
            code = _error_code(err)
            if code == KafkaError._NO_OFFSET:  # pylint: disable=protected-access
                LOGGER.debug("No offsets to commit for topic %s", self._config.topic)
                return
            if code not in COMMIT_CONFLICT_CODES:
                raise
            LOGGER.warning(
                "Commit to topic %s failed due to rebalancing: %s. Moving back "
                "to the processed offsets, messages may be delivered again.",
                self._config.topic,
                err,
            )
            self._seek_to_processed()

    def __seek(self, partition_key: PartitionKey, offset: int) -> None:
        try:
            self._consumer.seek(partition_key.to_topic_partition(offset))
        except KafkaException as err:
            # The partition is no longer assigned to this consumer
            LOGGER.warning(
                "Cannot seek topic %s, partition %d to offset %d: %s",
                partition_key.topic,
                partition_key.partition,
                offset,
                err,
            )
            return
        LOGGER.warning(
            "Topic %s, partition %d moved back to offset %d",
            partition_key.topic,
            partition_key.partition,
            offset,
        )

    def _seek_to_processed(self) -> None:
        """
        Move the consumer position of each known partition
        to its latest processed offset.
        """
        self.__set_state(LoopState.SEEK_RECOVERY)
        for partition_key, offset in self.offset_store.items():
            self.__seek(partition_key, offset)


    def __log_termination(self, err: KafkaException) -> None:
        code = _error_code(err)
        if code == KafkaError._TIMED_OUT:  # pylint: disable=protected-access
            LOGGER.warning("Timeout while consuming topic %s", self._config.topic)
        elif code == KafkaError.REBALANCE_IN_PROGRESS:
            LOGGER.warning("Rebalance in progress on topic %s", self._config.topic)
        else:
            LOGGER.error(
                "Unrecoverable error while consuming topic %s",
                self._config.topic,
                exc_info=err,
            )

    ### Public methods ###

    def run(self) -> None:
        """
        Run the loop until it is stopped or an unrecoverable error occurs.
        The loop must be opened first, the connection is closed on exit.
        Raises: ConsumerNotOpenError if the loop is not open
        """
        _ = self._consumer  # raises if the loop is not open
        LOGGER.info("Starting consumption of topic %s", self._config.topic)
        try:
            while True:
                self.__check_stop()
                messages = self._poll()
                if not messages:
                    continue
                processed = self._deliver(messages)
                if not self._config.auto_commit:
                    self._commit(processed)
        except LoopTerminated:
            LOGGER.info("Consumption of topic %s stopped.", self._config.topic)
        except KafkaException as err:
            self.__log_termination(err)
        finally:
            self.__set_state(LoopState.TERMINATED)
            self.close()

    def stop(self) -> None:
        """
        Ask the loop to stop. The loop finishes its current cycle first.
        """
        LOGGER.debug("Stopping consumer of topic %s...", self._config.topic)
        self.__stop_event.set()

    def connection_healthcheck(self) -> bool:
        """Programmatically check if we are able to read from Kafka."""
        return perform_healthcheck_using_client(self._consumer)
