"""Module for Kafka orchestration for multiple topics"""

import logging
from threading import Thread
from typing import Iterable

from confluent_kafka import KafkaException

from .config import ConsumerConfig
from .consumer import ConsumptionLoop
from .offset_store import OffsetStore

LOGGER = logging.getLogger(__name__)


class ConsumerThread(Thread):
    """
    Class for running each consumption loop in a non-blocking manner.
    The loop is opened and driven by this thread only.
    """

    def __init__(self, loop: ConsumptionLoop):
        self.loop = loop
        super().__init__(target=self.__run)

    def __run(self) -> None:
        try:
            self.loop.open()
        except KafkaException:
            LOGGER.exception("Consumer could not be started.")
            return
        self.loop.run()

    def stop(self) -> None:
        """
        Gracefully stop the loop and wait for its thread to exit.
        Returns: Nothing.
        """
        self.loop.stop()
        self.join()


def consume_topics(
    topics: Iterable[ConsumerConfig], offset_store: OffsetStore | None = None
) -> None:
    """
    Function for parallel consuming of multiple topics, each consumption
    loop gets its own thread and its own Kafka connection.
    Args:
        topics: Collection of topic configs to consume. Each config
            gets as many threads as its partitions setting says, these
            do not block each other.
        offset_store: Offset store shared by all the loops. Each loop
            gets its own if omitted.
    """
    threads: list[ConsumerThread] = []
    try:
        for config in topics:
            for _ in range(config.partitions):
                loop = ConsumptionLoop(config=config, offset_store=offset_store)
                thread = ConsumerThread(loop)
                thread.start()
                threads.append(thread)
        for thread in threads:
            thread.join()
    finally:
        for thread in threads:
            thread.stop()
