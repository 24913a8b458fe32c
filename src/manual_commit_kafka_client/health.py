"""Module for detached Kafka cluster healthcheck"""

from confluent_kafka import Producer

from .config import CommonConfig
from .kafka_settings import DEFAULT_PRODUCER_SETTINGS
from .kafka_utils import perform_healthcheck_using_client


class HealthCheckClient:
    """
    Class for only performing health checks on Kafka cluster.
    """

    # pylint: disable=too-few-public-methods

    def __init__(self, config: CommonConfig):
        self.config = config
        # We use producer so the group ID can stay unfilled
        self._client = Producer(config.connection_settings(DEFAULT_PRODUCER_SETTINGS))

    def connection_healthcheck(self) -> bool:
        """Programmatically check if we are able to read from Kafka."""
        return perform_healthcheck_using_client(self._client)
