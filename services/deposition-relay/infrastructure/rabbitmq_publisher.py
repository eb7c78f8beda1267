"""RabbitMQ implementation of the MessagePublisher interface."""

import json
import threading

from legal_common import EventPublishError, setup_logging
from legal_common.infrastructure import MessagePublisher
from pika.adapters.blocking_connection import BlockingChannel

logger = setup_logging()


class RabbitMQPublisher(MessagePublisher):
    """
    Publishes events to a RabbitMQ topic exchange.

    A BlockingChannel is not thread-safe and publishes arrive from worker
    threads, so they are serialized with a lock.
    """

    def __init__(self, channel: BlockingChannel, exchange_name: str):
        self._channel = channel
        self._exchange_name = exchange_name
        self._lock = threading.Lock()

    def publish(self, routing_key: str, payload: dict) -> None:
        try:
            with self._lock:
                self._channel.basic_publish(
                    exchange=self._exchange_name,
                    routing_key=routing_key,
                    body=json.dumps(payload),
                )
            logger.info(
                "Event published to RabbitMQ",
                extra={
                    "exchange": self._exchange_name,
                    "routing_key": routing_key,
                },
            )
        except Exception as e:
            logger.exception(
                "RabbitMQ publish failed",
                extra={"routing_key": routing_key},
            )
            raise EventPublishError(routing_key, e) from e
