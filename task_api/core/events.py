import json
import logging
import time
from typing import Any, Dict

import pika
import pika.exceptions

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class EventPublisher:
    """RabbitMQ publisher for user and task events"""

    def __init__(self, host: str = None, port: int = None, user: str = None,
                 password: str = None, exchange: str = None, enabled: bool = None):
        self.host = host or settings.rabbitmq_host
        self.port = port or settings.rabbitmq_port
        self.user = user or settings.rabbitmq_user
        self.password = password or settings.rabbitmq_password
        self.exchange = exchange or settings.rabbitmq_exchange
        self.enabled = settings.events_enabled if enabled is None else enabled
        self.connection = None
        self.channel = None

    def connect(self, max_retries: int = 5, retry_delay: int = 5) -> bool:
        """Open a channel and declare the topic exchange, retrying while the broker starts"""
        for attempt in range(max_retries):
            try:
                credentials = pika.PlainCredentials(self.user, self.password)
                parameters = pika.ConnectionParameters(
                    host=self.host,
                    port=self.port,
                    credentials=credentials,
                    heartbeat=600,
                    blocked_connection_timeout=300,
                )

                self.connection = pika.BlockingConnection(parameters)
                self.channel = self.connection.channel()

                self.channel.exchange_declare(
                    exchange=self.exchange,
                    exchange_type='topic',
                    durable=True
                )

                logger.info(f"Publishing events to {self.exchange} on {self.host}:{self.port}")
                return True

            except pika.exceptions.AMQPConnectionError as e:
                logger.warning(f"Broker unavailable ({attempt + 1}/{max_retries}): {e}")
                if attempt < max_retries - 1:
                    time.sleep(retry_delay)
                else:
                    logger.error("Giving up on RabbitMQ, events will be dropped")
        return False

    def publish_event(self, event_type: str, data: Dict[str, Any]) -> bool:
        """Publish event to RabbitMQ; failures are logged, never raised"""
        if not self.enabled:
            logger.debug(f"Event publishing disabled, dropping {event_type}")
            return False

        if not self.connection or self.connection.is_closed:
            if not self.connect(max_retries=1):
                logger.warning(f"Failed to publish {event_type} event - no connection")
                return False

        try:
            message = {
                'event_type': event_type,
                'data': data
            }

            self.channel.basic_publish(
                exchange=self.exchange,
                routing_key=event_type,
                body=json.dumps(message, default=str),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Persistent
                    content_type='application/json'
                )
            )

            logger.info(f"Published {event_type}")
            return True

        except pika.exceptions.AMQPError as e:
            logger.error(f"Error publishing {event_type} event: {e}")
            return False

    def close(self):
        """Close connection"""
        try:
            if self.connection and not self.connection.is_closed:
                self.connection.close()
                logger.info("Event publisher closed")
        except pika.exceptions.AMQPError as e:
            logger.error(f"Error closing event publisher: {e}")


# Shared by the routers
event_publisher = EventPublisher()
