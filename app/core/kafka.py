"""
Kafka producer for domain events.

Publishing is best effort: callers wrap ``publish_event`` so that a broker
outage never fails the mutation that produced the event. When
``KAFKA_ENABLED`` is false the producer is never started and publishing is
a no-op.
"""

import json
from typing import Optional

from aiokafka import AIOKafkaProducer

from app.core.config import settings
from app.core.events import EventEnvelope
from app.core.logging import get_logger

logger = get_logger(__name__)


class KafkaProducer:
    """Process-wide producer started and stopped by the application lifespan."""

    _producer: Optional[AIOKafkaProducer] = None
    _started: bool = False

    @classmethod
    async def start(cls) -> None:
        if not settings.KAFKA_ENABLED:
            logger.info("Kafka disabled, event publishing is a no-op")
            return
        if cls._started:
            return

        cls._producer = AIOKafkaProducer(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            client_id=settings.KAFKA_CLIENT_ID,
            value_serializer=lambda value: json.dumps(value).encode("utf-8"),
            key_serializer=lambda key: key.encode("utf-8") if key else None,
        )
        await cls._producer.start()
        cls._started = True
        logger.info(f"Kafka producer connected to {settings.KAFKA_BOOTSTRAP_SERVERS}")

    @classmethod
    async def stop(cls) -> None:
        if cls._producer is not None:
            await cls._producer.stop()
        cls._producer = None
        cls._started = False

    @classmethod
    async def send(cls, topic: str, value: dict, key: Optional[str] = None) -> None:
        if not cls._started or cls._producer is None:
            logger.debug(f"Kafka producer not started, dropping message for {topic}")
            return
        await cls._producer.send_and_wait(topic, value=value, key=key)


async def publish_event(topic: str, event: EventEnvelope, key: Optional[str] = None) -> None:
    """
    Publish an event envelope to a topic.

    Args:
        topic: Kafka topic name
        event: Event to publish
        key: Optional partition key (e.g. the employee id)
    """
    await KafkaProducer.send(topic, event.model_dump(mode="json"), key=key)
    logger.debug(f"Published {event.event_type.value} event {event.event_id} to {topic}")
