"""Fire-and-forget domain events published to RabbitMQ."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict

import pika
from pika.exceptions import AMQPError

from .config import get_settings

logger = logging.getLogger("facility.events")


def publish_event(event: str, payload: Dict[str, Any]) -> bool:
    """Publish ``event`` on the durable facility queue.

    Broker failures are logged and reported through the return value; they
    never fail the request that triggered the event.
    """

    settings = get_settings()
    if not settings.publish_events:
        return False

    message = {"event": event, **payload}
    try:
        connection = pika.BlockingConnection(pika.ConnectionParameters(host=settings.event_broker_host))
        try:
            channel = connection.channel()
            channel.queue_declare(queue=settings.event_queue, durable=True)
            channel.basic_publish(
                exchange="",
                routing_key=settings.event_queue,
                body=json.dumps(message, default=str),
                properties=pika.BasicProperties(delivery_mode=2),
            )
        finally:
            connection.close()
    except AMQPError as exc:
        logger.error("Could not publish %s: %s", event, exc)
        return False
    logger.info("Published %s", event)
    return True
