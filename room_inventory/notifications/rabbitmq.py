import asyncio
import json
import logging
from typing import Optional

import aio_pika

from room_inventory.notifications.events import Event

logger = logging.getLogger(__name__)


class RabbitMQPublisher:
    """Subscriber that forwards every event to a durable RabbitMQ queue."""

    def __init__(self, url: str, queue_name: str = "inventory_notifications"):
        self.url = url
        self.queue_name = queue_name
        self._connection: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self._channel: Optional[aio_pika.abc.AbstractChannel] = None
        self._lock = asyncio.Lock()

    async def _get_channel(self) -> aio_pika.abc.AbstractChannel:
        async with self._lock:
            if self._channel is None or self._channel.is_closed:
                if self._connection is None or self._connection.is_closed:
                    self._connection = await aio_pika.connect_robust(self.url)
                self._channel = await self._connection.channel()
                # The notifications consumer listens on this queue
                await self._channel.declare_queue(self.queue_name, durable=True)
            return self._channel

    async def __call__(self, event: Event) -> None:
        channel = await self._get_channel()
        message_body = json.dumps(event.to_message()).encode()
        await channel.default_exchange.publish(
            aio_pika.Message(
                body=message_body,
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            ),
            routing_key=self.queue_name,
        )
        logger.debug("published %s to %s", event.event_type, self.queue_name)

    async def close(self) -> None:
        if self._connection is not None and not self._connection.is_closed:
            await self._connection.close()
        self._connection = None
        self._channel = None
