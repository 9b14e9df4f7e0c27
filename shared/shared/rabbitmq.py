import logging

import aio_pika

EXCHANGE_NAME = "domain_events"

logger = logging.getLogger(__name__)


class RabbitPublisher:
    """
    Lazily connected publisher for the `domain_events` topic exchange.
    Without a URL it is a no-op; once connected, publish failures are logged
    and dropped so a broker outage never fails the caller.
    """

    def __init__(self, rabbit_url: str | None, service_name: str):
        self.rabbit_url = rabbit_url
        self.service_name = service_name
        self._connection = None
        self._exchange = None

    @property
    def enabled(self) -> bool:
        return bool(self.rabbit_url)

    async def connect(self):
        if not self.enabled:
            return
        if self._connection and not self._connection.is_closed:
            return

        connection = await aio_pika.connect_robust(self.rabbit_url)
        try:
            channel = await connection.channel()
            self._exchange = await channel.declare_exchange(
                EXCHANGE_NAME, aio_pika.ExchangeType.TOPIC, durable=True
            )
        except Exception:
            await connection.close()
            raise
        self._connection = connection

    async def publish(self, routing_key: str, body: str):
        if not self.enabled:
            return
        try:
            await self.connect()
            message = aio_pika.Message(
                body=body.encode("utf-8"),
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                app_id=self.service_name,
            )
            await self._exchange.publish(message, routing_key=routing_key)
        except Exception as e:
            logger.warning("[%s] dropping %s event: %s", self.service_name, routing_key, e)

    async def close(self):
        connection, self._connection, self._exchange = self._connection, None, None
        if connection and not connection.is_closed:
            await connection.close()
