"""MQTT feed: the runtime publishes its readiness token to a topic."""
from __future__ import annotations

import asyncio
import logging

from asyncio_mqtt import Client, MqttError

from .base import BaseFeed

log = logging.getLogger(__name__)


class MQTTFeed(BaseFeed):
    def decode(self, payload: bytes | bytearray | str | None) -> str | None:
        if payload is None:
            return None
        if isinstance(payload, (bytes, bytearray)):
            payload = bytes(payload).decode("utf-8", errors="replace")
        return payload.strip() or None

    async def _run(self) -> None:
        host = self.options.get("host", "127.0.0.1")
        port = int(self.options.get("port", 1883))
        username = self.options.get("username")
        password = self.options.get("password")
        topic = self.options.get("topic", "runtime/ready")
        reconnect_interval = int(self.options.get("reconnect_interval", 5))
        while True:
            try:
                async with Client(hostname=host, port=port, username=username, password=password) as client:
                    async with client.unfiltered_messages() as messages:
                        await client.subscribe(topic)
                        log.info("feed %s subscribed to %s", self.feed_id, topic)
                        async for message in messages:
                            self.publish(self.decode(message.payload))
            except MqttError:
                log.exception("feed %s lost connection; retrying", self.feed_id)
                await asyncio.sleep(reconnect_interval)
