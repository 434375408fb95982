"""MQTT invoker publishing queued scripts to the runtime's command topic."""
from __future__ import annotations

import asyncio
import json
import logging

from asyncio_mqtt import Client

from launchgate.payload import DispatchPayload, WaitPolicy

from .base import BaseInvoker

log = logging.getLogger(__name__)


class MQTTInvoker(BaseInvoker):
    def __init__(self, name: str, options):
        super().__init__(name, options)
        self._lock = asyncio.Lock()
        self._client: Client | None = None

    async def _ensure(self) -> Client:
        async with self._lock:
            if self._client is not None:
                return self._client
            host = self.options.get("host", "127.0.0.1")
            port = int(self.options.get("port", 1883))
            username = self.options.get("username")
            password = self.options.get("password")
            client = Client(hostname=host, port=port, username=username, password=password)
            await client.connect()
            self._client = client
            log.info("connected MQTT invoker %s to %s:%s", self.name, host, port)
            return client

    async def invoke(self, payload: DispatchPayload) -> bool:
        topic = self.options.get("topic")
        if not topic:
            log.warning("MQTT invoker %s missing topic", self.name)
            return False
        client = await self._ensure()
        qos = int(self.options.get("qos", 0))
        if payload.wait is WaitPolicy.WAIT_FOR_COMPLETION:
            # a completed publish only means something to the runtime with qos >= 1
            qos = max(qos, 1)
        data = json.dumps(payload.as_dict()).encode("utf-8")
        await client.publish(topic, data, qos=qos, retain=bool(self.options.get("retain", False)))
        return True

    async def close(self) -> None:
        if self._client:
            await self._client.disconnect()
            self._client = None
