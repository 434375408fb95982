# SPDX-License-Identifier: Apache-2.0
"""End-to-end test over MQTT: runtime announces readiness on a topic, scripts go out on another."""
from __future__ import annotations

import asyncio
import json
import socket
from contextlib import asynccontextmanager, suppress

import pytest
from amqtt.broker import Broker
from asyncio_mqtt import Client

from launchgate.app import LaunchGateApp
from launchgate.config import parse_config
from launchgate.dispatcher import ArmState
from launchgate.preferences import MappingPreferencesSource


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@asynccontextmanager
async def mqtt_broker(host: str, port: int):
    config = {
        "listeners": {"default": {"type": "tcp", "bind": f"{host}:{port}"}},
        "sys_interval": 0,
        "auth": {"allow-anonymous": True},
        "topic-check": {"enabled": False},
    }
    broker = Broker(config)
    await broker.start()
    try:
        yield
    finally:
        await broker.shutdown()


async def _collect(port: int, topic: str, sink: list, subscribed: asyncio.Event) -> None:
    async with Client(hostname="127.0.0.1", port=port) as client:
        async with client.unfiltered_messages() as messages:
            await client.subscribe(topic, qos=1)
            subscribed.set()
            async for message in messages:
                sink.append((json.loads(message.payload.decode("utf-8")), message.qos))


def _config(port: int):
    return parse_config(
        {
            "preferences": {"source": {"type": "mapping"}, "keys": ["username", "password", "datasource"]},
            "invokers": {"runtime": {"type": "mqtt", "host": "127.0.0.1", "port": port, "topic": "runtime/scripts"}},
            "signal": {"type": "mqtt", "host": "127.0.0.1", "port": port, "topic": "runtime/ready", "reconnect_interval": 1},
            "gate": {"strategy": "signal", "sentinel": "ready-token", "poll_interval_s": 0.02, "max_wait_s": None},
            "hooks": {
                "launched": {"action": "startup", "variables": True, "wait": "wait_for_completion"},
                "terminating": {"action": "shutdown"},
            },
            "metrics_port": 0,
        }
    )


@pytest.mark.asyncio
async def test_launch_dispatches_once_over_mqtt(wait_for):
    port = _free_port()
    async with mqtt_broker("127.0.0.1", port):
        received: list = []
        subscribed = asyncio.Event()
        collector = asyncio.create_task(_collect(port, "runtime/scripts", received, subscribed))
        await asyncio.wait_for(subscribed.wait(), timeout=5.0)

        source = MappingPreferencesSource("settings", {"username": "alice", "datasource": ""})
        app = LaunchGateApp(_config(port), source=source)
        launch = await app.start()
        try:
            await asyncio.sleep(0.2)
            assert launch.state is ArmState.ARMED
            assert received == []

            async with Client(hostname="127.0.0.1", port=port) as runtime:
                await runtime.publish("runtime/ready", b"ready-token", qos=1, retain=True)

            result = await asyncio.wait_for(launch.wait(), timeout=5.0)
            assert result.ok
            await wait_for(lambda: len(received) == 1)
            body, qos = received[0]
            assert body["action"] == "startup"
            assert body["wait"] == "wait_for_completion"
            assert body["variables"] == {"username": "alice", "password": "", "datasource": "<invalid>"}
            assert qos == 1

            async with Client(hostname="127.0.0.1", port=port) as runtime:
                await runtime.publish("runtime/ready", b"ready-token", qos=1)
            await asyncio.sleep(0.2)
            assert len(received) == 1
            assert app.channel.read() == "ready-token"
        finally:
            await app.stop()

        await wait_for(lambda: len(received) == 2)
        assert received[1][0]["action"] == "shutdown"
        assert received[1][1] == 0
        collector.cancel()
        with suppress(asyncio.CancelledError):
            await collector
