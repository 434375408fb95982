# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures for launch gate tests."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, List

import pytest
from aiohttp import web

from launchgate.actions.base import BaseInvoker
from launchgate.actions.registry import INVOKER_TYPES, register as register_invoker
from launchgate.payload import DispatchPayload


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class CaptureInvoker(BaseInvoker):
    """Invoker used in tests to capture delivered payloads."""

    def __init__(self, name: str = "capture", options: Dict[str, Any] | None = None):
        super().__init__(name, options or {})
        self.payloads: List[DispatchPayload] = []
        self.succeed = bool(self.options.get("succeed", True))
        self.delay = float(self.options.get("delay", 0.0))
        self.closed = False

    async def invoke(self, payload: DispatchPayload) -> bool:
        self.payloads.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.succeed

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(scope="session", autouse=True)
def register_test_invokers():
    """Register the capture invoker type for config-driven tests."""
    if "capture" not in INVOKER_TYPES:
        register_invoker("capture", lambda name, options: CaptureInvoker(name, options))
    yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def invoker() -> CaptureInvoker:
    return CaptureInvoker()


@asynccontextmanager
async def serve(app: web.Application, host: str = "127.0.0.1"):
    """Run an aiohttp app on a free port and yield its base URL."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, 0)
    await site.start()
    try:
        yield f"http://{host}:{runner.addresses[0][1]}"
    finally:
        await runner.cleanup()


async def wait_for(predicate, timeout: float = 5.0):
    loop = asyncio.get_running_loop()
    end_time = loop.time() + timeout
    while loop.time() < end_time:
        if predicate():
            return
        await asyncio.sleep(0.02)
    raise AssertionError("condition not met within timeout")


@pytest.fixture
def make_invoker():
    def factory(name: str = "capture", **options: Any) -> CaptureInvoker:
        return CaptureInvoker(name, options)

    return factory


@pytest.fixture(name="serve")
def serve_fixture():
    return serve


@pytest.fixture(name="wait_for")
def wait_for_fixture():
    return wait_for
