# SPDX-License-Identifier: Apache-2.0
"""Feeds that let the downstream runtime write into the signal channel."""
from __future__ import annotations

import abc
import asyncio
import contextlib
import logging
from typing import Any, Dict, Optional

from launchgate.channel import SignalChannel
from launchgate.metrics import SIGNAL_WRITES

log = logging.getLogger(__name__)


class BaseFeed(abc.ABC):
    def __init__(self, feed_id: str, channel: SignalChannel, options: Dict[str, Any] | None = None):
        self.feed_id = feed_id
        self.channel = channel
        self.options = options or {}
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name=f"feed-{self.feed_id}")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    def publish(self, value: str | None) -> None:
        """Write ``value`` to the channel; ``None`` or ``""`` clears it."""
        if value:
            self.channel.write(value)
        else:
            self.channel.clear()
        SIGNAL_WRITES.labels(self.feed_id).inc()
        log.debug("feed %s wrote %r to channel %s", self.feed_id, value, self.channel.name)

    @abc.abstractmethod
    async def _run(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class ManualFeed(BaseFeed):
    """No transport: the host process writes the channel itself."""

    async def start(self) -> None:
        return None

    async def _run(self) -> None:  # pragma: no cover - never scheduled
        return None
