"""HTTP invoker posting queued scripts to the runtime's bridge endpoint."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

import aiohttp

from launchgate.payload import DispatchPayload, WaitPolicy

from .base import BaseInvoker

log = logging.getLogger(__name__)


class WebhookInvoker(BaseInvoker):
    def __init__(self, name: str, options: Dict[str, Any]):
        super().__init__(name, options)
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    async def _ensure(self) -> aiohttp.ClientSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            timeout = aiohttp.ClientTimeout(total=self.options.get("timeout", 5))
            self._session = aiohttp.ClientSession(timeout=timeout)
            return self._session

    async def invoke(self, payload: DispatchPayload) -> bool:
        url = self.options.get("url")
        if not url:
            log.warning("webhook invoker %s missing url", self.name)
            return False
        session = await self._ensure()
        method = self.options.get("method", "POST").upper()
        headers = {**self.options.get("headers", {}), "X-Action": payload.action}
        if payload.wait is WaitPolicy.WAIT_FOR_COMPLETION:
            headers["Prefer"] = "wait"
        async with session.request(method, url, json=payload.as_dict(), headers=headers) as resp:
            if resp.status >= 400:
                body = await resp.text()
                log.error("webhook %s failed status=%s body=%s", self.name, resp.status, body[:200])
                return False
        return True

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
