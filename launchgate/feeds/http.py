"""HTTP feed: the runtime PUTs its readiness token to a local endpoint."""
from __future__ import annotations

import logging
from typing import Optional

from aiohttp import web

from launchgate.channel import UNSET

from .base import BaseFeed

log = logging.getLogger(__name__)


class HTTPFeed(BaseFeed):
    def __init__(self, feed_id, channel, options=None):
        super().__init__(feed_id, channel, options)
        self._runner: Optional[web.AppRunner] = None

    @property
    def port(self) -> int:
        if self._runner is None or not self._runner.addresses:
            raise RuntimeError("feed not started")
        return self._runner.addresses[0][1]

    def build_app(self) -> web.Application:
        path = self.options.get("path", "/signal")
        app = web.Application()
        app.router.add_get(path, self._handle_get)
        app.router.add_put(path, self._handle_write)
        app.router.add_post(path, self._handle_write)
        app.router.add_delete(path, self._handle_clear)
        return app

    async def start(self) -> None:
        if self._runner is not None:
            return
        host = self.options.get("host", "127.0.0.1")
        port = int(self.options.get("port", 8765))
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        log.info("feed %s listening on %s:%s", self.feed_id, host, self.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    async def _run(self) -> None:  # pragma: no cover - served by the app runner
        return None

    async def _handle_get(self, request: web.Request) -> web.Response:
        value = self.channel.read()
        return web.json_response(
            {
                "channel": self.channel.name,
                "set": value is not UNSET,
                "value": None if value is UNSET else value,
                "version": self.channel.version,
            }
        )

    async def _handle_write(self, request: web.Request) -> web.Response:
        body = (await request.text()).strip()
        if not body:
            raise web.HTTPBadRequest(text="empty signal; use DELETE to clear")
        self.publish(body)
        return web.json_response({"channel": self.channel.name, "version": self.channel.version})

    async def _handle_clear(self, request: web.Request) -> web.Response:
        self.publish(None)
        return web.json_response({"channel": self.channel.name, "version": self.channel.version})
