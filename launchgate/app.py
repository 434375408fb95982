"""Async launch gate runner."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import time
from typing import Optional

from prometheus_client import start_http_server

from launchgate import preferences
from launchgate.actions.registry import InvokerRegistry
from launchgate.channel import SignalChannel
from launchgate.config import LaunchGateConfig, load_config
from launchgate.dispatcher import DispatchResult, OneShotDispatcher
from launchgate.events import LifecycleEvent
from launchgate.feeds import BaseFeed, create_feed
from launchgate.lifecycle import LifecycleHooks
from launchgate.preferences import PreferencesSource
from launchgate.probe import Clock

log = logging.getLogger("launchgate")


def log_result(result: DispatchResult) -> None:
    if result.ok:
        log.info("%s delivered after %.2fs (%d ticks)", result.action, result.waited_s, result.ticks)
    else:
        log.warning("%s finished as %s: %s", result.action, result.outcome.value, result.error)


class LaunchGateApp:
    def __init__(
        self,
        config: LaunchGateConfig,
        *,
        source: PreferencesSource | None = None,
        channel: SignalChannel | None = None,
        clock: Clock = time.monotonic,
        on_result=log_result,
    ):
        self.config = config
        self.channel = channel or SignalChannel("runtime")
        self.invokers = InvokerRegistry()
        self.feed: Optional[BaseFeed] = None
        self.hooks: Optional[LifecycleHooks] = None
        self._source = source
        self._clock = clock
        self._on_result = on_result
        self._started = False

    async def start(self) -> Optional[OneShotDispatcher]:
        """Snapshot preferences, start the signal feed and emit LAUNCHED."""
        self.invokers.initialise(self.config.invokers)
        snapshot = preferences.take_snapshot(self.config.preferences, self._source)
        self.hooks = LifecycleHooks(
            self.config.hooks,
            self.invokers,
            self.config.gate,
            self.channel,
            snapshot,
            clock=self._clock,
            on_result=self._on_result,
        )
        self.feed = create_feed(self.config.signal, self.channel)
        await self.feed.start()
        if self.config.metrics_port:
            start_http_server(self.config.metrics_port)
        self._started = True
        log.info(
            "launch gate started: %d preferences, %d invokers, %s readiness",
            len(snapshot),
            len(self.config.invokers),
            self.config.gate.strategy,
        )
        return await self.handle_event(LifecycleEvent.LAUNCHED)

    async def handle_event(self, event: LifecycleEvent | str) -> Optional[OneShotDispatcher]:
        if self.hooks is None:
            raise RuntimeError("launch gate not started")
        return await self.hooks.handle(event)

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        try:
            await self.handle_event(LifecycleEvent.TERMINATING)
        except Exception:
            log.exception("terminating hook failed")
        if self.feed is not None:
            await self.feed.stop()
        await self.invokers.close()


async def main_async(args) -> None:
    config = load_config(args.config)
    app = LaunchGateApp(config)
    await app.start()
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    background: set[asyncio.Task] = set()

    def _emit(event: LifecycleEvent) -> None:
        task = loop.create_task(app.handle_event(event))
        background.add(task)
        task.add_done_callback(background.discard)

    handlers = {
        signal.SIGINT: stop_event.set,
        signal.SIGTERM: stop_event.set,
    }
    if hasattr(signal, "SIGUSR1"):
        handlers[signal.SIGUSR1] = lambda: _emit(LifecycleEvent.BACKGROUND)
        handlers[signal.SIGUSR2] = lambda: _emit(LifecycleEvent.ACTIVE)
    for sig, handler in handlers.items():
        try:
            loop.add_signal_handler(sig, handler)
        except NotImplementedError:
            # Windows fallback
            pass

    await stop_event.wait()
    log.info("shutdown requested")
    await app.stop()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Readiness-gated launch dispatcher for embedded runtimes")
    parser.add_argument("--config", default="config/launchgate.yaml")
    args = parser.parse_args()
    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
