# SPDX-License-Identifier: Apache-2.0
"""Routes host lifecycle events to gated or direct dispatches."""
from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

from .actions.registry import InvokerRegistry
from .channel import SignalChannel
from .config import GateConfig, HookConfig
from .dispatcher import OneShotDispatcher, PayloadFactory, ResultCallback
from .events import LifecycleEvent
from .metrics import LIFECYCLE_EVENTS
from .payload import DispatchPayload, build_payload
from .preferences import PreferenceSnapshot
from .probe import Clock, ImmediateProbe, build_probe

log = logging.getLogger(__name__)


class LifecycleHooks:
    def __init__(
        self,
        hooks: Dict[LifecycleEvent, HookConfig],
        invokers: InvokerRegistry,
        gate: GateConfig,
        channel: SignalChannel,
        snapshot: PreferenceSnapshot,
        *,
        clock: Clock = time.monotonic,
        on_result: ResultCallback | None = None,
    ):
        self.hooks = hooks
        self.invokers = invokers
        self.gate = gate
        self.channel = channel
        self.snapshot = snapshot
        self._clock = clock
        self._on_result = on_result
        self.dispatchers: Dict[LifecycleEvent, OneShotDispatcher] = {}

    @property
    def pending(self) -> List[OneShotDispatcher]:
        return [d for d in self.dispatchers.values() if d.result is None]

    async def handle(self, event: LifecycleEvent | str) -> Optional[OneShotDispatcher]:
        event = LifecycleEvent(event)
        LIFECYCLE_EVENTS.labels(event.value).inc()
        if event is LifecycleEvent.TERMINATING:
            self.cancel_pending("host terminating")
        hook = self.hooks.get(event)
        if hook is None:
            log.debug("no hook configured for %s", event.value)
            return None
        if hook.gated:
            return self.arm(hook)
        dispatcher = self._build(hook, gated=False)
        dispatcher.arm(poll=False)
        await dispatcher.tick()
        return dispatcher

    def arm(self, hook: HookConfig) -> OneShotDispatcher:
        current = self.dispatchers.get(hook.event)
        if current is not None and current.result is None:
            log.warning("%s dispatch for %s still pending; not re-arming", hook.event.value, hook.action)
            return current
        dispatcher = self._build(hook, gated=True)
        dispatcher.arm()
        return dispatcher

    def cancel_pending(self, reason: str) -> None:
        for dispatcher in self.pending:
            dispatcher.cancel(reason)

    def payload_factory(self, hook: HookConfig) -> PayloadFactory:
        def factory(degraded: bool) -> DispatchPayload:
            if hook.variables is True:
                variables: Optional[Dict[str, str]] = dict(self.snapshot.values)
            elif hook.variables:
                variables = self.snapshot.select(hook.variables)
            else:
                variables = None
            return build_payload(
                hook.action,
                wait=hook.wait,
                parameter=hook.parameter,
                variables=variables,
                degraded=degraded,
            )

        return factory

    def _build(self, hook: HookConfig, *, gated: bool) -> OneShotDispatcher:
        invoker = self.invokers.get(hook.invoker)
        if gated:
            probe = build_probe(self.gate, self.channel, clock=self._clock)
            max_wait = self.gate.max_wait_s
        else:
            probe, max_wait = ImmediateProbe(), None
        dispatcher = OneShotDispatcher(
            hook.action,
            probe,
            invoker,
            self.payload_factory(hook),
            poll_interval_s=self.gate.poll_interval_s,
            max_wait_s=max_wait,
            on_timeout=self.gate.on_timeout,
            clock=self._clock,
            on_result=self._on_result,
        )
        self.dispatchers[hook.event] = dispatcher
        return dispatcher
