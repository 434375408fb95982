# SPDX-License-Identifier: Apache-2.0
"""Readiness-gated one-shot dispatcher.

A dispatcher is armed once, polls its probe on a fixed cadence and hands a
single payload to its invoker when the downstream runtime reports ready.
Failures are returned as :class:`DispatchResult` values, never raised.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from .errors import AlreadyArmed, DispatchInvocationFailure, LaunchGateError, NotArmable, ReadinessTimeout
from .metrics import DISPATCH_TOTAL, DISPATCHERS_ARMED, READINESS_WAIT
from .payload import DispatchPayload
from .probe import Clock, ReadinessProbe, ReadinessState

log = logging.getLogger(__name__)


class Invoker(Protocol):
    name: str

    async def invoke(self, payload: DispatchPayload) -> bool: ...


PayloadFactory = Callable[[bool], DispatchPayload]


class ArmState(enum.Enum):
    ARMED = "armed"
    FIRED = "fired"
    CANCELLED = "cancelled"


class TimeoutPolicy(str, enum.Enum):
    CANCEL = "cancel"
    FORCE_FIRE = "force_fire"


class Outcome(str, enum.Enum):
    DELIVERED = "delivered"
    INVOCATION_FAILED = "invocation_failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class DispatchResult:
    action: str
    state: ArmState
    outcome: Outcome
    payload: Optional[DispatchPayload] = None
    error: Optional[LaunchGateError] = None
    ticks: int = 0
    waited_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.DELIVERED

    @property
    def degraded(self) -> bool:
        return self.payload is not None and self.payload.degraded


ResultCallback = Callable[[DispatchResult], Optional[Awaitable[None]]]


class OneShotDispatcher:
    def __init__(
        self,
        action: str,
        probe: ReadinessProbe,
        invoker: Invoker,
        payload_factory: PayloadFactory,
        *,
        poll_interval_s: float = 0.5,
        max_wait_s: float | None = None,
        on_timeout: TimeoutPolicy | str = TimeoutPolicy.CANCEL,
        clock: Clock = time.monotonic,
        on_result: ResultCallback | None = None,
    ):
        if poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be > 0")
        if max_wait_s is not None and max_wait_s <= 0:
            raise ValueError("max_wait_s must be > 0 when set")
        self.action = action
        self.poll_interval_s = float(poll_interval_s)
        self.max_wait_s = max_wait_s
        self.on_timeout = TimeoutPolicy(on_timeout)
        self._probe = probe
        self._invoker = invoker
        self._payload_factory = payload_factory
        self._clock = clock
        self._on_result = on_result
        self._state = ArmState.ARMED
        self._armed_at: Optional[float] = None
        self._ticks = 0
        self._result: Optional[DispatchResult] = None
        self._done = asyncio.Event()
        self._tick_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ArmState:
        return self._state

    @property
    def result(self) -> Optional[DispatchResult]:
        return self._result

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def armed(self) -> bool:
        return self._state is ArmState.ARMED and self._armed_at is not None

    def arm(self, *, poll: bool = True) -> Optional[DispatchResult]:
        """Start waiting for readiness.

        With ``poll=False`` no background task is started and the owner drives
        :meth:`tick` itself.
        """
        if self._state is not ArmState.ARMED or self._armed_at is not None:
            log.warning("dispatcher for %s already armed (state=%s)", self.action, self._state.value)
            return DispatchResult(
                action=self.action,
                state=self._state,
                outcome=Outcome.REJECTED,
                error=AlreadyArmed(f"dispatcher for '{self.action}' is single use"),
                ticks=self._ticks,
            )
        if poll:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                log.error("cannot arm dispatcher for %s: no running event loop", self.action)
                return DispatchResult(
                    action=self.action,
                    state=self._state,
                    outcome=Outcome.REJECTED,
                    error=NotArmable(f"dispatcher for '{self.action}' needs a running event loop to poll"),
                )
        self._armed_at = self._clock()
        self._probe.start(self._armed_at)
        DISPATCHERS_ARMED.inc()
        log.info("armed dispatcher for %s with %r", self.action, self._probe)
        if poll:
            self._task = loop.create_task(self._run(), name=f"dispatch-{self.action}")
        return None

    async def tick(self) -> Optional[DispatchResult]:
        """Evaluate readiness once; returns the terminal result if there is one."""
        async with self._tick_lock:
            if self._state is not ArmState.ARMED:
                return self._result
            if self._armed_at is None:
                log.debug("tick on unarmed dispatcher for %s ignored", self.action)
                return None
            self._ticks += 1
            now = self._clock()
            try:
                readiness = self._probe.probe(now)
            except Exception:
                log.exception("readiness probe for %s failed; treating as not ready", self.action)
                readiness = ReadinessState.NOT_READY
            if readiness is ReadinessState.READY:
                return await self._fire(degraded=False)
            waited = now - self._armed_at
            if self.max_wait_s is not None and waited >= self.max_wait_s:
                timeout = ReadinessTimeout(self.action, waited)
                if self.on_timeout is TimeoutPolicy.FORCE_FIRE:
                    log.warning("%s; force-firing degraded payload", timeout)
                    return await self._fire(degraded=True)
                log.warning("%s; cancelling", timeout)
                return self._finish(ArmState.CANCELLED, Outcome.TIMED_OUT, error=timeout)
            return None

    def cancel(self, reason: str = "cancelled") -> Optional[DispatchResult]:
        """Disarm without dispatching. Safe to call from any state.

        Returns the terminal result, or None while a fired invocation is still in flight.
        """
        if self._state is not ArmState.ARMED:
            return self._result
        log.info("cancelling dispatcher for %s: %s", self.action, reason)
        result = self._finish(ArmState.CANCELLED, Outcome.CANCELLED)
        if self._task is not None and self._task is not _current_task():
            self._task.cancel()
        return result

    async def wait(self) -> DispatchResult:
        await self._done.wait()
        return self._result  # type: ignore[return-value]

    async def _run(self) -> None:
        while self._state is ArmState.ARMED:
            await self.tick()
            if self._state is not ArmState.ARMED:
                break
            await asyncio.sleep(self.poll_interval_s)

    async def _fire(self, *, degraded: bool) -> DispatchResult:
        # Leave ARMED before the first await; ticks and cancel treat FIRED as terminal.
        self._state = ArmState.FIRED
        invoker_name = getattr(self._invoker, "name", type(self._invoker).__name__)
        payload: Optional[DispatchPayload] = None
        try:
            payload = self._payload_factory(degraded)
            ok = await self._invoker.invoke(payload)
            cause: BaseException | None = None
        except asyncio.CancelledError as exc:
            self._finish(
                ArmState.FIRED,
                Outcome.INVOCATION_FAILED,
                payload=payload,
                error=DispatchInvocationFailure(self.action, invoker_name, exc),
            )
            raise
        except Exception as exc:
            log.exception("invoker %s raised while dispatching %s", invoker_name, self.action)
            ok, cause = False, exc
        if ok:
            log.info("dispatched %s via %s (degraded=%s)", self.action, invoker_name, degraded)
            error = ReadinessTimeout(self.action, self._elapsed()) if degraded else None
            return self._finish(ArmState.FIRED, Outcome.DELIVERED, payload=payload, error=error)
        failure = DispatchInvocationFailure(self.action, invoker_name, cause)
        log.error("%s", failure)
        return self._finish(ArmState.FIRED, Outcome.INVOCATION_FAILED, payload=payload, error=failure)

    def _finish(
        self,
        state: ArmState,
        outcome: Outcome,
        *,
        payload: Optional[DispatchPayload] = None,
        error: Optional[LaunchGateError] = None,
    ) -> DispatchResult:
        if self._result is not None:
            return self._result
        was_armed = self._armed_at is not None
        self._state = state
        waited = self._elapsed()
        self._result = DispatchResult(
            action=self.action,
            state=state,
            outcome=outcome,
            payload=payload,
            error=error,
            ticks=self._ticks,
            waited_s=waited,
        )
        DISPATCH_TOTAL.labels(self.action, outcome.value).inc()
        if was_armed:
            DISPATCHERS_ARMED.dec()
            READINESS_WAIT.labels(self.action).observe(waited)
        self._done.set()
        self._notify(self._result)
        return self._result

    def _notify(self, result: DispatchResult) -> None:
        if self._on_result is None:
            return
        try:
            maybe = self._on_result(result)
            if asyncio.iscoroutine(maybe):
                task = asyncio.get_running_loop().create_task(maybe)
                task.add_done_callback(_log_callback_failure)
        except Exception:
            log.exception("result callback for %s failed", self.action)

    def _elapsed(self) -> float:
        if self._armed_at is None:
            return 0.0
        return max(0.0, self._clock() - self._armed_at)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def _log_callback_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.error("async result callback failed: %r", exc)
