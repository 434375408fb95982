# SPDX-License-Identifier: Apache-2.0
"""State machine tests for the one-shot dispatcher."""
from __future__ import annotations

import asyncio

import pytest
from prometheus_client import REGISTRY

from launchgate.channel import SignalChannel
from launchgate.dispatcher import ArmState, OneShotDispatcher, Outcome, TimeoutPolicy
from launchgate.errors import AlreadyArmed, DispatchInvocationFailure, NotArmable, ReadinessTimeout
from launchgate.payload import build_payload
from launchgate.probe import FixedDelayProbe, ImmediateProbe, SignalProbe


def _factory(action: str = "startup"):
    calls = []

    def factory(degraded: bool):
        calls.append(degraded)
        return build_payload(action, parameter="boot", variables={"username": "alice"}, degraded=degraded)

    factory.calls = calls
    return factory


@pytest.mark.asyncio
async def test_fixed_delay_fires_exactly_at_deadline(clock, invoker):
    factory = _factory()
    dispatcher = OneShotDispatcher(
        "startup", FixedDelayProbe(2.0, clock=clock), invoker, factory, poll_interval_s=0.5, clock=clock
    )
    dispatcher.arm(poll=False)
    for t in (0.0, 0.5, 1.0, 1.5):
        assert clock() == t
        assert await dispatcher.tick() is None
        assert dispatcher.state is ArmState.ARMED
        assert invoker.payloads == []
        clock.advance(0.5)

    result = await dispatcher.tick()
    assert clock() == 2.0
    assert result is not None and result.ok
    assert dispatcher.state is ArmState.FIRED
    assert len(invoker.payloads) == 1
    assert factory.calls == [False]
    assert result.waited_s == pytest.approx(2.0)


@pytest.mark.asyncio
@pytest.mark.parametrize("delay", [0.0, 0.75, 3.0])
async def test_fixed_delay_never_fires_early(clock, invoker, delay):
    dispatcher = OneShotDispatcher(
        "startup", FixedDelayProbe(delay, clock=clock), invoker, _factory(), poll_interval_s=0.25, clock=clock
    )
    dispatcher.arm(poll=False)
    fired_at = None
    for _ in range(20):
        result = await dispatcher.tick()
        if result is not None and fired_at is None:
            fired_at = clock()
        clock.advance(0.25)
    assert fired_at is not None
    assert fired_at >= delay
    assert len(invoker.payloads) == 1


@pytest.mark.asyncio
async def test_repeated_ready_ticks_dispatch_once(clock, invoker):
    dispatcher = OneShotDispatcher("startup", ImmediateProbe(), invoker, _factory(), clock=clock)
    dispatcher.arm(poll=False)
    results = [await dispatcher.tick() for _ in range(5)]
    assert len(invoker.payloads) == 1
    assert all(r is results[0] for r in results)
    assert dispatcher.ticks == 1


@pytest.mark.asyncio
async def test_concurrent_ticks_dispatch_once(make_invoker):
    slow = make_invoker(delay=0.05)
    dispatcher = OneShotDispatcher("startup", ImmediateProbe(), slow, _factory())
    dispatcher.arm(poll=False)
    results = await asyncio.gather(*(dispatcher.tick() for _ in range(5)))
    assert len(slow.payloads) == 1
    assert {r.outcome for r in results} == {Outcome.DELIVERED}


@pytest.mark.asyncio
async def test_ready_at_arm_fires_on_first_tick_without_waiting_interval(invoker):
    dispatcher = OneShotDispatcher("startup", ImmediateProbe(), invoker, _factory(), poll_interval_s=30.0)
    dispatcher.arm()
    result = await asyncio.wait_for(dispatcher.wait(), timeout=1.0)
    assert result.ok
    assert result.ticks == 1


@pytest.mark.asyncio
async def test_cancel_before_fire_prevents_dispatch(clock, invoker):
    channel = SignalChannel()
    dispatcher = OneShotDispatcher("startup", SignalProbe(channel, "ready-token"), invoker, _factory(), clock=clock)
    dispatcher.arm(poll=False)
    assert await dispatcher.tick() is None

    result = dispatcher.cancel("owner torn down")
    assert result.outcome is Outcome.CANCELLED
    assert dispatcher.state is ArmState.CANCELLED

    channel.write("ready-token")
    assert await dispatcher.tick() is result
    assert invoker.payloads == []


@pytest.mark.asyncio
async def test_cancel_after_fire_is_noop(invoker):
    dispatcher = OneShotDispatcher("startup", ImmediateProbe(), invoker, _factory())
    dispatcher.arm(poll=False)
    fired = await dispatcher.tick()
    assert dispatcher.cancel() is fired
    assert dispatcher.cancel() is fired
    assert dispatcher.state is ArmState.FIRED


@pytest.mark.asyncio
async def test_cancel_is_idempotent(invoker):
    dispatcher = OneShotDispatcher("startup", SignalProbe(SignalChannel(), "go"), invoker, _factory())
    dispatcher.arm()
    first = dispatcher.cancel()
    second = dispatcher.cancel()
    assert first is second
    assert (await dispatcher.wait()) is first
    await asyncio.sleep(0)
    assert invoker.payloads == []


@pytest.mark.asyncio
async def test_signal_channel_scenario(clock, invoker):
    channel = SignalChannel()
    probe = SignalProbe(channel, "ready-token")
    dispatcher = OneShotDispatcher("startup", probe, invoker, _factory(), clock=clock)
    dispatcher.arm(poll=False)

    assert await dispatcher.tick() is None
    channel.write("booting")
    assert await dispatcher.tick() is None

    channel.write("ready-token")
    result = await dispatcher.tick()
    assert result is not None and result.ok
    assert len(invoker.payloads) == 1

    channel.clear()
    channel.write("ready-token")
    await dispatcher.tick()
    assert len(invoker.payloads) == 1
    assert dispatcher.result is result


@pytest.mark.asyncio
async def test_timeout_cancel_reports_readiness_timeout(clock, invoker):
    dispatcher = OneShotDispatcher(
        "startup",
        SignalProbe(SignalChannel(), "go"),
        invoker,
        _factory(),
        max_wait_s=2.0,
        on_timeout=TimeoutPolicy.CANCEL,
        clock=clock,
    )
    dispatcher.arm(poll=False)
    assert await dispatcher.tick() is None
    clock.advance(2.0)
    result = await dispatcher.tick()
    assert result.outcome is Outcome.TIMED_OUT
    assert result.state is ArmState.CANCELLED
    assert isinstance(result.error, ReadinessTimeout)
    assert result.error.waited_s == pytest.approx(2.0)
    assert invoker.payloads == []


@pytest.mark.asyncio
async def test_timeout_force_fire_delivers_degraded_payload(clock, invoker):
    factory = _factory()
    dispatcher = OneShotDispatcher(
        "startup",
        SignalProbe(SignalChannel(), "go"),
        invoker,
        factory,
        max_wait_s=1.0,
        on_timeout="force_fire",
        clock=clock,
    )
    dispatcher.arm(poll=False)
    clock.advance(1.5)
    result = await dispatcher.tick()
    assert result.ok
    assert result.degraded
    assert isinstance(result.error, ReadinessTimeout)
    assert invoker.payloads[0].degraded is True
    assert factory.calls == [True]


@pytest.mark.asyncio
async def test_invocation_failure_still_fires_without_retry(make_invoker):
    failing = make_invoker("runtime", succeed=False)
    dispatcher = OneShotDispatcher("startup", ImmediateProbe(), failing, _factory())
    dispatcher.arm(poll=False)
    result = await dispatcher.tick()
    assert result.outcome is Outcome.INVOCATION_FAILED
    assert result.state is ArmState.FIRED
    assert isinstance(result.error, DispatchInvocationFailure)
    assert result.error.invoker == "runtime"
    await dispatcher.tick()
    assert len(failing.payloads) == 1


@pytest.mark.asyncio
async def test_invoker_exception_is_returned_not_raised():
    class Exploding:
        name = "exploding"

        async def invoke(self, payload):
            raise ConnectionError("runtime unreachable")

    dispatcher = OneShotDispatcher("startup", ImmediateProbe(), Exploding(), _factory())
    dispatcher.arm(poll=False)
    result = await dispatcher.tick()
    assert result.outcome is Outcome.INVOCATION_FAILED
    assert isinstance(result.error.cause, ConnectionError)


@pytest.mark.asyncio
async def test_arming_twice_is_rejected(invoker):
    dispatcher = OneShotDispatcher("startup", SignalProbe(SignalChannel(), "go"), invoker, _factory())
    assert dispatcher.arm(poll=False) is None
    rejected = dispatcher.arm(poll=False)
    assert rejected.outcome is Outcome.REJECTED
    assert isinstance(rejected.error, AlreadyArmed)
    assert dispatcher.state is ArmState.ARMED
    assert dispatcher.result is None
    dispatcher.cancel()


@pytest.mark.asyncio
async def test_result_callback_receives_terminal_result(invoker):
    seen = []

    def broken(result):
        seen.append(result)
        raise RuntimeError("status sink down")

    dispatcher = OneShotDispatcher("startup", ImmediateProbe(), invoker, _factory(), on_result=broken)
    dispatcher.arm(poll=False)
    result = await dispatcher.tick()
    assert seen == [result]
    assert result.ok


@pytest.mark.asyncio
async def test_polling_loop_fires_after_signal(invoker):
    channel = SignalChannel()
    dispatcher = OneShotDispatcher(
        "startup", SignalProbe(channel, "ready-token"), invoker, _factory(), poll_interval_s=0.02
    )
    dispatcher.arm()
    await asyncio.sleep(0.1)
    assert dispatcher.state is ArmState.ARMED
    channel.write("ready-token")
    result = await asyncio.wait_for(dispatcher.wait(), timeout=2.0)
    assert result.ok
    assert result.ticks > 1
    await asyncio.sleep(0.1)
    assert len(invoker.payloads) == 1


def test_rejects_invalid_intervals(invoker):
    with pytest.raises(ValueError):
        OneShotDispatcher("startup", ImmediateProbe(), invoker, _factory(), poll_interval_s=0)
    with pytest.raises(ValueError):
        OneShotDispatcher("startup", ImmediateProbe(), invoker, _factory(), max_wait_s=0)


def _armed_gauge() -> float:
    return REGISTRY.get_sample_value("lg_dispatchers_armed")


def test_arm_without_event_loop_is_rejected_and_leaves_dispatcher_unarmed(invoker):
    dispatcher = OneShotDispatcher("startup", ImmediateProbe(), invoker, _factory())
    before = _armed_gauge()
    rejected = dispatcher.arm()
    assert rejected.outcome is Outcome.REJECTED
    assert isinstance(rejected.error, NotArmable)
    assert not dispatcher.armed
    assert dispatcher.state is ArmState.ARMED
    assert dispatcher.result is None
    assert _armed_gauge() == before

    assert dispatcher.arm(poll=False) is None
    assert dispatcher.armed
    assert _armed_gauge() == before + 1
    dispatcher.cancel()
    assert _armed_gauge() == before


@pytest.mark.asyncio
async def test_fixed_delay_uses_dispatcher_clock(clock, invoker):
    # probe keeps its default wall clock; only the dispatcher sees the fake one
    dispatcher = OneShotDispatcher(
        "startup", FixedDelayProbe(2.0), invoker, _factory(), poll_interval_s=0.5, clock=clock
    )
    dispatcher.arm(poll=False)
    for _ in range(4):
        assert await dispatcher.tick() is None
        clock.advance(0.5)
    assert invoker.payloads == []
    result = await dispatcher.tick()
    assert result.ok
    assert clock() == 2.0
