# SPDX-License-Identifier: Apache-2.0
"""Readiness probes deciding when the downstream runtime can take requests."""
from __future__ import annotations

import abc
import enum
import time
from typing import TYPE_CHECKING, Callable, Optional

from .channel import SignalChannel

if TYPE_CHECKING:
    from .config import GateConfig

Clock = Callable[[], float]


class ReadinessState(enum.Enum):
    NOT_READY = "not_ready"
    READY = "ready"


class ReadinessProbe(abc.ABC):
    def start(self, now: float) -> None:
        """Called once by the dispatcher when it is armed."""

    @abc.abstractmethod
    def probe(self, now: Optional[float] = None) -> ReadinessState:  # pragma: no cover - interface
        """Report readiness; ``now`` is the caller's clock reading when it has one."""
        raise NotImplementedError


class FixedDelayProbe(ReadinessProbe):
    """Reports ready once ``delay_s`` has elapsed since arming.

    The delay has to be tuned per deployment target; too short and the
    runtime silently drops the request.
    """

    def __init__(self, delay_s: float, *, clock: Clock = time.monotonic):
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        self.delay_s = float(delay_s)
        self._clock = clock
        self._started_at: Optional[float] = None

    def start(self, now: float) -> None:
        self._started_at = now

    def probe(self, now: Optional[float] = None) -> ReadinessState:
        if self._started_at is None:
            return ReadinessState.NOT_READY
        if now is None:
            now = self._clock()
        if now - self._started_at >= self.delay_s:
            return ReadinessState.READY
        return ReadinessState.NOT_READY

    def __repr__(self) -> str:
        return f"FixedDelayProbe(delay_s={self.delay_s})"


class SignalProbe(ReadinessProbe):
    """Reports ready when the channel holds the sentinel; latches once seen."""

    def __init__(self, channel: SignalChannel, sentinel: str = "ready"):
        if not sentinel:
            raise ValueError("sentinel must be a non-empty string")
        self.channel = channel
        self.sentinel = sentinel
        self._latched = False

    def probe(self, now: Optional[float] = None) -> ReadinessState:
        if self._latched:
            return ReadinessState.READY
        if self.channel.read() == self.sentinel:
            self._latched = True
            return ReadinessState.READY
        return ReadinessState.NOT_READY

    def __repr__(self) -> str:
        return f"SignalProbe(channel={self.channel.name!r}, sentinel={self.sentinel!r})"


def build_probe(gate: GateConfig, channel: SignalChannel, *, clock: Clock = time.monotonic) -> ReadinessProbe:
    if gate.strategy == "fixed_delay":
        return FixedDelayProbe(gate.delay_s, clock=clock)
    if gate.strategy == "signal":
        return SignalProbe(channel, gate.sentinel)
    raise ValueError(f"unsupported readiness strategy '{gate.strategy}'")


class ImmediateProbe(ReadinessProbe):
    """Always ready; used for lifecycle hooks that skip the readiness gate."""

    def probe(self, now: Optional[float] = None) -> ReadinessState:
        return ReadinessState.READY

    def __repr__(self) -> str:
        return "ImmediateProbe()"
