# SPDX-License-Identifier: Apache-2.0
"""Error types carried in dispatch results."""
from __future__ import annotations


class LaunchGateError(Exception):
    """Base class for all launchgate errors."""


class ConfigError(LaunchGateError, ValueError):
    """Raised at startup when the configuration file is malformed."""


class ReadinessTimeout(LaunchGateError):
    def __init__(self, action: str, waited_s: float):
        super().__init__(f"runtime not ready for '{action}' after {waited_s:.2f}s")
        self.action = action
        self.waited_s = waited_s


class DispatchInvocationFailure(LaunchGateError):
    def __init__(self, action: str, invoker: str, cause: BaseException | None = None):
        detail = f": {cause!r}" if cause is not None else ""
        super().__init__(f"invoker '{invoker}' reported failure for '{action}'{detail}")
        self.action = action
        self.invoker = invoker
        self.cause = cause


class MissingPreference(LaunchGateError):
    def __init__(self, key: str):
        super().__init__(f"preference '{key}' is not set")
        self.key = key


class AlreadyArmed(LaunchGateError):
    """A dispatcher was armed twice; instances are single use."""


class NotArmable(LaunchGateError):
    """Polling was requested but no event loop is running to host it."""
