# SPDX-License-Identifier: Apache-2.0
"""Single-slot signal channel written by the downstream runtime."""
from __future__ import annotations

import threading
from typing import Any


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class SignalChannel:
    """Last-write-wins slot with an explicit unset state.

    Writers may live on other threads (feed callbacks, host hooks) so every
    access goes through one mutex.
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self._lock = threading.Lock()
        self._value: Any = UNSET
        self._version = 0

    def write(self, value: str) -> int:
        if value is UNSET:
            raise ValueError("use clear() to reset the channel")
        with self._lock:
            self._value = value
            self._version += 1
            return self._version

    def clear(self) -> int:
        with self._lock:
            self._value = UNSET
            self._version += 1
            return self._version

    def read(self) -> Any:
        with self._lock:
            return self._value

    @property
    def is_set(self) -> bool:
        with self._lock:
            return self._value is not UNSET

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def __repr__(self) -> str:
        return f"SignalChannel(name={self.name!r}, value={self.read()!r})"
