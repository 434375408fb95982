# SPDX-License-Identifier: Apache-2.0
"""Invoker primitives that hand payloads to the downstream runtime."""
from __future__ import annotations

from typing import Any, Dict

from launchgate.payload import DispatchPayload


class BaseInvoker:
    def __init__(self, name: str, options: Dict[str, Any]):
        self.name = name
        self.options = options

    async def invoke(self, payload: DispatchPayload) -> bool:  # pragma: no cover - interface
        """Queue ``payload`` on the runtime; return False if it was refused."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release transport resources."""
