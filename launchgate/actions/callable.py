# SPDX-License-Identifier: Apache-2.0
"""Invoker that hands payloads to an in-process Python callable."""
from __future__ import annotations

import inspect
from typing import Any, Dict

from launchgate.payload import DispatchPayload
from launchgate.utils import resolve_callable

from .base import BaseInvoker


class CallableInvoker(BaseInvoker):
    def __init__(self, name: str, options: Dict[str, Any]):
        super().__init__(name, options)
        target = options.get("target")
        if not target:
            raise ValueError(f"callable invoker '{name}' requires a 'target'")
        self._fn = target if callable(target) else resolve_callable(target)

    async def invoke(self, payload: DispatchPayload) -> bool:
        result = self._fn(payload.action, payload.wait, payload.parameter, payload.variables)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)
