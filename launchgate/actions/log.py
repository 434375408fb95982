# SPDX-License-Identifier: Apache-2.0
"""Logging invoker for dry runs and audits."""
from __future__ import annotations

import logging

from launchgate.payload import DispatchPayload

from .base import BaseInvoker

log = logging.getLogger(__name__)


class LogInvoker(BaseInvoker):
    async def invoke(self, payload: DispatchPayload) -> bool:
        log.info(
            "[invoker %s] %s wait=%s parameter=%r variables=%s degraded=%s",
            self.name,
            payload.action,
            payload.wait.value,
            payload.parameter,
            sorted(payload.variables) if payload.variables is not None else None,
            payload.degraded,
        )
        return True
