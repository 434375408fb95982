"""Invoker registry that routes payloads to concrete transports."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Iterable

from launchgate.config import InvokerConfig

from .base import BaseInvoker
from .callable import CallableInvoker
from .log import LogInvoker
from .mqtt import MQTTInvoker
from .webhook import WebhookInvoker

log = logging.getLogger(__name__)

INVOKER_TYPES: Dict[str, Callable[[str, dict], BaseInvoker]] = {
    "log": LogInvoker,
    "webhook": WebhookInvoker,
    "mqtt": MQTTInvoker,
    "callable": CallableInvoker,
}


def register(invoker_type: str, factory: Callable[[str, dict], BaseInvoker]) -> None:
    INVOKER_TYPES[invoker_type] = factory


class InvokerRegistry:
    def __init__(self) -> None:
        self._invokers: Dict[str, BaseInvoker] = {}

    def initialise(self, invoker_configs: Iterable[InvokerConfig]) -> None:
        self._invokers.clear()
        for cfg in invoker_configs:
            if cfg.type not in INVOKER_TYPES:
                raise ValueError(f"unsupported invoker type '{cfg.type}'")
            self._invokers[cfg.name] = INVOKER_TYPES[cfg.type](cfg.name, cfg.options)
        log.info("registered %d invokers", len(self._invokers))

    def add(self, invoker: BaseInvoker) -> None:
        self._invokers[invoker.name] = invoker

    def get(self, name: str) -> BaseInvoker:
        try:
            return self._invokers[name]
        except KeyError:
            raise KeyError(f"no invoker registered as '{name}'") from None

    def __contains__(self, name: str) -> bool:
        return name in self._invokers

    async def close(self) -> None:
        await asyncio.gather(*(inv.close() for inv in self._invokers.values()), return_exceptions=True)
