"""Configuration loader for the launch gate."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import ConfigError
from .events import LifecycleEvent
from .payload import WaitPolicy


@dataclass(slots=True)
class PreferenceSourceConfig:
    type: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PreferencesConfig:
    source: PreferenceSourceConfig
    keys: List[str] = field(default_factory=list)
    absent_default: str = ""
    empty_default: str = "<invalid>"
    overrides: Dict[str, Dict[str, str]] = field(default_factory=dict)


@dataclass(slots=True)
class InvokerConfig:
    name: str
    type: str
    options: Dict[str, Any]


@dataclass(slots=True)
class SignalConfig:
    type: str = "manual"
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class GateConfig:
    strategy: str = "signal"
    sentinel: str = "ready"
    delay_s: float = 2.0
    poll_interval_s: float = 0.5
    max_wait_s: Optional[float] = 10.0
    on_timeout: str = "cancel"


@dataclass(slots=True)
class HookConfig:
    event: LifecycleEvent
    invoker: str
    action: str
    parameter: str = ""
    wait: WaitPolicy = WaitPolicy.FIRE_AND_FORGET
    # True: every snapshotted preference, False: no variable map,
    # mapping: variable name -> preference key.
    variables: Union[bool, Dict[str, str]] = False
    gated: bool = False


@dataclass(slots=True)
class LaunchGateConfig:
    version: int
    preferences: PreferencesConfig
    invokers: List[InvokerConfig]
    signal: SignalConfig
    gate: GateConfig
    hooks: Dict[LifecycleEvent, HookConfig]
    metrics_port: int = 9109


_STRATEGIES = {"signal", "fixed_delay"}
_TIMEOUT_POLICIES = {"cancel", "force_fire"}


def _parse_preferences(data: Dict[str, Any]) -> PreferencesConfig:
    source = data.get("source", {"type": "mapping"})
    if isinstance(source, str):
        source = {"type": source}
    if not isinstance(source, dict) or "type" not in source:
        raise ConfigError("preferences.source must be a mapping with a 'type'")
    keys = data.get("keys", []) or []
    if not isinstance(keys, list):
        raise ConfigError("preferences.keys must be a list")
    overrides = data.get("overrides", {}) or {}
    for key, override in overrides.items():
        if not isinstance(override, dict) or not set(override) <= {"absent", "empty"}:
            raise ConfigError(f"preferences.overrides.{key} accepts only 'absent' and 'empty'")
    return PreferencesConfig(
        source=PreferenceSourceConfig(
            type=source["type"],
            options={k: v for k, v in source.items() if k != "type"},
        ),
        keys=[str(k) for k in keys],
        absent_default=str(data.get("absent_default", "")),
        empty_default=str(data.get("empty_default", "<invalid>")),
        overrides={str(k): {n: str(v) for n, v in o.items()} for k, o in overrides.items()},
    )


def _parse_invokers(items: Dict[str, Any]) -> List[InvokerConfig]:
    invokers: List[InvokerConfig] = []
    for name, payload in items.items():
        if not isinstance(payload, dict):
            raise ConfigError(f"invoker '{name}' must be a mapping")
        invoker_type = payload.get("type", name)
        options = {k: v for k, v in payload.items() if k != "type"}
        invokers.append(InvokerConfig(name=name, type=invoker_type, options=options))
    return invokers


def _parse_signal(data: Dict[str, Any]) -> SignalConfig:
    return SignalConfig(
        type=data.get("type", "manual"),
        options={k: v for k, v in data.items() if k != "type"},
    )


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _parse_gate(data: Dict[str, Any]) -> GateConfig:
    gate = GateConfig(
        strategy=data.get("strategy", "signal"),
        sentinel=str(data.get("sentinel", "ready")),
        delay_s=float(data.get("delay_s", 2.0)),
        poll_interval_s=float(data.get("poll_interval_s", 0.5)),
        max_wait_s=_optional_float(data.get("max_wait_s", 10.0)),
        on_timeout=data.get("on_timeout", "cancel"),
    )
    if gate.strategy not in _STRATEGIES:
        raise ConfigError(f"gate.strategy must be one of {sorted(_STRATEGIES)}")
    if gate.on_timeout not in _TIMEOUT_POLICIES:
        raise ConfigError(f"gate.on_timeout must be one of {sorted(_TIMEOUT_POLICIES)}")
    if gate.poll_interval_s <= 0:
        raise ConfigError("gate.poll_interval_s must be > 0")
    if gate.delay_s < 0:
        raise ConfigError("gate.delay_s must be >= 0")
    if gate.max_wait_s is not None and gate.max_wait_s <= 0:
        raise ConfigError("gate.max_wait_s must be > 0 or null")
    if not gate.sentinel:
        raise ConfigError("gate.sentinel must not be empty")
    return gate


def _parse_hooks(items: Dict[str, Any], invokers: List[InvokerConfig]) -> Dict[LifecycleEvent, HookConfig]:
    known = {inv.name for inv in invokers}
    hooks: Dict[LifecycleEvent, HookConfig] = {}
    for name, item in items.items():
        try:
            event = LifecycleEvent(name)
        except ValueError:
            raise ConfigError(f"unknown lifecycle event '{name}'") from None
        if not isinstance(item, dict) or "action" not in item:
            raise ConfigError(f"hook '{name}' must be a mapping with an 'action'")
        invoker = item.get("invoker")
        if invoker is None and len(known) == 1:
            invoker = next(iter(known))
        if invoker not in known:
            raise ConfigError(f"hook '{name}' references unknown invoker '{invoker}'")
        variables = item.get("variables", False)
        if isinstance(variables, list):
            variables = {str(k): str(k) for k in variables}
        elif isinstance(variables, dict):
            variables = {str(k): str(v) for k, v in variables.items()}
        elif not isinstance(variables, bool):
            raise ConfigError(f"hook '{name}' variables must be a bool, list or mapping")
        try:
            wait = WaitPolicy.parse(item.get("wait"))
        except ValueError as exc:
            raise ConfigError(f"hook '{name}': {exc}") from None
        hooks[event] = HookConfig(
            event=event,
            invoker=invoker,
            action=str(item["action"]),
            parameter=str(item.get("parameter", "") or ""),
            wait=wait,
            variables=variables,
            gated=bool(item.get("gated", event is LifecycleEvent.LAUNCHED)),
        )
    return hooks


def parse_config(raw: Dict[str, Any]) -> LaunchGateConfig:
    if not isinstance(raw, dict):
        raise ConfigError("configuration root must be a mapping")
    version = int(raw.get("version", 1))
    preferences = _parse_preferences(raw.get("preferences", {}) or {})
    invokers = _parse_invokers(raw.get("invokers", {}) or {})
    signal = _parse_signal(raw.get("signal", {}) or {})
    gate = _parse_gate(raw.get("gate", {}) or {})
    hooks = _parse_hooks(raw.get("hooks", {}) or {}, invokers)
    metrics_port = int(raw.get("metrics_port", 9109))
    return LaunchGateConfig(
        version=version,
        preferences=preferences,
        invokers=invokers,
        signal=signal,
        gate=gate,
        hooks=hooks,
        metrics_port=metrics_port,
    )


def load_config(path: str | Path) -> LaunchGateConfig:
    raw = yaml.safe_load(Path(path).read_text())
    return parse_config(raw or {})
