# SPDX-License-Identifier: Apache-2.0
"""Preference source factory."""
from __future__ import annotations

from typing import Callable

from launchgate.config import PreferencesConfig

from .base import (
    Preference,
    PreferenceDefaults,
    PreferenceSnapshot,
    PreferencesSource,
    PreferenceState,
    snapshot,
)

SOURCE_TYPES: dict[str, Callable[..., PreferencesSource]] = {}


def register(source_type: str, factory: Callable[..., PreferencesSource]) -> None:
    SOURCE_TYPES[source_type] = factory


def create_source(cfg: PreferencesConfig) -> PreferencesSource:
    source_type = cfg.source.type
    if source_type not in SOURCE_TYPES:
        raise ValueError(f"unknown preferences source type '{source_type}'")
    return SOURCE_TYPES[source_type](source_type, cfg.source.options)


def defaults_from(cfg: PreferencesConfig) -> PreferenceDefaults:
    return PreferenceDefaults(absent=cfg.absent_default, empty=cfg.empty_default, overrides=cfg.overrides)


def take_snapshot(cfg: PreferencesConfig, source: PreferencesSource | None = None) -> PreferenceSnapshot:
    source = source or create_source(cfg)
    return snapshot(source, cfg.keys, defaults_from(cfg))


from .env import EnvPreferencesSource
from .mapping import MappingPreferencesSource
from .yaml_file import YamlPreferencesSource

register("mapping", lambda name, options: MappingPreferencesSource(name, options.get("values", {})))
register("yaml", lambda name, options: YamlPreferencesSource(name, options["path"], section=options.get("section")))
register("env", lambda name, options: EnvPreferencesSource(name, prefix=options.get("prefix", "")))

__all__ = [
    "EnvPreferencesSource",
    "MappingPreferencesSource",
    "Preference",
    "PreferenceDefaults",
    "PreferenceSnapshot",
    "PreferenceState",
    "PreferencesSource",
    "YamlPreferencesSource",
    "create_source",
    "defaults_from",
    "register",
    "snapshot",
    "take_snapshot",
]
