# SPDX-License-Identifier: Apache-2.0
"""Preference sources and the startup snapshot taken from them."""
from __future__ import annotations

import abc
import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from launchgate.errors import MissingPreference

log = logging.getLogger(__name__)


class PreferenceState(enum.Enum):
    PRESENT = "present"
    EMPTY = "empty"
    ABSENT = "absent"


@dataclass(frozen=True, slots=True)
class Preference:
    key: str
    value: Optional[str]
    source: str

    @property
    def state(self) -> PreferenceState:
        if self.value is None:
            return PreferenceState.ABSENT
        if self.value == "":
            return PreferenceState.EMPTY
        return PreferenceState.PRESENT


@dataclass(frozen=True, slots=True)
class PreferenceDefaults:
    absent: str = ""
    empty: str = "<invalid>"
    overrides: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def resolve(self, pref: Preference) -> str:
        state = pref.state
        if state is PreferenceState.PRESENT:
            return pref.value  # type: ignore[return-value]
        override = self.overrides.get(pref.key, {})
        if state is PreferenceState.EMPTY:
            return override.get("empty", self.empty)
        return override.get("absent", self.absent)


@dataclass(frozen=True, slots=True)
class PreferenceSnapshot:
    """Immutable view of the preferences captured before dispatch."""

    preferences: Dict[str, Preference]
    values: Dict[str, str]
    missing: List[MissingPreference]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(key, default)

    def select(self, mapping: Mapping[str, str]) -> Dict[str, str]:
        """Build a variable map, ``variable name -> preference key``."""
        return {name: self.values.get(key, "") for name, key in mapping.items()}

    def __len__(self) -> int:
        return len(self.values)


class PreferencesSource(abc.ABC):
    def __init__(self, name: str):
        self.name = name

    @abc.abstractmethod
    def read(self, key: str) -> Optional[str]:  # pragma: no cover - interface
        """Return the stored string, ``""`` if stored empty, ``None`` if absent."""
        raise NotImplementedError


def snapshot(
    source: PreferencesSource,
    keys: Iterable[str],
    defaults: PreferenceDefaults | None = None,
) -> PreferenceSnapshot:
    defaults = defaults or PreferenceDefaults()
    preferences: Dict[str, Preference] = {}
    values: Dict[str, str] = {}
    missing: List[MissingPreference] = []
    for key in keys:
        if key in preferences:
            continue
        raw = source.read(key)
        pref = Preference(key=key, value=raw if raw is None else str(raw), source=source.name)
        preferences[key] = pref
        if pref.state is PreferenceState.ABSENT:
            missing.append(MissingPreference(key))
            log.warning("preference %s missing from source %s; using default", key, source.name)
        values[key] = defaults.resolve(pref)
    return PreferenceSnapshot(preferences=preferences, values=values, missing=missing)
