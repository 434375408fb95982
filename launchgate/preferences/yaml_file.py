# SPDX-License-Identifier: Apache-2.0
"""Settings-bundle style preferences stored in a YAML file."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .base import PreferencesSource

log = logging.getLogger(__name__)


class YamlPreferencesSource(PreferencesSource):
    """Reads a flat YAML mapping once; ``null`` values count as absent.

    A missing file behaves like an empty settings store so a fresh install
    still launches with defaults.
    """

    def __init__(self, name: str, path: str | Path, section: str | None = None):
        super().__init__(name)
        self.path = Path(path)
        self.section = section
        self._values: Dict[str, Any] | None = None

    def _load(self) -> Dict[str, Any]:
        if self._values is not None:
            return self._values
        if not self.path.exists():
            log.warning("preferences file %s not found; treating as empty", self.path)
            self._values = {}
            return self._values
        raw = yaml.safe_load(self.path.read_text()) or {}
        if self.section and isinstance(raw, dict):
            raw = raw.get(self.section, {}) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"preferences file {self.path} must contain a mapping")
        self._values = raw
        return self._values

    def read(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        return value if isinstance(value, str) else str(value)
