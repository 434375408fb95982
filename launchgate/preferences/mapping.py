# SPDX-License-Identifier: Apache-2.0
"""In-memory preference source, mostly for hosts that inject settings directly."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from .base import PreferencesSource


class MappingPreferencesSource(PreferencesSource):
    def __init__(self, name: str, values: Mapping[str, Any] | None = None):
        super().__init__(name)
        self._values = dict(values or {})

    def read(self, key: str) -> Optional[str]:
        value = self._values.get(key)
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)
