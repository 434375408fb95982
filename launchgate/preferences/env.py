# SPDX-License-Identifier: Apache-2.0
"""Preferences read from process environment variables."""
from __future__ import annotations

import os
from typing import Mapping, Optional

from .base import PreferencesSource


class EnvPreferencesSource(PreferencesSource):
    def __init__(self, name: str, prefix: str = "", environ: Mapping[str, str] | None = None):
        super().__init__(name)
        self.prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def read(self, key: str) -> Optional[str]:
        return self._environ.get(f"{self.prefix}{key.upper()}")
