# SPDX-License-Identifier: Apache-2.0
"""Host lifecycle events the gate reacts to."""
from __future__ import annotations

import enum


class LifecycleEvent(str, enum.Enum):
    LAUNCHED = "launched"
    BACKGROUND = "background"
    TERMINATING = "terminating"
    ACTIVE = "active"
