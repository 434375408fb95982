# SPDX-License-Identifier: Apache-2.0
"""Payload envelope handed to the downstream runtime."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


class WaitPolicy(str, enum.Enum):
    FIRE_AND_FORGET = "fire_and_forget"
    WAIT_FOR_COMPLETION = "wait_for_completion"

    @classmethod
    def parse(cls, value: Any) -> "WaitPolicy":
        if isinstance(value, cls):
            return value
        if value is None or value is False:
            return cls.FIRE_AND_FORGET
        if value is True:
            return cls.WAIT_FOR_COMPLETION
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"unknown wait policy '{value}'") from None


@dataclass(frozen=True, slots=True)
class DispatchPayload:
    """A single queued script request for the downstream runtime."""

    action: str
    wait: WaitPolicy = WaitPolicy.FIRE_AND_FORGET
    parameter: str = ""
    variables: Optional[Dict[str, str]] = None
    degraded: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "wait": self.wait.value,
            "parameter": self.parameter,
            "variables": dict(self.variables) if self.variables is not None else None,
            "degraded": self.degraded,
            "created_at": self.created_at.isoformat(),
        }


def build_payload(
    action: str,
    *,
    wait: WaitPolicy | str | bool | None = None,
    parameter: str = "",
    variables: Mapping[str, str] | None = None,
    degraded: bool = False,
) -> DispatchPayload:
    if not action:
        raise ValueError("payload requires an action name")
    return DispatchPayload(
        action=action,
        wait=WaitPolicy.parse(wait),
        parameter=parameter or "",
        variables={str(k): str(v) for k, v in variables.items()} if variables is not None else None,
        degraded=degraded,
    )
