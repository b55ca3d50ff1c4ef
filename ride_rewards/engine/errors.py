"""
RIDE REWARDS - Error Kinds & Result Values
===========================================

Every engine operation answers with a Result instead of raising. The numeric
codes are the ones the on-chain reward contract reports, so a host can relay
them unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(int, Enum):
    NOT_AUTHORIZED          = 100
    INVALID_DISTANCE        = 101
    INVALID_VEHICLE_TYPE    = 102
    INVALID_RIDE_ID         = 103
    RIDE_NOT_VERIFIED       = 104
    INVALID_REWARD_RATE     = 105
    INVALID_TIMESTAMP       = 106
    INVALID_EMISSION_FACTOR = 107
    AUTHORITY_NOT_SET       = 109
    INVALID_MULTIPLIER      = 110

    @property
    def label(self) -> str:
        """CamelCase name, e.g. ``NotAuthorized``."""
        return "".join(part.capitalize() for part in self.name.split("_"))


@dataclass(frozen=True)
class Result:
    ok:     bool
    value:  Any                 = None
    error:  Optional[ErrorKind] = None
    reason: str                 = ""

    @classmethod
    def success(cls, value: Any = True) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorKind, reason: str = "") -> "Result":
        return cls(ok=False, error=error, reason=reason or error.label)

    @property
    def code(self) -> Optional[int]:
        return int(self.error) if self.error is not None else None

    def to_dict(self) -> dict:
        """``{"ok": ..., "value": ...}`` where value is the error code on failure."""
        if self.ok:
            value = self.value.to_dict() if hasattr(self.value, "to_dict") else self.value
            return {"ok": True, "value": value}
        return {"ok": False, "value": self.code, "error": self.error.label, "reason": self.reason}
