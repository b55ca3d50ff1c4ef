"""
RIDE REWARDS - Vehicle Type Registry
=====================================

Per-vehicle-type reward multipliers and emission factors (CO2 saved per
distance unit). Lookups for a type that was never configured return None;
the calculator substitutes DEFAULT_MULTIPLIER / DEFAULT_EMISSION_FACTOR.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Union

from engine.access import require_admin
from engine.errors import ErrorKind, Result

logger = logging.getLogger("ride_rewards.registry")

DEFAULT_MULTIPLIER      = 100
DEFAULT_EMISSION_FACTOR = 0
MAX_MULTIPLIER          = 1000


class VehicleType(str, Enum):
    ELECTRIC = "electric"
    BIKE     = "bike"
    PUBLIC   = "public"

    @classmethod
    def parse(cls, tag: Union["VehicleType", str, None]) -> Optional["VehicleType"]:
        """Returns the member for ``tag`` or None when it is outside the closed set."""
        try:
            return cls(tag)
        except ValueError:
            return None


class VehicleTypeRegistry:

    def __init__(self, admin: str):
        self.admin = admin
        self._multipliers:      dict[VehicleType, int] = {}
        self._emission_factors: dict[VehicleType, int] = {}

    # ── Admin setters ──────────────────────────────────────────────────────
    def set_multiplier(self, caller: str, vehicle_type: str, value: int) -> Result:
        denied = require_admin(self.admin, caller, "set multiplier", logger)
        if denied:
            return denied
        vt = VehicleType.parse(vehicle_type)
        if vt is None:
            return self._reject(ErrorKind.INVALID_VEHICLE_TYPE, f"unknown vehicle type {vehicle_type!r}")
        if not 0 < value <= MAX_MULTIPLIER:
            return self._reject(
                ErrorKind.INVALID_MULTIPLIER,
                f"multiplier for {vt.value} must be in (0, {MAX_MULTIPLIER}], got {value}",
            )

        self._multipliers[vt] = value
        logger.info(f"[registry] multiplier[{vt.value}] -> {value}")
        return Result.success()

    def set_emission_factor(self, caller: str, vehicle_type: str, value: int) -> Result:
        denied = require_admin(self.admin, caller, "set emission factor", logger)
        if denied:
            return denied
        vt = VehicleType.parse(vehicle_type)
        if vt is None:
            return self._reject(ErrorKind.INVALID_VEHICLE_TYPE, f"unknown vehicle type {vehicle_type!r}")
        if value <= 0:
            return self._reject(
                ErrorKind.INVALID_EMISSION_FACTOR,
                f"emission factor for {vt.value} must be positive, got {value}",
            )

        self._emission_factors[vt] = value
        logger.info(f"[registry] emission_factor[{vt.value}] -> {value}")
        return Result.success()

    @staticmethod
    def _reject(kind: ErrorKind, reason: str) -> Result:
        logger.warning(f"[registry] REJECTED {kind.label} - {reason}")
        return Result.failure(kind, reason)

    # ── Lookups (no defaults applied) ──────────────────────────────────────
    def lookup_multiplier(self, vehicle_type: VehicleType) -> Optional[int]:
        return self._multipliers.get(vehicle_type)

    def lookup_emission_factor(self, vehicle_type: VehicleType) -> Optional[int]:
        return self._emission_factors.get(vehicle_type)

    def to_dict(self) -> dict:
        return {
            "multipliers":      {vt.value: m for vt, m in self._multipliers.items()},
            "emission_factors": {vt.value: f for vt, f in self._emission_factors.items()},
        }
