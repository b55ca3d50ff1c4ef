"""
RIDE REWARDS - Configuration Store
===================================

Admin-controlled scalars that feed the reward formula:

    baseRewardRate   reward units per distance unit
    bikeBonus        flat addend for "bike" rides
    minDistance      inclusive lower bound on accepted distance
    maxDistance      inclusive upper bound on accepted distance

and the two references to external collaborators (token contract and
verification authority). A reference is either unset or set; the burn
address used by the deployed contract as its "unset" marker is read as unset.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from engine.access import require_admin
from engine.errors import ErrorKind, Result

logger = logging.getLogger("ride_rewards.config")

# Burn address the contract initialises both references to.
UNSET_SENTINEL_ADDRESS = "SP000000000000000000002Q6VF78"

DEFAULT_BASE_REWARD_RATE = 10
DEFAULT_BIKE_BONUS       = 5
DEFAULT_MIN_DISTANCE     = 1
DEFAULT_MAX_DISTANCE     = 1000


@dataclass(frozen=True)
class ContractRef:
    """Reference to an external contract. ``address=None`` means unset."""
    address: Optional[str] = None

    @property
    def is_set(self) -> bool:
        return self.address is not None

    @classmethod
    def parse(cls, value: Union["ContractRef", str, None]) -> "ContractRef":
        if isinstance(value, ContractRef):
            return value
        if value is None:
            return UNSET
        if not isinstance(value, str):
            raise TypeError(f"contract reference must be a string, got {type(value).__name__}")
        value = value.strip()
        if not value or value == UNSET_SENTINEL_ADDRESS:
            return UNSET
        return cls(address=value)

    def __str__(self) -> str:
        return self.address if self.address is not None else "<unset>"


UNSET = ContractRef()


class ConfigStore:

    def __init__(
        self,
        admin:                 str,
        base_reward_rate:      int = DEFAULT_BASE_REWARD_RATE,
        bike_bonus:            int = DEFAULT_BIKE_BONUS,
        min_distance:          int = DEFAULT_MIN_DISTANCE,
        max_distance:          int = DEFAULT_MAX_DISTANCE,
        token_contract:        Union[ContractRef, str, None] = None,
        verification_contract: Union[ContractRef, str, None] = None,
    ):
        for name, value in (
            ("base_reward_rate", base_reward_rate),
            ("bike_bonus",       bike_bonus),
            ("min_distance",     min_distance),
            ("max_distance",     max_distance),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if min_distance > max_distance:
            raise ValueError(f"min_distance {min_distance} exceeds max_distance {max_distance}")

        self.admin                 = admin
        self.base_reward_rate      = base_reward_rate
        self.bike_bonus            = bike_bonus
        self.min_distance          = min_distance
        self.max_distance          = max_distance
        self.token_contract        = ContractRef.parse(token_contract)
        self.verification_contract = ContractRef.parse(verification_contract)

    # ── Contract references ────────────────────────────────────────────────
    def set_token_contract_ref(self, caller: str, ref: Union[ContractRef, str, None]) -> Result:
        return self._set_ref(caller, "token_contract", ref)

    def set_verification_contract_ref(self, caller: str, ref: Union[ContractRef, str, None]) -> Result:
        return self._set_ref(caller, "verification_contract", ref)

    def _set_ref(self, caller: str, field_name: str, ref: Union[ContractRef, str, None]) -> Result:
        denied = require_admin(self.admin, caller, f"set {field_name}", logger)
        if denied:
            return denied

        parsed = ContractRef.parse(ref)
        if not parsed.is_set:
            # Same code the contract uses; the reason keeps the two cases apart.
            reason = f"{field_name} cannot be reset to the unset reference"
            logger.warning(f"[config] REJECTED {ErrorKind.NOT_AUTHORIZED.label} - {reason}")
            return Result.failure(ErrorKind.NOT_AUTHORIZED, reason)

        setattr(self, field_name, parsed)
        logger.info(f"[config] {field_name} -> {parsed}")
        return Result.success()

    # ── Reward scalars ─────────────────────────────────────────────────────
    def set_base_reward_rate(self, caller: str, rate: int) -> Result:
        return self._set_reward_scalar(caller, "base_reward_rate", rate)

    def set_bike_bonus(self, caller: str, bonus: int) -> Result:
        return self._set_reward_scalar(caller, "bike_bonus", bonus)

    def _set_reward_scalar(self, caller: str, field_name: str, value: int) -> Result:
        denied = require_admin(self.admin, caller, f"set {field_name}", logger)
        if denied:
            return denied
        if value <= 0:
            reason = f"{field_name} must be positive, got {value}"
            logger.warning(f"[config] REJECTED {ErrorKind.INVALID_REWARD_RATE.label} - {reason}")
            return Result.failure(ErrorKind.INVALID_REWARD_RATE, reason)

        setattr(self, field_name, value)
        logger.info(f"[config] {field_name} -> {value}")
        return Result.success()

    # ── Distance bounds ────────────────────────────────────────────────────
    def set_min_distance(self, caller: str, value: int) -> Result:
        denied = require_admin(self.admin, caller, "set min_distance", logger)
        if denied:
            return denied
        if value <= 0 or value > self.max_distance:
            return self._reject_bounds(f"min_distance={value} invalid (max_distance={self.max_distance})")
        self.min_distance = value
        logger.info(f"[config] min_distance -> {value}")
        return Result.success()

    def set_max_distance(self, caller: str, value: int) -> Result:
        denied = require_admin(self.admin, caller, "set max_distance", logger)
        if denied:
            return denied
        if value <= 0 or value < self.min_distance:
            return self._reject_bounds(f"max_distance={value} invalid (min_distance={self.min_distance})")
        self.max_distance = value
        logger.info(f"[config] max_distance -> {value}")
        return Result.success()

    @staticmethod
    def _reject_bounds(reason: str) -> Result:
        logger.warning(f"[config] REJECTED {ErrorKind.INVALID_DISTANCE.label} - {reason}")
        return Result.failure(ErrorKind.INVALID_DISTANCE, reason)

    # ── Reads ──────────────────────────────────────────────────────────────
    def distance_in_bounds(self, distance: int) -> bool:
        return self.min_distance <= distance <= self.max_distance

    def to_dict(self) -> dict[str, Any]:
        return {
            "admin":                 self.admin,
            "token_contract":        self.token_contract.address,
            "verification_contract": self.verification_contract.address,
            "base_reward_rate":      self.base_reward_rate,
            "bike_bonus":            self.bike_bonus,
            "min_distance":          self.min_distance,
            "max_distance":          self.max_distance,
        }
