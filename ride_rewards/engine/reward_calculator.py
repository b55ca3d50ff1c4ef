"""
RIDE REWARDS - Reward Calculation Engine
=========================================
Token rewards and emission savings for verified trips.

Pipeline (calculate_reward), first failure wins:
    1. Verification authority configured      else AuthorityNotSet
    2. min_distance <= distance <= max_distance else InvalidDistance
    3. Vehicle type in {electric, bike, public} else InvalidVehicleType
    4. timestamp >= logical clock              else InvalidTimestamp
    5. Ride already marked verified in ledger  else RideNotVerified

Formula:
    reward   = distance * base_reward_rate * multiplier + (bike_bonus if bike)
    emission = distance * emission_factor

All state (config, registry, ledger, mint outbox) is owned by one
RewardCalculator instance; independent instances share nothing.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from engine.clock import BlockHeightClock
from engine.config_store import ConfigStore
from engine.errors import ErrorKind, Result
from engine.mint import MintOutbox, MintSigner
from engine.ride_ledger import RideReward, RideRewardLedger
from engine.settings import EngineSettings
from engine.vehicle_registry import (
    DEFAULT_EMISSION_FACTOR,
    DEFAULT_MULTIPLIER,
    VehicleType,
    VehicleTypeRegistry,
)

logger = logging.getLogger("ride_rewards.calculator")


class LogicalClock(Protocol):
    def now(self) -> int: ...


class RewardCalculator:

    def __init__(
        self,
        admin:    str,
        config:   Optional[ConfigStore]         = None,
        registry: Optional[VehicleTypeRegistry] = None,
        ledger:   Optional[RideRewardLedger]    = None,
        clock:    Optional[LogicalClock]        = None,
        outbox:   Optional[MintOutbox]          = None,
    ):
        self.admin    = admin
        self.config   = config   if config   is not None else ConfigStore(admin)
        self.registry = registry if registry is not None else VehicleTypeRegistry(admin)
        self.ledger   = ledger   if ledger   is not None else RideRewardLedger()
        self.clock    = clock    if clock    is not None else BlockHeightClock()
        self.outbox   = outbox   if outbox   is not None else MintOutbox()

        if self.config.admin != admin or self.registry.admin != admin:
            raise ValueError("config store and registry must share the calculator's admin")

    @classmethod
    def from_settings(
        cls,
        settings: Optional[EngineSettings] = None,
        clock:    Optional[LogicalClock]   = None,
    ) -> "RewardCalculator":
        if settings is None:
            settings = EngineSettings.from_env()
        config = ConfigStore(
            admin                 = settings.admin,
            base_reward_rate      = settings.base_reward_rate,
            bike_bonus            = settings.bike_bonus,
            min_distance          = settings.min_distance,
            max_distance          = settings.max_distance,
            token_contract        = settings.token_contract,
            verification_contract = settings.verification_contract,
        )
        signer = MintSigner(settings.mint_signer_key) if settings.mint_signer_key else None
        engine = cls(
            admin  = settings.admin,
            config = config,
            clock  = clock,
            outbox = MintOutbox(signer),
        )

        if not config.verification_contract.is_set:
            logger.warning(
                "Verification contract not configured - calculate_reward will fail "
                "with AuthorityNotSet until the admin sets it."
            )
        if not config.token_contract.is_set:
            logger.warning("Token contract not configured - mint instructions carry no target.")
        if signer is None:
            logger.info("No mint signer key - mint instructions are emitted unsigned.")
        logger.info(f"RewardCalculator initialized (admin={settings.admin})")
        return engine

    # ------------------------------------------------------------------
    def mark_ride_verified(
        self,
        caller:    str,
        ride_id:   int,
        user:      str,
        timestamp: Optional[int] = None,
    ) -> Result:
        """
        Verification channel: the configured verification authority seeds a
        placeholder entry. Re-marking an existing ride leaves it untouched.
        """
        authority = self.config.verification_contract
        if not authority.is_set:
            return self._reject(ride_id, ErrorKind.AUTHORITY_NOT_SET, "verification authority not configured")
        if caller != authority.address:
            return self._reject(
                ride_id, ErrorKind.NOT_AUTHORIZED, f"caller {caller} is not the verification authority"
            )
        if ride_id < 0:
            return self._reject(ride_id, ErrorKind.INVALID_RIDE_ID, f"ride id {ride_id} is negative")

        if self.ledger.contains(ride_id):
            logger.info(f"[ride {ride_id}] already verified - entry left unchanged")
            return Result.success()

        placeholder = RideReward(
            user      = user,
            timestamp = self.clock.now() if timestamp is None else timestamp,
        )
        self.ledger.put(ride_id, placeholder)
        logger.info(f"[ride {ride_id}] marked verified for {user}")
        return Result.success()

    # ------------------------------------------------------------------
    def calculate_reward(
        self,
        ride_id:      int,
        user:         str,
        distance:     int,
        vehicle_type: str,
        timestamp:    int,
    ) -> Result:
        config = self.config

        # ── Validation ─────────────────────────────────────────────────
        if not config.verification_contract.is_set:
            return self._reject(ride_id, ErrorKind.AUTHORITY_NOT_SET, "verification authority not configured")

        if not config.distance_in_bounds(distance):
            return self._reject(
                ride_id,
                ErrorKind.INVALID_DISTANCE,
                f"distance {distance} outside [{config.min_distance}, {config.max_distance}]",
            )

        vt = VehicleType.parse(vehicle_type)
        if vt is None:
            return self._reject(ride_id, ErrorKind.INVALID_VEHICLE_TYPE, f"unknown vehicle type {vehicle_type!r}")

        now = self.clock.now()
        if timestamp < now:
            return self._reject(ride_id, ErrorKind.INVALID_TIMESTAMP, f"timestamp {timestamp} before clock {now}")

        if not self.ledger.contains(ride_id):
            return self._reject(ride_id, ErrorKind.RIDE_NOT_VERIFIED, "no verification entry in ledger")

        # ── Computation ────────────────────────────────────────────────
        multiplier = self.registry.lookup_multiplier(vt)
        if multiplier is None:
            multiplier = DEFAULT_MULTIPLIER

        emission_factor = self.registry.lookup_emission_factor(vt)
        if emission_factor is None:
            emission_factor = DEFAULT_EMISSION_FACTOR

        bonus          = config.bike_bonus if vt is VehicleType.BIKE else 0
        reward_amount  = distance * config.base_reward_rate * multiplier + bonus
        emission_saved = distance * emission_factor

        # ── Commit ─────────────────────────────────────────────────────
        # Instruction is built (and signed) first so nothing is written on error.
        instruction = self.outbox.prepare(
            ride_id        = ride_id,
            amount         = reward_amount,
            recipient      = user,
            token_contract = config.token_contract.address,
        )
        self.ledger.put(ride_id, RideReward(
            user           = user,
            distance       = distance,
            vehicle_type   = vt.value,
            reward_amount  = reward_amount,
            timestamp      = timestamp,
            emission_saved = emission_saved,
        ))
        self.outbox.enqueue(instruction)

        logger.info(
            f"[ride {ride_id}] REWARDED {user}: {reward_amount} "
            f"(distance={distance} rate={config.base_reward_rate} "
            f"multiplier={multiplier} bonus={bonus}) emission_saved={emission_saved}"
        )
        return Result.success(reward_amount)

    # ------------------------------------------------------------------
    def get_total_emissions_saved(self, ride_id: int) -> Result:
        entry = self.ledger.get(ride_id)
        if entry is None:
            return Result.failure(ErrorKind.INVALID_RIDE_ID, f"ride {ride_id} not found")
        return Result.success(entry.emission_saved)

    def get_ride_reward(self, ride_id: int) -> Result:
        entry = self.ledger.get(ride_id)
        if entry is None:
            return Result.failure(ErrorKind.INVALID_RIDE_ID, f"ride {ride_id} not found")
        return Result.success(entry)

    def get_multiplier(self, vehicle_type: str) -> Result:
        vt = VehicleType.parse(vehicle_type)
        if vt is None:
            return Result.failure(ErrorKind.INVALID_VEHICLE_TYPE, f"unknown vehicle type {vehicle_type!r}")
        value = self.registry.lookup_multiplier(vt)
        return Result.success(DEFAULT_MULTIPLIER if value is None else value)

    def get_emission_factor(self, vehicle_type: str) -> Result:
        vt = VehicleType.parse(vehicle_type)
        if vt is None:
            return Result.failure(ErrorKind.INVALID_VEHICLE_TYPE, f"unknown vehicle type {vehicle_type!r}")
        value = self.registry.lookup_emission_factor(vt)
        return Result.success(DEFAULT_EMISSION_FACTOR if value is None else value)

    def get_config(self) -> Result:
        return Result.success(self.config.to_dict())

    def snapshot(self) -> dict[str, Any]:
        """JSON-serialisable dump of all engine state (mint queue excluded)."""
        return {
            "config":   self.config.to_dict(),
            "registry": self.registry.to_dict(),
            "rides":    {str(k): v for k, v in self.ledger.to_dict().items()},
            "clock":    self.clock.now(),
        }

    # ------------------------------------------------------------------
    @staticmethod
    def _reject(ride_id: int, kind: ErrorKind, reason: str) -> Result:
        logger.warning(f"[ride {ride_id}] REJECTED {kind.label} - {reason}")
        return Result.failure(kind, reason)


# ---------------------------------------------------------------------------
# Demo
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import json

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s :: %(message)s",
    )

    admin    = "ST1TEST"
    verifier = "ST2VERIFIER"

    engine = RewardCalculator(admin)
    engine.config.set_verification_contract_ref(admin, verifier)
    engine.config.set_token_contract_ref(admin, "ST3TOKEN.ride-token")
    engine.registry.set_emission_factor(admin, "electric", 100)
    engine.registry.set_multiplier(admin, "bike", 150)

    engine.mark_ride_verified(verifier, 1, "ST4RIDER")
    engine.mark_ride_verified(verifier, 2, "ST5RIDER")

    print(engine.calculate_reward(1, "ST4RIDER", 10, "electric", 0).to_dict())
    print(engine.calculate_reward(2, "ST5RIDER", 12, "bike", 0).to_dict())
    print(engine.calculate_reward(3, "ST5RIDER", 12, "bike", 0).to_dict())
    print(engine.get_total_emissions_saved(1).to_dict())

    print(json.dumps(engine.snapshot(), indent=2))
    for instruction in engine.outbox.drain():
        print(instruction.to_dict())
