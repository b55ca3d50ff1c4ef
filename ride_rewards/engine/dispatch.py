"""
RIDE REWARDS - Transaction Dispatch
====================================

Entry point for hosts that deliver operations as ``(name, caller, params)``
triples (RPC handler, CLI, VM call). Parameter *types* are checked here with
pydantic; domain bounds stay in the engine so they come back as error kinds.

Usage:
    result = dispatch(engine, "set-multiplier", caller="ST1TEST",
                      params={"vehicle_type": "electric", "value": 150})
    result.to_dict()  # {"ok": True, "value": True}
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from engine.errors import Result
from engine.reward_calculator import RewardCalculator

logger = logging.getLogger("ride_rewards.dispatch")


class MalformedTransactionError(ValueError):
    """Unknown operation or parameters of the wrong shape."""


# ─── Parameter models ─────────────────────────────────────────────────────────
class _Params(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ContractRefParams(_Params):
    address: Optional[StrictStr]


class AmountParams(_Params):
    value: StrictInt


class VehicleValueParams(_Params):
    vehicle_type: StrictStr
    value:        StrictInt


class VehicleParams(_Params):
    vehicle_type: StrictStr


class RideParams(_Params):
    ride_id: StrictInt = Field(..., ge=0)


class MarkVerifiedParams(_Params):
    ride_id:   StrictInt           = Field(..., ge=0)
    user:      StrictStr
    timestamp: Optional[StrictInt] = None


class CalculateRewardParams(_Params):
    ride_id:      StrictInt = Field(..., ge=0)
    user:         StrictStr
    distance:     StrictInt
    vehicle_type: StrictStr
    timestamp:    StrictInt


class _NoParams(_Params):
    pass


# name -> (params model, handler(engine, caller, params))
_Handler = Callable[[RewardCalculator, str, Any], Result]

OPERATIONS: dict[str, tuple[type[_Params], _Handler]] = {
    "set-token-contract": (
        ContractRefParams, lambda e, c, p: e.config.set_token_contract_ref(c, p.address)),
    "set-verification-contract": (
        ContractRefParams, lambda e, c, p: e.config.set_verification_contract_ref(c, p.address)),
    "set-base-reward-rate": (
        AmountParams, lambda e, c, p: e.config.set_base_reward_rate(c, p.value)),
    "set-bike-bonus": (
        AmountParams, lambda e, c, p: e.config.set_bike_bonus(c, p.value)),
    "set-min-distance": (
        AmountParams, lambda e, c, p: e.config.set_min_distance(c, p.value)),
    "set-max-distance": (
        AmountParams, lambda e, c, p: e.config.set_max_distance(c, p.value)),
    "set-multiplier": (
        VehicleValueParams, lambda e, c, p: e.registry.set_multiplier(c, p.vehicle_type, p.value)),
    "set-emission-factor": (
        VehicleValueParams, lambda e, c, p: e.registry.set_emission_factor(c, p.vehicle_type, p.value)),
    "mark-ride-verified": (
        MarkVerifiedParams, lambda e, c, p: e.mark_ride_verified(c, p.ride_id, p.user, p.timestamp)),
    "calculate-reward": (
        CalculateRewardParams,
        lambda e, c, p: e.calculate_reward(p.ride_id, p.user, p.distance, p.vehicle_type, p.timestamp)),
    "get-total-emissions-saved": (
        RideParams, lambda e, c, p: e.get_total_emissions_saved(p.ride_id)),
    "get-ride-reward": (
        RideParams, lambda e, c, p: e.get_ride_reward(p.ride_id)),
    "get-multiplier": (
        VehicleParams, lambda e, c, p: e.get_multiplier(p.vehicle_type)),
    "get-emission-factor": (
        VehicleParams, lambda e, c, p: e.get_emission_factor(p.vehicle_type)),
    "get-config": (
        _NoParams, lambda e, c, p: e.get_config()),
}


def dispatch(
    engine:    RewardCalculator,
    operation: str,
    caller:    str,
    params:    Optional[dict[str, Any]] = None,
) -> Result:
    try:
        model, handler = OPERATIONS[operation]
    except KeyError:
        raise MalformedTransactionError(f"unknown operation {operation!r}") from None

    try:
        parsed = model.model_validate(params or {})
    except ValidationError as e:
        logger.warning(f"[dispatch] {operation} from {caller}: malformed params - {e.error_count()} error(s)")
        raise MalformedTransactionError(f"{operation}: {e}") from e

    logger.debug(f"[dispatch] {operation} from {caller}")
    return handler(engine, caller, parsed)
