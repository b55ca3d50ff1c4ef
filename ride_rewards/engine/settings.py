"""
RIDE REWARDS - Engine Settings
===============================

Initial configuration read from the environment (``from_env`` loads a
``.env`` file when present). Everything here can be changed later only
through the admin-gated setters.
"""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

from engine.config_store import (
    DEFAULT_BASE_REWARD_RATE,
    DEFAULT_BIKE_BONUS,
    DEFAULT_MAX_DISTANCE,
    DEFAULT_MIN_DISTANCE,
)


class EngineSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    admin:                 str           = Field(default="ST1TEST", min_length=1)
    base_reward_rate:      int           = Field(default=DEFAULT_BASE_REWARD_RATE, gt=0)
    bike_bonus:            int           = Field(default=DEFAULT_BIKE_BONUS, gt=0)
    min_distance:          int           = Field(default=DEFAULT_MIN_DISTANCE, gt=0)
    max_distance:          int           = Field(default=DEFAULT_MAX_DISTANCE, gt=0)
    token_contract:        Optional[str] = None
    verification_contract: Optional[str] = None
    mint_signer_key:       Optional[str] = Field(default=None, repr=False)

    @model_validator(mode="after")
    def _bounds_ordered(self) -> "EngineSettings":
        if self.min_distance > self.max_distance:
            raise ValueError(
                f"min_distance {self.min_distance} exceeds max_distance {self.max_distance}"
            )
        return self

    @classmethod
    def from_env(cls) -> "EngineSettings":
        load_dotenv()
        env = {
            "admin":                 os.getenv("RIDE_REWARDS_ADMIN"),
            "base_reward_rate":      os.getenv("RIDE_REWARDS_BASE_RATE"),
            "bike_bonus":            os.getenv("RIDE_REWARDS_BIKE_BONUS"),
            "min_distance":          os.getenv("RIDE_REWARDS_MIN_DISTANCE"),
            "max_distance":          os.getenv("RIDE_REWARDS_MAX_DISTANCE"),
            "token_contract":        os.getenv("RIDE_REWARDS_TOKEN_CONTRACT"),
            "verification_contract": os.getenv("RIDE_REWARDS_VERIFICATION_CONTRACT"),
            "mint_signer_key":       os.getenv("RIDE_REWARDS_MINT_SIGNER_KEY"),
        }
        return cls(**{k: v for k, v in env.items() if v})
