"""
RIDE REWARDS - RewardCalculator Unit Tests

Coverage:
  - Validation order: AuthorityNotSet first, then distance, vehicle type,
    timestamp, ledger presence
  - Reward / emission arithmetic with defaults, explicit multipliers, bike bonus
  - Ledger write + exactly one mint instruction per success
  - Failed calls leave state and the mint queue untouched
  - Verification channel (mark_ride_verified)
  - Read operations and independent engine instances
  - from_settings() wiring
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────────────
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from engine.clock import BlockHeightClock
from engine.errors import ErrorKind
from engine.reward_calculator import RewardCalculator
from engine.mint import MintOutbox
from engine.ride_ledger import RideReward, RideRewardLedger
from engine.settings import EngineSettings

ADMIN    = "ST1TEST"
VERIFIER = "ST2TEST"
RIDER    = "ST4RIDER"


@pytest.fixture
def clock():
    return BlockHeightClock()


@pytest.fixture
def engine(clock):
    """Engine with the verification authority configured and nothing else."""
    e = RewardCalculator(ADMIN, clock=clock)
    e.config.set_verification_contract_ref(ADMIN, VERIFIER)
    return e


def _verify(engine, ride_id=1, user=RIDER):
    result = engine.mark_ride_verified(VERIFIER, ride_id, user)
    assert result.ok
    return result


# ── Validation pipeline ───────────────────────────────────────────────────────

class TestValidationOrder:

    def test_authority_not_set_checked_first(self, clock):
        e = RewardCalculator(ADMIN, clock=clock)
        clock.advance(500)
        # every other check would also fail here
        result = e.calculate_reward(99, RIDER, 5000, "invalid", 0)
        assert result.ok is False
        assert result.error is ErrorKind.AUTHORITY_NOT_SET
        assert result.code == 109

    def test_distance_checked_before_vehicle_type(self, engine):
        result = engine.calculate_reward(1, RIDER, 1001, "invalid", 100)
        assert result.error is ErrorKind.INVALID_DISTANCE

    def test_vehicle_type_checked_before_timestamp(self, engine, clock):
        clock.advance(10)
        result = engine.calculate_reward(1, RIDER, 10, "invalid", 0)
        assert result.error is ErrorKind.INVALID_VEHICLE_TYPE

    def test_timestamp_checked_before_ledger(self, engine, clock):
        clock.advance(10)
        result = engine.calculate_reward(1, RIDER, 10, "electric", 9)
        assert result.error is ErrorKind.INVALID_TIMESTAMP
        assert result.code == 106

    def test_unverified_ride(self, engine):
        result = engine.calculate_reward(1, RIDER, 10, "electric", 100)
        assert result.error is ErrorKind.RIDE_NOT_VERIFIED
        assert result.to_dict() == {
            "ok":     False,
            "value":  104,
            "error":  "RideNotVerified",
            "reason": result.reason,
        }


class TestDistanceBounds:

    @pytest.mark.parametrize("distance", [0, -5, 1001, 10**9])
    def test_outside_bounds_rejected(self, engine, distance):
        _verify(engine)
        result = engine.calculate_reward(1, RIDER, distance, "electric", 100)
        assert result.error is ErrorKind.INVALID_DISTANCE

    @pytest.mark.parametrize("distance", [1, 1000])
    def test_bounds_inclusive(self, engine, distance):
        _verify(engine)
        assert engine.calculate_reward(1, RIDER, distance, "electric", 100).ok

    def test_follows_updated_bounds(self, engine):
        _verify(engine)
        engine.config.set_max_distance(ADMIN, 20)
        result = engine.calculate_reward(1, RIDER, 21, "public", 0)
        assert result.error is ErrorKind.INVALID_DISTANCE


class TestTimestamp:

    def test_equal_to_clock_accepted(self, engine, clock):
        _verify(engine)
        clock.advance(42)
        assert engine.calculate_reward(1, RIDER, 10, "electric", 42).ok

    def test_future_timestamp_accepted(self, engine, clock):
        _verify(engine)
        assert engine.calculate_reward(1, RIDER, 10, "electric", clock.now() + 1000).ok


# ── Arithmetic ────────────────────────────────────────────────────────────────

class TestRewardArithmetic:

    def test_default_multiplier(self, engine):
        engine.registry.set_emission_factor(ADMIN, "electric", 100)
        _verify(engine)
        result = engine.calculate_reward(1, RIDER, 10, "electric", 0)
        assert result.ok is True
        assert result.value == 10 * 10 * 100 + 0
        assert engine.get_total_emissions_saved(1).value == 10 * 100

    def test_explicit_multiplier(self, engine):
        engine.registry.set_multiplier(ADMIN, "electric", 150)
        _verify(engine)
        assert engine.calculate_reward(1, RIDER, 10, "electric", 0).value == 15000

    @pytest.mark.parametrize("distance", [1, 7, 10, 999])
    def test_bike_bonus_added_once(self, engine, distance):
        _verify(engine)
        result = engine.calculate_reward(1, RIDER, distance, "bike", 0)
        assert result.value == distance * 10 * 100 + 5

    def test_bonus_only_for_bikes(self, engine):
        _verify(engine, 1)
        _verify(engine, 2)
        electric = engine.calculate_reward(1, RIDER, 10, "electric", 0).value
        public   = engine.calculate_reward(2, RIDER, 10, "public", 0).value
        assert electric == public == 10000

    def test_updated_rate_and_bonus(self, engine):
        engine.config.set_base_reward_rate(ADMIN, 3)
        engine.config.set_bike_bonus(ADMIN, 40)
        engine.registry.set_multiplier(ADMIN, "bike", 2)
        _verify(engine)
        assert engine.calculate_reward(1, RIDER, 9, "bike", 0).value == 9 * 3 * 2 + 40

    def test_emission_defaults_to_zero(self, engine):
        _verify(engine)
        engine.calculate_reward(1, RIDER, 10, "public", 0)
        assert engine.get_total_emissions_saved(1).value == 0

    def test_large_values_exact(self, engine):
        engine.config.set_base_reward_rate(ADMIN, 10**18)
        engine.registry.set_multiplier(ADMIN, "electric", 1000)
        _verify(engine)
        result = engine.calculate_reward(1, RIDER, 1000, "electric", 0)
        assert result.value == 1000 * 10**18 * 1000
        assert isinstance(result.value, int)


# ── Side effects ──────────────────────────────────────────────────────────────

class TestSideEffects:

    def test_ledger_entry_finalized(self, engine):
        engine.registry.set_emission_factor(ADMIN, "electric", 100)
        _verify(engine)
        engine.calculate_reward(1, RIDER, 10, "electric", 7)
        assert engine.ledger.get(1) == RideReward(
            user           = RIDER,
            distance       = 10,
            vehicle_type   = "electric",
            reward_amount  = 10000,
            timestamp      = 7,
            emission_saved = 1000,
        )

    def test_exactly_one_mint_instruction(self, engine):
        _verify(engine)
        result = engine.calculate_reward(1, RIDER, 10, "electric", 0)
        pending = engine.outbox.pending
        assert len(pending) == 1
        assert pending[0].amount == result.value
        assert pending[0].recipient == RIDER
        assert pending[0].ride_id == 1

    def test_mint_carries_token_contract(self, engine):
        engine.config.set_token_contract_ref(ADMIN, "ST9TOKEN.ride-token")
        _verify(engine)
        engine.calculate_reward(1, RIDER, 10, "electric", 0)
        assert engine.outbox.pending[0].token_contract == "ST9TOKEN.ride-token"

    def test_mint_without_token_contract(self, engine):
        _verify(engine)
        engine.calculate_reward(1, RIDER, 10, "electric", 0)
        assert engine.outbox.pending[0].token_contract is None

    @pytest.mark.parametrize("args", [
        (1, RIDER, 0,  "electric", 0),     # distance
        (1, RIDER, 10, "car",      0),     # vehicle type
        (2, RIDER, 10, "electric", 0),     # not verified
    ])
    def test_failure_commits_nothing(self, engine, args):
        _verify(engine)
        before = engine.snapshot()
        result = engine.calculate_reward(*args)
        assert result.ok is False
        assert engine.snapshot() == before
        assert engine.outbox.pending == ()

    def test_recalculation_overwrites_and_mints_again(self, engine):
        _verify(engine)
        engine.calculate_reward(1, RIDER, 10, "electric", 0)
        engine.registry.set_multiplier(ADMIN, "electric", 200)
        result = engine.calculate_reward(1, RIDER, 10, "electric", 0)
        assert result.value == 20000
        assert engine.ledger.get(1).reward_amount == 20000
        assert len(engine.outbox.pending) == 2


# ── Verification channel ──────────────────────────────────────────────────────

class TestMarkRideVerified:

    def test_seeds_placeholder(self, engine, clock):
        clock.advance(3)
        _verify(engine, 5, "ST7RIDER")
        assert engine.ledger.get(5) == RideReward(user="ST7RIDER", timestamp=3)

    def test_explicit_timestamp(self, engine):
        engine.mark_ride_verified(VERIFIER, 5, RIDER, timestamp=77)
        assert engine.ledger.get(5).timestamp == 77

    def test_requires_configured_authority(self, clock):
        e = RewardCalculator(ADMIN, clock=clock)
        result = e.mark_ride_verified(VERIFIER, 1, RIDER)
        assert result.error is ErrorKind.AUTHORITY_NOT_SET
        assert len(e.ledger) == 0

    @pytest.mark.parametrize("caller", [ADMIN, RIDER, "ST3FAKE"])
    def test_only_authority_may_verify(self, engine, caller):
        result = engine.mark_ride_verified(caller, 1, RIDER)
        assert result.error is ErrorKind.NOT_AUTHORIZED
        assert not engine.ledger.contains(1)

    def test_negative_ride_id(self, engine):
        result = engine.mark_ride_verified(VERIFIER, -1, RIDER)
        assert result.error is ErrorKind.INVALID_RIDE_ID

    def test_existing_entry_untouched(self, engine):
        _verify(engine)
        engine.calculate_reward(1, RIDER, 10, "electric", 0)
        finalized = engine.ledger.get(1)
        assert engine.mark_ride_verified(VERIFIER, 1, "ST8OTHER").ok
        assert engine.ledger.get(1) == finalized


# ── Reads ─────────────────────────────────────────────────────────────────────

class TestReads:

    def test_emissions_unknown_ride(self, engine):
        result = engine.get_total_emissions_saved(404)
        assert result.error is ErrorKind.INVALID_RIDE_ID
        assert result.code == 103

    def test_emissions_read_idempotent(self, engine):
        engine.registry.set_emission_factor(ADMIN, "electric", 100)
        _verify(engine)
        engine.calculate_reward(1, RIDER, 10, "electric", 0)
        first  = engine.get_total_emissions_saved(1)
        second = engine.get_total_emissions_saved(1)
        assert first == second
        assert first.value == 1000

    def test_emissions_of_seeded_entry(self, engine):
        engine.ledger.put(1, RideReward(user=RIDER, distance=10, vehicle_type="electric",
                                        reward_amount=1500, timestamp=100, emission_saved=1000))
        assert engine.get_total_emissions_saved(1).value == 1000

    def test_get_ride_reward(self, engine):
        _verify(engine)
        engine.calculate_reward(1, RIDER, 10, "bike", 0)
        result = engine.get_ride_reward(1)
        assert result.value.reward_amount == 10005
        assert result.to_dict()["value"]["vehicle_type"] == "bike"
        assert engine.get_ride_reward(2).error is ErrorKind.INVALID_RIDE_ID

    def test_effective_parameters(self, engine):
        engine.registry.set_multiplier(ADMIN, "public", 300)
        assert engine.get_multiplier("public").value == 300
        assert engine.get_multiplier("bike").value == 100
        assert engine.get_emission_factor("bike").value == 0
        assert engine.get_multiplier("car").error is ErrorKind.INVALID_VEHICLE_TYPE
        assert engine.get_emission_factor("car").error is ErrorKind.INVALID_VEHICLE_TYPE

    def test_get_config(self, engine):
        config = engine.get_config().value
        assert config["verification_contract"] == VERIFIER
        assert config["token_contract"] is None


# ── Instances & construction ──────────────────────────────────────────────────

class TestInstances:

    def test_instances_share_no_state(self):
        a = RewardCalculator(ADMIN)
        b = RewardCalculator(ADMIN)
        a.config.set_base_reward_rate(ADMIN, 99)
        a.registry.set_multiplier(ADMIN, "bike", 500)
        assert b.config.base_reward_rate == 10
        assert b.get_multiplier("bike").value == 100
        assert b.ledger is not a.ledger
        assert b.outbox is not a.outbox

    def test_mismatched_admin_rejected(self):
        from engine.config_store import ConfigStore
        with pytest.raises(ValueError):
            RewardCalculator(ADMIN, config=ConfigStore("ST9OTHER"))

    def test_injected_empty_ledger_is_kept(self):
        ledger = RideRewardLedger()
        e = RewardCalculator(ADMIN, ledger=ledger)
        assert e.ledger is ledger

        e.config.set_verification_contract_ref(ADMIN, VERIFIER)
        ledger.put(1, RideReward(user=RIDER))
        result = e.calculate_reward(1, RIDER, 10, "electric", 0)
        assert result.ok
        assert result.value == 10 * 10 * 100
        assert ledger.get(1).reward_amount == result.value

    def test_injected_empty_collaborators_are_kept(self):
        outbox = MintOutbox()
        clock = BlockHeightClock()
        e = RewardCalculator(ADMIN, clock=clock, outbox=outbox)
        assert e.outbox is outbox
        assert e.clock is clock


class TestFromSettings:

    def test_builds_configured_engine(self):
        settings = EngineSettings(
            admin                 = ADMIN,
            base_reward_rate      = 7,
            verification_contract = VERIFIER,
            token_contract        = "ST9TOKEN.ride-token",
        )
        e = RewardCalculator.from_settings(settings)
        assert e.config.base_reward_rate == 7
        assert e.config.verification_contract.address == VERIFIER
        assert e.outbox.signer is None

        e.mark_ride_verified(VERIFIER, 1, RIDER)
        assert e.calculate_reward(1, RIDER, 2, "electric", 0).value == 2 * 7 * 100

    def test_signer_key_enables_signing(self):
        settings = EngineSettings(
            admin                 = ADMIN,
            verification_contract = VERIFIER,
            mint_signer_key       = "0x" + "11" * 32,
        )
        e = RewardCalculator.from_settings(settings)
        e.mark_ride_verified(VERIFIER, 1, RIDER)
        e.calculate_reward(1, RIDER, 10, "electric", 0)
        instruction = e.outbox.pending[0]
        assert instruction.signature is not None
        assert e.outbox.signer.verify(instruction)

    def test_from_env(self, monkeypatch):
        monkeypatch.setattr("engine.settings.load_dotenv", lambda *a, **kw: False)
        monkeypatch.setenv("RIDE_REWARDS_ADMIN", "ST5ADMIN")
        monkeypatch.setenv("RIDE_REWARDS_BASE_RATE", "12")
        monkeypatch.setenv("RIDE_REWARDS_MAX_DISTANCE", "250")
        monkeypatch.delenv("RIDE_REWARDS_VERIFICATION_CONTRACT", raising=False)
        monkeypatch.delenv("RIDE_REWARDS_MINT_SIGNER_KEY", raising=False)
        e = RewardCalculator.from_settings()
        assert e.admin == "ST5ADMIN"
        assert e.config.base_reward_rate == 12
        assert e.config.max_distance == 250
        assert e.calculate_reward(1, RIDER, 10, "electric", 0).error is ErrorKind.AUTHORITY_NOT_SET

    def test_dotenv_loaded_only_by_from_env(self, monkeypatch):
        calls = []
        monkeypatch.setattr("engine.settings.load_dotenv", lambda *a, **kw: calls.append(1))
        EngineSettings(admin=ADMIN)
        RewardCalculator(ADMIN)
        assert calls == []
        EngineSettings.from_env()
        assert calls == [1]

    def test_invalid_settings_rejected(self):
        with pytest.raises(ValueError):
            EngineSettings(base_reward_rate=0)
        with pytest.raises(ValueError):
            EngineSettings(min_distance=10, max_distance=5)
