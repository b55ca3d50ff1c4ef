"""
RIDE REWARDS - Ride Reward Ledger
==================================

Map from ride ID to its reward record. An entry is first written by the
verification authority as a placeholder, then overwritten in place by the
calculator with the final figures. Entries are never removed.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Iterator, Optional

logger = logging.getLogger("ride_rewards.ledger")


@dataclass(frozen=True)
class RideReward:
    user:           str
    distance:       int = 0
    vehicle_type:   str = ""
    reward_amount:  int = 0
    timestamp:      int = 0
    emission_saved: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class RideRewardLedger:

    def __init__(self):
        self._entries: dict[int, RideReward] = {}

    def contains(self, ride_id: int) -> bool:
        return ride_id in self._entries

    def get(self, ride_id: int) -> Optional[RideReward]:
        return self._entries.get(ride_id)

    def put(self, ride_id: int, entry: RideReward) -> None:
        if ride_id < 0:
            raise ValueError(f"ride_id must be non-negative, got {ride_id}")
        replaced = ride_id in self._entries
        self._entries[ride_id] = entry
        logger.debug(f"[ride {ride_id}] {'updated' if replaced else 'created'} entry for {entry.user}")

    def __contains__(self, ride_id: int) -> bool:
        return self.contains(ride_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._entries))

    def to_dict(self) -> dict[int, dict]:
        return {ride_id: self._entries[ride_id].to_dict() for ride_id in self}
