"""Host-driven logical clock (block height). Timestamps are validated against it."""

from __future__ import annotations


class BlockHeightClock:

    def __init__(self, height: int = 0):
        if height < 0:
            raise ValueError(f"height must be non-negative, got {height}")
        self._height = height

    def now(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("clock cannot move backwards")
        self._height += blocks
        return self._height
