"""Clock sources for the ledgers.

Both engines evaluate lazily against an externally supplied, monotonically
non-decreasing reading: block height for rewards, timestamp for vesting.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class BlockContext:
    """Block a state-changing call executes in."""

    number: int
    timestamp: int


class Clock(Protocol):
    def block_number(self) -> int: ...

    def timestamp(self) -> int: ...

    def begin_transaction(self) -> BlockContext: ...


class ManualClock:
    """Deterministic clock driven by the caller.

    With ``automine`` every state-changing call is executed in a freshly mined
    block, the way a development chain includes each transaction in its own
    block. Views always read the latest mined block.
    """

    def __init__(
        self,
        block_number: int = 0,
        timestamp: int = 0,
        automine: bool = False,
        block_time: int = 1,
    ) -> None:
        if block_number < 0 or timestamp < 0:
            raise ValueError("Clock readings must be non-negative")
        self._number: int = block_number
        self._timestamp: int = timestamp
        self._pending_offset: int = 0
        self.automine: bool = automine
        self.block_time: int = block_time

    def block_number(self) -> int:
        return self._number

    def timestamp(self) -> int:
        return self._timestamp

    def begin_transaction(self) -> BlockContext:
        if self.automine:
            return self.mine()
        return BlockContext(self._number, self._timestamp)

    def mine(self, blocks: int = 1) -> BlockContext:
        """Mine ``blocks`` empty blocks; a pending time increase lands on the first."""
        if blocks < 1:
            raise ValueError("blocks must be >= 1")
        for _ in range(blocks):
            self._number += 1
            self._timestamp += self.block_time + self._pending_offset
            self._pending_offset = 0
        return BlockContext(self._number, self._timestamp)

    def increase_time(self, seconds: int) -> None:
        """Shift the timestamp of the next mined block forward."""
        if seconds < 0:
            raise ValueError("Time only moves forward")
        self._pending_offset += seconds

    def advance_time(self, seconds: int) -> None:
        """Move the current timestamp forward without mining."""
        if seconds < 0:
            raise ValueError("Time only moves forward")
        self._timestamp += seconds

    def set_time(self, timestamp: int) -> None:
        if timestamp < self._timestamp:
            raise ValueError(f"Cannot move clock back from {self._timestamp} to {timestamp}")
        self._timestamp = timestamp

    def advance_time_and_block(self, seconds: int) -> BlockContext:
        self.increase_time(seconds)
        return self.mine()


class SystemClock:
    """Wall-clock time; block height derived from a genesis timestamp and block time."""

    def __init__(
        self,
        genesis_timestamp: int = 0,
        block_time: int = 12,
        time_source: Callable[[], float] = time.time,
    ) -> None:
        if block_time <= 0:
            raise ValueError("block_time must be positive")
        self.genesis_timestamp: int = genesis_timestamp
        self.block_time: int = block_time
        self._time_source = time_source

    def timestamp(self) -> int:
        return int(self._time_source())

    def block_number(self) -> int:
        return max(0, (self.timestamp() - self.genesis_timestamp) // self.block_time)

    def begin_transaction(self) -> BlockContext:
        now = self.timestamp()
        return BlockContext(max(0, (now - self.genesis_timestamp) // self.block_time), now)
