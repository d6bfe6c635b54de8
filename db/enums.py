"""Enumeration types for the token ledger."""

from enum import Enum


class LockStatus(str, Enum):
    """Lifecycle of a vesting schedule."""

    PENDING = "pending"  # before the cliff
    VESTING = "vesting"
    FULLY_RELEASED = "fully_released"


class EventType(str, Enum):
    """Committed state changes recorded in the event log."""

    LOCK_CREATED = "lock_created"
    TOKENS_RELEASED = "tokens_released"
    REWARD_ASSET_SET = "reward_asset_set"
    STAKING_STARTED = "staking_started"
    POOL_ADDED = "pool_added"
    POOL_RATE_SET = "pool_rate_set"
    DEPOSITED = "deposited"
    CLAIMED = "claimed"
    WITHDRAWN = "withdrawn"
