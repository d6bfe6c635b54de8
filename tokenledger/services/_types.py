"""Typed dicts for service-layer return values.

Keeps route-facing methods explicit about their shape instead of returning bare dicts.
"""

import sys

if sys.version_info >= (3, 12):
    from typing import TypedDict
else:
    from typing_extensions import TypedDict

from tokenledger.services._helpers import JsonDict

# -- Vesting ---------------------------------------------------------------


class LockInfoDict(TypedDict):
    id: int
    asset: str
    beneficiary: str
    duration: int
    periodicity: int
    total_amount: int
    cliff_time: int
    released: int


# -- Staking ---------------------------------------------------------------


class PoolInfoDict(TypedDict):
    reward_rate_per_block: int
    last_reward_block: int
    acc_reward_per_share: int
    total_staked: int
    total_reward_accrued: int
    lock_duration: int


class UserInfoDict(TypedDict):
    amount: int
    reward_debt: int
    pending_withdrawn: int
    last_action_time: int


# -- Events ----------------------------------------------------------------


class EventDict(TypedDict):
    id: int
    event_type: str
    block_number: int
    timestamp: int
    subject: str
    payload: JsonDict | None


# -- Health ----------------------------------------------------------------


class DbInfoDict(TypedDict, total=False):
    backend_type: str
    database_url_or_path: str | None
    tables_present: list[str]
    tables_missing: list[str]
    schema_initialized: bool
    error: str
    pid: int
