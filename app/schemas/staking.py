"""Reward pool request/response schemas."""

from app.schemas.common import CamelModel
from tokenledger.services._types import PoolInfoDict, UserInfoDict


class PoolResponse(CamelModel):
    pool_id: int
    reward_rate_per_block: str
    last_reward_block: int
    acc_reward_per_share: str
    total_staked: str
    total_reward_accrued: str
    lock_duration: int

    @classmethod
    def from_info(cls, pool_id: int, info: PoolInfoDict) -> "PoolResponse":
        return cls(
            pool_id=pool_id,
            reward_rate_per_block=str(info["reward_rate_per_block"]),
            last_reward_block=info["last_reward_block"],
            acc_reward_per_share=str(info["acc_reward_per_share"]),
            total_staked=str(info["total_staked"]),
            total_reward_accrued=str(info["total_reward_accrued"]),
            lock_duration=info["lock_duration"],
        )


class UserStakeResponse(CamelModel):
    pool_id: int
    account: str
    amount: str
    reward_debt: str
    pending_withdrawn: str
    last_action_time: int

    @classmethod
    def from_info(cls, pool_id: int, account: str, info: UserInfoDict) -> "UserStakeResponse":
        return cls(
            pool_id=pool_id,
            account=account,
            amount=str(info["amount"]),
            reward_debt=str(info["reward_debt"]),
            pending_withdrawn=str(info["pending_withdrawn"]),
            last_action_time=info["last_action_time"],
        )


class PendingResponse(CamelModel):
    pool_id: int
    account: str
    pending: str


class DepositedResponse(CamelModel):
    account: str
    deposited: str


class ClaimResponse(CamelModel):
    pool_id: int
    account: str
    reward: str
