"""Reward pool endpoints."""

from fastapi import APIRouter, Depends

from app.dependencies import get_api_key, get_caller, get_reward_ledger
from app.schemas.staking import (
    ClaimResponse,
    DepositedResponse,
    PendingResponse,
    PoolResponse,
    UserStakeResponse,
)
from tokenledger.services.errors import PoolNotFound
from tokenledger.services.staking import RewardLedger

router = APIRouter(prefix="/api", tags=["staking"])


@router.get("/pools/{pool_id}", response_model=PoolResponse)
def get_pool(pool_id: int, ledger: RewardLedger = Depends(get_reward_ledger)) -> PoolResponse:
    if pool_id >= ledger.pool_count() or pool_id < 0:
        raise PoolNotFound(f"Pool {pool_id} does not exist")
    return PoolResponse.from_info(pool_id, ledger.pool_info(pool_id))


@router.get("/pools/{pool_id}/users/{account}", response_model=UserStakeResponse)
def get_user_stake(
    pool_id: int, account: str, ledger: RewardLedger = Depends(get_reward_ledger)
) -> UserStakeResponse:
    return UserStakeResponse.from_info(pool_id, account, ledger.user_info(pool_id, account))


@router.get("/pools/{pool_id}/users/{account}/pending", response_model=PendingResponse)
def get_pending(
    pool_id: int, account: str, ledger: RewardLedger = Depends(get_reward_ledger)
) -> PendingResponse:
    return PendingResponse(
        pool_id=pool_id, account=account, pending=str(ledger.pending_rewards(pool_id, account))
    )


@router.get("/accounts/{account}/deposited", response_model=DepositedResponse)
def get_deposited(
    account: str, ledger: RewardLedger = Depends(get_reward_ledger)
) -> DepositedResponse:
    return DepositedResponse(account=account, deposited=str(ledger.get_deposited_amount(account)))


@router.post(
    "/pools/{pool_id}/claim", response_model=ClaimResponse, dependencies=[Depends(get_api_key)]
)
def claim(
    pool_id: int,
    caller: str = Depends(get_caller),
    ledger: RewardLedger = Depends(get_reward_ledger),
) -> ClaimResponse:
    reward = ledger.claim(caller, pool_id)
    return ClaimResponse(pool_id=pool_id, account=caller, reward=str(reward))
