"""FastAPI dependencies: DB sessions, auth, caller identity and ledgers."""

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from config import get_settings
from db.connection import get_db as get_db  # noqa: F401  re-exported for routes
from tokenledger.services.clock import Clock
from tokenledger.services.ledgers import reward_ledger, system_clock, vesting_ledger
from tokenledger.services.staking import RewardLedger
from tokenledger.services.vesting import VestingLedger


def get_api_key(x_api_key: str = Header(default="")) -> str:
    """Validate API key on mutation endpoints."""
    expected: str | None = get_settings().api_key
    if not expected:
        return ""  # auth disabled when no key configured
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return x_api_key


def get_caller(x_caller: str = Header(default="")) -> str:
    """Account the request acts for."""
    caller: str = x_caller.strip()
    if not caller:
        raise HTTPException(status_code=400, detail="X-Caller header is required")
    return caller


def get_clock() -> Clock:
    return system_clock()


def get_vesting_ledger(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> VestingLedger:
    return vesting_ledger(db, clock=clock)


def get_reward_ledger(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> RewardLedger:
    return reward_ledger(db, clock=clock)
