"""Build ledger services from settings. Shared by the API, CLI and workers."""

from sqlalchemy.orm import Session

from config import LedgerSettings, get_settings
from tokenledger.services.asset_ledger import AssetLedger, SqlAssetLedger
from tokenledger.services.clock import Clock, SystemClock
from tokenledger.services.guards import AuthorizationGate
from tokenledger.services.staking import RewardLedger
from tokenledger.services.vesting import VestingLedger


def system_clock(settings: LedgerSettings | None = None) -> SystemClock:
    s = settings or get_settings().ledger
    return SystemClock(genesis_timestamp=s.genesis_timestamp, block_time=s.block_time)


def vesting_ledger(
    session: Session,
    clock: Clock | None = None,
    asset_ledger: AssetLedger | None = None,
    settings: LedgerSettings | None = None,
) -> VestingLedger:
    s = settings or get_settings().ledger
    return VestingLedger(
        session,
        asset_ledger or SqlAssetLedger(session),
        AuthorizationGate(s.controller),
        clock or system_clock(s),
        s.vesting_address,
    )


def reward_ledger(
    session: Session,
    clock: Clock | None = None,
    asset_ledger: AssetLedger | None = None,
    settings: LedgerSettings | None = None,
) -> RewardLedger:
    s = settings or get_settings().ledger
    return RewardLedger(
        session,
        asset_ledger or SqlAssetLedger(session),
        AuthorizationGate(s.controller),
        clock or system_clock(s),
        s.staking_address,
        default_reward_rate_per_block=s.reward_rate_per_block,
        default_lock_duration=s.lock_duration,
    )
