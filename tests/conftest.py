"""Shared fixtures: in-memory SQLite with SAVEPOINT support, clock, assets and ledgers."""

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.connection import enable_sqlite_savepoints
from db.models import Base
from tokenledger.services.asset_ledger import MAX_UINT256, SqlAssetLedger
from tokenledger.services.clock import ManualClock
from tokenledger.services.guards import AuthorizationGate
from tokenledger.services.staking import RewardLedger
from tokenledger.services.vesting import VestingLedger

CONTROLLER = "controller"
VESTING = "vesting-ledger"
STAKING = "staking-ledger"
TOKEN = "TKN"
ETHER: int = 10**18
T0: int = 1_700_000_000


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    eng: Engine = create_engine("sqlite:///:memory:", echo=False)
    enable_sqlite_savepoints(eng, pragmas=False)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine: Engine) -> Generator[Session, None, None]:
    factory: sessionmaker[Session] = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    sess: Session = factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture()
def gate() -> AuthorizationGate:
    return AuthorizationGate(CONTROLLER)


@pytest.fixture()
def assets(session: Session) -> SqlAssetLedger:
    return SqlAssetLedger(session)


# -- Vesting ---------------------------------------------------------------


@pytest.fixture()
def vesting_clock() -> ManualClock:
    return ManualClock(block_number=100, timestamp=T0)


@pytest.fixture()
def vesting(
    session: Session,
    assets: SqlAssetLedger,
    gate: AuthorizationGate,
    vesting_clock: ManualClock,
) -> VestingLedger:
    assets.mint(TOKEN, CONTROLLER, 1_000_000)
    assets.approve(TOKEN, CONTROLLER, VESTING, MAX_UINT256)
    return VestingLedger(session, assets, gate, vesting_clock, VESTING)


# -- Staking ---------------------------------------------------------------


@pytest.fixture()
def staking_clock() -> ManualClock:
    """Each state-changing call lands in its own block, one second apart."""
    return ManualClock(block_number=1, timestamp=T0, automine=True)


@pytest.fixture()
def staking(
    session: Session,
    assets: SqlAssetLedger,
    gate: AuthorizationGate,
    staking_clock: ManualClock,
) -> RewardLedger:
    for user in ("user1", "user2", "user3"):
        assets.mint(TOKEN, user, 10_000 * ETHER)
        assets.approve(TOKEN, user, STAKING, MAX_UINT256)
    assets.mint(TOKEN, STAKING, 1_000_000 * ETHER)
    return RewardLedger(
        session,
        assets,
        gate,
        staking_clock,
        STAKING,
        default_reward_rate_per_block=ETHER,
        default_lock_duration=30 * 24 * 60 * 60,
    )


@pytest.fixture()
def started(staking: RewardLedger, staking_clock: ManualClock) -> RewardLedger:
    """Reward ledger with the reward asset set and pool 0 open from the current block."""
    start_block = staking_clock.block_number()
    staking.set_reward_asset(CONTROLLER, TOKEN)
    staking.start_staking(CONTROLLER, start_block)
    return staking
