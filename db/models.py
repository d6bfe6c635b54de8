"""SQLAlchemy ORM models for the token ledger.

Keep in sync with migrations/001_initial.sql.
"""

from sqlalchemy import (
    BigInteger,
    ForeignKey,
    MetaData,
    String,
    TypeDecorator,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UInt(TypeDecorator[int]):
    """Unsigned integer of arbitrary size, stored exactly as decimal text.

    Token amounts and SCALE-scaled accumulators overflow 64-bit columns, and
    NUMERIC on SQLite round-trips through float.
    """

    impl = String
    cache_ok = True

    def process_bind_param(self, value: int | None, dialect: Dialect) -> str | None:
        if value is None:
            return None
        if value < 0:
            raise ValueError(f"Negative value for unsigned column: {value}")
        return str(int(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> int | None:
        if value is None:
            return None
        return int(value)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class LockSchedules(Base):
    __tablename__ = "lock_schedules"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    asset: Mapped[str] = mapped_column(nullable=False)
    beneficiary: Mapped[str] = mapped_column(nullable=False, index=True)
    duration: Mapped[int] = mapped_column(BigInteger, nullable=False)
    periodicity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_amount: Mapped[int] = mapped_column(UInt(), nullable=False)
    cliff_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    released: Mapped[int] = mapped_column(UInt(), nullable=False, default=0)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_block: Mapped[int] = mapped_column(BigInteger, nullable=False)


class StakingConfig(Base):
    """Single-row table: reward asset and start block, each set once."""

    __tablename__ = "staking_config"

    id: Mapped[int] = mapped_column(primary_key=True, default=1)
    reward_asset: Mapped[str | None] = mapped_column()
    start_block: Mapped[int | None] = mapped_column(BigInteger)


class StakePools(Base):
    __tablename__ = "stake_pools"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    reward_rate_per_block: Mapped[int] = mapped_column(UInt(), nullable=False)
    last_reward_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    acc_reward_per_share: Mapped[int] = mapped_column(UInt(), nullable=False, default=0)
    total_staked: Mapped[int] = mapped_column(UInt(), nullable=False, default=0)
    total_reward_accrued: Mapped[int] = mapped_column(UInt(), nullable=False, default=0)
    lock_duration: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class UserStakes(Base):
    __tablename__ = "user_stakes"

    pool_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("stake_pools.id"),
        primary_key=True,
    )
    account: Mapped[str] = mapped_column(primary_key=True)
    amount: Mapped[int] = mapped_column(UInt(), nullable=False, default=0)
    reward_debt: Mapped[int] = mapped_column(UInt(), nullable=False, default=0)
    pending_withdrawn: Mapped[int] = mapped_column(UInt(), nullable=False, default=0)
    last_action_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class AssetBalances(Base):
    __tablename__ = "asset_balances"

    asset: Mapped[str] = mapped_column(primary_key=True)
    account: Mapped[str] = mapped_column(primary_key=True)
    balance: Mapped[int] = mapped_column(UInt(), nullable=False, default=0)


class AssetAllowances(Base):
    __tablename__ = "asset_allowances"

    asset: Mapped[str] = mapped_column(primary_key=True)
    owner: Mapped[str] = mapped_column(primary_key=True)
    spender: Mapped[str] = mapped_column(primary_key=True)
    amount: Mapped[int] = mapped_column(UInt(), nullable=False, default=0)


class LedgerEvents(Base):
    __tablename__ = "ledger_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(nullable=False, index=True)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    subject: Mapped[str] = mapped_column(nullable=False, index=True)
    payload: Mapped[str] = mapped_column(nullable=False)
