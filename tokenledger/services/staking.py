"""Reward ledger: block-driven reward-per-share accrual over stake pools."""

import structlog
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from db.enums import EventType
from db.models import StakePools, StakingConfig, UserStakes
from tokenledger.services import _math
from tokenledger.services._helpers import is_account
from tokenledger.services._types import PoolInfoDict, UserInfoDict
from tokenledger.services.asset_ledger import AssetLedger, call_transfer
from tokenledger.services.clock import BlockContext, Clock
from tokenledger.services.errors import (
    AlreadySet,
    AlreadyStarted,
    InsufficientStake,
    InvalidAmount,
    InvalidAsset,
    InvalidParameterError,
    PoolNotFound,
    StakeLocked,
    StakingNotStarted,
    TransferFailed,
)
from tokenledger.services.events import record_event
from tokenledger.services.guards import AuthorizationGate, non_reentrant

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

CONFIG_ID: int = 1


def pool_to_dict(pool: StakePools) -> PoolInfoDict:
    return PoolInfoDict(
        reward_rate_per_block=pool.reward_rate_per_block,
        last_reward_block=pool.last_reward_block,
        acc_reward_per_share=pool.acc_reward_per_share,
        total_staked=pool.total_staked,
        total_reward_accrued=pool.total_reward_accrued,
        lock_duration=pool.lock_duration,
    )


def stake_to_dict(stake: UserStakes) -> UserInfoDict:
    return UserInfoDict(
        amount=stake.amount,
        reward_debt=stake.reward_debt,
        pending_withdrawn=stake.pending_withdrawn,
        last_action_time=stake.last_action_time,
    )


class RewardLedger:
    """
    Stake pools paying a fixed reward per block, shared pro rata by stake.

    Each pool keeps an accumulator of reward earned per unit of stake
    (scaled by ``SCALE``); each account keeps a reward debt, the part of
    the accumulator already accounted for at its current stake. An
    account's pending reward is ``amount * acc // SCALE - reward_debt``.

    The pool is brought up to the current block before any stake changes
    (see ``_update_pool``). Every deposit, claim and withdraw pays out the
    pending reward, so the debt invariant holds before the stake moves.

    Stake and rewards are the same asset. Rewards are paid from the custody
    balance in excess of all staked principal.
    """

    def __init__(
        self,
        session: Session,
        asset_ledger: AssetLedger,
        gate: AuthorizationGate,
        clock: Clock,
        address: str,
        default_reward_rate_per_block: int,
        default_lock_duration: int,
    ) -> None:
        self.session: Session = session
        self.assets: AssetLedger = asset_ledger
        self.gate: AuthorizationGate = gate
        self.clock: Clock = clock
        self.address: str = address
        self.default_reward_rate_per_block: int = default_reward_rate_per_block
        self.default_lock_duration: int = default_lock_duration
        self._entered: bool = False

    # -- Queries -----------------------------------------------------------

    def _config(self, lock: bool = False) -> StakingConfig | None:
        return self.session.get(
            StakingConfig, CONFIG_ID, with_for_update=lock, populate_existing=lock
        )

    def _serialize_writes(self) -> None:
        """Row-lock the config row. Staking writes take it first, so they run one at a time."""
        self._config(lock=True)

    def reward_asset(self) -> str | None:
        config = self._config()
        return config.reward_asset if config else None

    def start_block(self) -> int | None:
        config = self._config()
        return config.start_block if config else None

    def pool_count(self) -> int:
        return self.session.scalar(select(func.count()).select_from(StakePools)) or 0

    def _require_pool(self, pool_id: int, lock: bool = False) -> StakePools:
        pool: StakePools | None = self.session.get(
            StakePools, pool_id, with_for_update=lock, populate_existing=lock
        )
        if pool is None:
            raise PoolNotFound(f"Pool {pool_id} does not exist")
        return pool

    def _get_stake(self, pool_id: int, account: str, lock: bool = False) -> UserStakes | None:
        return self.session.get(
            UserStakes, (pool_id, account), with_for_update=lock, populate_existing=lock
        )

    def pool_info(self, pool_id: int) -> PoolInfoDict:
        """Pool fields, or zero values for a pool that was never created."""
        pool: StakePools | None = self.session.get(StakePools, pool_id)
        if pool is None:
            return PoolInfoDict(
                reward_rate_per_block=0,
                last_reward_block=0,
                acc_reward_per_share=0,
                total_staked=0,
                total_reward_accrued=0,
                lock_duration=0,
            )
        return pool_to_dict(pool)

    def user_info(self, pool_id: int, account: str) -> UserInfoDict:
        stake = self._get_stake(pool_id, account)
        if stake is None:
            return UserInfoDict(amount=0, reward_debt=0, pending_withdrawn=0, last_action_time=0)
        return stake_to_dict(stake)

    def pending_rewards(self, pool_id: int, account: str) -> int:
        """Reward claimable at the latest block, without touching stored state."""
        pool: StakePools | None = self.session.get(StakePools, pool_id)
        stake = self._get_stake(pool_id, account)
        if pool is None or stake is None:
            return 0
        acc: int = self._simulated_acc(pool, self.clock.block_number())
        return _math.pending_reward(stake.amount, acc, stake.reward_debt)

    def get_deposited_amount(self, account: str) -> int:
        stmt: Select[tuple[UserStakes]] = select(UserStakes).where(UserStakes.account == account)
        return sum(s.amount for s in self.session.scalars(stmt).all())

    def reward_reserve(self) -> int:
        """Custody balance of the reward asset not backing any stake."""
        asset = self.reward_asset()
        if not asset:
            return 0
        staked: int = sum(p.total_staked for p in self.session.scalars(select(StakePools)).all())
        return max(0, self.assets.balance_of(asset, self.address) - staked)

    # -- Pool update -------------------------------------------------------

    @staticmethod
    def _simulated_acc(pool: StakePools, block_number: int) -> int:
        if block_number <= pool.last_reward_block or pool.total_staked == 0:
            return pool.acc_reward_per_share
        reward: int = (block_number - pool.last_reward_block) * pool.reward_rate_per_block
        return _math.accrue(pool.acc_reward_per_share, reward, pool.total_staked)

    @staticmethod
    def _update_pool(pool: StakePools, block_number: int) -> None:
        """
        Bring the accumulator up to ``block_number``.

        No-op when already current. An empty pool only moves its
        last_reward_block: nothing accrues to zero stake.
        """
        if block_number <= pool.last_reward_block:
            return
        if pool.total_staked == 0:
            pool.last_reward_block = block_number
            return
        reward: int = (block_number - pool.last_reward_block) * pool.reward_rate_per_block
        pool.acc_reward_per_share = _math.accrue(pool.acc_reward_per_share, reward, pool.total_staked)
        pool.total_reward_accrued += reward
        pool.last_reward_block = block_number

    # -- Administration ----------------------------------------------------

    @non_reentrant
    def set_reward_asset(self, caller: str, asset: str) -> None:
        ctx: BlockContext = self.clock.begin_transaction()
        self.gate.require_controller(caller)
        if not is_account(asset):
            raise InvalidAsset("Reward asset must be non-empty")

        with self.session.begin_nested():
            config = self._config(lock=True)
            if config is not None and config.reward_asset:
                raise AlreadySet(f"Reward asset already set to {config.reward_asset!r}")
            if config is None:
                config = StakingConfig(id=CONFIG_ID)
                self.session.add(config)
            config.reward_asset = asset
            record_event(self.session, ctx, EventType.REWARD_ASSET_SET, asset, asset=asset)
            self.session.flush()

        logger.info("Reward asset set", asset=asset)

    @non_reentrant
    def start_staking(self, caller: str, start_block: int) -> None:
        """Open pool 0. Nothing accrues before ``start_block``."""
        ctx: BlockContext = self.clock.begin_transaction()
        self.gate.require_controller(caller)
        if start_block < 0:
            raise InvalidParameterError("start_block must be non-negative")

        with self.session.begin_nested():
            config = self._config(lock=True)
            if config is not None and config.start_block is not None:
                raise AlreadyStarted(f"Staking already started at block {config.start_block}")
            if config is None or not config.reward_asset:
                raise InvalidAsset("Reward asset must be set before staking starts")

            config.start_block = start_block
            self._add_pool(
                ctx, 0, self.default_reward_rate_per_block, self.default_lock_duration, start_block
            )
            record_event(
                self.session, ctx, EventType.STAKING_STARTED, "pool:0", start_block=start_block
            )
            self.session.flush()

        logger.info("Staking started", start_block=start_block)

    @non_reentrant
    def add_pool(self, caller: str, reward_rate_per_block: int, lock_duration: int) -> int:
        ctx: BlockContext = self.clock.begin_transaction()
        self.gate.require_controller(caller)
        if reward_rate_per_block < 0 or lock_duration < 0:
            raise InvalidParameterError("Reward rate and lock duration must be non-negative")
        self._serialize_writes()

        start = self.start_block()
        if start is None:
            raise StakingNotStarted("Pools can only be added after staking starts")

        with self.session.begin_nested():
            pool_id: int = self.pool_count()
            self._add_pool(ctx, pool_id, reward_rate_per_block, lock_duration, max(start, ctx.number))
            self.session.flush()
        return pool_id

    def _add_pool(
        self,
        ctx: BlockContext,
        pool_id: int,
        reward_rate_per_block: int,
        lock_duration: int,
        last_reward_block: int,
    ) -> StakePools:
        pool = StakePools(
            id=pool_id,
            reward_rate_per_block=reward_rate_per_block,
            last_reward_block=last_reward_block,
            acc_reward_per_share=0,
            total_staked=0,
            total_reward_accrued=0,
            lock_duration=lock_duration,
        )
        self.session.add(pool)
        record_event(
            self.session,
            ctx,
            EventType.POOL_ADDED,
            f"pool:{pool_id}",
            pool_id=pool_id,
            reward_rate_per_block=reward_rate_per_block,
            lock_duration=lock_duration,
        )
        logger.info(
            "Pool added",
            pool_id=pool_id,
            reward_rate_per_block=str(reward_rate_per_block),
            lock_duration=lock_duration,
        )
        return pool

    @non_reentrant
    def set_reward_rate(self, caller: str, pool_id: int, reward_rate_per_block: int) -> None:
        """Change a pool's rate. Blocks up to now accrue at the old rate."""
        ctx: BlockContext = self.clock.begin_transaction()
        self.gate.require_controller(caller)
        if reward_rate_per_block < 0:
            raise InvalidParameterError("Reward rate must be non-negative")
        self._serialize_writes()
        pool = self._require_pool(pool_id, lock=True)

        with self.session.begin_nested():
            self._update_pool(pool, ctx.number)
            previous: int = pool.reward_rate_per_block
            pool.reward_rate_per_block = reward_rate_per_block
            record_event(
                self.session,
                ctx,
                EventType.POOL_RATE_SET,
                f"pool:{pool_id}",
                pool_id=pool_id,
                previous=previous,
                reward_rate_per_block=reward_rate_per_block,
            )
            self.session.flush()

    # -- Depositor calls ---------------------------------------------------

    def _get_or_create_stake(self, pool_id: int, account: str) -> UserStakes:
        stake = self._get_stake(pool_id, account, lock=True)
        if stake is None:
            stake = UserStakes(
                pool_id=pool_id,
                account=account,
                amount=0,
                reward_debt=0,
                pending_withdrawn=0,
                last_action_time=0,
            )
            self.session.add(stake)
        return stake

    @staticmethod
    def _harvest(pool: StakePools, stake: UserStakes) -> int:
        """Reward owed at the pool's current accumulator; counted as withdrawn."""
        if stake.amount == 0:
            return 0
        reward: int = _math.pending_reward(stake.amount, pool.acc_reward_per_share, stake.reward_debt)
        stake.pending_withdrawn += reward
        return reward

    def _pay_reward(self, account: str, amount: int) -> None:
        asset: str = self._require_asset()
        reserve: int = self.reward_reserve()
        if reserve < amount:
            raise TransferFailed(f"Reward reserve {reserve} cannot cover payout of {amount}")
        call_transfer(self.assets.transfer, asset, self.address, account, amount)

    def _require_asset(self) -> str:
        asset = self.reward_asset()
        if not asset:
            raise InvalidAsset("Reward asset is not set")
        return asset

    @non_reentrant
    def deposit(self, caller: str, pool_id: int, amount: int) -> int:
        """Stake ``amount`` (zero only harvests). Pays the pending reward; returns it."""
        ctx: BlockContext = self.clock.begin_transaction()
        self._serialize_writes()
        pool = self._require_pool(pool_id, lock=True)
        if amount < 0:
            raise InvalidAmount("Deposit amount must be non-negative")
        asset: str = self._require_asset()

        with self.session.begin_nested():
            self._update_pool(pool, ctx.number)
            stake = self._get_or_create_stake(pool_id, caller)
            reward: int = self._harvest(pool, stake)

            stake.amount += amount
            pool.total_staked += amount
            stake.reward_debt = _math.accumulated(stake.amount, pool.acc_reward_per_share)
            stake.last_action_time = ctx.timestamp
            record_event(
                self.session,
                ctx,
                EventType.DEPOSITED,
                caller,
                pool_id=pool_id,
                amount=amount,
                reward=reward,
            )
            self.session.flush()

            if amount:
                call_transfer(self.assets.transfer_from, asset, self.address, caller, self.address, amount)
            if reward:
                self._pay_reward(caller, reward)

        logger.info(
            "Deposit",
            pool_id=pool_id,
            account=caller,
            amount=str(amount),
            reward=str(reward),
            acc_reward_per_share=str(pool.acc_reward_per_share),
        )
        return reward

    @non_reentrant
    def claim(self, caller: str, pool_id: int) -> int:
        """Pay the pending reward without changing stake. Returns the amount paid."""
        ctx: BlockContext = self.clock.begin_transaction()
        self._serialize_writes()
        pool = self._require_pool(pool_id, lock=True)

        with self.session.begin_nested():
            self._update_pool(pool, ctx.number)
            stake = self._get_or_create_stake(pool_id, caller)
            reward: int = self._harvest(pool, stake)
            stake.reward_debt = _math.accumulated(stake.amount, pool.acc_reward_per_share)
            stake.last_action_time = ctx.timestamp
            record_event(self.session, ctx, EventType.CLAIMED, caller, pool_id=pool_id, reward=reward)
            self.session.flush()

            if reward:
                self._pay_reward(caller, reward)

        logger.info("Claim", pool_id=pool_id, account=caller, reward=str(reward))
        return reward

    @non_reentrant
    def withdraw(self, caller: str, pool_id: int, amount: int) -> int:
        """Unstake ``amount`` once the pool's lock has passed. Returns the reward paid."""
        ctx: BlockContext = self.clock.begin_transaction()
        self._serialize_writes()
        pool = self._require_pool(pool_id, lock=True)
        if amount <= 0:
            raise InvalidAmount("Withdraw amount must be positive")
        asset: str = self._require_asset()

        stake = self._get_stake(pool_id, caller, lock=True)
        staked: int = stake.amount if stake else 0
        if stake is None or amount > staked:
            raise InsufficientStake(f"{caller} has {staked} staked in pool {pool_id}, asked {amount}")
        unlock_time: int = stake.last_action_time + pool.lock_duration
        if ctx.timestamp < unlock_time:
            raise StakeLocked(f"Stake in pool {pool_id} is locked until {unlock_time}")

        with self.session.begin_nested():
            self._update_pool(pool, ctx.number)
            reward: int = self._harvest(pool, stake)

            stake.amount -= amount
            pool.total_staked -= amount
            stake.reward_debt = _math.accumulated(stake.amount, pool.acc_reward_per_share)
            stake.last_action_time = ctx.timestamp
            record_event(
                self.session,
                ctx,
                EventType.WITHDRAWN,
                caller,
                pool_id=pool_id,
                amount=amount,
                reward=reward,
            )
            self.session.flush()

            call_transfer(self.assets.transfer, asset, self.address, caller, amount)
            if reward:
                self._pay_reward(caller, reward)

        logger.info("Withdraw", pool_id=pool_id, account=caller, amount=str(amount), reward=str(reward))
        return reward
