"""Vesting ledger: cliff-plus-periodic linear unlock of locked balances."""

from collections.abc import Sequence

import structlog
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from db.enums import EventType, LockStatus
from db.models import LockSchedules
from tokenledger.services import _math
from tokenledger.services._helpers import is_account
from tokenledger.services._types import LockInfoDict
from tokenledger.services.asset_ledger import AssetLedger, call_transfer
from tokenledger.services.clock import BlockContext, Clock
from tokenledger.services.errors import (
    DurationNotDivisible,
    InvalidAmount,
    InvalidAsset,
    InvalidBeneficiary,
    InvalidCliff,
    InvalidDuration,
    InvalidPeriodicity,
    LedgerError,
    LockNotFound,
    ParamLengthMismatch,
    Unauthorized,
)
from tokenledger.services.events import record_event
from tokenledger.services.guards import AuthorizationGate, non_reentrant
from tokenledger.services.schemas.results import BatchReleaseResult, ReleaseResult

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def _empty_lock_info(lock_id: int) -> LockInfoDict:
    return LockInfoDict(
        id=lock_id,
        asset="",
        beneficiary="",
        duration=0,
        periodicity=0,
        total_amount=0,
        cliff_time=0,
        released=0,
    )


def lock_to_dict(lock: LockSchedules) -> LockInfoDict:
    return LockInfoDict(
        id=lock.id,
        asset=lock.asset,
        beneficiary=lock.beneficiary,
        duration=lock.duration,
        periodicity=lock.periodicity,
        total_amount=lock.total_amount,
        cliff_time=lock.cliff_time,
        released=lock.released,
    )


class VestingLedger:
    """
    Owns lock schedules and releases their vested amounts.

    A schedule unlocks ``total_amount // (duration // periodicity)`` per
    period, the first tranche exactly at the cliff. Vested amounts are never
    stored: they are computed from the schedule and the clock on every read.

    Every state-changing call runs inside its own SAVEPOINT. ``released`` is
    written before the outbound transfer, and a failed transfer rolls both
    back together.
    """

    def __init__(
        self,
        session: Session,
        asset_ledger: AssetLedger,
        gate: AuthorizationGate,
        clock: Clock,
        address: str,
    ) -> None:
        self.session: Session = session
        self.assets: AssetLedger = asset_ledger
        self.gate: AuthorizationGate = gate
        self.clock: Clock = clock
        self.address: str = address
        self._entered: bool = False

    # -- Queries -----------------------------------------------------------

    def lock_count(self) -> int:
        return self.session.scalar(select(func.count()).select_from(LockSchedules)) or 0

    def _require_lock(self, lock_id: int, for_update: bool = False) -> LockSchedules:
        lock: LockSchedules | None = self.session.get(
            LockSchedules, lock_id, with_for_update=for_update, populate_existing=for_update
        )
        if lock is None:
            raise LockNotFound(f"Lock {lock_id} does not exist")
        return lock

    def lock_info(self, lock_id: int) -> LockInfoDict:
        """Schedule fields, or zero values for an id that was never created."""
        lock: LockSchedules | None = self.session.get(LockSchedules, lock_id)
        return lock_to_dict(lock) if lock else _empty_lock_info(lock_id)

    def locks_of(self, beneficiary: str) -> list[LockInfoDict]:
        return [lock_to_dict(lock) for lock in self._locks_of(beneficiary)]

    def _locks_of(self, beneficiary: str, for_update: bool = False) -> list[LockSchedules]:
        stmt: Select[tuple[LockSchedules]] = (
            select(LockSchedules)
            .where(LockSchedules.beneficiary == beneficiary)
            .order_by(LockSchedules.id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return list(self.session.scalars(stmt).all())

    def beneficiaries(self) -> list[str]:
        stmt = select(LockSchedules.beneficiary).distinct().order_by(LockSchedules.beneficiary)
        return list(self.session.scalars(stmt).all())

    @staticmethod
    def _available(lock: LockSchedules, now: int) -> int:
        vested: int = _math.vested_amount(
            lock.total_amount, lock.duration, lock.periodicity, lock.cliff_time, now
        )
        return vested - lock.released

    def get_available_amount(self, lock_id: int) -> int:
        """Vested but not yet released, as of the latest clock reading."""
        return self._available(self._require_lock(lock_id), self.clock.timestamp())

    def lock_status(self, lock_id: int) -> LockStatus:
        """
        Pending before the cliff, then vesting until the last tranche is released.

        A total that does not divide into whole tranches leaves its remainder
        in custody; such a lock is fully released once every tranche is paid.
        """
        lock = self._require_lock(lock_id)
        releasable: int = _math.releasable_amount(lock.total_amount, lock.duration, lock.periodicity)
        if lock.released >= releasable:
            return LockStatus.FULLY_RELEASED
        if self.clock.timestamp() < lock.cliff_time:
            return LockStatus.PENDING
        return LockStatus.VESTING

    def next_unlock_time(self, lock_id: int) -> int | None:
        lock = self._require_lock(lock_id)
        return _math.next_unlock_time(
            lock.duration, lock.periodicity, lock.cliff_time, self.clock.timestamp()
        )

    # -- Schedule creation -------------------------------------------------

    @non_reentrant
    def create_lock(
        self,
        caller: str,
        asset: str,
        beneficiary: str,
        periodicity: int,
        duration: int,
        amount: int,
        cliff_time: int,
    ) -> int:
        """Lock ``amount`` of ``asset`` pulled from the controller. Returns the new lock id."""
        ctx: BlockContext = self.clock.begin_transaction()
        self.gate.require_controller(caller)

        with self.session.begin_nested():
            lock_id = self._create_lock(
                caller, ctx, asset, beneficiary, periodicity, duration, amount, cliff_time
            )
        return lock_id

    @non_reentrant
    def batch_create_lock(
        self,
        caller: str,
        assets: Sequence[str],
        beneficiaries: Sequence[str],
        periodicities: Sequence[int],
        durations: Sequence[int],
        amounts: Sequence[int],
        cliff_times: Sequence[int],
    ) -> list[int]:
        """Create one lock per index. Any invalid element reverts the whole batch."""
        ctx: BlockContext = self.clock.begin_transaction()
        self.gate.require_controller(caller)

        columns = (assets, beneficiaries, periodicities, durations, amounts, cliff_times)
        lengths: set[int] = {len(c) for c in columns}
        if len(lengths) != 1:
            raise ParamLengthMismatch(
                f"Batch parameters have different lengths: {[len(c) for c in columns]}"
            )

        with self.session.begin_nested():
            lock_ids: list[int] = [
                self._create_lock(caller, ctx, *row) for row in zip(*columns)
            ]

        logger.info("Batch lock creation complete", count=len(lock_ids))
        return lock_ids

    def _validate_lock(
        self,
        ctx: BlockContext,
        asset: str,
        beneficiary: str,
        periodicity: int,
        duration: int,
        amount: int,
        cliff_time: int,
    ) -> None:
        if not is_account(asset):
            raise InvalidAsset("Asset id must be non-empty")
        if cliff_time <= ctx.timestamp:
            raise InvalidCliff(f"Cliff {cliff_time} must be after {ctx.timestamp}")
        if periodicity <= 0:
            raise InvalidPeriodicity("Periodicity must be positive")
        if duration <= periodicity:
            raise InvalidDuration(f"Duration {duration} must exceed periodicity {periodicity}")
        if duration % periodicity != 0:
            raise DurationNotDivisible(
                f"Duration {duration} is not a multiple of periodicity {periodicity}"
            )
        if amount <= 0:
            raise InvalidAmount("Lock amount must be positive")
        if not is_account(beneficiary):
            raise InvalidBeneficiary("Beneficiary must be non-empty")

    def _create_lock(
        self,
        caller: str,
        ctx: BlockContext,
        asset: str,
        beneficiary: str,
        periodicity: int,
        duration: int,
        amount: int,
        cliff_time: int,
    ) -> int:
        self._validate_lock(ctx, asset, beneficiary, periodicity, duration, amount, cliff_time)

        call_transfer(self.assets.transfer_from, asset, self.address, caller, self.address, amount)

        lock_id: int = self.lock_count()
        lock = LockSchedules(
            id=lock_id,
            asset=asset,
            beneficiary=beneficiary,
            duration=duration,
            periodicity=periodicity,
            total_amount=amount,
            cliff_time=cliff_time,
            released=0,
            created_at=ctx.timestamp,
            created_block=ctx.number,
        )
        self.session.add(lock)
        record_event(
            self.session,
            ctx,
            EventType.LOCK_CREATED,
            beneficiary,
            lock_id=lock_id,
            asset=asset,
            amount=amount,
            cliff_time=cliff_time,
            periodicity=periodicity,
            duration=duration,
        )
        self.session.flush()

        logger.info(
            "Lock created",
            lock_id=lock_id,
            asset=asset,
            beneficiary=beneficiary,
            amount=str(amount),
            cliff_time=cliff_time,
        )
        return lock_id

    # -- Releases ----------------------------------------------------------

    @non_reentrant
    def release_all_available(self, caller: str, lock_id: int) -> int:
        """Release everything vested on one lock to its beneficiary. Returns the amount."""
        ctx: BlockContext = self.clock.begin_transaction()
        lock = self._require_lock(lock_id, for_update=True)
        if caller != lock.beneficiary:
            raise Unauthorized(f"{caller!r} is not the beneficiary of lock {lock_id}")

        with self.session.begin_nested():
            amount: int = self._release_lock(lock, ctx)
            if amount:
                call_transfer(self.assets.transfer, lock.asset, self.address, lock.beneficiary, amount)
        return amount

    @non_reentrant
    def release_to_beneficiary(self, caller: str, beneficiary: str) -> ReleaseResult:
        """Release every schedule owned by ``beneficiary``; one transfer per asset."""
        ctx: BlockContext = self.clock.begin_transaction()
        self.gate.require_controller(caller)

        with self.session.begin_nested():
            result = self._release_beneficiary(beneficiary, ctx)
        return result

    @non_reentrant
    def batch_release_to_beneficiaries(
        self, caller: str, beneficiaries: Sequence[str]
    ) -> BatchReleaseResult:
        """
        Release for each beneficiary in order.

        Each beneficiary commits or reverts on its own: a failure is recorded
        in the result and does not undo releases already made for earlier
        beneficiaries.
        """
        ctx: BlockContext = self.clock.begin_transaction()
        self.gate.require_controller(caller)

        results: list[ReleaseResult] = []
        failed: dict[str, str] = {}
        errors: list[str] = []

        for beneficiary in beneficiaries:
            try:
                with self.session.begin_nested():
                    results.append(self._release_beneficiary(beneficiary, ctx))
            except LedgerError as e:
                logger.error("Release failed", beneficiary=beneficiary, error=str(e))
                failed[beneficiary] = str(e)
                errors.append(f"{beneficiary}: {e}")

        logger.info(
            "Batch release complete",
            beneficiaries=len(beneficiaries),
            released=sum(1 for r in results if r.total_released),
            failed=len(failed),
        )
        return BatchReleaseResult(results=results, failed=failed, errors=errors)

    def _release_lock(self, lock: LockSchedules, ctx: BlockContext) -> int:
        """Account for a release on ``lock``. The caller performs the transfer."""
        amount: int = self._available(lock, ctx.timestamp)
        if amount <= 0:
            return 0

        lock.released += amount
        record_event(
            self.session,
            ctx,
            EventType.TOKENS_RELEASED,
            lock.beneficiary,
            lock_id=lock.id,
            asset=lock.asset,
            amount=amount,
            released=lock.released,
        )
        self.session.flush()

        logger.info("Tokens released", lock_id=lock.id, amount=str(amount), released=str(lock.released))
        return amount

    def _release_beneficiary(self, beneficiary: str, ctx: BlockContext) -> ReleaseResult:
        result = ReleaseResult(beneficiary=beneficiary)
        for lock in self._locks_of(beneficiary, for_update=True):
            amount = self._release_lock(lock, ctx)
            if amount:
                result.released_by_lock[lock.id] = amount
                result.released_by_asset[lock.asset] = (
                    result.released_by_asset.get(lock.asset, 0) + amount
                )

        for asset, total in result.released_by_asset.items():
            call_transfer(self.assets.transfer, asset, self.address, beneficiary, total)
        return result
