"""Fungible asset ledger: the interface both engines consume, plus a SQL-backed implementation.

The engines treat the asset ledger as an external capability. Any failure
reported by it, whether an exception or a ``False`` return, aborts the whole
ledger call.
"""

from collections.abc import Callable
from typing import Protocol

import structlog
from sqlalchemy.orm import Session

from db.models import AssetAllowances, AssetBalances
from tokenledger.services.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAmount,
    InvalidAsset,
    LedgerError,
    TransferFailed,
)

logger = structlog.get_logger(__name__)

MAX_UINT256: int = 2**256 - 1


class AssetLedger(Protocol):
    def transfer(self, asset: str, sender: str, to: str, amount: int) -> bool | None: ...

    def transfer_from(
        self, asset: str, spender: str, owner: str, to: str, amount: int
    ) -> bool | None: ...

    def approve(self, asset: str, owner: str, spender: str, amount: int) -> bool | None: ...

    def balance_of(self, asset: str, account: str) -> int: ...


def call_transfer(fn: Callable[..., bool | None], *args: object) -> None:
    """Invoke an asset-ledger movement, turning any rejection into TransferFailed."""
    try:
        ok = fn(*args)
    except LedgerError:
        raise
    except Exception as e:
        raise TransferFailed(f"Asset ledger error: {e}") from e
    if ok is False:
        raise TransferFailed(f"Asset ledger rejected {getattr(fn, '__name__', 'transfer')}{args}")


class SqlAssetLedger:
    """Balances and allowances stored in the same database as the ledgers.

    Runs on the caller's session, so a movement made inside a ledger call is
    rolled back together with it.
    """

    def __init__(self, session: Session) -> None:
        self.session: Session = session

    def _balance_row(
        self, asset: str, account: str, create: bool = False, lock: bool = False
    ) -> AssetBalances | None:
        row: AssetBalances | None = self.session.get(
            AssetBalances, (asset, account), with_for_update=lock, populate_existing=lock
        )
        if row is None and create:
            row = AssetBalances(asset=asset, account=account, balance=0)
            self.session.add(row)
            self.session.flush()
        return row

    def _allowance_row(
        self, asset: str, owner: str, spender: str, create: bool = False, lock: bool = False
    ) -> AssetAllowances | None:
        row: AssetAllowances | None = self.session.get(
            AssetAllowances, (asset, owner, spender), with_for_update=lock, populate_existing=lock
        )
        if row is None and create:
            row = AssetAllowances(asset=asset, owner=owner, spender=spender, amount=0)
            self.session.add(row)
            self.session.flush()
        return row

    @staticmethod
    def _check(asset: str, amount: int) -> None:
        if not asset:
            raise InvalidAsset("Asset id must be non-empty")
        if amount < 0:
            raise InvalidAmount(f"Amount must be non-negative, got {amount}")

    def balance_of(self, asset: str, account: str) -> int:
        row = self._balance_row(asset, account)
        return row.balance if row else 0

    def allowance(self, asset: str, owner: str, spender: str) -> int:
        row = self._allowance_row(asset, owner, spender)
        return row.amount if row else 0

    def mint(self, asset: str, to: str, amount: int) -> None:
        """Credit new supply. Development and test funding only."""
        self._check(asset, amount)
        row = self._balance_row(asset, to, create=True, lock=True)
        assert row is not None
        row.balance += amount
        self.session.flush()

    def approve(self, asset: str, owner: str, spender: str, amount: int) -> bool:
        self._check(asset, amount)
        row = self._allowance_row(asset, owner, spender, create=True)
        assert row is not None
        row.amount = amount
        self.session.flush()
        return True

    def transfer(self, asset: str, sender: str, to: str, amount: int) -> bool:
        self._move(asset, sender, to, amount)
        return True

    def transfer_from(self, asset: str, spender: str, owner: str, to: str, amount: int) -> bool:
        self._check(asset, amount)
        allowance = self._allowance_row(asset, owner, spender, lock=True)
        current: int = allowance.amount if allowance else 0
        if current < amount:
            raise InsufficientAllowance(
                f"{spender} may move {current} of {owner}'s {asset}, needs {amount}"
            )
        self._move(asset, owner, to, amount)
        if allowance is not None and current != MAX_UINT256:
            allowance.amount = current - amount
            self.session.flush()
        return True

    def _move(self, asset: str, sender: str, to: str, amount: int) -> None:
        self._check(asset, amount)
        if amount == 0:
            return
        # Fixed lock order keeps opposing transfers from deadlocking.
        rows = {acct: self._balance_row(asset, acct, lock=True) for acct in sorted({sender, to})}
        src = rows[sender]
        available: int = src.balance if src else 0
        if src is None or available < amount:
            raise InsufficientBalance(f"{sender} holds {available} {asset}, needs {amount}")
        dst = rows[to] or self._balance_row(asset, to, create=True)
        assert dst is not None
        src.balance -= amount
        dst.balance += amount
        self.session.flush()
        logger.debug("Asset moved", asset=asset, sender=sender, to=to, amount=str(amount))
