"""Shared exception hierarchy for ledger services."""


class LedgerError(Exception):
    """Base exception for every ledger failure. Fatal to the call in progress."""


class Unauthorized(LedgerError):
    """Caller is not allowed to perform the operation."""


class ReentrantCall(LedgerError):
    """A guarded entry point was entered while another call was in progress."""


# ── Not found ─────────────────────────────────────────────────────────────────


class NotFoundError(LedgerError):
    """Base exception for unknown identifiers."""


class LockNotFound(NotFoundError):
    """No lock schedule with this id."""


class PoolNotFound(NotFoundError):
    """No stake pool with this id."""


# ── Invalid parameters ────────────────────────────────────────────────────────


class InvalidParameterError(LedgerError):
    """Base exception for rejected call parameters."""


class InvalidAsset(InvalidParameterError):
    """Asset identifier is empty or not configured."""


class InvalidBeneficiary(InvalidParameterError):
    """Beneficiary identifier is empty."""


class InvalidCliff(InvalidParameterError):
    """Cliff time is not in the future."""


class InvalidPeriodicity(InvalidParameterError):
    """Periodicity is zero."""


class InvalidDuration(InvalidParameterError):
    """Duration does not exceed periodicity."""


class DurationNotDivisible(InvalidParameterError):
    """Duration is not a whole number of periods."""


class InvalidAmount(InvalidParameterError):
    """Amount is zero or negative."""


class ParamLengthMismatch(LedgerError):
    """Batch call received sequences of different lengths."""


# ── One-time initialisation ───────────────────────────────────────────────────


class AlreadyInitializedError(LedgerError):
    """Base exception for one-time settings applied twice."""


class AlreadySet(AlreadyInitializedError):
    """Reward asset already set."""


class AlreadyStarted(AlreadyInitializedError):
    """Staking already started."""


# ── Staking state ─────────────────────────────────────────────────────────────


class StakingNotStarted(LedgerError):
    """Pool administration before start_staking."""


class StakeLocked(LedgerError):
    """Withdrawal attempted before the pool's lock duration has passed."""


class InsufficientStake(LedgerError):
    """Withdrawal larger than the staked amount."""


# ── Asset movements ───────────────────────────────────────────────────────────


class TransferFailed(LedgerError):
    """The asset ledger rejected a movement of funds."""


class InsufficientBalance(TransferFailed):
    """Sender balance is below the transfer amount."""


class InsufficientAllowance(TransferFailed):
    """Spender allowance is below the transfer amount."""
