"""Integer arithmetic shared by the vesting and reward engines.

All division floors. Every rounding step leaves the remainder with the
ledger, never with the account.
"""

SCALE: int = 10**12


def mul_div(a: int, b: int, denominator: int) -> int:
    """``a * b // denominator`` without an intermediate float."""
    if denominator <= 0:
        raise ZeroDivisionError("mul_div denominator must be positive")
    return a * b // denominator


def total_periods(duration: int, periodicity: int) -> int:
    return duration // periodicity


def releasable_amount(total_amount: int, duration: int, periodicity: int) -> int:
    """Everything a schedule ever unlocks: whole tranches only, the remainder stays."""
    periods = total_periods(duration, periodicity)
    return periods * (total_amount // periods)


def vested_amount(
    total_amount: int,
    duration: int,
    periodicity: int,
    cliff_time: int,
    now: int,
) -> int:
    """Amount unlocked at ``now``. The first tranche unlocks at the cliff itself."""
    if now < cliff_time:
        return 0
    periods = total_periods(duration, periodicity)
    elapsed = now - cliff_time
    periods_elapsed = min(elapsed // periodicity + 1, periods)
    return periods_elapsed * (total_amount // periods)


def next_unlock_time(duration: int, periodicity: int, cliff_time: int, now: int) -> int | None:
    """Timestamp of the next tranche after ``now``, or None once all have unlocked."""
    if now < cliff_time:
        return cliff_time
    periods = total_periods(duration, periodicity)
    unlocked = (now - cliff_time) // periodicity + 1
    if unlocked >= periods:
        return None
    return cliff_time + unlocked * periodicity


def accrue(acc_reward_per_share: int, reward: int, total_staked: int) -> int:
    """Accumulator after crediting ``reward`` across ``total_staked`` shares."""
    return acc_reward_per_share + mul_div(reward, SCALE, total_staked)


def accumulated(amount: int, acc_reward_per_share: int) -> int:
    """Reward an ``amount`` of stake has earned since the accumulator was zero."""
    return mul_div(amount, acc_reward_per_share, SCALE)


def pending_reward(amount: int, acc_reward_per_share: int, reward_debt: int) -> int:
    return accumulated(amount, acc_reward_per_share) - reward_debt
