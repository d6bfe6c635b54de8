"""Tests for tokenledger.services._math."""

import pytest

from tokenledger.services._math import (
    SCALE,
    accrue,
    accumulated,
    mul_div,
    next_unlock_time,
    pending_reward,
    releasable_amount,
    vested_amount,
)


class TestVestedAmount:
    @pytest.mark.parametrize(
        ("now", "expected"),
        [
            (119, 0),
            (120, 25),
            (149, 25),
            (150, 50),
            (210, 100),
            (10_000, 100),
        ],
    )
    def test_step_schedule(self, now: int, expected: int) -> None:
        # 4 periods of 30 starting at 120
        assert vested_amount(100, 120, 30, 120, now) == expected

    def test_floors_per_period_amount(self) -> None:
        assert vested_amount(10, 30, 10, 0, 0) == 3
        assert vested_amount(10, 30, 10, 0, 1_000) == 9

    def test_releasable_matches_final_vested(self) -> None:
        assert releasable_amount(10, 30, 10) == 9
        assert releasable_amount(100, 120, 30) == 100
        assert releasable_amount(10, 30, 10) == vested_amount(10, 30, 10, 0, 1_000)


class TestNextUnlockTime:
    def test_before_cliff(self) -> None:
        assert next_unlock_time(100, 50, 200, 0) == 200

    def test_between_tranches(self) -> None:
        assert next_unlock_time(100, 50, 200, 200) == 250
        assert next_unlock_time(100, 50, 200, 249) == 250

    def test_after_last_tranche(self) -> None:
        assert next_unlock_time(100, 50, 200, 250) is None


class TestAccumulator:
    def test_accrue_scales_by_stake(self) -> None:
        assert accrue(0, 6 * 10**18, 100 * 10**18) == 60_000_000_000

    def test_accrue_floors(self) -> None:
        assert accrue(5, 1, 3 * SCALE) == 5

    def test_pending_reward(self) -> None:
        acc = 70_000_000_000
        debt = accumulated(400 * 10**18, 60_000_000_000)
        assert debt == 24 * 10**18
        assert pending_reward(400 * 10**18, acc, debt) == 4 * 10**18

    def test_mul_div_rejects_zero_denominator(self) -> None:
        with pytest.raises(ZeroDivisionError):
            mul_div(1, 1, 0)
