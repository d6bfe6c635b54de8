"""Tests for tokenledger.services.clock."""

import pytest

from tokenledger.services.clock import BlockContext, ManualClock, SystemClock


class TestManualClock:
    def test_without_automine_transactions_share_the_block(self) -> None:
        clock = ManualClock(block_number=5, timestamp=100)
        assert clock.begin_transaction() == BlockContext(5, 100)
        assert clock.begin_transaction() == BlockContext(5, 100)

    def test_automine_mines_per_transaction(self) -> None:
        clock = ManualClock(block_number=5, timestamp=100, automine=True)
        assert clock.begin_transaction() == BlockContext(6, 101)
        assert clock.begin_transaction() == BlockContext(7, 102)
        assert clock.block_number() == 7

    def test_increase_time_lands_on_next_block(self) -> None:
        clock = ManualClock(timestamp=100)
        clock.increase_time(50)
        assert clock.timestamp() == 100
        assert clock.mine(2) == BlockContext(2, 152)

    def test_advance_time_and_block(self) -> None:
        clock = ManualClock(timestamp=100, block_time=12)
        assert clock.advance_time_and_block(3600) == BlockContext(1, 3712)

    def test_time_never_moves_back(self) -> None:
        clock = ManualClock(timestamp=100)
        clock.set_time(150)
        with pytest.raises(ValueError):
            clock.set_time(149)
        with pytest.raises(ValueError):
            clock.advance_time(-1)
        with pytest.raises(ValueError):
            clock.mine(0)


class TestSystemClock:
    def test_block_number_from_genesis(self) -> None:
        clock = SystemClock(genesis_timestamp=1_000, block_time=12, time_source=lambda: 1_250.7)
        assert clock.timestamp() == 1_250
        assert clock.block_number() == 20
        assert clock.begin_transaction() == BlockContext(20, 1_250)

    def test_before_genesis_is_block_zero(self) -> None:
        clock = SystemClock(genesis_timestamp=1_000, time_source=lambda: 10.0)
        assert clock.block_number() == 0

    def test_rejects_non_positive_block_time(self) -> None:
        with pytest.raises(ValueError):
            SystemClock(block_time=0)
