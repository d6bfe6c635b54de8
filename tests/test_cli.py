"""Tests for the tokenledger CLI against a temporary SQLite file."""

from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from config import get_settings
from conftest import CONTROLLER, T0, TOKEN, VESTING
from db.connection import get_session, reset_engine
from tokenledger.cli import app
from tokenledger.services.asset_ledger import MAX_UINT256, SqlAssetLedger
from tokenledger.services.clock import ManualClock
from tokenledger.services.ledgers import vesting_ledger

runner = CliRunner()


@pytest.fixture()
def cli_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    db_path = tmp_path / "cli.db"
    monkeypatch.setenv("DB_SQLITE_PATH", str(db_path))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    get_settings.cache_clear()
    reset_engine()
    yield db_path
    reset_engine()
    get_settings.cache_clear()


@pytest.fixture()
def with_lock(cli_db: Path) -> Path:
    assert runner.invoke(app, ["init-db"]).exit_code == 0
    with get_session() as session:
        assets = SqlAssetLedger(session)
        assets.mint(TOKEN, CONTROLLER, 1_000)
        assets.approve(TOKEN, CONTROLLER, VESTING, MAX_UINT256)
        vesting_ledger(session, clock=ManualClock(timestamp=T0)).create_lock(
            CONTROLLER, TOKEN, "alice", 50, 100, 100, T0 + 20
        )
    return cli_db


def test_init_db(cli_db: Path) -> None:
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    assert "initialized" in result.output
    assert cli_db.exists()


def test_lock_info(with_lock: Path) -> None:
    result = runner.invoke(app, ["lock-info", "0", "--at", str(T0 + 20)])
    assert result.exit_code == 0
    assert "alice" in result.output
    assert "vesting" in result.output


def test_lock_info_unknown(with_lock: Path) -> None:
    result = runner.invoke(app, ["lock-info", "5"])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_locks_and_events(with_lock: Path) -> None:
    assert runner.invoke(app, ["locks", "--at", str(T0 + 20)]).exit_code == 0
    result = runner.invoke(app, ["events", "--type", "lock_created"])
    assert result.exit_code == 0
    assert "lock_created" in result.output


def test_events_rejects_unknown_type(with_lock: Path) -> None:
    assert runner.invoke(app, ["events", "--type", "nope"]).exit_code != 0


def test_pool_info_before_staking(with_lock: Path) -> None:
    result = runner.invoke(app, ["pool-info", "0"])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_pending_without_stake(with_lock: Path) -> None:
    result = runner.invoke(app, ["pending", "user1"])
    assert result.exit_code == 0
    assert "Pending:   0" in result.output
