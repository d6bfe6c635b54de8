"""Tests for all API routes via FastAPI TestClient."""

from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import TypeAdapter
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.dependencies import get_clock
from app.main import register_error_handlers
from app.routes import events, health, staking, vesting
from app.routes.health import get_db_info
from config import get_settings
from conftest import CONTROLLER, ETHER, STAKING, T0, TOKEN, VESTING
from db.connection import enable_sqlite_savepoints, get_db
from db.models import Base
from tokenledger.services._types import DbInfoDict
from tokenledger.services.asset_ledger import MAX_UINT256, SqlAssetLedger
from tokenledger.services.clock import ManualClock
from tokenledger.services.ledgers import reward_ledger, vesting_ledger


def _create_test_app() -> FastAPI:
    """Minimal app without lifespan (no migrations)."""
    test_app: FastAPI = FastAPI()
    register_error_handlers(test_app)
    test_app.include_router(health.router)
    test_app.include_router(vesting.router)
    test_app.include_router(staking.router)
    test_app.include_router(events.router)
    return test_app


_test_app: FastAPI = _create_test_app()


@pytest.fixture()
def _route_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with check_same_thread=False for TestClient."""
    eng: Engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(eng, pragmas=False)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def _route_session(_route_engine: Engine) -> Generator[Session, None, None]:
    factory: sessionmaker[Session] = sessionmaker(
        bind=_route_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    sess: Session = factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture()
def route_clock() -> ManualClock:
    return ManualClock(block_number=1, timestamp=T0, automine=True)


@pytest.fixture()
def client(_route_session: Session, route_clock: ManualClock) -> Generator[TestClient, None, None]:
    """TestClient with DB and clock dependencies overridden."""

    def _override_db() -> Generator[Session, None, None]:
        yield _route_session

    _test_app.dependency_overrides[get_db] = _override_db
    _test_app.dependency_overrides[get_clock] = lambda: route_clock
    with TestClient(_test_app) as c:
        yield c
    _test_app.dependency_overrides.clear()


@pytest.fixture()
def seeded(_route_session: Session, route_clock: ManualClock) -> Session:
    """One lock for alice (50/100 every 50s, cliff T0+20) and 100 ETHER staked by user1."""
    assets = SqlAssetLedger(_route_session)
    assets.mint(TOKEN, CONTROLLER, 1_000)
    assets.approve(TOKEN, CONTROLLER, VESTING, MAX_UINT256)
    assets.mint(TOKEN, "user1", 1_000 * ETHER)
    assets.approve(TOKEN, "user1", STAKING, MAX_UINT256)
    assets.mint(TOKEN, STAKING, 1_000 * ETHER)

    vesting_ledger(_route_session, clock=route_clock).create_lock(
        CONTROLLER, TOKEN, "alice", 50, 100, 100, T0 + 20
    )
    rewards = reward_ledger(_route_session, clock=route_clock)
    rewards.set_reward_asset(CONTROLLER, TOKEN)
    rewards.start_staking(CONTROLLER, route_clock.block_number())
    rewards.deposit("user1", 0, 100 * ETHER)
    return _route_session


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}

    def test_db_info_reports_tables(self, _route_engine: Engine) -> None:
        info = get_db_info(_route_engine)
        assert info["schema_initialized"] is True
        assert info["tables_missing"] == []
        assert "ledger_events" in info["tables_present"]

    def test_db_info_validates_as_response_model(self, _route_engine: Engine) -> None:
        info = TypeAdapter(DbInfoDict).validate_python(get_db_info(_route_engine))
        assert info["backend_type"] in ("sqlite", "postgres")

    def test_db_info_on_empty_database(self) -> None:
        empty = create_engine("sqlite:///:memory:")
        info = get_db_info(empty)
        assert info["schema_initialized"] is False
        assert "lock_schedules" in info["tables_missing"]
        empty.dispose()


class TestLockRoutes:
    def test_lock_count(self, client: TestClient, seeded: Session) -> None:
        r = client.get("/api/locks/count")
        assert r.status_code == 200
        assert r.json() == {"count": 1}

    def test_get_lock(self, client: TestClient, seeded: Session) -> None:
        r = client.get("/api/locks/0")
        assert r.status_code == 200
        data = r.json()
        assert data["beneficiary"] == "alice"
        assert data["totalAmount"] == "100"
        assert data["released"] == "0"
        assert data["cliffTime"] == T0 + 20
        assert data["status"] == "pending"
        assert data["nextUnlockTime"] == T0 + 20

    def test_unknown_lock_is_404(self, client: TestClient, seeded: Session) -> None:
        r = client.get("/api/locks/9")
        assert r.status_code == 404
        assert r.json()["type"] == "LockNotFound"
        assert client.get("/api/locks/9/available").status_code == 404

    def test_available(self, client: TestClient, seeded: Session, route_clock: ManualClock) -> None:
        assert client.get("/api/locks/0/available").json()["available"] == "0"
        route_clock.set_time(T0 + 20)
        assert client.get("/api/locks/0/available").json() == {"lockId": 0, "available": "50"}

    def test_beneficiary_locks(self, client: TestClient, seeded: Session) -> None:
        r = client.get("/api/beneficiaries/alice/locks")
        assert r.status_code == 200
        assert [lock["id"] for lock in r.json()] == [0]
        assert client.get("/api/beneficiaries/bob/locks").json() == []

    def test_release(self, client: TestClient, seeded: Session, route_clock: ManualClock) -> None:
        route_clock.set_time(T0 + 20)
        r = client.post("/api/locks/0/release", headers={"X-Caller": "alice"})
        assert r.status_code == 200
        assert r.json() == {"lockId": 0, "beneficiary": "alice", "released": "50"}
        assert SqlAssetLedger(seeded).balance_of(TOKEN, "alice") == 50

    def test_release_by_other_is_403(
        self, client: TestClient, seeded: Session, route_clock: ManualClock
    ) -> None:
        route_clock.set_time(T0 + 20)
        r = client.post("/api/locks/0/release", headers={"X-Caller": "bob"})
        assert r.status_code == 403
        assert r.json()["type"] == "Unauthorized"

    def test_release_requires_caller(self, client: TestClient, seeded: Session) -> None:
        assert client.post("/api/locks/0/release").status_code == 400

    def test_release_requires_api_key_when_configured(
        self, client: TestClient, seeded: Session, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TOKENLEDGER_API_KEY", "secret")
        get_settings.cache_clear()
        try:
            r = client.post("/api/locks/0/release", headers={"X-Caller": "alice"})
            assert r.status_code == 401
            assert client.post("/api/locks/0/release").status_code == 401
            assert client.post("/api/pools/0/claim").status_code == 401
            r = client.post(
                "/api/locks/0/release", headers={"X-Caller": "alice", "X-API-Key": "secret"}
            )
            assert r.status_code == 200
        finally:
            monkeypatch.delenv("TOKENLEDGER_API_KEY")
            get_settings.cache_clear()


class TestPoolRoutes:
    def test_get_pool(self, client: TestClient, seeded: Session) -> None:
        r = client.get("/api/pools/0")
        assert r.status_code == 200
        data = r.json()
        assert data["poolId"] == 0
        assert data["rewardRatePerBlock"] == str(ETHER)
        assert data["totalStaked"] == str(100 * ETHER)
        assert data["accRewardPerShare"] == "0"

    def test_unknown_pool_is_404(self, client: TestClient, seeded: Session) -> None:
        r = client.get("/api/pools/3")
        assert r.status_code == 404
        assert r.json()["type"] == "PoolNotFound"

    def test_user_stake(self, client: TestClient, seeded: Session) -> None:
        data = client.get("/api/pools/0/users/user1").json()
        assert data["amount"] == str(100 * ETHER)
        assert data["rewardDebt"] == "0"
        assert data["pendingWithdrawn"] == "0"

    def test_pending_and_deposited(
        self, client: TestClient, seeded: Session, route_clock: ManualClock
    ) -> None:
        route_clock.mine(3)
        assert client.get("/api/pools/0/users/user1/pending").json()["pending"] == str(3 * ETHER)
        assert client.get("/api/accounts/user1/deposited").json() == {
            "account": "user1",
            "deposited": str(100 * ETHER),
        }

    def test_claim(self, client: TestClient, seeded: Session, route_clock: ManualClock) -> None:
        route_clock.mine(3)
        r = client.post("/api/pools/0/claim", headers={"X-Caller": "user1"})
        assert r.status_code == 200
        assert r.json()["reward"] == str(4 * ETHER)

    def test_claim_unknown_pool(self, client: TestClient, seeded: Session) -> None:
        r = client.post("/api/pools/2/claim", headers={"X-Caller": "user1"})
        assert r.status_code == 404


class TestEventRoutes:
    def test_list_events(self, client: TestClient, seeded: Session) -> None:
        r = client.get("/api/events")
        assert r.status_code == 200
        types = [e["eventType"] for e in r.json()]
        assert types == ["deposited", "staking_started", "pool_added", "reward_asset_set", "lock_created"]

    def test_filter_by_type(self, client: TestClient, seeded: Session) -> None:
        r = client.get("/api/events", params={"event_type": "deposited"})
        data = r.json()
        assert len(data) == 1
        assert data[0]["subject"] == "user1"
        assert data[0]["payload"]["amount"] == str(100 * ETHER)

    def test_rejects_unknown_type(self, client: TestClient) -> None:
        assert client.get("/api/events", params={"event_type": "nope"}).status_code == 422
