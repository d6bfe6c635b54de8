"""Token ledger settings, read from the environment and .env.

Storage:
  - DATABASE_URL set -> PostgreSQL
  - otherwise SQLite at DB_SQLITE_PATH (default data/tokenledger.db)

Ledger parameters use the LEDGER_ prefix, service options TOKENLEDGER_.
"""

import re
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT: Path = Path(__file__).resolve().parent
DEFAULT_SQLITE_PATH: str = "data/tokenledger.db"

for _env in (PROJECT_ROOT / ".env", PROJECT_ROOT.parent / ".env"):
    if _env.exists():
        load_dotenv(_env, override=False)


def _env_config(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=(str(PROJECT_ROOT / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


class DatabaseSettings(BaseSettings):
    model_config = _env_config("DB_")

    database_url: str = Field(
        default="",
        description="SQLAlchemy URL for PostgreSQL; empty selects SQLite",
        validation_alias="DATABASE_URL",
    )
    sqlite_path: str = Field(default=DEFAULT_SQLITE_PATH)
    pool_size: int = Field(default=5, ge=1)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=1800)

    @property
    def is_postgres(self) -> bool:
        return bool(self.database_url.strip())

    @property
    def sqlite_file(self) -> Path:
        """SQLite file, relative paths taken from the project root."""
        path = Path(self.sqlite_path.strip() or DEFAULT_SQLITE_PATH)
        return path if path.is_absolute() else (PROJECT_ROOT / path).resolve()

    @property
    def redacted_url(self) -> str:
        """Connection target with any password masked. Safe to log."""
        if not self.is_postgres:
            return self.sqlite_file.as_posix()
        return re.sub(r":([^:@/]+)@", ":***@", self.database_url.strip())

    @property
    def url(self) -> str:
        if self.is_postgres:
            return self.database_url.strip()
        self.sqlite_file.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{self.sqlite_file.as_posix()}"

    def describe(self) -> str:
        kind = "PostgreSQL" if self.is_postgres else "SQLite"
        return f"{kind} @ {self.redacted_url}"


class LedgerSettings(BaseSettings):
    """Accounts and defaults shared by the vesting and reward ledgers."""

    model_config = _env_config("LEDGER_")

    controller: str = Field(default="controller", min_length=1)
    vesting_address: str = Field(default="vesting-ledger", min_length=1)
    staking_address: str = Field(default="staking-ledger", min_length=1)
    reward_rate_per_block: int = Field(
        default=10**18, ge=0, description="Pool 0 reward, smallest asset unit per block"
    )
    lock_duration: int = Field(default=30 * 24 * 60 * 60, ge=0, description="Pool 0 stake lock, seconds")
    genesis_timestamp: int = Field(default=0, ge=0, description="Unix time of block 0")
    block_time: int = Field(default=12, gt=0, description="Seconds per block")

    @model_validator(mode="after")
    def _distinct_accounts(self) -> "LedgerSettings":
        accounts = (self.controller, self.vesting_address, self.staking_address)
        if len(set(accounts)) != len(accounts):
            raise ValueError("controller, vesting_address and staking_address must differ")
        return self


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TOKENLEDGER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    api_key: str | None = Field(default=None, description="Required on mutating endpoints when set")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    reload: bool = Field(default=False)
    data_dir: Path = Field(default=Path("data"))

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)

    def model_post_init(self, _context: object) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()
