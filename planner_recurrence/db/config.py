"""Store configuration for the recurrence tooling."""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Mapping, Optional
import json
import os

from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from planner_recurrence.errors import ConfigError
from planner_recurrence.utils.dates import get_timezone

DEFAULT_DATABASE_URL = "sqlite:///./planner.db"
DEFAULT_GENERATION_DAYS = 90

TRUTHY = ("1", "true", "yes", "on")


def horizon_end(today: date, generation_days: int = DEFAULT_GENERATION_DAYS) -> date:
    """Last date covered by a horizon of `generation_days` calendar days starting today."""
    return today + timedelta(days=generation_days - 1)


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment."""
    database_url: str
    timezone: str = "UTC"
    generation_days: int = DEFAULT_GENERATION_DAYS
    log_level: str = "INFO"
    dry_run: bool = False
    credential_source: str = "ambient"  # "service_account" or "ambient"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Resolve settings from a service-account blob or ambient variables.

    Args:
        environ: Variables to read; defaults to os.environ after loading .env

    Raises:
        ConfigError: If the credential blob, timezone or horizon is invalid
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    blob = environ.get("PLANNER_SERVICE_ACCOUNT")
    if blob:
        try:
            account = json.loads(blob)
        except json.JSONDecodeError as e:
            raise ConfigError(f"PLANNER_SERVICE_ACCOUNT is not valid JSON: {e.msg}")
        if not isinstance(account, dict) or not account.get("database_url"):
            raise ConfigError("PLANNER_SERVICE_ACCOUNT must contain a database_url")
        database_url = account["database_url"]
        credential_source = "service_account"
    else:
        database_url = environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
        credential_source = "ambient"

    timezone = environ.get("PLANNER_TIMEZONE", "UTC")
    get_timezone(timezone)

    raw_days = environ.get("PLANNER_GENERATION_DAYS", str(DEFAULT_GENERATION_DAYS))
    try:
        generation_days = int(raw_days)
    except ValueError:
        raise ConfigError(f"PLANNER_GENERATION_DAYS must be an integer, got {raw_days!r}")
    if generation_days < 1:
        raise ConfigError(f"PLANNER_GENERATION_DAYS must be positive, got {generation_days}")

    return Settings(
        database_url=database_url,
        timezone=timezone,
        generation_days=generation_days,
        log_level=environ.get("PLANNER_LOG_LEVEL", "INFO").upper(),
        dry_run=environ.get("PLANNER_DRY_RUN", "").lower() in TRUTHY,
        credential_source=credential_source,
    )


def create_store_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the SQLModel engine for a store deployment."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    connect_args = {"check_same_thread": False}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # In-memory databases live on a single shared connection
        engine = create_engine(database_url, echo=echo, connect_args=connect_args, poolclass=StaticPool)
    else:
        engine = create_engine(database_url, echo=echo, connect_args=connect_args)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine
