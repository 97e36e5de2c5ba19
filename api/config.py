from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from dotenv import load_dotenv
from fastapi import Request

from infra.persistence.sql_store import SqlStore

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./learning-paths.db"
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_file: str = "backend.log"
    request_timeout_seconds: float = 10.0  # per-request store deadline; 0 disables
    atomic_completion: bool = True  # run complete-node steps in one transaction
    app_version: str = "0.1.0"


def is_memory_sqlite(url) -> bool:
    """True for SQLite URLs whose database lives only inside one connection."""
    url = make_url(url)
    if url.get_backend_name() != "sqlite":
        return False
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


def build_engine(settings: Settings) -> Engine:
    url = settings.database_url
    if is_memory_sqlite(url):
        # Pooled connections would each get a separate empty database, and a
        # single shared connection would merge concurrent transactions.
        raise ValueError(f"in-memory SQLite cannot back the API, use a file database: {url}")
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def build_store(settings: Settings) -> SqlStore:
    return SqlStore(build_engine(settings))


def create_db(store: SqlStore):
    store.create_all()


def reset_db(store: SqlStore):
    """Drop and recreate all tables. Destroys every stored path."""
    store.drop_all()
    store.create_all()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request):
    """Store handle attached to the app at startup (SqlStore, or MemoryStore in tests)."""
    return request.app.state.store
