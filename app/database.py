import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.exceptions import UnavailableError

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


class Database:
    """
    Handle on the relational store.

    Owns the SQLAlchemy engine and session factory. One instance is opened
    when the application starts and disposed when it shuts down; request
    handlers receive sessions from it through the `get_db` dependency.

    Every store round trip is bounded by `timeout` seconds: pool checkout,
    PostgreSQL statements (`statement_timeout`) and SQLite lock waits.
    """

    def __init__(self, url: str, timeout: float = 5.0, echo: bool = False):
        self.url = make_url(url)
        self.timeout = timeout
        self.engine = create_engine(self.url, echo=echo, **self._engine_options())
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    def _engine_options(self) -> dict:
        backend = self.url.get_backend_name()

        if backend == "sqlite":
            options = {
                "connect_args": {"check_same_thread": False, "timeout": self.timeout},
            }
            # In-memory databases live inside a single connection
            if self.url.database in (None, "", ":memory:"):
                options["poolclass"] = StaticPool
            else:
                options["pool_timeout"] = self.timeout
            return options

        options = {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
            "pool_timeout": self.timeout,
        }
        if backend == "postgresql":
            statement_timeout_ms = int(self.timeout * 1000)
            options["connect_args"] = {
                "connect_timeout": max(1, int(self.timeout)),
                "options": f"-c statement_timeout={statement_timeout_ms}",
            }
        return options

    def create_all(self) -> None:
        # Models must be imported so their tables are registered on Base
        from app.models import inventory_event, product, user  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        logger.info("Disposing database engine")
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency to get database session.
    Yields a database session and closes it after use.
    """
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def store_guard(db: Session, operation: Optional[str] = None) -> Iterator[Session]:
    """
    Roll back and convert store timeouts and connection failures into
    `UnavailableError` so callers get a retryable, typed error.
    """
    try:
        yield db
    except (OperationalError, PoolTimeoutError) as e:
        db.rollback()
        logger.error(f"Store unavailable during {operation or 'operation'}: {e}")
        raise UnavailableError("Data store temporarily unavailable, please retry") from e
