"""Database engine and tenant-scoped sessions."""

from contextlib import contextmanager
from typing import Generator, Optional
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from sourcehub.infra.config import config
from sourcehub.infra.timeout import DATABASE_POOL_TIMEOUT, DATABASE_QUERY_TIMEOUT


def _connect_args() -> dict:
    # Server-side statement timeout; only libpq understands `options`
    if config.DATABASE_URL.startswith("postgresql"):
        return {"options": f"-c statement_timeout={DATABASE_QUERY_TIMEOUT * 1000}"}
    return {}


engine = create_engine(
    config.DATABASE_URL,
    poolclass=QueuePool,
    pool_size=config.DATABASE_POOL_SIZE,
    max_overflow=config.DATABASE_MAX_OVERFLOW,
    pool_timeout=DATABASE_POOL_TIMEOUT,
    pool_recycle=3600,
    pool_pre_ping=True,
    connect_args=_connect_args(),
    hide_parameters=True,
    echo=config.DEBUG,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session(tenant_id: Optional[str] = None) -> Generator[Session, None, None]:
    """
    Session whose single transaction is scoped to one tenant.

    `app.current_tenant_id` is set with `set_config(..., true)`, so it lives
    only until the transaction ends and never leaks to the next user of the
    pooled connection. Row-level security on `data_sources` and `event_logs`
    filters on it.

    Commits on clean exit, rolls back and re-raises on error.
    """
    session = SessionLocal()
    try:
        if tenant_id:
            session.execute(
                text("SELECT set_config('app.current_tenant_id', :tenant_id, true)"),
                {"tenant_id": tenant_id}
            )

        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """Unscoped session dependency, used for API key lookup and health checks."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
