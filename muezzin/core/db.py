"""
SQLAlchemy engine, session, and base. DB URL from config or default SQLite file.
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_TIMEOUT = 10

_engine = None
_SessionLocal = None


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Context manager for a single DB session. Commits on success, rolls back on error."""
    if _SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _default_url() -> str:
    base = Path.home() / ".muezzin"
    base.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{base / 'muezzin.db'}"


def init_db(config_data: Optional[dict] = None, db_url: Optional[str] = None) -> None:
    """
    Initialize database engine and create tables.
    config_data: app config dict; database.url, database.path and database.timeout are used if db_url not given.
    db_url: optional SQLAlchemy URL override.
    """
    global _engine, _SessionLocal

    if _engine is not None:
        logger.debug("Database already initialized")
        return

    db_config = (config_data or {}).get("database") or {}
    timeout = float(db_config.get("timeout", DEFAULT_TIMEOUT))

    if db_url is None:
        db_url = db_config.get("url")
    if db_url is None and db_config.get("path"):
        path = Path(db_config["path"]).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        db_url = f"sqlite:///{path}"
    if not db_url:
        db_url = _default_url()

    if db_url.startswith("sqlite"):
        # timeout: seconds to wait on a locked database before failing the call
        engine_args = {"connect_args": {"timeout": timeout, "check_same_thread": False}}
    else:
        engine_args = {"pool_timeout": timeout, "pool_pre_ping": True}
    _engine = create_engine(db_url, echo=False, future=True, **engine_args)

    # Import model module so tables are registered with Base
    from muezzin.core import models as _models  # noqa: F401

    Base.metadata.create_all(_engine)
    _SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False)
    logger.info(f"Database initialized: {db_url.split('?')[0]}")


def dispose_db() -> None:
    """Dispose the engine so init_db() can be called again (shutdown and tests)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
