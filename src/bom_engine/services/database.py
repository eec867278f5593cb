"""
Engine and session handling for the BOM store.

One engine and one session factory are shared per process. Stores open
short transactions through session_scope(); tests swap the factory out
for one bound to an in-memory database.
"""

from typing import Optional
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..utils.config import get_config
from ..models.base import Base

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None

EXPECTED_TABLES = ["products", "boms", "bom_items", "bom_history", "bom_item_usages"]


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Turn on SQLite foreign keys so BOM owners and item parents must exist."""
    if dbapi_connection.__class__.__module__.split(".")[0] not in ("sqlite3", "pysqlite2"):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _engine_options(database_url: str) -> dict:
    if ":memory:" in database_url or "mode=memory" in database_url:
        # Every session must see the same in-memory database
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {}


def create_database_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Build an engine for the configured (or given) database URL.

    Args:
        database_url: Overrides Config.database_url
        echo: Overrides Config.echo_sql

    Returns:
        SQLAlchemy Engine
    """
    config = get_config()
    url = database_url or config.database_url
    echo = config.echo_sql if echo is None else echo

    logger.info(f"Creating database engine: {url}")
    return create_engine(url, echo=echo, **_engine_options(url))


def init_database(engine: Optional[Engine] = None) -> None:
    """Create any missing BOM tables. Existing tables and rows are left as they are."""
    engine = engine or get_engine()

    # Importing the package registers every table on Base.metadata
    from .. import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("BOM tables ready")


def get_engine(force_recreate: bool = False) -> Engine:
    """Process-wide engine, built on first use."""
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """Process-wide session factory bound to get_engine()."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope():
    """
    Run a block inside one transaction.

    The session commits when the block finishes, rolls back and re-raises
    when it fails, and is closed either way.

    Example:
        with session_scope() as session:
            session.add(bom)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def verify_database() -> bool:
    """
    Check that every BOM table exists.

    Returns:
        False when a table is missing or the database cannot be inspected
    """
    try:
        present = set(inspect(get_engine()).get_table_names())
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        return False
    missing = [table for table in EXPECTED_TABLES if table not in present]
    if missing:
        logger.warning(f"Missing BOM tables: {missing}")
    return not missing


def reset_database(confirm: bool = False) -> None:
    """
    Drop and recreate every BOM table, losing all data.

    Raises:
        ValueError: Unless confirm=True
    """
    if not confirm:
        raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

    logger.warning("Dropping and recreating all BOM tables")
    engine = get_engine()
    from .. import models  # noqa: F401

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def close_connections() -> None:
    """Dispose of the shared engine; the next call to get_engine() builds a new one."""
    global _engine, _SessionFactory

    _SessionFactory = None
    if _engine is not None:
        _engine.dispose()
        _engine = None
    logger.info("Database connections closed")


def initialize_app_database() -> None:
    """Prepare the data directory, engine and tables for the configured database."""
    config = get_config()
    config.ensure_directories()
    logger.info(f"Using database at: {config.database_url}")

    init_database(get_engine())
    if verify_database():
        logger.info("Database initialized and verified")
