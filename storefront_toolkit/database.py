"""
Database engine and session management.

Usage:
    engine = create_engine_from_config()
    init_db(engine)
    factory = create_session_factory(engine)

    with session_scope(factory) as session:
        ProductService(session).remove(42)
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .catalog.models import Base
from .config import StorefrontConfig, get_config
from .soft_delete.mixins import register_soft_delete_listeners

logger = logging.getLogger(__name__)


def create_engine_from_config(config: Optional[StorefrontConfig] = None) -> Engine:
    """Create the engine described by ``config`` (the global config by default)."""
    config = config or get_config()

    if config.database_url.startswith("sqlite"):
        # SQLite doesn't support pool_size and max_overflow
        engine = create_engine(
            config.database_url, echo=config.echo_sql, pool_pre_ping=True
        )
    else:
        engine = create_engine(
            config.database_url,
            echo=config.echo_sql,
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=20,
        )

    if config.block_hard_deletes:
        register_soft_delete_listeners(Base)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:  # type: ignore[type-arg]
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:  # type: ignore[type-arg]
    """
    Provide a transactional scope around a series of operations.

    Commits on success, rolls back and re-raises on any error.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """Create every storefront table that does not exist yet."""
    Base.metadata.create_all(bind=engine)
    logger.info(f"Initialized storefront schema on {engine.url.render_as_string(hide_password=True)}")
