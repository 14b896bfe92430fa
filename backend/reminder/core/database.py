"""
Database configuration and session management
"""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from reminder.core.config import DatabaseConfig
from reminder.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

# Base class for the store models
Base = declarative_base()


def create_db_engine(config: DatabaseConfig) -> Engine:
    """
    Create an engine for the given connection settings

    Pool sizing only applies to server databases; SQLite (used in tests and
    local runs) keeps SQLAlchemy's defaults.
    """
    url = make_url(config.url)
    kwargs = {"pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
        )
    engine = create_engine(url, **kwargs)
    logger.info(f"Database engine created for {url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to an engine"""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_schema(engine: Engine, checkfirst: bool = True):
    """Create the store tables (used by tests and local development)"""
    import reminder.models  # noqa: F401

    Base.metadata.create_all(bind=engine, checkfirst=checkfirst)


def dispose_engine(engine: Optional[Engine]):
    """Release all pooled connections of an engine"""
    if engine is not None:
        engine.dispose()
