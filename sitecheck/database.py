import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()


def create_db_engine(url: str, echo: bool = False) -> Engine:
    kwargs = {"pool_pre_ping": True, "echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(url, **kwargs)


def create_session_factory(url: Optional[str] = None, engine: Optional[Engine] = None) -> sessionmaker:
    if engine is None:
        if url is None:
            from .settings import get_settings
            url = get_settings().DATABASE_URL
        engine = create_db_engine(url)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine, drop_all: bool = False) -> None:
    """
    Create tables that don't exist yet.
    drop_all=True deletes every table first; use only in dev/testing.
    """
    try:
        # Import all models so they register with Base.metadata
        from . import models  # noqa: F401

        if drop_all:
            logger.warning("Dropping all tables! This will delete all data.")
            Base.metadata.drop_all(bind=engine)

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully.")
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        raise
