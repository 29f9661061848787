from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import logging

from .config import DatabaseConfig
from .models.base import Base
from .models import qc_models  # noqa: F401  registers tables on Base.metadata

logger = logging.getLogger(__name__)

def create_db_engine(config: DatabaseConfig) -> Engine:
    """Create an engine; SQLite connections may be shared across threads"""
    kwargs = {"echo": config.echo}
    if config.url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in config.url or config.url == "sqlite://":
            kwargs["poolclass"] = StaticPool
    return create_engine(config.url, **kwargs)

def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet"""
    logger.info(f"Initializing database schema on {engine.url.render_as_string(hide_password=True)}")
    Base.metadata.create_all(bind=engine)
