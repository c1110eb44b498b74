"""
Database session management.
"""

from typing import Any, Dict

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker

from app.db.models import Base


def create_db_engine(url: str, **engine_args: Any) -> Engine:
    """Build an engine; SQLite connections are shared with FastAPI's threadpool."""
    args: Dict[str, Any] = {"pool_pre_ping": True}
    if make_url(url).get_backend_name() == "sqlite":
        args["connect_args"] = {"check_same_thread": False}
    args.update(engine_args)
    return create_engine(url, **args)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured on {}", engine.url.render_as_string(hide_password=True))
