import logging
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from summit_registration.db.base import Base

logger = logging.getLogger(__name__)


class Database:
    """
    Storage client: owns the engine and the session factory.

    Created once at process start (see the lifespan in main.py), handed to
    request handlers through ``get_db`` and disposed on shutdown.
    """

    def __init__(self, url: str, **engine_kwargs):
        if url.startswith("sqlite"):
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False, "timeout": 30})
        else:
            engine_kwargs.setdefault("pool_pre_ping", True)

        self.url = url
        self.engine = create_engine(url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self):
        """Create tables and indexes that do not exist yet"""
        # Models must be imported so they register on the metadata
        from summit_registration import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def ping(self) -> bool:
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self):
        self.engine.dispose()
        logger.info("📦 Database connections closed")


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency for getting a database session bound to the app's storage client"""
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
