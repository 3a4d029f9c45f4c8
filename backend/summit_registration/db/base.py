from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import declarative_base

# Single declarative base; every model in the project inherits from it.
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, comparable on both PostgreSQL and SQLite"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel:
    """Common columns shared by all tables"""

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
