"""
Database models for stored analytics snapshots
SQLAlchemy ORM, SQLite by default
"""

import os
from datetime import datetime

from dotenv import load_dotenv
from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from wager_engine.core.policy import DEFAULT_DATABASE_URL

load_dotenv()

DATABASE_URL = os.getenv("WAGER_DATABASE_URL", DEFAULT_DATABASE_URL)

Base = declarative_base()


def make_session_factory(url: str = DATABASE_URL, create_tables: bool = True) -> sessionmaker:
    """Engine plus session factory for ``url``.

    The engine connects lazily; ``create_tables`` issues ``CREATE TABLE IF
    NOT EXISTS`` for every model on first use.
    """
    engine = create_engine(url, pool_pre_ping=True, echo=False)
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Snapshot(Base):
    """One stored payload per kind and calendar day (latest write wins)"""

    __tablename__ = "snapshots"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String, nullable=False, index=True)  # "predictions" | "analysis"
    snapshot_date = Column(Date, nullable=False, index=True)
    payload = Column(JSON, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (UniqueConstraint("kind", "snapshot_date", name="_snapshot_kind_date_uc"),)
