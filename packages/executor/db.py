"""
Changelog Database Schema (SQLAlchemy)

Tables:
- changelog_entries: one row per applied mutation, unique (session_id, version_id)
- changelog_versions: per-session version counter

Why a separate counter table?
- current_version must not move backwards when entries are rolled back
- the counter row is incremented in the same transaction as the entry insert
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class ChangeLogEntryModel(Base):
    __tablename__ = "changelog_entries"

    id = Column(String, primary_key=True)
    session_id = Column(String, nullable=False, index=True)
    version_id = Column(Integer, nullable=False)
    operation_type = Column(String, nullable=False)  # create | update | delete
    resource_type = Column(String, nullable=False)   # ai-provider | ai-route
    resource_name = Column(String, nullable=False)
    before_state = Column(JSON, nullable=True)
    after_state = Column(JSON, nullable=True)
    change_summary = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    rollback_status = Column(String, nullable=False, default="active", index=True)

    __table_args__ = (
        UniqueConstraint("session_id", "version_id", name="uq_changelog_session_version"),
    )


class ChangeLogVersionModel(Base):
    __tablename__ = "changelog_versions"

    session_id = Column(String, primary_key=True)
    current_version = Column(Integer, nullable=False, default=0)


def create_changelog_engine(database_url: Optional[str] = None) -> Engine:
    """Engine for the changelog; defaults to GATEWAY_AGENT_CHANGELOG_DB_URL."""
    url = database_url or os.getenv("GATEWAY_AGENT_CHANGELOG_DB_URL", "sqlite:///./gateway_agent_changelog.db")
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        echo=os.getenv("GATEWAY_AGENT_CHANGELOG_DB_ECHO", "").lower() == "true",
    )


def init_changelog_db(engine: Engine) -> sessionmaker:
    """Create tables (idempotent) and return a session factory bound to engine."""
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
