"""Database models for Trends Box."""
from sqlalchemy import (
    String, DateTime, Date, Text, Integer, JSON, Index, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import mapped_column
from sqlalchemy.sql import func

from .database import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class HistoryItem(Base):
    """Generated content owned by one user."""
    __tablename__ = "history"

    id = mapped_column(String(64), primary_key=True)
    user_id = mapped_column(String(64), nullable=False, index=True)
    title = mapped_column(Text, nullable=True)
    excerpt = mapped_column(Text, nullable=True)
    body = mapped_column("content", Text, nullable=True)
    content_type = mapped_column("type", String(16), nullable=True)
    category = mapped_column(String(32), nullable=True)
    image_url = mapped_column(Text, nullable=True)
    sources = mapped_column(JSONType, nullable=False, default=list)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)


class UsageCounter(Base):
    """Per-user, per-day generation count."""
    __tablename__ = "usage"

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id = mapped_column(String(64), nullable=False)
    date = mapped_column(Date, nullable=False)
    count = mapped_column(Integer, nullable=False, default=0)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_usage_user_date"),)


class Feedback(Base):
    """User feedback on a generation."""
    __tablename__ = "feedback"

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id = mapped_column(String(64), nullable=False, index=True)
    generation_id = mapped_column(String(64), nullable=True)
    rating = mapped_column(Integer, nullable=True)
    comment = mapped_column(Text, nullable=True)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())


Index('idx_history_user_created', HistoryItem.user_id, HistoryItem.created_at.desc())
