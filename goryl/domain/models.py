"""SQLAlchemy ORM models."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ItemRecord(Base):
    __tablename__ = "items"

    id = Column(String(64), primary_key=True)
    category = Column(String(100), nullable=False, index=True)
    title = Column(String(500), nullable=True)
    price = Column(Float, nullable=True)
    seller_id = Column(String(64), nullable=True)
    image_url = Column(String(1000), nullable=True)
    popularity = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class InteractionRecord(Base):
    """Append-only interaction log. Rows are never updated or deleted."""

    __tablename__ = "interactions"
    __table_args__ = (
        Index("ix_interactions_user_created", "user_id", "created_at"),
        Index("ix_interactions_item_created", "item_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    item_id = Column(String(64), nullable=False)
    interaction_type = Column(
        Enum(
            "view", "like", "save", "share", "purchase", "comment",
            name="interaction_type_enum",
        ),
        nullable=False,
    )
    weight = Column(Float, nullable=False)
    category = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
