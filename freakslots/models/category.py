"""Category buckets with versioned item runs."""
from sqlalchemy import Column, String, DateTime, Integer, BigInteger, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from freakslots.core.database import Base


class Category(Base):
    """
    A named bucket of ranked games.

    Readers follow ``active_run_id``; a rebuild writes a new run first and
    flips the pointer only after every item of the run is committed.
    """

    __tablename__ = "categories"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    icon = Column(String, nullable=False, default="")
    active_run_id = Column(BigInteger, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    items = relationship("CategoryItem", back_populates="category", cascade="all, delete-orphan")


class CategoryItem(Base):
    """One ranked game inside a specific run of a category."""

    __tablename__ = "category_items"
    __table_args__ = (
        Index("ix_category_items_category_run", "category_id", "run_id"),
    )

    category_id = Column(String, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True)
    run_id = Column(BigInteger, primary_key=True)
    game_id = Column(String, primary_key=True)
    rank = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    category = relationship("Category", back_populates="items")
