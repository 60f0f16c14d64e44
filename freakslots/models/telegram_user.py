"""Telegram user registered through /start."""
from sqlalchemy import Column, String, DateTime, BigInteger
from datetime import datetime, timezone
from freakslots.core.database import Base


class TelegramUser(Base):
    """Broadcast recipient keyed by Telegram chat id."""

    __tablename__ = "telegram_users"

    chat_id = Column(BigInteger, primary_key=True, autoincrement=False)
    username = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
