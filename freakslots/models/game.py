"""Game catalog model."""
from sqlalchemy import Column, String, DateTime, Float, Boolean, BigInteger
from datetime import datetime, timezone
from freakslots.core.database import Base


class Game(Base):
    """A playable game synced from the upstream catalog."""

    __tablename__ = "games"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, default="")
    provider = Column(String, nullable=False, default="")
    thumb = Column(String, nullable=False, default="")
    rtp = Column(Float, nullable=True)
    published = Column(Boolean, nullable=False, default=False)
    enabled = Column(Boolean, nullable=False, default=False, index=True)
    api_url = Column(String, nullable=False, default="")
    embed_url = Column(String, nullable=False, default="")

    # Upstream timestamps as received, plus epoch-millis shadows for sorting
    updated_at = Column(String, nullable=True)
    updated_at_ts = Column(BigInteger, nullable=False, default=0, index=True)
    created_at = Column(String, nullable=True)
    created_at_ts = Column(BigInteger, nullable=False, default=0, index=True)
    published_at = Column(String, nullable=True)
    published_at_ts = Column(BigInteger, nullable=False, default=0)

    synced_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
