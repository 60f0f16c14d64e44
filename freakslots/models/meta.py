"""Key/value documents for sync watermark, curation and probes."""
from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime, timezone
from freakslots.core.database import Base


SYNC_DOC = "sync"
CURATION_DOC = "curation"
PING_DOC = "ping"


class MetaDocument(Base):
    """Free-form JSON document addressed by a fixed key."""

    __tablename__ = "meta"

    key = Column(String, primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )
