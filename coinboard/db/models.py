from sqlalchemy import Column, DateTime, String, Text

from coinboard.db.session import Base
from coinboard.utils.time import utcnow


class ClientStorageEntry(Base):
    """Durable key/value slot for client-local dashboard state."""

    __tablename__ = "client_storage"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)  # JSON document
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
