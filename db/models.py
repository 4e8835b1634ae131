from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from datetime import datetime

from db import database


class StoredRecord(database.Base):
    """One JSON blob per (namespace, key); namespace is the player."""
    __tablename__ = "stored_records"
    __table_args__ = (
        UniqueConstraint("namespace", "key", name="uq_stored_records_namespace_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    namespace = Column(String(80), nullable=False, index=True)
    key = Column(String(120), nullable=False, index=True)
    value = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
