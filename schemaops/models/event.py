"""Model for the events table written by the monitoring pipeline (read-only here)"""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from schemaops.database import Base

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Event(Base):
    """One live-session event. Secondary indexes are managed by the index audit, not declared here."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), nullable=False)
    type = Column(String(50), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    user_data = Column(JSONDocument, nullable=True)
    event_data = Column(JSONDocument, nullable=True)

    def __repr__(self):
        return f"<Event(id={self.id}, session={self.session_id}, type={self.type})>"
