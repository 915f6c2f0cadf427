"""Model for trigger words matched against live chat"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, false
from sqlalchemy.sql import func
from schemaops.database import Base

TRIGGER_WORDS_UNIQUE_INDEX = "idx_trigger_words_unique"


class TriggerWord(Base):
    """(lower(word), case_sensitive) is unique; the index enforcing it is created by schema repair."""
    __tablename__ = "trigger_words"

    id = Column(Integer, primary_key=True, autoincrement=True)
    word = Column(String(255), nullable=False)
    case_sensitive = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<TriggerWord(id={self.id}, word={self.word}, case_sensitive={self.case_sensitive})>"
