"""Singleton row holding the anti-blocking settings document"""
from sqlalchemy import Column, Integer, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from schemaops.database import Base

SINGLETON_ID = 1


class AntiBlockingSettings(Base):
    __tablename__ = "anti_blocking_settings"

    id = Column(Integer, primary_key=True, autoincrement=False)
    settings = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<AntiBlockingSettings(id={self.id})>"
