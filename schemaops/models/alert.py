"""Model for the alerts table"""
from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.sql import func
from schemaops.database import Base

ALERT_STATUS_CONSTRAINT = "alerts_status_check"
ALERT_STATUSES = ("pending", "new", "acknowledged", "resolved")


def alert_status_check_sql() -> str:
    allowed = ", ".join(f"'{status}'" for status in ALERT_STATUSES)
    return f"status IN ({allowed})"


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    handle = Column(String(255), nullable=True)
    session_id = Column(String(64), nullable=True)
    status = Column(String(20), nullable=False, server_default="pending")
    timestamp = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint(alert_status_check_sql(), name=ALERT_STATUS_CONSTRAINT),
    )

    def __repr__(self):
        return f"<Alert(id={self.id}, status={self.status})>"
