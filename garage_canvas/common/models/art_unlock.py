"""Ledger row for one applied checkout session."""
from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func
from .base import Base


class ArtUnlock(Base):
    __tablename__ = "art_unlock"

    checkout_session_id = Column(String(255), primary_key=True, nullable=False, doc="付款平台 checkout session ID")
    correlation_id = Column(String(64), nullable=False, index=True, doc="art session 關聯 ID")
    status = Column(String(32), nullable=False, default="processing", doc="processing/completed/failed")
    customer_email = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    started_at = Column(DateTime, nullable=True, doc="最近一次開始套用的時間（UTC）")
    completed_at = Column(DateTime, nullable=True)

    def to_dict(self):
        return {
            "checkout_session_id": self.checkout_session_id,
            "correlation_id": self.correlation_id,
            "status": self.status,
            "customer_email": self.customer_email,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
