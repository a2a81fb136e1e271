import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class EventStatus(str, enum.Enum):
    PROCESSED = "processed"
    FAILED = "failed"
    IGNORED = "ignored"


class Event(Base):
    """Append-only log of payment webhooks, forced completions and reconciliation sweeps"""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(100), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    payload = Column(JSONB, nullable=False, default=dict)
    status = Column(Enum(EventStatus), nullable=False, default=EventStatus.PROCESSED)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    order = relationship("Order", foreign_keys=[order_id])
    actor = relationship("User", foreign_keys=[actor_id])
