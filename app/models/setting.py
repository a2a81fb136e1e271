from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from sqlalchemy.sql import func

from .base import Base


class Setting(Base):
    """Key/value store for operator settings (support contact, gateway, promo flags)"""
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class PopupConfig(Base):
    """Storefront popup. The storefront shows the first active row."""
    __tablename__ = "popup_configs"

    id = Column(Integer, primary_key=True, index=True)
    message = Column(Text, nullable=False)
    button_text = Column(String(255), nullable=False)
    button_link = Column(String(1024), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
