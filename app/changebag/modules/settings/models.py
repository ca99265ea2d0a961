from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.changebag.models import Base
from app.changebag.utils import utcnow


class SystemSettings(Base):
    """Single-row table (id=1) of platform-wide settings edited by admins."""

    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    site_name: Mapped[str] = mapped_column(String(255), nullable=False, default="Tote Bag Platform")
    site_description: Mapped[str] = mapped_column(Text, nullable=False, default="A platform for cause-based tote bag distribution")
    support_email: Mapped[str] = mapped_column(String(320), nullable=False, default="support@totebag.com")
    max_campaigns_per_user: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    auto_approval_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    maintenance_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    require_approval_for_claims: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_claims_per_campaign: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    shipping_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    privacy_policy_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="https://example.com/privacy")
    terms_of_service_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="https://example.com/terms")

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
