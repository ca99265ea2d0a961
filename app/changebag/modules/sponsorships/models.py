from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.changebag.models import Base, User
from app.changebag.utils import utcnow

if TYPE_CHECKING:
    from app.changebag.modules.causes.models import Cause


class Sponsorship(Base):
    __tablename__ = "sponsorships"
    __table_args__ = (
        Index("idx_sponsorships_cause", "cause_id"),
        Index("idx_sponsorships_sponsor", "sponsor_id"),
        Index("idx_sponsorships_status", "status"),
        Index("idx_sponsorships_email", "email"),
        Index("idx_sponsorships_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    cause_id: Mapped[int] = mapped_column(ForeignKey("causes.id", ondelete="CASCADE"), nullable=False)
    sponsor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Sponsor contact
    organization_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)

    # Order
    tote_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    # Branding
    logo_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    mockup_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    logo_position: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)  # {x, y, scale, angle}
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Distribution
    distribution_type: Mapped[str] = mapped_column(String(16), nullable=False, default="physical")  # online, physical
    selected_cities: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    distribution_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    distribution_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    distribution_locations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    demographics: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Review
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Campaign lifecycle
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    ended_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Payment
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    payment_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    payment_currency: Mapped[str] = mapped_column(String(8), nullable=False, default="INR")
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    cause: Mapped["Cause"] = relationship("Cause", back_populates="sponsorships", lazy="selectin")
    sponsor: Mapped[User | None] = relationship("User", foreign_keys=[sponsor_id], lazy="selectin")
    approved_by: Mapped[User | None] = relationship("User", foreign_keys=[approved_by_id])
    ended_by: Mapped[User | None] = relationship("User", foreign_keys=[ended_by_id])
