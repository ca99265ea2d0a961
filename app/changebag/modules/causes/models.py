from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.changebag.models import Base, User
from app.changebag.utils import utcnow

if TYPE_CHECKING:
    from app.changebag.modules.claims.models import Claim
    from app.changebag.modules.sponsorships.models import Sponsorship
    from app.changebag.modules.waitlist.models import WaitlistEntry


class Cause(Base):
    __tablename__ = "causes"
    __table_args__ = (
        Index("idx_causes_status", "status"),
        Index("idx_causes_category", "category"),
        Index("idx_causes_creator", "creator_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(128), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    target_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    # Sum of approved sponsorship totals; see causes.service.recompute_cause_amount.
    current_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")  # pending, approved, completed, rejected
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    image_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    admin_image_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    tote_preview_image_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    distribution_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    distribution_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Page content edited by admins (story, hero, impact, faqs, theming, seo, ...)
    content: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    creator_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    creator: Mapped[User | None] = relationship("User", lazy="selectin")
    sponsorships: Mapped[list["Sponsorship"]] = relationship(
        "Sponsorship",
        back_populates="cause",
        cascade="all, delete-orphan",
        order_by="Sponsorship.created_at.desc()",
    )
    claims: Mapped[list["Claim"]] = relationship(
        "Claim",
        back_populates="cause",
        cascade="all, delete-orphan",
        order_by="Claim.created_at.desc()",
    )
    waitlist_entries: Mapped[list["WaitlistEntry"]] = relationship(
        "WaitlistEntry",
        back_populates="cause",
        cascade="all, delete-orphan",
        order_by="WaitlistEntry.position",
    )
