from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.changebag.models import Base
from app.changebag.utils import utcnow

if TYPE_CHECKING:
    from app.changebag.modules.causes.models import Cause
    from app.changebag.modules.partners.models import ApiPartner


class Claim(Base):
    __tablename__ = "claims"
    __table_args__ = (
        UniqueConstraint("cause_id", "email", name="uq_claims_cause_email"),
        Index("idx_claims_status", "status"),
        Index("idx_claims_email", "email"),
        Index("idx_claims_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    cause_id: Mapped[int] = mapped_column(ForeignKey("causes.id", ondelete="CASCADE"), nullable=False)
    cause_title: Mapped[str] = mapped_column(String(255), nullable=False)

    # Claimer
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Shipping address
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    state: Mapped[str] = mapped_column(String(128), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(16), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending, verified, shipped, delivered, cancelled
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="direct")
    referrer_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    qr_code_scanned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Fulfilment
    shipping_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    carrier: Mapped[str | None] = mapped_column(String(128), nullable=True)
    estimated_delivery: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # Partner API origin
    partner_id: Mapped[int | None] = mapped_column(ForeignKey("api_partners.id", ondelete="SET NULL"), nullable=True)
    partner_business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    cause: Mapped["Cause"] = relationship("Cause", back_populates="claims", lazy="selectin")
    partner: Mapped["ApiPartner | None"] = relationship("ApiPartner")
