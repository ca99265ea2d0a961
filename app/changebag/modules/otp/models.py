from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.changebag.models import Base
from app.changebag.utils import utcnow


class OtpVerification(Base):
    __tablename__ = "otp_verifications"
    __table_args__ = (
        Index("idx_otp_email_created", "email", "created_at"),
        Index("idx_otp_phone_created", "phone", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    method: Mapped[str] = mapped_column(String(8), nullable=False, default="email")  # email | sms
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)  # +91XXXXXXXXXX
    otp_hash: Mapped[str] = mapped_column(String(64), nullable=False)  # sha256 hex
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
