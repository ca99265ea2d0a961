from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.changebag.models import Base
from app.changebag.utils import iso, utcnow

if TYPE_CHECKING:
    from app.changebag.modules.causes.models import Cause


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"
    __table_args__ = (
        UniqueConstraint("cause_id", "email", name="uq_waitlist_cause_email"),
        Index("idx_waitlist_cause_position", "cause_id", "position"),
        Index("idx_waitlist_status", "status"),
        Index("idx_waitlist_token", "magic_link_token"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cause_id: Mapped[int] = mapped_column(ForeignKey("causes.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)  # stored lowercased
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    notify_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_sms: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False)  # 1..n within a cause
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="waiting")  # waiting, notified, claimed, expired

    magic_link_token: Mapped[str | None] = mapped_column(String(128), nullable=True)
    magic_link_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    magic_link_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    cause: Mapped["Cause"] = relationship("Cause", back_populates="waitlist_entries", lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "causeId": self.cause_id,
            "causeTitle": self.cause.title if self.cause else None,
            "userId": self.user_id,
            "fullName": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "message": self.message,
            "notifyEmail": self.notify_email,
            "notifySms": self.notify_sms,
            "position": self.position,
            "status": self.status,
            "magicLinkSentAt": iso(self.magic_link_sent_at),
            "magicLinkExpires": iso(self.magic_link_expires),
            "createdAt": iso(self.created_at),
        }
