from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.changebag.models import Base
from app.changebag.utils import iso, utcnow


class ApiPartner(Base):
    """Third-party business allowed to file claims through the partner API."""

    __tablename__ = "api_partners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    business_email: Mapped[str] = mapped_column(String(320), nullable=False)
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    api_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # cb_ + 32 hex
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self, *, include_key: bool = False) -> dict:
        out = {
            "id": self.id,
            "businessName": self.business_name,
            "businessEmail": self.business_email,
            "contactName": self.contact_name,
            "isActive": self.is_active,
            "lastUsedAt": iso(self.last_used_at),
            "createdAt": iso(self.created_at),
        }
        if include_key:
            out["apiKey"] = self.api_key
        return out
