"""
Central constants for the ChangeBag API.
"""
from __future__ import annotations

CAUSE_STATUSES = ("pending", "approved", "completed", "rejected")

SPONSORSHIP_STATUSES = ("pending", "approved", "rejected", "completed", "failed")
DISTRIBUTION_TYPES = ("online", "physical")
PAYMENT_STATUSES = ("pending", "completed", "failed")

CLAIM_STATUSES = ("pending", "verified", "shipped", "delivered", "cancelled")
CLAIM_SOURCES = ("direct", "qr", "waitlist", "magic-link", "sponsor-link", "PARTNER_API")
# Claims that count as a handed-out tote.
COUNTED_CLAIM_STATUSES = ("verified", "shipped", "delivered")
SHIPPED_CLAIM_STATUSES = ("shipped", "delivered")

WAITLIST_STATUSES = ("waiting", "notified", "claimed", "expired")
MAGIC_LINK_HOURS = 48

OTP_EXPIRY_MINUTES = 10
OTP_RESEND_WINDOW_MINUTES = 2
OTP_METHODS = ("email", "sms")

# Placeholder logo values the SPA sends when no logo was uploaded.
PLACEHOLDER_LOGOS = frozenset({"", "null", "undefined", "logo_uploaded_client_side", "/placeholder.svg"})
# Sponsorships whose totes and money count toward a cause (completed = ended after approval).
FUNDED_SPONSORSHIP_STATUSES = ("approved", "completed")
