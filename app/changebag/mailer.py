"""
Transactional email.

Two backends, chosen by MAIL_BACKEND:
  - "smtp": smtplib with STARTTLS and optional login
  - "console": log the message and keep it in app.extensions["mail_outbox"]

Messages sent with dedupe=True (OTP, logo approval, logo rejection) are
skipped when the same recipient already got the same subject within
MAIL_DUPLICATE_WINDOW_SECONDS (double-clicks in the SPA).
"""
from __future__ import annotations

import logging
import smtplib
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid

from flask import current_app, render_template

logger = logging.getLogger(__name__)


class MailError(RuntimeError):
    pass


def _is_duplicate(to: str, subject: str) -> bool:
    window = int(current_app.config.get("MAIL_DUPLICATE_WINDOW_SECONDS") or 0)
    recent: dict[tuple[str, str], float] = current_app.extensions.setdefault("mail_recent", {})
    now = time.monotonic()
    key = (to.strip().lower(), subject)
    last = recent.get(key)
    if window > 0 and last is not None and now - last < window:
        return True
    recent[key] = now
    if len(recent) > 100:
        for k, ts in list(recent.items()):
            if now - ts > 300:
                recent.pop(k, None)
    return False


def _build_message(to: str, subject: str, html: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = current_app.config["MAIL_FROM"]
    msg["To"] = to
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=False)
    msg["Message-ID"] = make_msgid(domain="changebag.org")
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def _send_smtp(msg: MIMEMultipart) -> None:
    cfg = current_app.config
    try:
        with smtplib.SMTP(cfg["SMTP_HOST"], int(cfg["SMTP_PORT"]), timeout=30) as server:
            if cfg.get("SMTP_USE_TLS"):
                server.starttls()
            if cfg.get("SMTP_USERNAME") and cfg.get("SMTP_PASSWORD"):
                server.login(cfg["SMTP_USERNAME"], cfg["SMTP_PASSWORD"])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise MailError(f"SMTP delivery to {msg['To']} failed: {e}") from e


def send_email(to: str, subject: str, html: str, *, dedupe: bool = False) -> bool:
    """
    Send one HTML email. Returns False when `dedupe` is set and the same
    message went to `to` within the duplicate window.
    Raises MailError when the SMTP server rejects or is unreachable.
    """
    if dedupe and _is_duplicate(to, subject):
        logger.info("Duplicate email to %s within window; skipping (%s)", to, subject)
        return False
    msg = _build_message(to, subject, html)
    backend = (current_app.config.get("MAIL_BACKEND") or "console").strip().lower()
    if backend == "smtp":
        _send_smtp(msg)
    else:
        current_app.extensions.setdefault("mail_outbox", []).append({"to": to, "subject": subject, "html": html})
    logger.info("Email sent via %s to %s: %s", backend, to, subject)
    return True


def _render(template: str, **ctx) -> str:
    ctx.setdefault("public_site_url", current_app.config.get("PUBLIC_SITE_URL", ""))
    return render_template(f"email/{template}", **ctx)


def send_otp_email(email: str, otp: str) -> bool:
    html = _render("otp.html", otp=otp)
    return send_email(email, "Verify Your Tote Claim", html, dedupe=True)


def send_approval_email(sponsorship) -> bool:
    cause = sponsorship.cause
    html = _render(
        "logo_approved.html",
        contact_name=sponsorship.contact_name,
        organization_name=sponsorship.organization_name,
        cause_title=cause.title if cause else "",
        tote_quantity=sponsorship.tote_quantity,
        logo_url=sponsorship.logo_url,
        dashboard_url=f"{current_app.config.get('PUBLIC_SITE_URL', '')}/dashboard/sponsor",
    )
    return send_email(sponsorship.email, "Congratulations! Your Logo Has Been Approved", html, dedupe=True)


def send_rejection_email(sponsorship, reason: str) -> bool:
    cause = sponsorship.cause
    html = _render(
        "logo_rejected.html",
        contact_name=sponsorship.contact_name,
        organization_name=sponsorship.organization_name,
        cause_title=cause.title if cause else "",
        reason=reason,
        reupload_url=reupload_link(sponsorship.id),
    )
    return send_email(sponsorship.email, "Action Required: Your Logo Needs Revision", html, dedupe=True)


def reupload_link(sponsorship_id: int) -> str:
    return f"{current_app.config.get('PUBLIC_SITE_URL', '').rstrip('/')}/sponsor/logo-reupload/{sponsorship_id}"


def send_waitlist_available_email(entry, cause, magic_link: str) -> bool:
    html = _render(
        "waitlist_available.html",
        full_name=entry.full_name,
        cause_title=cause.title,
        magic_link=magic_link,
        expires_at=entry.magic_link_expires,
    )
    return send_email(entry.email, f"Totes are available for {cause.title}!", html)


def send_waitlist_reminder_email(entry, cause, magic_link: str) -> bool:
    html = _render(
        "waitlist_reminder.html",
        full_name=entry.full_name,
        cause_title=cause.title,
        magic_link=magic_link,
        expires_at=entry.magic_link_expires,
    )
    return send_email(entry.email, f"Reminder: claim your tote for {cause.title}", html)


def send_invoice_email(to: str, invoice: dict) -> bool:
    """`invoice` carries the template fields (see payments.service.invoice_data)."""
    html = _render("invoice.html", **invoice)
    return send_email(to, f"Your ChangeBag invoice for {invoice.get('cause_title') or 'your sponsorship'}", html)
