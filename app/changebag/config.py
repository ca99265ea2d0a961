import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str
    cors_origins: str
    auth_token_max_age: int

    storage_backend: str
    storage_local_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    mail_backend: str
    smtp_host: str
    smtp_port: int
    smtp_username: str
    smtp_password: str
    smtp_use_tls: bool
    mail_from: str
    mail_duplicate_window_seconds: int

    sms_backend: str
    msg91_auth_key: str
    msg91_sender_id: str
    msg91_otp_template_id: str

    razorpay_key_id: str
    razorpay_key_secret: str

    frontend_url: str
    public_site_url: str
    default_logo_url: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _getenv_bool(name: str, default: bool) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///changebag.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=_getenv("CORS_ORIGINS", "*"),
        auth_token_max_age=_getenv_int("AUTH_TOKEN_MAX_AGE", 7 * 24 * 3600),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_local_root=_getenv("STORAGE_LOCAL_ROOT", "storage"),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "blr1"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        mail_backend=_getenv("MAIL_BACKEND", "console"),
        smtp_host=_getenv("SMTP_HOST", "smtp.gmail.com"),
        smtp_port=_getenv_int("SMTP_PORT", 587),
        smtp_username=_getenv("SMTP_USERNAME", ""),
        smtp_password=_getenv("SMTP_PASSWORD", ""),
        smtp_use_tls=_getenv_bool("SMTP_USE_TLS", True),
        mail_from=_getenv("MAIL_FROM", '"CauseBags" <noreply@causebags.com>'),
        mail_duplicate_window_seconds=_getenv_int("MAIL_DUPLICATE_WINDOW_SECONDS", 5),
        sms_backend=_getenv("SMS_BACKEND", "console"),
        msg91_auth_key=_getenv("MSG91_AUTH_KEY", ""),
        msg91_sender_id=_getenv("MSG91_SENDER_ID", "SHELF"),
        msg91_otp_template_id=_getenv("MSG91_OTP_TEMPLATE_ID", ""),
        razorpay_key_id=_getenv("RAZORPAY_KEY_ID", ""),
        razorpay_key_secret=_getenv("RAZORPAY_KEY_SECRET", ""),
        frontend_url=_getenv("FRONTEND_URL", "http://localhost:8085"),
        public_site_url=_getenv("PUBLIC_SITE_URL", "https://changebag.org"),
        default_logo_url=_getenv("DEFAULT_LOGO_URL", "https://api.changebag.org/uploads/default-logo.png"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "CORS_ORIGINS": s.cors_origins,
        "AUTH_TOKEN_MAX_AGE": s.auth_token_max_age,
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_LOCAL_ROOT": s.storage_local_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "MAIL_BACKEND": s.mail_backend,
        "SMTP_HOST": s.smtp_host,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USERNAME": s.smtp_username,
        "SMTP_PASSWORD": s.smtp_password,
        "SMTP_USE_TLS": s.smtp_use_tls,
        "MAIL_FROM": s.mail_from,
        "MAIL_DUPLICATE_WINDOW_SECONDS": s.mail_duplicate_window_seconds,
        "SMS_BACKEND": s.sms_backend,
        "MSG91_AUTH_KEY": s.msg91_auth_key,
        "MSG91_SENDER_ID": s.msg91_sender_id,
        "MSG91_OTP_TEMPLATE_ID": s.msg91_otp_template_id,
        "RAZORPAY_KEY_ID": s.razorpay_key_id,
        "RAZORPAY_KEY_SECRET": s.razorpay_key_secret,
        "FRONTEND_URL": s.frontend_url,
        "PUBLIC_SITE_URL": s.public_site_url,
        "DEFAULT_LOGO_URL": s.default_logo_url,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
        # image uploads (10MB per file, enforced again in storage helpers)
        "MAX_CONTENT_LENGTH": 12 * 1024 * 1024,
    }
