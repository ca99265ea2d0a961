import logging
from datetime import timedelta

from flask import Flask, g, jsonify, request
from dotenv import load_dotenv
from flask_cors import CORS
from sqlalchemy import inspect as sa_inspect

from app.changebag.config import load_config
from app.changebag.db import init_db, teardown_db_session
from app.changebag.routes import bp as routes_bp
from app.changebag.auth import bp as auth_bp, load_current_user
from app.changebag.modules.causes.api import bp as causes_bp
from app.changebag.modules.sponsorships.api import bp as sponsorships_bp
from app.changebag.modules.claims.api import bp as claims_bp
from app.changebag.modules.partners.api import bp as partners_bp, admin_bp as partners_admin_bp
from app.changebag.modules.distribution.api import bp as distribution_bp
from app.changebag.modules.payments.api import bp as payments_bp
from app.changebag.modules.waitlist.api import bp as waitlist_bp
from app.changebag.modules.otp.api import bp as otp_bp
from app.changebag.modules.stats.api import bp as stats_bp
from app.changebag.modules.settings.api import bp as settings_bp


# Columns added after the first release; a missing one means `alembic upgrade head` was skipped.
_EXPECTED_COLUMNS = {
    "claims": ("partner_id", "partner_business_name"),
    "audit_events": ("client_ip",),
    "causes": ("content", "tote_preview_image_url"),
    "otp_verifications": ("method", "phone"),
}


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder=None)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=7)
    app.json.sort_keys = False

    logging.basicConfig(level=app.config.get("LOG_LEVEL") or "INFO")
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    origins = [o.strip() for o in str(app.config.get("CORS_ORIGINS") or "*").split(",") if o.strip()]
    CORS(
        app,
        resources={r"/api/*": {"origins": origins}, r"/uploads/*": {"origins": origins}},
        supports_credentials=origins != ["*"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Request-ID"],
    )

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("RAZORPAY_KEY_ID") or not app.config.get("RAZORPAY_KEY_SECRET"):
            app.logger.error("PAYMENT CONFIG ERROR: RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET not set; payments disabled.")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # Storage health check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        else:
            from botocore.exceptions import BotoCoreError, ClientError

            from app.changebag.storage import S3Storage, storage_from_config

            try:
                storage = storage_from_config(app.config)
                if isinstance(storage, S3Storage):
                    storage._client().head_bucket(Bucket=storage.bucket)
                    app.logger.info("Storage health check PASSED: S3 bucket '%s' accessible", storage.bucket)
            except (BotoCoreError, ClientError) as e:
                app.logger.error("STORAGE CONFIG ERROR: Cannot access S3 bucket: %s", e)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(causes_bp, url_prefix="/api/causes")
    app.register_blueprint(sponsorships_bp, url_prefix="/api/sponsorships")
    app.register_blueprint(claims_bp, url_prefix="/api/claims")
    app.register_blueprint(partners_bp, url_prefix="/api/partner")
    app.register_blueprint(partners_admin_bp, url_prefix="/api/admin")
    app.register_blueprint(distribution_bp, url_prefix="/api/distribution")
    app.register_blueprint(payments_bp, url_prefix="/api/payments")
    app.register_blueprint(waitlist_bp, url_prefix="/api/waitlist")
    app.register_blueprint(otp_bp, url_prefix="/api/otp")
    app.register_blueprint(stats_bp)
    app.register_blueprint(settings_bp, url_prefix="/api/admin/settings")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    # Migration health (lean): detect drift between code expectations and DB schema.
    def _run_schema_health_check() -> None:
        missing: list[str] = []
        engine = app.extensions["sqlalchemy_engine"]
        insp = sa_inspect(engine)
        for table, columns in _EXPECTED_COLUMNS.items():
            if not insp.has_table(table):
                # Fresh database; nothing has been migrated yet.
                continue
            cols = {c["name"] for c in insp.get_columns(table)}
            missing.extend(f"{table}.{col}" for col in columns if col not in cols)
        app.config["_schema_health_missing"] = missing
        if missing:
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

    _run_schema_health_check()

    def _json_error(e, default: str):
        message = getattr(e, "description", None) or default
        return jsonify({"message": message}), getattr(e, "code", 500) or 500

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return _json_error(e, "Bad request")

    @app.errorhandler(401)
    def _err_401(e):  # type: ignore[no-redef]
        return _json_error(e, "Authentication required")

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return _json_error(e, "Not authorized")

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return _json_error(e, "Not found")

    @app.errorhandler(405)
    def _err_405(e):  # type: ignore[no-redef]
        return _json_error(e, "Method not allowed")

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return jsonify({"message": "File too large. Maximum size is 10MB."}), 413

    @app.errorhandler(429)
    def _err_429(e):  # type: ignore[no-redef]
        return _json_error(e, "Too many requests")

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.error(
            "Unhandled 500 (request_id=%s path=%s)",
            getattr(g, "request_id", None),
            request.path,
            exc_info=getattr(e, "original_exception", None) or e,
        )
        return jsonify({"message": "Internal server error", "requestId": getattr(g, "request_id", None)}), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
