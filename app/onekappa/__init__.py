import logging
from datetime import timedelta

from flask import Flask, g, jsonify, request, session
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError

# Model registry first: module models import Base from here.
import app.onekappa.models  # noqa: F401
from app.onekappa.config import load_config
from app.onekappa.db import init_db, teardown_db_session

_PUBLIC_PREFIXES = ("/static/", "/health", "/healthz", "/uploads/")
_CSRF_EXEMPT_ENDPOINTS = frozenset({"webhook.stripe_webhook"})


def _register_blueprints(app: Flask) -> None:
    from app.onekappa.admin import bp as admin_bp
    from app.onekappa.auth import bp as auth_bp
    from app.onekappa.routes import bp as routes_bp
    from app.onekappa.modules.addresses.routes import bp as addresses_bp
    from app.onekappa.modules.catalog.routes import industries_bp, professions_bp
    from app.onekappa.modules.chapters.routes import bp as chapters_bp
    from app.onekappa.modules.checkout.routes import bp as checkout_bp
    from app.onekappa.modules.donations.routes import bp as donations_bp
    from app.onekappa.modules.events.routes import bp as events_bp, saved_bp as saved_events_bp
    from app.onekappa.modules.favorites.routes import bp as favorites_bp
    from app.onekappa.modules.members.routes import bp as members_bp
    from app.onekappa.modules.notifications.routes import bp as notifications_bp
    from app.onekappa.modules.payments.routes import bp as webhook_bp
    from app.onekappa.modules.products.routes import bp as products_bp
    from app.onekappa.modules.promoters.routes import bp as promoters_bp
    from app.onekappa.modules.sellers.routes import bp as sellers_bp
    from app.onekappa.modules.shipping.routes import bp as shipping_bp
    from app.onekappa.modules.stewards.checkout_routes import bp as steward_checkout_bp
    from app.onekappa.modules.stewards.routes import bp as stewards_bp
    from app.onekappa.modules.users.routes import bp as users_bp

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin/api")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(chapters_bp, url_prefix="/api/chapters")
    app.register_blueprint(members_bp, url_prefix="/api/members")
    app.register_blueprint(sellers_bp, url_prefix="/api/sellers")
    app.register_blueprint(promoters_bp, url_prefix="/api/promoters")
    app.register_blueprint(stewards_bp, url_prefix="/api/stewards")
    app.register_blueprint(steward_checkout_bp, url_prefix="/api/steward-checkout")
    app.register_blueprint(products_bp, url_prefix="/api/products")
    app.register_blueprint(checkout_bp, url_prefix="/api/checkout")
    app.register_blueprint(webhook_bp, url_prefix="/api/webhook")
    app.register_blueprint(shipping_bp, url_prefix="/api/shipping")
    app.register_blueprint(donations_bp, url_prefix="/api/donations")
    app.register_blueprint(events_bp, url_prefix="/api/events")
    app.register_blueprint(saved_events_bp, url_prefix="/api/saved-events")
    app.register_blueprint(notifications_bp, url_prefix="/api/notifications")
    app.register_blueprint(favorites_bp, url_prefix="/api/favorites")
    app.register_blueprint(addresses_bp, url_prefix="/api/addresses")
    app.register_blueprint(industries_bp, url_prefix="/api/industries")
    app.register_blueprint(professions_bp, url_prefix="/api/professions")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    # Cookie lifetime covers remember-me; the idle clock in auth.load_current_user is stricter.
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=int(app.config.get("SESSION_REMEMBER_DAYS", 30)))
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.json.sort_keys = False

    from app.onekappa.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_PUBLIC_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            endpoint = request.endpoint or ""
            # Login/register run before a token exists; the webhook is signature-verified.
            if endpoint.startswith("auth.") or endpoint in _CSRF_EXEMPT_ENDPOINTS:
                return None
            if not validate_csrf(request):
                return jsonify({"error": "CSRF token missing or invalid."}), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("STRIPE_WEBHOOK_SECRET"):
            app.logger.error("STRIPE_WEBHOOK_SECRET is not set; webhook events will be rejected.")

    init_db(app)

    # Storage health check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    _register_blueprints(app)

    from app.onekappa.auth import load_current_user

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    # Schema health: detect a database that was never migrated.
    app.config.setdefault("_schema_health_ok", True)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> None:
        missing: list[str] = []
        try:
            engine = app.extensions.get("sqlalchemy_engine")
            insp = sa_inspect(engine)
            for table in (
                "users",
                "chapters",
                "sellers",
                "products",
                "orders",
                "steward_listings",
                "platform_settings",
                "industries",
            ):
                if not insp.has_table(table):
                    missing.append(f"{table} (table)")
            if insp.has_table("events"):
                event_cols = {c["name"] for c in insp.get_columns("events")}
                if "recurrence_rule" not in event_cols:
                    missing.append("events.recurrence_rule (column)")
        except SQLAlchemyError as e:
            app.logger.exception("Schema health check failed: %s", e)
            return
        app.config["_schema_health_ok"] = not missing
        app.config["_schema_health_missing"] = missing
        if missing:
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

    _run_schema_health_check()

    @app.before_request
    def _schema_health_guardrail():
        if app.config.get("_schema_health_ok") or request.path.startswith(_PUBLIC_PREFIXES):
            return None
        # re-check so a migration run after boot clears the guard
        _run_schema_health_check()
        if app.config.get("_schema_health_ok"):
            return None
        return jsonify({"error": "Database schema out of date", "missing": app.config.get("_schema_health_missing")}), 503

    def _json_error(status: int, message: str):
        return jsonify({"error": message}), status

    @app.errorhandler(400)
    def _err_400(e):
        return _json_error(400, getattr(e, "description", None) or "Bad request")

    @app.errorhandler(401)
    def _err_401(e):
        return _json_error(401, "Authentication required")

    @app.errorhandler(403)
    def _err_403(e):
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        body = {"error": "Forbidden"}
        if missing:
            body["missing_permission"] = missing
        return jsonify(body), 403

    @app.errorhandler(404)
    def _err_404(e):
        return _json_error(404, "Not found")

    @app.errorhandler(405)
    def _err_405(e):
        return _json_error(405, "Method not allowed")

    @app.errorhandler(413)
    def _err_413(e):
        max_mb = int(app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        return _json_error(413, f"File too large. Maximum upload size is {max_mb}MB.")

    @app.errorhandler(500)
    def _err_500(e):
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return _json_error(500, "Internal server error")

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
