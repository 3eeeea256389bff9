from __future__ import annotations

import time
import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, redirect, request, session
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from app.onekappa.audit import record_event
from app.onekappa.db import db_session
from app.onekappa.models import User
from app.onekappa.rbac import grant_role
from app.onekappa.security import ensure_csrf_token
from app.onekappa.utils import clean_str, is_valid_email, parse_bool, request_payload

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
_MIN_PASSWORD_LENGTH = 8

# polling the session status must not keep the session alive
_PASSIVE_ENDPOINTS = frozenset({"auth.session_status"})


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


# ---- Idle timeout ----

def session_timeout_seconds(remember: bool) -> int:
    cfg = current_app.config
    if remember:
        return int(cfg.get("SESSION_REMEMBER_DAYS", 30)) * 86400
    return int(cfg.get("SESSION_IDLE_MINUTES", 30)) * 60


def session_warning_seconds(remember: bool) -> int:
    cfg = current_app.config
    if remember:
        return int(cfg.get("SESSION_REMEMBER_WARNING_MINUTES", 1440)) * 60
    return int(cfg.get("SESSION_WARNING_MINUTES", 5)) * 60


def _start_session(user: User, remember: bool) -> None:
    session.clear()
    session["user_id"] = user.id
    session["remember"] = bool(remember)
    session["last_activity"] = int(time.time())
    session.permanent = True
    ensure_csrf_token()


def _clear_session() -> None:
    session.pop("user_id", None)
    session.pop("remember", None)
    session.pop("last_activity", None)


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie and enforces the idle timeout.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.session_expired = False
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    now = int(time.time())
    last_activity = session.get("last_activity") or now
    if now - int(last_activity) > session_timeout_seconds(bool(session.get("remember"))):
        _clear_session()
        g.current_user = None
        g.session_expired = True
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            _clear_session()
            g.current_user = None
            return
        g.current_user = user
    except SQLAlchemyError as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        _clear_session()
        g.current_user = None
        return

    if request.endpoint not in _PASSIVE_ENDPOINTS:
        session["last_activity"] = now


def _wants_json() -> bool:
    return request.is_json or request.accept_mimetypes.best == "application/json"


def _frontend_url() -> str:
    return (current_app.config.get("FRONTEND_URL") or "http://localhost:3000").rstrip("/")


# ---- Routes ----

@bp.post("/register")
def register():
    payload = request_payload()
    email = (clean_str(payload.get("email")) or "").lower()
    password = payload.get("password") or ""
    if not is_valid_email(email):
        return jsonify({"error": "A valid email is required"}), 400
    if len(password) < _MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {_MIN_PASSWORD_LENGTH} characters"}), 400

    s = db_session()
    if s.query(User.id).filter(User.email == email).first():
        return jsonify({"error": "An account with this email already exists"}), 400

    now = datetime.utcnow()
    user = User(
        email=email,
        password_hash=generate_password_hash(password),
        name=clean_str(payload.get("name")),
        is_active=True,
        onboarding_status="ACCOUNT_CREATED",
        features={},
        last_login=now,
        created_at=now,
        updated_at=now,
    )
    s.add(user)
    s.flush()
    grant_role(s, user, "guest")

    token = clean_str(payload.get("invitation_token"))
    seller_id = None
    if token:
        from app.onekappa.modules.sellers.service import claim_invitation

        seller = claim_invitation(s, token, user)
        seller_id = seller.id if seller else None

    record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=str(user.id))
    s.commit()
    _start_session(user, parse_bool(payload.get("remember")))
    return jsonify({"id": user.id, "email": user.email, "roles": user.role_keys, "seller_id": seller_id}), 201


@bp.post("/login")
def login_post():
    payload = request_payload()
    email = (clean_str(payload.get("email")) or "").lower()
    password = payload.get("password") or ""
    remember = parse_bool(payload.get("remember"))
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        if _wants_json():
            return jsonify({"error": "Too many login attempts. Please wait 5 minutes."}), 429
        return redirect(f"{_frontend_url()}/login?error=rate_limited")

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            if _wants_json():
                return jsonify({"error": "Invalid credentials"}), 401
            return redirect(f"{_frontend_url()}/login?error=invalid")

        user.last_login = datetime.utcnow()
        _login_attempts[ip].clear()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
        _start_session(user, remember)
        if _wants_json():
            return jsonify({"id": user.id, "email": user.email, "roles": user.role_keys})
        nxt = (payload.get("next") or "").strip()
        # Only allow local paths to avoid open redirects.
        if nxt.startswith("/") and not nxt.startswith("//"):
            return redirect(f"{_frontend_url()}{nxt}")
        return redirect(_frontend_url())
    except SQLAlchemyError:
        current_app.logger.exception("Login POST crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return jsonify({"ok": True})


@bp.get("/csrf")
def csrf():
    return jsonify({"csrf_token": ensure_csrf_token()})


@bp.get("/session")
def session_status():
    user = getattr(g, "current_user", None)
    if not user:
        return jsonify(
            {
                "authenticated": False,
                "expired": bool(getattr(g, "session_expired", False)),
                "remember": False,
                "timeout_seconds": None,
                "seconds_remaining": 0,
                "expires_at": None,
                "warning": False,
            }
        )
    remember = bool(session.get("remember"))
    timeout = session_timeout_seconds(remember)
    last_activity = int(session.get("last_activity") or time.time())
    remaining = max(0, last_activity + timeout - int(time.time()))
    return jsonify(
        {
            "authenticated": True,
            "expired": False,
            "remember": remember,
            "timeout_seconds": timeout,
            "seconds_remaining": remaining,
            "expires_at": datetime.utcfromtimestamp(last_activity + timeout).isoformat() + "Z",
            "warning": remaining <= session_warning_seconds(remember),
        }
    )


@bp.post("/session/refresh")
def session_refresh():
    user = getattr(g, "current_user", None)
    if not user:
        return jsonify({"error": "Authentication required"}), 401
    session["last_activity"] = int(time.time())
    remember = bool(session.get("remember"))
    return jsonify({"ok": True, "seconds_remaining": session_timeout_seconds(remember)})
