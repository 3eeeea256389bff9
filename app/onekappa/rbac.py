from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, jsonify
from sqlalchemy.orm import Session

from app.onekappa.constants import PERMISSIONS, ROLE_PERMISSIONS
from app.onekappa.models import Permission, Role, User


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def user_has_role(user: User | None, role_key: str) -> bool:
    if not user or not user.is_active:
        return False
    return any(r.key == role_key for r in user.roles)


def _unauthenticated():
    return jsonify({"error": "Authentication required"}), 401


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            return _unauthenticated()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                return _unauthenticated()
            # Authenticated but unauthorized -> 403
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def ensure_permission(s: Session, key: str) -> Permission:
    p = s.query(Permission).filter(Permission.key == key).one_or_none()
    if not p:
        p = Permission(key=key, name=PERMISSIONS.get(key, key))
        s.add(p)
        s.flush()
    return p


def ensure_role(s: Session, key: str) -> Role:
    """Fetch a role by key, creating it (with its default permissions) if missing. Idempotent."""
    display_name, perm_keys = ROLE_PERMISSIONS[key]
    role = s.query(Role).filter(Role.key == key).one_or_none()
    if not role:
        role = Role(key=key, name=display_name)
        s.add(role)
        s.flush()
    for perm_key in perm_keys:
        p = ensure_permission(s, perm_key)
        if p not in role.permissions:
            role.permissions.append(p)
    return role


def grant_role(s: Session, user: User, key: str) -> Role:
    role = ensure_role(s, key)
    if role not in user.roles:
        user.roles.append(role)
    return role


def revoke_role(s: Session, user: User, key: str) -> None:
    for role in list(user.roles):
        if role.key == key:
            user.roles.remove(role)
