import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.onekappa.constants import ROLE_PERMISSIONS
from app.onekappa.models import User
from app.onekappa.modules.platform_settings.service import seed_default_settings
from app.onekappa.rbac import ensure_role, grant_role
from scripts._db_utils import script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions, roles, the admin user and default platform settings in an idempotent way.
    Does NOT overwrite an existing admin user's password or existing setting values.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@onekappa.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///onekappa.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        for role_key in ROLE_PERMISSIONS:
            ensure_role(s, role_key)

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                name="Administrator",
                is_active=True,
                onboarding_status="ONBOARDING_FINISHED",
            )
            s.add(user)
            s.flush()
        grant_role(s, user, "admin")

        seed_default_settings(s)

    print("Initialized database (seed_only).")
    print(f"Roles: {', '.join(ROLE_PERMISSIONS)}")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
