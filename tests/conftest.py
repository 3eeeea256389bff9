import pytest

from app.onekappa import create_app
from app.onekappa.db import session_scope
from app.onekappa.models import Base
from app.onekappa.modules.platform_settings.service import seed_default_settings

WEBHOOK_SECRET = "whsec_test_secret"


class FakeStripe:
    """Records calls instead of talking to Stripe."""

    def __init__(self):
        self.account = {"charges_enabled": True, "capabilities": {"transfers": "active"}}
        self.sessions: list[dict] = []
        self.transfers: list[dict] = []
        self.express_accounts: list[str] = []
        self.session_error: Exception | None = None

    def retrieve_account(self, account_id):
        return {"id": account_id, **self.account}

    def create_checkout_session(self, params, *, idempotency_key=None):
        if self.session_error is not None:
            raise self.session_error
        self.sessions.append(params)
        n = len(self.sessions)
        return {"id": f"cs_test_{n}", "url": f"https://checkout.stripe.test/cs_test_{n}"}

    def create_transfer(self, **kwargs):
        self.transfers.append(kwargs)
        return {"id": f"tr_test_{len(self.transfers)}"}

    def create_express_account(self, email, country="US"):
        self.express_accounts.append(email)
        return {"id": f"acct_new_{len(self.express_accounts)}"}

    def create_account_link(self, account_id, return_url, refresh_url):
        return f"https://connect.stripe.test/{account_id}"


@pytest.fixture()
def flask_app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("LOCAL_STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    for k in (
        "S3_ENDPOINT",
        "S3_REGION",
        "S3_BUCKET",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "STRIPE_SECRET_KEY",
        "EASYPOST_API_KEY",
        "SMTP_SERVER",
        "EMAIL_FROM",
    ):
        monkeypatch.delenv(k, raising=False)

    from app.onekappa import auth

    auth._login_attempts.clear()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        seed_default_settings(s)

    return app


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    for module in (
        "app.onekappa.admin",
        "app.onekappa.modules.checkout.routes",
        "app.onekappa.modules.payments.routes",
        "app.onekappa.modules.sellers.routes",
        "app.onekappa.modules.stewards.checkout_routes",
    ):
        monkeypatch.setattr(f"{module}.stripe_client_from_config", lambda config: fake)
    return fake
