from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any


class StripeError(RuntimeError):
    def __init__(self, message: str, *, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status = status
        self.code = code


class StripeRateLimited(StripeError):
    pass


class StripeSignatureError(StripeError):
    pass


def encode_form(params: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """
    Flatten nested dicts/lists into Stripe's bracketed form keys, e.g.
    {"line_items": [{"quantity": 1}]} -> [("line_items[0][quantity]", "1")].
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        full_key = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(encode_form(value, full_key))
        elif isinstance(value, (list, tuple)):
            for i, item in enumerate(value):
                item_key = f"{full_key}[{i}]"
                if isinstance(item, dict):
                    pairs.extend(encode_form(item, item_key))
                else:
                    pairs.append((item_key, _scalar(item)))
        else:
            pairs.append((full_key, _scalar(value)))
    return pairs


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class StripeClient:
    secret_key: str
    base_url: str = "https://api.stripe.com"
    api_version: str = "2024-06-20"
    timeout_seconds: int = 30

    def _auth_header(self) -> str:
        token = f"{self.secret_key}:".encode("utf-8")
        return "Basic " + base64.b64encode(token).decode("ascii")

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        stripe_account: str | None = None,
        idempotency_key: str | None = None,
        retries: int = 3,
    ) -> dict[str, Any]:
        url = self.base_url.rstrip("/") + path
        data: bytes | None = None
        if params:
            encoded = urllib.parse.urlencode(encode_form(params))
            if method == "GET":
                url += "?" + encoded
            else:
                data = encoded.encode("utf-8")

        last_err: Exception | None = None
        for attempt in range(retries + 1):
            req = urllib.request.Request(url, data=data, method=method)
            req.add_header("Authorization", self._auth_header())
            req.add_header("Stripe-Version", self.api_version)
            req.add_header("Accept", "application/json")
            if data is not None:
                req.add_header("Content-Type", "application/x-www-form-urlencoded")
            if stripe_account:
                req.add_header("Stripe-Account", stripe_account)
            if idempotency_key:
                req.add_header("Idempotency-Key", idempotency_key)
            try:
                with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                    raw = resp.read()
                    try:
                        return json.loads(raw.decode("utf-8"))
                    except ValueError as e:
                        raise StripeError(f"Invalid JSON from Stripe ({path})") from e
            except urllib.error.HTTPError as e:
                if e.code == 429:
                    # rate limit; brief backoff
                    time.sleep(min(2 * (attempt + 1), 10))
                    last_err = StripeRateLimited("Rate limited (429)", status=429)
                    continue
                try:
                    body = e.read().decode("utf-8", errors="ignore")
                except Exception:
                    body = ""
                code = None
                message = body[:300]
                try:
                    err = json.loads(body).get("error") or {}
                    code = err.get("code")
                    message = err.get("message") or message
                except ValueError:
                    pass
                raise StripeError(f"HTTP {e.code} from Stripe: {message}", status=e.code, code=code) from e
            except urllib.error.URLError as e:
                last_err = e
                time.sleep(min(1 * (attempt + 1), 5))
                continue
        raise StripeError(f"Stripe request failed after retries: {last_err}")

    # ---- Connect ----
    def create_express_account(self, email: str, country: str = "US") -> dict[str, Any]:
        return self.request(
            "POST",
            "/v1/accounts",
            params={
                "type": "express",
                "country": country,
                "email": email,
                "capabilities": {
                    "card_payments": {"requested": True},
                    "transfers": {"requested": True},
                },
            },
        )

    def create_account_link(self, account_id: str, return_url: str, refresh_url: str) -> str:
        j = self.request(
            "POST",
            "/v1/account_links",
            params={
                "account": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            },
        )
        return j.get("url") or ""

    def retrieve_account(self, account_id: str) -> dict[str, Any]:
        return self.request("GET", f"/v1/accounts/{urllib.parse.quote(account_id)}")

    # ---- Payments ----
    def create_checkout_session(self, params: dict[str, Any], *, idempotency_key: str | None = None) -> dict[str, Any]:
        return self.request("POST", "/v1/checkout/sessions", params=params, idempotency_key=idempotency_key)

    def create_transfer(
        self,
        *,
        amount_cents: int,
        destination: str,
        transfer_group: str | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        return self.request(
            "POST",
            "/v1/transfers",
            params={
                "amount": amount_cents,
                "currency": "usd",
                "destination": destination,
                "transfer_group": transfer_group,
                "metadata": metadata or None,
            },
            idempotency_key=idempotency_key,
        )


def account_ready_for_charges(account: dict[str, Any]) -> bool:
    """Connected account can take charges and receive transfers."""
    if not account.get("charges_enabled"):
        return False
    capabilities = account.get("capabilities") or {}
    return capabilities.get("transfers") == "active"


def stripe_client_from_config(config: dict) -> StripeClient | None:
    key = (config.get("STRIPE_SECRET_KEY") or "").strip()
    if not key:
        return None
    return StripeClient(secret_key=key)


def verify_webhook_signature(
    payload: bytes,
    sig_header: str,
    secret: str,
    *,
    tolerance_seconds: int = 300,
    now: int | None = None,
) -> dict[str, Any]:
    """
    Check a Stripe-Signature header ("t=<ts>,v1=<hex>,...") against the raw body
    and return the parsed event. Raises StripeSignatureError on any mismatch.
    """
    if not secret:
        raise StripeSignatureError("Webhook secret not configured")
    timestamp: str | None = None
    signatures: list[str] = []
    for part in (sig_header or "").split(","):
        k, _, v = part.strip().partition("=")
        if k == "t":
            timestamp = v
        elif k == "v1":
            signatures.append(v)
    if not timestamp or not signatures:
        raise StripeSignatureError("Unable to extract timestamp and signatures from header")

    signed_payload = timestamp.encode("utf-8") + b"." + payload
    expected = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise StripeSignatureError("No signatures found matching the expected signature for payload")

    try:
        ts = int(timestamp)
    except ValueError as e:
        raise StripeSignatureError("Invalid timestamp in signature header") from e
    current = int(time.time()) if now is None else now
    if tolerance_seconds and abs(current - ts) > tolerance_seconds:
        raise StripeSignatureError("Timestamp outside the tolerance zone")

    try:
        event = json.loads(payload.decode("utf-8"))
    except ValueError as e:
        raise StripeSignatureError("Invalid JSON payload") from e
    if not isinstance(event, dict):
        raise StripeSignatureError("Invalid event payload")
    return event


def sign_webhook_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header value for a payload (used by local tooling and tests)."""
    ts = int(time.time()) if timestamp is None else timestamp
    sig = hmac.new(secret.encode("utf-8"), str(ts).encode("utf-8") + b"." + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"
