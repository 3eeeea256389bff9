"""
Outbound email over SMTP.

Every sender returns ``(ok, detail)`` and never raises into the request; a
failed notification email must not fail the purchase or approval that caused it.
"""
from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, body: str, html: str | None = None) -> tuple[bool, str]:
    cfg = current_app.config
    smtp_server = (cfg.get("SMTP_SERVER") or "").strip()
    smtp_port = cfg.get("SMTP_PORT")
    smtp_use_tls = cfg.get("SMTP_USE_TLS", True)
    smtp_username = (cfg.get("SMTP_USERNAME") or "").strip()
    smtp_password = (cfg.get("SMTP_PASSWORD") or "").strip()
    email_from = (cfg.get("EMAIL_FROM") or "").strip()

    if not smtp_server:
        logger.warning("EMAIL: SMTP_SERVER not configured; skipping '%s' to %s", subject, to)
        return False, "SMTP server not configured"
    if not email_from:
        logger.warning("EMAIL: EMAIL_FROM not configured; skipping '%s' to %s", subject, to)
        return False, "Email from address not configured"

    if html:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(html, "html"))
    else:
        msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = email_from
    msg["To"] = to

    try:
        server = smtplib.SMTP(smtp_server, int(smtp_port)) if smtp_port else smtplib.SMTP(smtp_server)
        try:
            if smtp_use_tls:
                server.starttls()
            if smtp_username and smtp_password:
                server.login(smtp_username, smtp_password)
            server.send_message(msg)
        finally:
            server.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.error("EMAIL: failed to send '%s' to %s: %s", subject, to, e)
        return False, str(e)

    logger.info("EMAIL: sent '%s' to %s", subject, to)
    return True, "sent"


def _frontend_url() -> str:
    return (current_app.config.get("FRONTEND_URL") or "http://localhost:3000").rstrip("/")


def send_seller_approved_email(email: str, name: str, invitation_token: str | None = None) -> tuple[bool, str]:
    if invitation_token:
        link = f"{_frontend_url()}/register?invitation={invitation_token}"
        next_step = f"Create your account to start listing products: {link}"
    else:
        next_step = f"Sign in and connect Stripe to start receiving payments: {_frontend_url()}/seller-dashboard"
    body = (
        f"Hi {name},\n\n"
        "Your seller application has been approved.\n\n"
        f"{next_step}\n"
    )
    return send_email(email, "Your seller application was approved", body)


def send_seller_stripe_setup_required_email(email: str, name: str, product_name: str, product_id: int) -> tuple[bool, str]:
    body = (
        f"Hi {name},\n\n"
        f'A Brother attempted to purchase "{product_name}" (product #{product_id}) but the purchase '
        "could not be completed because your Stripe account is not connected.\n\n"
        f"Connect Stripe to start receiving payments: {_frontend_url()}/seller-dashboard\n"
    )
    return send_email(email, "Action required: connect Stripe to receive payments", body)


def send_application_received_email(kind: str, email: str, name: str) -> tuple[bool, str]:
    body = (
        f"Hi {name},\n\n"
        f"We received your {kind} application. An admin will review it shortly.\n"
    )
    ok, detail = send_email(email, f"We received your {kind} application", body)
    admin_email = (current_app.config.get("ADMIN_NOTIFY_EMAIL") or "").strip()
    if admin_email:
        send_email(admin_email, f"New {kind} application: {name}", f"{name} <{email}> applied as a {kind}.\n")
    return ok, detail


def send_application_decision_email(kind: str, email: str, name: str, approved: bool) -> tuple[bool, str]:
    decision = "approved" if approved else "not approved"
    body = f"Hi {name},\n\nYour {kind} application was {decision}.\n"
    return send_email(email, f"Your {kind} application was {decision}", body)
