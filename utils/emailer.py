"""
Outbound mail for credential delivery.

A dispatcher takes a ``CredentialDelivery`` and returns ``(sent, error)``.
``dispatch_credentials`` is the SMTP one; ``create_app`` registers it under
``app.extensions["credential_dispatcher"]`` and tests swap in their own.
"""
import smtplib
from email.message import EmailMessage

from flask import current_app

from utils.logging import get_logger

logger = get_logger(__name__)


def _smtp_settings() -> dict:
    cfg = current_app.config
    return {
        "host": cfg.get("SMTP_HOST"),
        "port": cfg.get("SMTP_PORT", 587),
        "username": cfg.get("SMTP_USERNAME"),
        "password": cfg.get("SMTP_PASSWORD"),
        "sender": cfg.get("SMTP_FROM_EMAIL") or cfg.get("SMTP_USERNAME"),
        "use_tls": cfg.get("SMTP_USE_TLS", True),
        "timeout": cfg.get("SMTP_TIMEOUT_SECONDS", 10),
    }


def send_email(to_email: str, subject: str, body: str):
    smtp = _smtp_settings()
    if not smtp["host"] or not smtp["sender"]:
        return False, "Email not configured"

    msg = EmailMessage()
    msg["From"] = smtp["sender"]
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(smtp["host"], smtp["port"], timeout=smtp["timeout"]) as server:
            if smtp["use_tls"]:
                server.starttls()
            if smtp["username"] and smtp["password"]:
                server.login(smtp["username"], smtp["password"])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("email_send_failed", error=exc.__class__.__name__)
        return False, str(exc)
    return True, None


def credentials_message(delivery) -> tuple:
    """Subject and plain-text body for a provisioned or reset secret."""
    login_url = current_app.config.get("PORTAL_LOGIN_URL", "")
    subject = f"Your portal login credentials - {delivery.account_identifier}"
    body = (
        f"Dear {delivery.account_name},\n\n"
        "Your portal access has been set up.\n\n"
        f"Login ID: {delivery.account_identifier}\n"
        f"Password: {delivery.secret}\n"
        f"Login page: {login_url}\n\n"
        "Change this password after your first login and do not share it.\n"
        "Contact IT support if you did not expect this message.\n"
    )
    return subject, body


def dispatch_credentials(delivery):
    if not delivery.account_email:
        return False, "Account has no email address"
    subject, body = credentials_message(delivery)
    sent, error = send_email(delivery.account_email, subject, body)
    logger.info(
        "credentials_dispatched" if sent else "credentials_dispatch_failed",
        account_identifier=delivery.account_identifier,
        issuance_id=delivery.issuance_id,
    )
    return sent, error
