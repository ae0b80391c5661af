import smtplib
from email.message import EmailMessage
from typing import Optional
from core.config import settings
from db.models.otp_code import OtpKind
import logging

logger = logging.getLogger(__name__)

_SUBJECTS = {
    OtpKind.EMAIL_VERIFICATION: "Verify your email address",
    OtpKind.PASSWORD_RESET: "Your password reset code",
    OtpKind.LOGIN: "Your sign-in code",
    OtpKind.PHONE_VERIFICATION: "Your phone verification code",
}

_HEADLINES = {
    OtpKind.EMAIL_VERIFICATION: "Confirm your email",
    OtpKind.PASSWORD_RESET: "Reset your password",
    OtpKind.LOGIN: "Sign in",
    OtpKind.PHONE_VERIFICATION: "Confirm your phone number",
}


def _build_message(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    if settings.SMTP_FROM_NAME and settings.SMTP_FROM_EMAIL:
        msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    else:
        msg["From"] = settings.SMTP_FROM_EMAIL or "no-reply@example.com"
    msg["To"] = to_email
    if text_body:
        msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def send_email(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> bool:
    if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
        logger.warning("SMTP not configured; skipping email send")
        return False
    try:
        msg = _build_message(subject, to_email, html_body, text_body)
        timeout = settings.SMTP_TIMEOUT or 15
        if settings.SMTP_USE_SSL:
            with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        logger.info(f"Sent email with subject '{subject}'")
        return True
    except (smtplib.SMTPException, OSError) as exc:
        logger.error(f"Failed to send email: {exc}")
        return False


def send_otp_email(to_email: str, otp_code: str, kind: OtpKind, expires_minutes: int) -> bool:
    subject = _SUBJECTS.get(kind, "Your one-time code")
    headline = _HEADLINES.get(kind, "Your one-time code")
    text = f"Your code is {otp_code}. It expires in {expires_minutes} minutes."
    html = f"""
    <div style='font-family: Arial, sans-serif; line-height: 1.5;'>
      <h2>{headline}</h2>
      <p>Use the following one-time code. It expires in <strong>{expires_minutes} minutes</strong>.</p>
      <p style='font-size: 24px; font-weight: bold; letter-spacing: 4px;'>{otp_code}</p>
      <p>If you did not request this, you can safely ignore this email.</p>
      <p>{settings.SMTP_FROM_NAME} Team</p>
    </div>
    """
    return send_email(subject, to_email, html, text)
