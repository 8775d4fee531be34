# app/services/email.py
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from starlette.concurrency import run_in_threadpool

from app.core.config import settings

log = logging.getLogger(__name__)


def _redact(email: str) -> str:
    """log 中不留完整 email"""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


def _smtp_send(to_email: str, subject: str, html_body: str, text_body: Optional[str]) -> None:
    sender = settings.EMAIL_FROM or settings.SMTP_USER
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.APP_NAME} <{sender}>"
    msg["To"] = to_email
    if text_body:
        msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    context = ssl.create_default_context()
    if settings.SMTP_USE_TLS:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            server.starttls(context=context)
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(sender, to_email, msg.as_string())
    else:
        with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, context=context, timeout=30) as server:
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(sender, to_email, msg.as_string())


async def send_email(to_email: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
    """
    寄信（fire-and-forget）：失敗只記 log，不往上拋。
    未設定 SMTP_HOST 時（開發環境）只把內容印在 log。
    """
    if not settings.SMTP_HOST:
        log.info("[DEV EMAIL] to=%s subject=%s\n%s", _redact(to_email), subject, text_body or html_body)
        return True
    try:
        await run_in_threadpool(_smtp_send, to_email, subject, html_body, text_body)
    except (smtplib.SMTPException, OSError) as exc:
        log.error("Email to %s failed: %s", _redact(to_email), exc)
        return False
    log.info("Email sent to %s (%s)", _redact(to_email), subject)
    return True


def build_reset_password_url(reset_password_token: str) -> str:
    return f"{settings.RESET_PASSWORD_URL_BASE.rstrip('/')}/{reset_password_token}"


async def send_reset_password_email(to_email: str, reset_password_url: str) -> bool:
    html_body = f"""
        <h1>Reset password</h1>
        <p>To reset your password click the following link: </p>
        <a href='{reset_password_url}' rel='noreferrer' referrerpolicy='origin' clicktracking='off'>Change your password</a>
    """
    text_body = f"To reset your password open the following link: {reset_password_url}"
    return await send_email(to_email, "Password Reset Requested", html_body, text_body)
