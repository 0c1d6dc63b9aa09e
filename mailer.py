# mailer.py
"""SMTP email delivery (Gmail app password by default) with PDF attachments."""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage

logger = logging.getLogger(__name__)


class EmailSendError(RuntimeError):
    pass


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    mime_type: str = "application/pdf"


@dataclass(frozen=True)
class MailSettings:
    enabled: bool
    host: str
    port: int
    username: str | None
    password: str | None
    default_to: str | None
    from_name: str
    use_ssl: bool
    timeout_seconds: int

    @property
    def from_email(self) -> str:
        return f'"{self.from_name}" <{self.username}>'

    @property
    def office_address(self) -> str | None:
        return self.default_to or self.username

    @classmethod
    def from_config(cls, config) -> "MailSettings":
        def _get(key, default=None):
            if isinstance(config, dict):
                return config.get(key, default)
            return getattr(config, key, default)

        return cls(
            enabled=bool(_get("MAIL_ENABLED", True)),
            host=_get("SMTP_HOST") or "smtp.gmail.com",
            port=int(_get("SMTP_PORT") or 465),
            username=(_get("GMAIL_USER") or "").strip() or None,
            password=_get("GMAIL_PASS") or None,
            default_to=(_get("GMAIL_TO") or "").strip() or None,
            from_name=f"{_get('COMPANY_NAME') or 'Myriad Green'} Website",
            use_ssl=bool(_get("SMTP_USE_SSL", True)),
            timeout_seconds=int(_get("SMTP_TIMEOUT_SECONDS") or 15),
        )


def _build_message(settings: MailSettings, to, subject, text, html, reply_to, attachments) -> EmailMessage:
    message = EmailMessage()
    message["From"] = settings.from_email
    message["To"] = to
    message["Subject"] = subject
    if reply_to:
        message["Reply-To"] = reply_to
    message.set_content(text)
    if html:
        message.add_alternative(html, subtype="html")
    for attachment in attachments:
        maintype, _, subtype = attachment.mime_type.partition("/")
        message.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return message


def send_mail(
    settings: MailSettings,
    *,
    to: str | None,
    subject: str,
    text: str,
    html: str | None = None,
    reply_to: str | None = None,
    attachments=(),
) -> bool:
    """
    Returns True once the message was handed to the SMTP server, False when
    mail is disabled or not configured. Transport failures raise EmailSendError.
    """
    to = to or settings.office_address
    attachments = tuple(attachments)
    if not settings.enabled:
        logger.info("[EMAIL] disabled, skipping %r to=%s", subject, to)
        return False
    if not (settings.username and settings.password and to):
        logger.warning("[EMAIL] credentials or recipient missing, skipping %r", subject)
        return False

    try:
        message = _build_message(settings, to, subject, text, html, reply_to, attachments)
    except ValueError as exc:
        # header values with CR/LF are refused by EmailMessage
        logger.error("[EMAIL] rejected message %r to=%s", subject, to)
        raise EmailSendError(f"Invalid message: {exc}") from exc

    try:
        if settings.use_ssl:
            with smtplib.SMTP_SSL(settings.host, settings.port, timeout=settings.timeout_seconds) as server:
                server.login(settings.username, settings.password)
                server.send_message(message)
        else:
            with smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout_seconds) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                server.login(settings.username, settings.password)
                server.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("[EMAIL] SMTP send failed to=%s", to)
        raise EmailSendError(f"SMTP send failed: {exc}") from exc

    logger.info("[EMAIL] sent %r to=%s (%d attachment(s))", subject, to, len(attachments))
    return True
