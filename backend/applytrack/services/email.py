from __future__ import annotations

import logging

import boto3
import resend
import smtplib
from html import escape as html_escape
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, EndpointConnectionError

from applytrack.core.config import settings

logger = logging.getLogger(__name__)


class EmailNotConfiguredError(RuntimeError):
    pass


class EmailDeliveryError(RuntimeError):
    """
    Raised when a provider is configured but delivery fails.
    Stored on the outbox row, so keep it short and free of secrets.
    """


def _require_smtp_config() -> None:
    if not settings.SMTP_HOST:
        raise EmailNotConfiguredError("SMTP_HOST is not set")
    if not settings.SMTP_FROM_EMAIL and not settings.SMTP_USERNAME:
        raise EmailNotConfiguredError("SMTP_FROM_EMAIL is not set")


def _smtp_from_address() -> str:
    # Gmail rewrites From to the authenticated account anyway.
    return settings.SMTP_FROM_EMAIL or settings.SMTP_USERNAME


def _normalize_provider(raw: str | None) -> str:
    """
    Supported providers:
    - resend (default when unset)
    - ses
    - gmail
    Legacy alias:
    - smtp -> gmail
    """
    provider = (raw or "").strip().lower()
    if not provider:
        return "resend"
    if provider == "smtp":
        return "gmail"
    if provider in {"resend", "ses", "gmail"}:
        return provider
    raise EmailNotConfiguredError(
        f"Unsupported EMAIL_PROVIDER={provider!r}. Supported: resend (default), ses, gmail. Legacy alias: smtp -> gmail."
    )


def _require_from_email() -> str:
    if not settings.FROM_EMAIL:
        raise EmailNotConfiguredError("FROM_EMAIL is not set")
    return settings.FROM_EMAIL


def _require_ses_config() -> tuple[str, str]:
    region = (settings.AWS_REGION or "").strip()
    if not region:
        raise EmailNotConfiguredError("AWS_REGION is not set (required for SES)")
    return region, _require_from_email()


def _require_resend_config() -> tuple[str, str]:
    api_key = (settings.RESEND_API_KEY or "").strip()
    if not api_key:
        raise EmailNotConfiguredError("RESEND_API_KEY is not set")
    return api_key, _require_from_email()


def _send_email_ses(to_email: str, subject: str, body: str, html: str | None) -> str | None:
    region, from_email = _require_ses_config()
    client = boto3.client("ses", region_name=region)

    message_body: dict = {"Text": {"Data": body, "Charset": "UTF-8"}}
    if html:
        message_body["Html"] = {"Data": html, "Charset": "UTF-8"}

    try:
        res = client.send_email(
            Source=from_email,
            Destination={"ToAddresses": [to_email]},
            Message={
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": message_body,
            },
        )
        msg_id = res.get("MessageId")
        logger.info("SES email sent: to=%s msg_id=%s", to_email, msg_id)
        return msg_id
    except NoCredentialsError as e:
        logger.exception("SES email failed (no AWS credentials)")
        raise EmailDeliveryError("SES email failed: AWS credentials not available") from e
    except EndpointConnectionError as e:
        logger.exception("SES email failed (endpoint connection)")
        raise EmailDeliveryError("SES email failed: could not connect to SES endpoint") from e
    except ClientError as e:
        logger.exception("SES email failed (client error)")
        code = (e.response or {}).get("Error", {}).get("Code", "ClientError")
        if code in {"MessageRejected", "MailFromDomainNotVerifiedException"}:
            raise EmailDeliveryError(
                "SES rejected the email. Verify FROM_EMAIL (or domain) and check if SES is in sandbox."
            ) from e
        raise EmailDeliveryError(f"SES email failed: {code}") from e
    except BotoCoreError as e:
        logger.exception("SES email failed (botocore)")
        raise EmailDeliveryError("SES email failed") from e


def _send_email_resend(to_email: str, subject: str, body: str, html: str | None) -> str | None:
    api_key, from_email = _require_resend_config()

    payload = {
        "from": from_email,
        "to": [to_email],
        "subject": subject,
        "text": body,
        "html": html or f"<pre>{html_escape(body)}</pre>",
    }

    try:
        resend.api_key = api_key
        res = resend.Emails.send(payload)  # type: ignore[attr-defined]
    except Exception as e:  # noqa: BLE001 - the SDK raises its own error hierarchy
        raise EmailDeliveryError(f"Resend send failed: {e}") from e

    msg_id: str | None = None
    if isinstance(res, dict):
        if res.get("error"):
            raise EmailDeliveryError(f"Resend API error: {res.get('error')}")
        v = res.get("id")
        if isinstance(v, str) and v.strip():
            msg_id = v.strip()

    logger.info("Resend email sent: to=%s msg_id=%s", to_email, msg_id)
    return msg_id


def _send_email_smtp(to_email: str, subject: str, body: str, html: str | None) -> None:
    _require_smtp_config()
    from_email = _smtp_from_address()

    if html:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
    else:
        msg = MIMEText(body, "plain", "utf-8")
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=True)

    timeout = settings.SMTP_TIMEOUT_SECONDS
    try:
        if settings.SMTP_USE_SSL:
            server: smtplib.SMTP = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout)
        else:
            server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout)
    except OSError as e:
        logger.exception("SMTP connect failed: host=%s port=%s", settings.SMTP_HOST, settings.SMTP_PORT)
        raise EmailDeliveryError(f"SMTP connection failed: {e}") from e

    try:
        server.ehlo()
        if settings.SMTP_USE_TLS and not settings.SMTP_USE_SSL:
            server.starttls()
            server.ehlo()

        if settings.SMTP_USERNAME:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)

        server.sendmail(from_email, [to_email], msg.as_string())
        logger.info("SMTP email sent: to=%s host=%s", to_email, settings.SMTP_HOST)
    except (smtplib.SMTPException, OSError) as e:
        logger.exception("SMTP email failed")
        raise EmailDeliveryError(f"SMTP email failed: {e}") from e
    finally:
        try:
            server.quit()
        except (smtplib.SMTPException, OSError):
            pass


def send_email(to_email: str, subject: str, body: str, *, html: str | None = None) -> str | None:
    """
    Sends email using configured provider.
    - EMAIL_ENABLED=false: no-op (returns None)
    - EMAIL_PROVIDER=resend (default): Resend API
    - EMAIL_PROVIDER=ses: AWS SES via boto3
    - EMAIL_PROVIDER=gmail: SMTP relay via stdlib
    - EMAIL_PROVIDER=smtp: legacy alias for gmail
    """
    if not settings.EMAIL_ENABLED:
        logger.debug("Email disabled; not sending %r to %s", subject, to_email)
        return None

    provider = _normalize_provider(settings.EMAIL_PROVIDER)
    if provider == "gmail":
        _send_email_smtp(to_email=to_email, subject=subject, body=body, html=html)
        return None
    if provider == "ses":
        return _send_email_ses(to_email=to_email, subject=subject, body=body, html=html)
    return _send_email_resend(to_email=to_email, subject=subject, body=body, html=html)
