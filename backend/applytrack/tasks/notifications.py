from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from applytrack.celery_app import BROKER_CONFIGURED, celery_app, enqueue
from applytrack.core.config import settings
from applytrack.core.database import SessionLocal
from applytrack.models.notification_outbox import NotificationOutbox
from applytrack.services.email import EmailDeliveryError, EmailNotConfiguredError, send_email


logger = logging.getLogger(__name__)

FINAL_STATUSES = {"sent", "skipped"}


def _with_db_session() -> Session:
    return SessionLocal()


def deliver_outbox_row(db: Session, row: NotificationOutbox) -> bool:
    """
    Attempt delivery of one outbox row and record the outcome on it.
    Returns True when a failed attempt is worth retrying.
    """
    if not settings.EMAIL_ENABLED:
        row.status = "skipped"
        row.last_error = None
        db.commit()
        logger.info("Email disabled; outbox %s skipped", row.id)
        return False

    row.attempts = int(row.attempts or 0) + 1
    retryable = False
    try:
        msg_id = send_email(row.to_email, row.subject, row.body_text, html=row.body_html)
    except EmailNotConfiguredError as exc:
        logger.error("Outbox %s not sent, email not configured: %s", row.id, exc)
        row.status = "failed"
        row.last_error = str(exc)[:500]
    except EmailDeliveryError as exc:
        logger.exception("Outbox %s delivery failed (attempt %s)", row.id, row.attempts)
        row.status = "failed"
        row.last_error = str(exc)[:500]
        retryable = row.attempts < settings.NOTIFICATION_EMAIL_MAX_ATTEMPTS
    else:
        row.status = "sent"
        row.last_error = None
        row.provider_message_id = msg_id
        row.sent_at = datetime.now(timezone.utc)
        logger.info("Outbox %s sent: occasion=%s to=%s", row.id, row.occasion, row.to_email)

    db.commit()
    return retryable


@celery_app.task(name="notifications.deliver_email", bind=True, max_retries=None)
def deliver_email(self, outbox_id: int) -> str | None:
    db = _with_db_session()
    try:
        row = db.get(NotificationOutbox, outbox_id)
        if not row:
            logger.warning("Outbox %s not found", outbox_id)
            return None
        if row.status in FINAL_STATUSES:
            return row.status
        retryable = deliver_outbox_row(db, row)
        status, attempts = row.status, row.attempts
    finally:
        db.close()

    if retryable and BROKER_CONFIGURED:
        countdown = settings.NOTIFICATION_RETRY_BASE_SECONDS * (2 ** max(attempts - 1, 0))
        raise self.retry(countdown=countdown)
    return status


def dispatch_outbox(outbox_id: int) -> None:
    """
    Hand one outbox row to the worker. Never raises: a row that cannot be
    enqueued stays pending and is picked up by redrive_outbox().
    """
    try:
        enqueue(deliver_email, outbox_id)
    except Exception:  # noqa: BLE001 - broker errors must not fail the API request
        logger.exception("Failed to enqueue outbox %s; left pending", outbox_id)


def redrive_outbox(db: Session, *, limit: int = 100, include_failed: bool = True) -> list[int]:
    """Re-dispatch pending (and optionally failed) rows still under the attempt limit."""
    statuses = ["pending", "failed"] if include_failed else ["pending"]
    rows = (
        db.query(NotificationOutbox.id)
        .filter(NotificationOutbox.status.in_(statuses))
        .filter(NotificationOutbox.attempts < settings.NOTIFICATION_EMAIL_MAX_ATTEMPTS)
        .order_by(NotificationOutbox.created_at.asc(), NotificationOutbox.id.asc())
        .limit(limit)
        .all()
    )
    ids = [r.id for r in rows]
    for outbox_id in ids:
        dispatch_outbox(outbox_id)
    logger.info("Redrove %s outbox rows", len(ids))
    return ids
