"""
Notification content for job application changes.

One formatter serves every occasion: the occasion picks the wording, the job
supplies the fields. The same occasion drives both channels:
- the real-time event pushed to the owner's room (build_event)
- the email written to the outbox and delivered by the Celery task (render_email)
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, timezone
from html import escape as html_escape

from sqlalchemy.orm import Session

from applytrack.core.config import settings
from applytrack.models.job_application import JobApplication
from applytrack.models.notification_outbox import NotificationOutbox
from applytrack.models.user import User


class Occasion(str, enum.Enum):
    created = "created"
    status_changed = "status_changed"


@dataclass(frozen=True)
class _Template:
    event_title: str
    event_message: str
    subject: str
    heading: str
    intro: str
    status_label: str
    date_label: str
    closing: str


_TEMPLATES: dict[Occasion, _Template] = {
    Occasion.created: _Template(
        event_title="New Job Application Added",
        event_message="You have added a new application for {company}",
        subject="New Job Application Added: {company}",
        heading="New Job Application Added",
        intro="You have added a new job application:",
        status_label="Status",
        date_label="Applied Date",
        closing="Login to your dashboard to manage your application.",
    ),
    Occasion.status_changed: _Template(
        event_title="Job Status Updated: {status}",
        event_message="Your application at {company} status changed to {status}",
        subject="Job Application Status Update: {company}",
        heading="Job Application Status Update",
        intro="Your job application status has been updated:",
        status_label="New Status",
        date_label="Updated Date",
        closing="Login to your dashboard to view more details.",
    ),
}


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text: str
    html: str


def _status_value(job: JobApplication) -> str:
    status = job.status
    return getattr(status, "value", status) or ""


def _format_date(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def _dashboard_url() -> str | None:
    base = (settings.FRONTEND_BASE_URL or "").strip().rstrip("/")
    return f"{base}/dashboard" if base else None


def build_event(occasion: Occasion, job: JobApplication, *, now: datetime | None = None) -> dict:
    """Real-time payload: {title, message, timestamp}."""
    tpl = _TEMPLATES[occasion]
    fields = {"company": job.company, "status": _status_value(job)}
    ts = now or datetime.now(timezone.utc)
    return {
        "title": tpl.event_title.format(**fields),
        "message": tpl.event_message.format(**fields),
        "timestamp": ts.isoformat(),
    }


def render_email(occasion: Occasion, job: JobApplication, *, today: date | None = None) -> RenderedEmail:
    tpl = _TEMPLATES[occasion]
    status = _status_value(job)
    if occasion is Occasion.created:
        shown_date = job.applied_date or today or datetime.now(timezone.utc).date()
    else:
        shown_date = today or datetime.now(timezone.utc).date()

    rows = [
        ("Company", job.company),
        ("Role", job.role),
        (tpl.status_label, status),
        (tpl.date_label, _format_date(shown_date)),
    ]

    dashboard_url = _dashboard_url()
    closing_lines = [tpl.closing] + ([dashboard_url] if dashboard_url else [])

    text = "\n".join(
        [tpl.heading, "", tpl.intro, *[f"- {label}: {value}" for label, value in rows], "", *closing_lines]
    )
    items = "".join(
        f"<li><strong>{html_escape(label)}:</strong> {html_escape(str(value))}</li>" for label, value in rows
    )
    closing_html = html_escape(tpl.closing)
    if dashboard_url:
        url = html_escape(dashboard_url, quote=True)
        closing_html += f' <a href="{url}">{url}</a>'
    html = (
        f"<h2>{html_escape(tpl.heading)}</h2>"
        f"<p>{html_escape(tpl.intro)}</p>"
        f"<ul>{items}</ul>"
        f"<p>{closing_html}</p>"
    )
    return RenderedEmail(subject=tpl.subject.format(company=job.company), text=text, html=html)


def add_email_to_outbox(
    db: Session,
    *,
    user: User,
    job: JobApplication,
    occasion: Occasion,
) -> NotificationOutbox:
    """
    Stage the email for `occasion` in the caller's transaction.
    The caller commits; delivery happens after the commit.
    """
    rendered = render_email(occasion, job)
    row = NotificationOutbox(
        user_id=user.id,
        application_id=job.id,
        occasion=occasion.value,
        to_email=user.email,
        subject=rendered.subject[:255],
        body_text=rendered.text,
        body_html=rendered.html,
        status="pending",
        attempts=0,
    )
    db.add(row)
    return row
