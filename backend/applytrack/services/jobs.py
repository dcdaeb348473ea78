from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import BackgroundTasks, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload

from applytrack.models.job_application import ApplicationStatus, JobApplication
from applytrack.models.user import User
from applytrack.schemas.job_application import JobApplicationCreate
from applytrack.schemas.job_application_update import JobApplicationUpdate
from applytrack.services.notifications import Occasion, add_email_to_outbox, build_event
from applytrack.services.realtime import ConnectionRegistry
from applytrack.tasks.notifications import dispatch_outbox

logger = logging.getLogger(__name__)

# Any status may move to any other status. Narrow a set here to introduce a workflow.
STATUS_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    s: frozenset(ApplicationStatus) for s in ApplicationStatus
}

SORT_FIELDS = {
    "company": JobApplication.company,
    "role": JobApplication.role,
    "status": JobApplication.status,
    "appliedDate": JobApplication.applied_date,
    "location": JobApplication.location,
    "salary": JobApplication.salary,
    "jobUrl": JobApplication.job_url,
    "notes": JobApplication.notes,
    "lastUpdated": JobApplication.last_updated,
    "createdAt": JobApplication.created_at,
    "updatedAt": JobApplication.updated_at,
}
DEFAULT_SORT_BY = "appliedDate"
DEFAULT_SORT_ORDER = "desc"


def _validation_error(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail=message)


def get_job_for_user(db: Session, job_id: str, user_id: int) -> JobApplication:
    job = (
        db.query(JobApplication)
        .filter(JobApplication.id == job_id, JobApplication.user_id == user_id)
        .first()
    )
    if not job:
        raise HTTPException(status_code=404, detail="Job application not found")
    return job


def parse_status(raw: str | None) -> ApplicationStatus | None:
    if raw is None or not raw.strip():
        return None
    try:
        return ApplicationStatus(raw.strip())
    except ValueError:
        allowed = ", ".join(s.value for s in ApplicationStatus)
        raise _validation_error(f"Invalid status {raw!r}. Allowed: {allowed}")


def ensure_transition_allowed(current: str, target: ApplicationStatus) -> None:
    # Stored values are constrained to ApplicationStatus by ck_job_applications_status.
    current_status = ApplicationStatus(current)
    if target not in STATUS_TRANSITIONS[current_status]:
        raise _validation_error(f"Cannot change status from {current_status.value} to {target.value}")


def list_jobs_query(
    db: Session,
    *,
    user_id: int | None,
    status: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> Query:
    """
    Filtered, sorted query over job applications.
    user_id=None is the admin view (no owner filter).
    """
    sort_key = (sort_by or DEFAULT_SORT_BY).strip()
    column = SORT_FIELDS.get(sort_key)
    if column is None:
        raise _validation_error(f"Invalid sortBy {sort_by!r}. Allowed: {', '.join(SORT_FIELDS)}")

    order = (sort_order or DEFAULT_SORT_ORDER).strip().lower()
    if order not in {"asc", "desc"}:
        raise _validation_error("sortOrder must be 'asc' or 'desc'")

    qry = db.query(JobApplication)
    if user_id is not None:
        qry = qry.filter(JobApplication.user_id == user_id)

    wanted = parse_status(status)
    if wanted is not None:
        qry = qry.filter(JobApplication.status == wanted.value)

    if order == "desc":
        return qry.order_by(column.desc(), JobApplication.created_at.desc(), JobApplication.id.desc())
    return qry.order_by(column.asc(), JobApplication.created_at.asc(), JobApplication.id.asc())


def list_all_jobs_query(db: Session, **filters) -> Query:
    return list_jobs_query(db, user_id=None, **filters).options(joinedload(JobApplication.user))


def job_stats(db: Session, user_id: int) -> dict[str, int]:
    rows = (
        db.query(JobApplication.status, func.count(JobApplication.id))
        .filter(JobApplication.user_id == user_id)
        .group_by(JobApplication.status)
        .all()
    )
    stats = {s.name: 0 for s in ApplicationStatus}
    total = 0
    for status, count in rows:
        total += int(count)
        try:
            stats[ApplicationStatus(status).name] += int(count)
        except ValueError:
            logger.warning("Job stats: unexpected status %r for user_id=%s", status, user_id)
    return {"total": total, **stats}


def _notify(
    realtime: ConnectionRegistry,
    *,
    user: User,
    job: JobApplication,
    occasion: Occasion,
    outbox_id: int,
    background: BackgroundTasks | None,
) -> None:
    # Committed before we get here. Real-time first, then the email hand-off;
    # neither outcome changes the response.
    realtime.publish(user.id, build_event(occasion, job))
    if background is not None:
        # Runs after the response is sent, so inline delivery never delays it.
        background.add_task(dispatch_outbox, outbox_id)
    else:
        dispatch_outbox(outbox_id)


def _stage_email(db: Session, *, user: User, job: JobApplication, occasion: Occasion) -> int:
    db.flush()
    row = add_email_to_outbox(db, user=user, job=job, occasion=occasion)
    db.flush()
    return row.id


def create_job(
    db: Session,
    *,
    user: User,
    payload: JobApplicationCreate,
    realtime: ConnectionRegistry,
    background: BackgroundTasks | None = None,
) -> JobApplication:
    data = payload.model_dump()
    now = datetime.now(timezone.utc)

    data["status"] = payload.status.value
    if data.get("applied_date") is None:
        data["applied_date"] = now.date()

    job = JobApplication(**data)
    job.user_id = user.id  # ownership
    job.last_updated = now

    db.add(job)
    outbox_id = _stage_email(db, user=user, job=job, occasion=Occasion.created)
    db.commit()
    db.refresh(job)
    logger.info("Job created: id=%s user_id=%s status=%s", job.id, user.id, job.status)

    _notify(realtime, user=user, job=job, occasion=Occasion.created, outbox_id=outbox_id, background=background)
    return job


def update_job(
    db: Session,
    *,
    user: User,
    job_id: str,
    payload: JobApplicationUpdate,
    realtime: ConnectionRegistry,
    background: BackgroundTasks | None = None,
) -> JobApplication:
    job = get_job_for_user(db, job_id, user.id)

    data = payload.model_dump(exclude_unset=True)
    if not data:
        return job

    status_changed = False
    if "status" in data:
        target: ApplicationStatus = data["status"]
        if target.value != job.status:
            ensure_transition_allowed(job.status, target)
            status_changed = True
        data["status"] = target.value

    for k, v in data.items():
        setattr(job, k, v)
    job.last_updated = datetime.now(timezone.utc)

    outbox_id = None
    if status_changed:
        outbox_id = _stage_email(db, user=user, job=job, occasion=Occasion.status_changed)

    db.commit()
    db.refresh(job)

    if outbox_id is not None:
        logger.info("Job status changed: id=%s user_id=%s status=%s", job.id, user.id, job.status)
        _notify(
            realtime,
            user=user,
            job=job,
            occasion=Occasion.status_changed,
            outbox_id=outbox_id,
            background=background,
        )
    return job


def delete_job(db: Session, *, user_id: int, job_id: str) -> None:
    job = get_job_for_user(db, job_id, user_id)
    db.delete(job)
    db.commit()
    logger.info("Job deleted: id=%s user_id=%s", job_id, user_id)
