from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from applytrack.core.database import get_db
from applytrack.dependencies.admin import require_admin_user
from applytrack.dependencies.auth import get_current_user
from applytrack.dependencies.realtime import get_realtime
from applytrack.models.user import User
from applytrack.schemas.auth import MessageOut
from applytrack.schemas.job_application import (
    JobApplicationAdminOut,
    JobApplicationCreate,
    JobApplicationOut,
    JobStatsOut,
)
from applytrack.schemas.job_application_update import JobApplicationUpdate
from applytrack.services import jobs as jobs_service
from applytrack.services.realtime import ConnectionRegistry

router = APIRouter(prefix="/api/jobs", tags=["jobs"], dependencies=[Depends(get_current_user)])


@router.post("", response_model=JobApplicationOut, status_code=status.HTTP_201_CREATED)
def create_job(
    payload: JobApplicationCreate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    realtime: ConnectionRegistry = Depends(get_realtime),
):
    return jobs_service.create_job(db, user=user, payload=payload, realtime=realtime, background=background)


@router.get("", response_model=list[JobApplicationOut])
def list_jobs(
    status_filter: str | None = Query(default=None, alias="status"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    qry = jobs_service.list_jobs_query(
        db,
        user_id=user.id,  # scope
        status=status_filter,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return qry.all()


# Fixed paths must be registered before /{job_id}.
@router.get("/admin/all", response_model=list[JobApplicationAdminOut])
def list_all_jobs(
    status_filter: str | None = Query(default=None, alias="status"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    db: Session = Depends(get_db),
    _admin_user: User = Depends(require_admin_user),
):
    qry = jobs_service.list_all_jobs_query(db, status=status_filter, sort_by=sort_by, sort_order=sort_order)
    return qry.all()


@router.get("/stats", response_model=JobStatsOut)
def job_stats(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return jobs_service.job_stats(db, user.id)


@router.get("/{job_id}", response_model=JobApplicationOut)
def get_job(
    job_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return jobs_service.get_job_for_user(db, job_id, user.id)


@router.patch("/{job_id}", response_model=JobApplicationOut)
def update_job(
    job_id: str,
    payload: JobApplicationUpdate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    realtime: ConnectionRegistry = Depends(get_realtime),
):
    return jobs_service.update_job(
        db, user=user, job_id=job_id, payload=payload, realtime=realtime, background=background
    )


@router.delete("/{job_id}", response_model=MessageOut)
def delete_job(
    job_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    jobs_service.delete_job(db, user_id=user.id, job_id=job_id)
    return {"message": "Job application deleted"}
