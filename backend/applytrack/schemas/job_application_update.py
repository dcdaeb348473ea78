from datetime import date
from typing import Optional

from pydantic import field_validator

from applytrack.models.job_application import ApplicationStatus
from applytrack.schemas.job_application import (
    CamelModel,
    clean_job_url,
    clean_optional_text,
    clean_required_text,
)


class JobApplicationUpdate(CamelModel):
    """
    Partial update. Only fields present in the request body are applied;
    ownership and id are not part of the schema and are ignored if sent.
    """

    company: Optional[str] = None
    role: Optional[str] = None
    status: Optional[ApplicationStatus] = None
    applied_date: Optional[date] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    job_url: Optional[str] = None

    # Validators only run for values present in the payload, so an explicit
    # null on a required field is rejected while omission is allowed.
    @field_validator("company", "role")
    @classmethod
    def _required_text(cls, v, info):
        return clean_required_text(v, info.field_name)

    @field_validator("status", "applied_date")
    @classmethod
    def _not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("notes", "location", "salary")
    @classmethod
    def _optional_text(cls, v):
        return clean_optional_text(v)

    @field_validator("job_url")
    @classmethod
    def _job_url(cls, v):
        return clean_job_url(v)
