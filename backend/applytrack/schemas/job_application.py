from datetime import date, datetime
from typing import Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from applytrack.models.job_application import ApplicationStatus

_http_url = TypeAdapter(AnyHttpUrl)


def clean_required_text(value: Optional[str], field: str) -> str:
    if value is None:
        raise ValueError(f"{field} is required")
    cleaned = value.strip()
    if not cleaned:
        raise ValueError(f"{field} is required")
    return cleaned


def clean_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def clean_job_url(value: Optional[str]) -> Optional[str]:
    cleaned = clean_optional_text(value)
    if cleaned is None:
        return None
    try:
        _http_url.validate_python(cleaned)
    except ValidationError:
        raise ValueError("jobUrl must be a valid http(s) URL")
    return cleaned


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class JobApplicationCreate(CamelModel):
    company: str
    role: str
    status: ApplicationStatus = ApplicationStatus.applied
    applied_date: Optional[date] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    job_url: Optional[str] = None

    @field_validator("company", "role")
    @classmethod
    def _required_text(cls, v, info):
        return clean_required_text(v, info.field_name)

    @field_validator("notes", "location", "salary")
    @classmethod
    def _optional_text(cls, v):
        return clean_optional_text(v)

    @field_validator("job_url")
    @classmethod
    def _job_url(cls, v):
        return clean_job_url(v)


class OwnerOut(BaseModel):
    id: int
    name: Optional[str] = None
    email: str

    model_config = ConfigDict(from_attributes=True)


class JobApplicationOut(CamelModel):
    id: str
    user_id: int
    company: str
    role: str
    status: ApplicationStatus
    applied_date: date
    notes: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    job_url: Optional[str] = None
    last_updated: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class JobApplicationAdminOut(JobApplicationOut):
    user: OwnerOut


class JobStatsOut(BaseModel):
    total: int = 0
    applied: int = 0
    interview: int = 0
    offer: int = 0
    rejected: int = 0
    accepted: int = 0
