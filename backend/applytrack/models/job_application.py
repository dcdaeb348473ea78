import enum
import uuid

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import relationship

from applytrack.core.base import Base


class ApplicationStatus(str, enum.Enum):
    applied = "Applied"
    interview = "Interview"
    offer = "Offer"
    rejected = "Rejected"
    accepted = "Accepted"


def _new_id() -> str:
    return str(uuid.uuid4())


class JobApplication(Base):
    __tablename__ = "job_applications"
    __table_args__ = (
        Index("ix_job_applications_user_id_status", "user_id", "status"),
        CheckConstraint(
            "status IN ('Applied', 'Interview', 'Offer', 'Rejected', 'Accepted')",
            name="ck_job_applications_status",
        ),
    )

    id = Column(String(36), primary_key=True, default=_new_id)

    # ownership; set once at creation
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    company = Column(String(255), nullable=False)
    role = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=ApplicationStatus.applied.value)
    applied_date = Column(Date, nullable=False, index=True)

    notes = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    salary = Column(String(100), nullable=True)
    job_url = Column(String(500), nullable=True)

    last_updated = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    user = relationship("User", back_populates="job_applications")
