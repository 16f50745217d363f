from typing import Optional
from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    user = "user"
    management = "management"
    worker = "worker"


class ReportStatus(str, Enum):
    pending = "pending"
    assigned = "assigned"
    in_progress = "in_progress"
    completed = "completed"
    rejected = "rejected"


class WasteType(str, Enum):
    household = "household"
    construction = "construction"
    green = "green"
    electronic = "electronic"
    hazardous = "hazardous"
    other = "other"


class Principal(SQLModel, table=True):
    __tablename__ = "profiles"
    # The id is issued by the identity provider; we never generate it here.
    id: str = Field(primary_key=True)
    email: Optional[str] = Field(default=None, sa_column_kwargs={"unique": True})
    name: Optional[str] = None
    role: Role = Field(default=Role.user, index=True)
    created_at: Optional[datetime] = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class WasteReport(SQLModel, table=True):
    __tablename__ = "waste_reports"
    id: Optional[str] = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    reporter_id: str = Field(foreign_key="profiles.id", index=True)
    title: str
    description: Optional[str] = None
    waste_type: WasteType = Field(default=WasteType.household)
    image_url: str
    latitude: float
    longitude: float
    # Best-effort reverse-geocoded label; may hold a failure placeholder.
    address: Optional[str] = None
    status: ReportStatus = Field(default=ReportStatus.pending, index=True)
    worker_id: Optional[str] = Field(default=None, foreign_key="profiles.id", index=True)
    management_notes: Optional[str] = None
    worker_notes: Optional[str] = None
    cleaned_image_url: Optional[str] = None
    rating: Optional[int] = None
    feedback_text: Optional[str] = None
    feedback_date: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: Optional[datetime] = Field(default_factory=utcnow, index=True, sa_type=DateTime(timezone=True))
    assigned_date: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    started_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    # Bumped on every update; clients may send it back for a conditional write.
    version: int = Field(default=1)


class AssignmentAudit(SQLModel, table=True):
    __tablename__ = "assignment_audits"
    id: Optional[int] = Field(default=None, primary_key=True)
    report_id: str = Field(foreign_key="waste_reports.id", index=True)
    assigned_by: str
    assigned_to: str
    created_at: Optional[datetime] = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
