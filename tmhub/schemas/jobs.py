import uuid
from datetime import datetime
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, field_validator

from ..services.time_rules import ensure_utc


# Enums
class JobStatus(str, Enum):
    pending = "Pending"
    upcoming = "Upcoming"
    in_progress = "In Progress"
    completed = "Completed"
    cancelled = "Cancelled"


# Displayed status shares the stored vocabulary; only the resolver maps one onto the other
DisplayStatus = JobStatus


class SetupType(str, Enum):
    stop_go = "Stop-Go"
    lane_shift = "Lane Shift"
    shoulder = "Shoulder"
    mobiles = "Mobiles"
    other = "Other"


class CrewMember(BaseModel):
    id: str
    name: str


class JobBase(BaseModel):
    name: Optional[str] = None
    location: str
    description: Optional[str] = None
    client_id: Optional[uuid.UUID] = None
    client_name: str
    start_date: datetime
    end_date: Optional[datetime] = None
    start_time: Optional[str] = None
    site_setup_time: Optional[str] = None
    setup_type: Optional[SetupType] = None
    stms_id: Optional[uuid.UUID] = None
    stms_name: Optional[str] = None
    crew: Optional[List[CrewMember]] = None
    contact_person: Optional[str] = None
    contact_number: Optional[str] = None

    @field_validator("start_date")
    @classmethod
    def start_to_utc(cls, v):
        return ensure_utc(v)

    @field_validator("end_date")
    @classmethod
    def end_after_start(cls, v, info):
        if v is None:
            return v
        v = ensure_utc(v)
        start = info.data.get("start_date")
        if start is not None and v < start:
            raise ValueError("end_date must not be before start_date")
        return v


class JobCreate(JobBase):
    pass


class JobRequestCreate(BaseModel):
    """Job request submitted from the client portal; always lands as Pending."""
    location: str
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    start_time: Optional[str] = None
    setup_type: Optional[SetupType] = None
    contact_person: Optional[str] = None
    contact_number: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def to_utc(cls, v):
        return ensure_utc(v) if v is not None else v


class JobUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    client_name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    start_time: Optional[str] = None
    site_setup_time: Optional[str] = None
    setup_type: Optional[SetupType] = None
    stms_id: Optional[uuid.UUID] = None
    stms_name: Optional[str] = None
    crew: Optional[List[CrewMember]] = None
    contact_person: Optional[str] = None
    contact_number: Optional[str] = None

    @field_validator("location", "client_name", "start_date")
    @classmethod
    def required_not_null(cls, v, info):
        # Omit the field to leave it unchanged; null would clear a required column
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("start_date", "end_date")
    @classmethod
    def to_utc(cls, v):
        return ensure_utc(v) if v is not None else v


class JobResponse(JobBase):
    id: uuid.UUID
    tenant_id: str
    job_number: str
    status: JobStatus
    displayed_status: DisplayStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
