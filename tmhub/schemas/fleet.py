import uuid
from datetime import datetime
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from ..services.time_rules import ensure_utc


class TruckStatus(str, Enum):
    operational = "Operational"
    check_required = "Check Required"
    in_service = "In Service"


class ServiceHealth(str, Enum):
    success = "success"
    warning = "warning"
    destructive = "destructive"


class TruckService(BaseModel):
    last_service_date: Optional[datetime] = None
    next_service_date: Optional[datetime] = None
    next_service_kms: Optional[int] = None

    @field_validator("last_service_date", "next_service_date")
    @classmethod
    def to_utc(cls, v):
        return ensure_utc(v) if v is not None else v


class FuelLogEntry(BaseModel):
    date: str  # as entered, e.g. "2024-03-01"
    volume_liters: float = Field(gt=0)
    cost: float = Field(ge=0)


class TruckBase(BaseModel):
    name: str
    plate: str
    status: TruckStatus = TruckStatus.operational
    current_kms: int = Field(default=0, ge=0)


class TruckCreate(TruckBase):
    service: TruckService = TruckService()


class TruckUpdate(BaseModel):
    name: Optional[str] = None
    plate: Optional[str] = None
    status: Optional[TruckStatus] = None


class OdometerUpdate(BaseModel):
    current_kms: int = Field(ge=0)


class ServiceRecord(BaseModel):
    """Service just performed; schedules the next one."""
    service_date: datetime
    next_service_date: datetime
    next_service_kms: int = Field(gt=0)

    @field_validator("service_date", "next_service_date")
    @classmethod
    def to_utc(cls, v):
        return ensure_utc(v)


class TruckResponse(TruckBase):
    id: uuid.UUID
    tenant_id: str
    service: TruckService
    fuel_log: Optional[List[FuelLogEntry]] = None
    health: ServiceHealth
    kms_until_service: Optional[int] = None
    days_until_service: Optional[int] = None
    service_due: Optional[str] = None  # e.g. "05 Mar 2024 or 120,000 km"
