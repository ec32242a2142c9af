import uuid
from datetime import datetime
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, EmailStr, field_validator

from ..services.time_rules import ensure_utc


class StaffRole(str, Enum):
    tc = "TC"
    stms = "STMS"
    operator = "Operator"
    owner = "Owner"
    tester = "Tester"


class AccessLevel(str, Enum):
    admin = "Admin"
    staff_member = "Staff Member"
    client = "Client"
    client_staff = "Client Staff"


class CredentialKind(str, Enum):
    certification = "certification"
    license = "license"


class CredentialIn(BaseModel):
    name: str
    expiry_date: Optional[datetime] = None

    @field_validator("expiry_date")
    @classmethod
    def to_utc(cls, v):
        return ensure_utc(v) if v is not None else v


class CredentialOut(CredentialIn):
    id: uuid.UUID

    class Config:
        from_attributes = True


class EmergencyContact(BaseModel):
    name: str
    phone: str


class StaffBase(BaseModel):
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: StaffRole = StaffRole.tc
    access_level: AccessLevel = AccessLevel.staff_member
    nzta_id: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None


class StaffCreate(StaffBase):
    certifications: List[CredentialIn] = []
    licenses: List[CredentialIn] = []


class StaffResponse(StaffBase):
    id: uuid.UUID
    tenant_id: str
    certifications: List[CredentialOut] = []
    licenses: List[CredentialOut] = []

    class Config:
        from_attributes = True


class CredentialExpiryRow(BaseModel):
    """One row of the credentials-expiry board."""
    staff_id: uuid.UUID
    staff_name: str
    kind: CredentialKind
    name: str
    expiry_date: datetime
    days_until_expiry: int
    label: str  # Expired | Expires in Nd | Valid
    expires_on: str  # "Expired" or the local expiry date, e.g. "05 Mar 2024"
    variant: str  # destructive | warning | success
