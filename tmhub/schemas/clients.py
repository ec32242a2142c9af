import uuid
from datetime import datetime
from typing import Optional
from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class RegistrationStatus(str, Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"


class ClientSignupRequest(BaseModel):
    company_name: str
    contact_name: str
    email: EmailStr
    phone: Optional[str] = None
    password: str = Field(min_length=8)


class RegistrationResponse(BaseModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    company_name: str
    contact_name: str
    email: str
    phone: Optional[str] = None
    status: RegistrationStatus
    requested_at: datetime
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    client_id: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True


class RegistrationDecision(BaseModel):
    """Approval target tenant; super admins pick it, tenant admins default to their own."""
    tenant_id: Optional[str] = None


class ClientResponse(BaseModel):
    id: uuid.UUID
    tenant_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str

    class Config:
        from_attributes = True
