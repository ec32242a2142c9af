from pydantic import BaseModel, EmailStr
from typing import Optional


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class Claims(BaseModel):
    """Custom claims carried by an access token; passed explicitly to every policy check."""
    sub: str
    tenant_id: Optional[str] = None
    access_level: str = "Staff Member"
    role: Optional[str] = None
    staff_id: Optional[str] = None
    client_id: Optional[str] = None
    super_admin: bool = False


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    tenant_id: Optional[str] = None
    access_level: str
    role: Optional[str] = None
    super_admin: bool = False
