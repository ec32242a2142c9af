"""
Claim-based policy checks. Every function takes the caller's resolved
claims explicitly; nothing here reads session or request state.
"""
from typing import Optional

from fastapi import HTTPException

from ..schemas.auth import Claims
from ..schemas.staff import AccessLevel

STAFF_LEVELS = (AccessLevel.admin.value, AccessLevel.staff_member.value)
CLIENT_LEVELS = (AccessLevel.client.value, AccessLevel.client_staff.value)


def is_super_admin(claims: Claims) -> bool:
    return bool(claims.super_admin)


def is_admin(claims: Claims) -> bool:
    return is_super_admin(claims) or claims.access_level == AccessLevel.admin.value


def is_staff(claims: Claims) -> bool:
    return is_super_admin(claims) or claims.access_level in STAFF_LEVELS


def is_client(claims: Claims) -> bool:
    return claims.access_level in CLIENT_LEVELS


def is_stms(claims: Claims) -> bool:
    """Site Traffic Management Supervisors sign off paperwork and run jobs on site."""
    return claims.role == "STMS"


def can_manage_jobs(claims: Claims) -> bool:
    """
    Schedule, approve and close out jobs.
    - Admins and super admins always
    - Owners and STMS among staff members
    """
    if is_admin(claims):
        return True
    return is_staff(claims) and (claims.role == "Owner" or is_stms(claims))


def can_review_registrations(claims: Claims) -> bool:
    return is_admin(claims)


def resolve_tenant(claims: Claims, requested: Optional[str] = None) -> str:
    """
    Tenant a request operates on. Super admins may switch tenant; everyone
    else is pinned to the tenant in their claims.
    """
    if requested and requested != claims.tenant_id:
        if not is_super_admin(claims):
            raise HTTPException(status_code=403, detail="Forbidden for this tenant")
        return requested
    if not claims.tenant_id:
        raise HTTPException(status_code=400, detail="No tenant selected")
    return claims.tenant_id
