import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload
import structlog

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_claims
from ..models.models import Staff, StaffCredential
from ..schemas.auth import Claims
from ..schemas.staff import (
    CredentialIn,
    CredentialKind,
    CredentialExpiryRow,
    StaffCreate,
    StaffResponse,
)
from ..services.expiry import (
    NON_EXPIRING_CERTIFICATIONS,
    credential_status,
    scan_expired,
    scan_expiring,
)
from ..services.permissions import is_admin, is_staff, resolve_tenant
from ..services.time_rules import format_local_date, get_now

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/staff", tags=["staff"])


def _require_staff(claims: Claims) -> None:
    if not is_staff(claims):
        raise HTTPException(status_code=403, detail="Forbidden")


def _require_admin(claims: Claims) -> None:
    if not is_admin(claims):
        raise HTTPException(status_code=403, detail="Forbidden")


def _staff_query(db: Session, tenant_id: str):
    return db.query(Staff).options(selectinload(Staff.credentials)).filter(Staff.tenant_id == tenant_id)


def _get_staff(db: Session, tenant_id: str, staff_id: uuid.UUID) -> Staff:
    member = _staff_query(db, tenant_id).filter(Staff.id == staff_id).first()
    if not member:
        raise HTTPException(status_code=404, detail="Staff member not found")
    return member


def _replace_credentials(member: Staff, kind: CredentialKind, items: List[CredentialIn]) -> None:
    # Sub-lists are replaced wholesale, never patched field by field
    member.credentials = [c for c in member.credentials if c.kind != kind.value] + [
        StaffCredential(kind=kind.value, name=item.name, expiry_date=item.expiry_date) for item in items
    ]


@router.get("", response_model=List[StaffResponse])
def list_staff(
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    _require_staff(claims)
    tenant = resolve_tenant(claims, tenant_id)
    return _staff_query(db, tenant).order_by(Staff.name.asc()).all()


@router.post("", response_model=StaffResponse, status_code=201)
def create_staff(
    body: StaffCreate,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    _require_admin(claims)
    tenant = resolve_tenant(claims, tenant_id)
    member = Staff(
        tenant_id=tenant,
        **body.model_dump(mode="json", exclude={"certifications", "licenses"}),
    )
    _replace_credentials(member, CredentialKind.certification, body.certifications)
    _replace_credentials(member, CredentialKind.license, body.licenses)
    db.add(member)
    db.commit()
    db.refresh(member)
    logger.info("staff_created", staff_id=str(member.id), tenant_id=tenant)
    return member


@router.get("/credentials/expiry", response_model=List[CredentialExpiryRow])
def credentials_expiry(
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """
    Certifications and licences that are expired or expire in fewer than
    `credential_watch_days` days, earliest first. TTMW certificates never
    lapse and are left out.
    """
    _require_staff(claims)
    tenant = resolve_tenant(claims, tenant_id)
    rows: List[CredentialExpiryRow] = []
    for member in _staff_query(db, tenant).all():
        credentials = [c for c in member.credentials if c.name not in NON_EXPIRING_CERTIFICATIONS]
        # Exclusive upper edge: exactly credential_watch_days out is not listed yet
        matches = scan_expired(credentials, now) + scan_expiring(credentials, settings.credential_watch_days - 1, now)
        for match in matches:
            label, variant = credential_status(match.expires_at, now, settings.cert_horizon_days)
            rows.append(CredentialExpiryRow(
                staff_id=member.id,
                staff_name=member.name,
                kind=match.entity.kind,
                name=match.entity.name,
                expiry_date=match.expires_at,
                days_until_expiry=match.days_until_expiry,
                label=label,
                variant=variant,
                expires_on="Expired" if label == "Expired" else format_local_date(match.expires_at, settings.tz_default),
            ))
    rows.sort(key=lambda r: r.expiry_date)
    return rows


@router.get("/{staff_id}", response_model=StaffResponse)
def get_staff(
    staff_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    _require_staff(claims)
    return _get_staff(db, resolve_tenant(claims, tenant_id), staff_id)


@router.put("/{staff_id}/certifications", response_model=StaffResponse)
def replace_certifications(
    staff_id: uuid.UUID,
    body: List[CredentialIn],
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    _require_admin(claims)
    member = _get_staff(db, resolve_tenant(claims, tenant_id), staff_id)
    _replace_credentials(member, CredentialKind.certification, body)
    db.commit()
    db.refresh(member)
    return member


@router.put("/{staff_id}/licenses", response_model=StaffResponse)
def replace_licenses(
    staff_id: uuid.UUID,
    body: List[CredentialIn],
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    _require_admin(claims)
    member = _get_staff(db, resolve_tenant(claims, tenant_id), staff_id)
    _replace_credentials(member, CredentialKind.license, body)
    db.commit()
    db.refresh(member)
    return member


@router.delete("/{staff_id}")
def delete_staff(
    staff_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    _require_admin(claims)
    member = _get_staff(db, resolve_tenant(claims, tenant_id), staff_id)
    db.delete(member)
    db.commit()
    logger.info("staff_deleted", staff_id=str(staff_id), actor=claims.sub)
    return {"status": "ok"}
