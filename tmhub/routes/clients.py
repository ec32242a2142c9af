import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..auth.security import get_current_claims
from ..models.models import Client, ClientRegistration, Tenant, User
from ..schemas.auth import Claims
from ..schemas.clients import (
    ClientResponse,
    RegistrationDecision,
    RegistrationResponse,
    RegistrationStatus,
)
from ..schemas.staff import AccessLevel
from ..services.permissions import can_review_registrations, is_staff, resolve_tenant

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])


def _require_reviewer(claims: Claims) -> None:
    if not can_review_registrations(claims):
        raise HTTPException(status_code=403, detail="Forbidden")


def _get_pending_registration(db: Session, registration_id: uuid.UUID) -> ClientRegistration:
    registration = db.query(ClientRegistration).filter(ClientRegistration.id == registration_id).first()
    if not registration:
        raise HTTPException(status_code=404, detail="Registration not found")
    if registration.status != RegistrationStatus.pending.value:
        # Approved and Rejected are final
        raise HTTPException(status_code=409, detail=f"Registration already {registration.status.lower()}")
    return registration


@router.get("", response_model=List[ClientResponse])
def list_clients(
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    if not is_staff(claims):
        raise HTTPException(status_code=403, detail="Forbidden")
    tenant = resolve_tenant(claims, tenant_id)
    return db.query(Client).filter(Client.tenant_id == tenant).order_by(Client.name.asc()).all()


# ---------- REGISTRATIONS ----------
@router.get("/registrations", response_model=List[RegistrationResponse])
def list_registrations(
    status: Optional[RegistrationStatus] = RegistrationStatus.pending,
    include_decided: bool = False,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """Registrations are not tenant scoped: every reviewer sees the same queue."""
    _require_reviewer(claims)
    query = db.query(ClientRegistration)
    if not include_decided and status is not None:
        query = query.filter(ClientRegistration.status == status.value)
    return query.order_by(ClientRegistration.requested_at.desc()).all()


@router.post("/registrations/{registration_id}/approve", response_model=RegistrationResponse)
def approve_registration(
    registration_id: uuid.UUID,
    body: Optional[RegistrationDecision] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    """
    Approve a pending registration: create the client under the chosen
    tenant and upgrade the registering account so its next token carries
    the client claims.
    """
    _require_reviewer(claims)
    tenant = resolve_tenant(claims, body.tenant_id if body else None)
    if not db.query(Tenant).filter(Tenant.id == tenant).first():
        raise HTTPException(status_code=404, detail="Tenant not found")
    registration = _get_pending_registration(db, registration_id)

    client = Client(
        tenant_id=tenant,
        name=registration.company_name,
        email=registration.email,
        phone=registration.phone,
        status="Active",
    )
    db.add(client)
    db.flush()

    if registration.user_id:
        user = db.query(User).filter(User.id == registration.user_id).first()
        if user:
            user.tenant_id = tenant
            user.client_id = client.id
            user.access_level = AccessLevel.client.value

    registration.status = RegistrationStatus.approved.value
    registration.decided_at = datetime.now(timezone.utc)
    registration.decided_by = claims.sub
    registration.client_id = client.id
    db.commit()
    db.refresh(registration)
    logger.info("client_registration_approved", registration_id=str(registration.id), client_id=str(client.id), tenant_id=tenant)
    return registration


@router.post("/registrations/{registration_id}/reject", response_model=RegistrationResponse)
def reject_registration(
    registration_id: uuid.UUID,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    _require_reviewer(claims)
    registration = _get_pending_registration(db, registration_id)
    registration.status = RegistrationStatus.rejected.value
    registration.decided_at = datetime.now(timezone.utc)
    registration.decided_by = claims.sub
    db.commit()
    db.refresh(registration)
    logger.info("client_registration_rejected", registration_id=str(registration.id))
    return registration
