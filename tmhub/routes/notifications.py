from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_claims
from ..models.models import ClientRegistration, Job, Staff, Truck
from ..schemas.auth import Claims
from ..schemas.clients import RegistrationStatus
from ..schemas.jobs import JobStatus
from ..schemas.notifications import NotificationFeed
from ..services.notifications import NotificationThresholds, build_feed
from ..services.permissions import can_review_registrations, is_staff, resolve_tenant
from ..services.time_rules import get_now

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationFeed)
def get_notifications(
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """
    Staff notification feed, rebuilt from current data on every request.
    Client registrations only appear for callers who can act on them.
    """
    if not is_staff(claims):
        raise HTTPException(status_code=403, detail="Forbidden")
    tenant = resolve_tenant(claims, tenant_id)

    jobs = db.query(Job).filter(Job.tenant_id == tenant)
    pending_jobs = jobs.filter(Job.status == JobStatus.pending.value).all()
    upcoming_jobs = jobs.filter(Job.status == JobStatus.upcoming.value).all()
    staff = db.query(Staff).options(selectinload(Staff.credentials)).filter(Staff.tenant_id == tenant).all()
    trucks = db.query(Truck).filter(Truck.tenant_id == tenant).all()

    registrations = None
    if can_review_registrations(claims):
        registrations = db.query(ClientRegistration).filter(
            ClientRegistration.status == RegistrationStatus.pending.value
        ).all()

    return build_feed(
        pending_jobs,
        upcoming_jobs,
        staff,
        trucks,
        registrations,
        now,
        NotificationThresholds.from_settings(settings),
    )
