import uuid
from collections import Counter
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_claims
from ..models.models import Job, Staff, Truck
from ..schemas.auth import Claims
from ..schemas.dashboard import AdminDashboardResponse, ClientDashboardResponse
from ..schemas.fleet import ServiceHealth
from ..schemas.jobs import JobStatus
from ..services.expiry import scan_expired, scan_expiring, truck_service_health
from ..services.job_status import resolve_display_status
from ..services.permissions import is_client, is_staff, resolve_tenant
from ..services.time_rules import get_now
from .jobs import TERMINAL_STATUSES, job_to_response

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/admin", response_model=AdminDashboardResponse)
def admin_dashboard(
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """Headline counts for the staff dashboard"""
    if not is_staff(claims):
        raise HTTPException(status_code=403, detail="Forbidden")
    tenant = resolve_tenant(claims, tenant_id)

    open_jobs = db.query(Job).filter(Job.tenant_id == tenant, Job.status.notin_(TERMINAL_STATUSES)).all()
    displayed = Counter(resolve_display_status(j, now) for j in open_jobs)

    expiring = 0
    expired = 0
    staff = db.query(Staff).options(selectinload(Staff.credentials)).filter(Staff.tenant_id == tenant).all()
    for member in staff:
        expiring += len(scan_expiring(member.credentials, settings.cert_horizon_days, now, settings.cert_urgent_days))
        expired += len(scan_expired(member.credentials, now))

    trucks = db.query(Truck).filter(Truck.tenant_id == tenant).all()
    needing_service = sum(
        1 for t in trucks
        if truck_service_health(t, now, settings.truck_service_horizon_days, settings.fleet_warning_kms) != ServiceHealth.success
    )

    return AdminDashboardResponse(
        active_jobs=displayed[JobStatus.in_progress],
        upcoming_jobs=displayed[JobStatus.upcoming],
        pending_requests=displayed[JobStatus.pending],
        expiring_credentials=expiring,
        expired_credentials=expired,
        trucks_needing_service=needing_service,
    )


@router.get("/client", response_model=ClientDashboardResponse)
def client_dashboard(
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """The calling client's jobs, with the same displayed status staff see."""
    if not is_client(claims) or not claims.client_id or not claims.tenant_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    jobs = db.query(Job).filter(
        Job.tenant_id == claims.tenant_id,
        Job.client_id == uuid.UUID(claims.client_id),
    ).order_by(Job.start_date.desc()).all()
    rows = [job_to_response(j, now) for j in jobs]
    counts = Counter(r.displayed_status for r in rows)
    return ClientDashboardResponse(
        jobs=rows,
        pending=counts[JobStatus.pending],
        upcoming=counts[JobStatus.upcoming],
        in_progress=counts[JobStatus.in_progress],
        completed=counts[JobStatus.completed],
    )
