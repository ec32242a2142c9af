import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..auth.security import get_current_claims
from ..models.models import Job, Client
from ..schemas.auth import Claims
from ..schemas.jobs import (
    JobStatus,
    JobCreate,
    JobRequestCreate,
    JobUpdate,
    JobResponse,
)
from ..services.job_status import resolve_display_status, transition_job_status, JobTransitionError
from ..services.permissions import can_manage_jobs, is_client, is_staff, resolve_tenant
from ..services.time_rules import coerce_instant, ensure_utc, get_now

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])

JOB_NUMBER_PREFIX = "TMV"
TERMINAL_STATUSES = (JobStatus.completed.value, JobStatus.cancelled.value)


def generate_job_number(db: Session, tenant_id: str) -> str:
    """Next sequential job number within the tenant, e.g. TMV-0042"""
    count = db.query(Job).filter(Job.tenant_id == tenant_id).count()
    return f"{JOB_NUMBER_PREFIX}-{count + 1:04d}"


def job_to_response(job: Job, now: datetime) -> JobResponse:
    return JobResponse(
        id=job.id,
        tenant_id=job.tenant_id,
        job_number=job.job_number,
        name=job.name,
        location=job.location,
        description=job.description,
        client_id=job.client_id,
        client_name=job.client_name,
        start_date=coerce_instant(job.start_date),
        end_date=coerce_instant(job.end_date),
        start_time=job.start_time,
        site_setup_time=job.site_setup_time,
        setup_type=job.setup_type,
        stms_id=job.stms_id,
        stms_name=job.stms_name,
        crew=job.crew,
        contact_person=job.contact_person,
        contact_number=job.contact_number,
        status=job.status,
        displayed_status=resolve_display_status(job, now),
        created_at=coerce_instant(job.created_at),
        updated_at=coerce_instant(job.updated_at),
    )


def _visible_jobs(db: Session, claims: Claims, tenant_id: str):
    query = db.query(Job).filter(Job.tenant_id == tenant_id)
    if is_client(claims):
        if not claims.client_id:
            raise HTTPException(status_code=403, detail="Client account not approved yet")
        query = query.filter(Job.client_id == uuid.UUID(claims.client_id))
    elif not is_staff(claims):
        raise HTTPException(status_code=403, detail="Forbidden")
    return query


def _get_job(db: Session, claims: Claims, job_id: uuid.UUID, tenant_id: Optional[str]) -> Job:
    tenant = resolve_tenant(claims, tenant_id)
    job = _visible_jobs(db, claims, tenant).filter(Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _require_manager(claims: Claims) -> None:
    if not can_manage_jobs(claims):
        raise HTTPException(status_code=403, detail="Forbidden")


@router.get("", response_model=List[JobResponse])
def list_jobs(
    status: Optional[JobStatus] = None,
    tenant_id: Optional[str] = None,
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """List jobs (filtered by stored status), each with its displayed status."""
    tenant = resolve_tenant(claims, tenant_id)
    query = _visible_jobs(db, claims, tenant)
    if status is not None:
        query = query.filter(Job.status == status.value)
    jobs = query.order_by(Job.start_date.asc()).limit(limit).all()
    return [job_to_response(j, now) for j in jobs]


@router.get("/past", response_model=List[JobResponse])
def list_past_jobs(
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    tenant = resolve_tenant(claims, tenant_id)
    jobs = _visible_jobs(db, claims, tenant).filter(Job.status.in_(TERMINAL_STATUSES)).order_by(Job.start_date.desc()).all()
    return [job_to_response(j, now) for j in jobs]


@router.post("", response_model=JobResponse, status_code=201)
def create_job(
    body: JobCreate,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """Staff-scheduled job; skips the request stage and starts out Upcoming."""
    _require_manager(claims)
    tenant = resolve_tenant(claims, tenant_id)
    data = body.model_dump(mode="json", exclude={"start_date", "end_date", "client_id", "stms_id"})
    job = Job(
        **data,
        tenant_id=tenant,
        job_number=generate_job_number(db, tenant),
        client_id=body.client_id,
        stms_id=body.stms_id,
        start_date=body.start_date,
        end_date=body.end_date,
        status=JobStatus.upcoming.value,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info("job_created", job_id=str(job.id), job_number=job.job_number, tenant_id=tenant)
    return job_to_response(job, now)


@router.post("/requests", response_model=JobResponse, status_code=201)
def request_job(
    body: JobRequestCreate,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """Job request from the client portal. Lands as Pending until staff approve it."""
    if not is_client(claims) or not claims.client_id or not claims.tenant_id:
        raise HTTPException(status_code=403, detail="Only approved clients can request jobs")
    client = db.query(Client).filter(Client.id == uuid.UUID(claims.client_id)).first()
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    job = Job(
        **body.model_dump(mode="json", exclude={"start_date", "end_date"}),
        tenant_id=claims.tenant_id,
        job_number=generate_job_number(db, claims.tenant_id),
        client_id=client.id,
        client_name=client.name,
        start_date=body.start_date,
        end_date=body.end_date,
        status=JobStatus.pending.value,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info("job_requested", job_id=str(job.id), client_id=str(client.id), tenant_id=claims.tenant_id)
    return job_to_response(job, now)


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    return job_to_response(_get_job(db, claims, job_id, tenant_id), now)


@router.patch("/{job_id}", response_model=JobResponse)
def update_job(
    job_id: uuid.UUID,
    body: JobUpdate,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    _require_manager(claims)
    job = _get_job(db, claims, job_id, tenant_id)
    changes = body.model_dump(exclude_unset=True)
    if "crew" in changes and body.crew is not None:
        changes["crew"] = [m.model_dump() for m in body.crew]
    if "setup_type" in changes and body.setup_type is not None:
        changes["setup_type"] = body.setup_type.value
    for key, value in changes.items():
        setattr(job, key, value)
    if job.end_date and job.start_date and ensure_utc(job.end_date) < ensure_utc(job.start_date):
        raise HTTPException(status_code=422, detail="end_date must not be before start_date")
    job.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(job)
    return job_to_response(job, now)


def _transition(
    job_id: uuid.UUID,
    target: JobStatus,
    tenant_id: Optional[str],
    db: Session,
    claims: Claims,
    now: datetime,
) -> JobResponse:
    _require_manager(claims)
    job = _get_job(db, claims, job_id, tenant_id)
    try:
        transition_job_status(job, target, actor=claims.sub)
    except JobTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    job.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(job)
    return job_to_response(job, now)


@router.post("/{job_id}/approve", response_model=JobResponse)
def approve_job(
    job_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """Accept a client request (Pending -> Upcoming)."""
    return _transition(job_id, JobStatus.upcoming, tenant_id, db, claims, now)


@router.post("/{job_id}/start", response_model=JobResponse)
def start_job(
    job_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    return _transition(job_id, JobStatus.in_progress, tenant_id, db, claims, now)


@router.post("/{job_id}/complete", response_model=JobResponse)
def complete_job(
    job_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    return _transition(job_id, JobStatus.completed, tenant_id, db, claims, now)


@router.post("/{job_id}/cancel", response_model=JobResponse)
def cancel_job(
    job_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    return _transition(job_id, JobStatus.cancelled, tenant_id, db, claims, now)


@router.delete("/{job_id}")
def delete_job(
    job_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    _require_manager(claims)
    job = _get_job(db, claims, job_id, tenant_id)
    db.delete(job)
    db.commit()
    logger.info("job_deleted", job_id=str(job_id), actor=claims.sub)
    return {"status": "ok"}
