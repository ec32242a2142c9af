import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_claims
from ..models.models import Truck
from ..schemas.auth import Claims
from ..schemas.fleet import (
    TruckCreate,
    TruckUpdate,
    TruckResponse,
    TruckService,
    TruckStatus,
    FuelLogEntry,
    OdometerUpdate,
    ServiceRecord,
)
from ..services.expiry import days_until_service, kms_until_service, truck_service_health
from ..services.permissions import is_admin, is_staff, resolve_tenant
from ..services.time_rules import coerce_instant, format_local_date, get_now

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/fleet", tags=["fleet"])


def truck_to_response(truck: Truck, now: datetime) -> TruckResponse:
    next_date = coerce_instant(truck.next_service_date)
    return TruckResponse(
        id=truck.id,
        tenant_id=truck.tenant_id,
        name=truck.name,
        plate=truck.plate,
        status=truck.status,
        current_kms=truck.current_kms or 0,
        service=TruckService(
            last_service_date=coerce_instant(truck.last_service_date),
            next_service_date=next_date,
            next_service_kms=truck.next_service_kms,
        ),
        fuel_log=truck.fuel_log,
        health=truck_service_health(
            truck,
            now,
            horizon_days=settings.truck_service_horizon_days,
            warning_kms=settings.fleet_warning_kms,
        ),
        kms_until_service=kms_until_service(truck),
        days_until_service=days_until_service(truck, now),
        service_due=_service_due(next_date, truck.next_service_kms),
    )


def _service_due(next_date: Optional[datetime], next_kms: Optional[int]) -> Optional[str]:
    parts = []
    if next_date is not None:
        parts.append(format_local_date(next_date, settings.tz_default))
    if next_kms is not None:
        parts.append(f"{next_kms:,} km")
    return " or ".join(parts) or None


def _get_truck(db: Session, tenant_id: str, truck_id: uuid.UUID) -> Truck:
    truck = db.query(Truck).filter(Truck.tenant_id == tenant_id, Truck.id == truck_id).first()
    if not truck:
        raise HTTPException(status_code=404, detail="Truck not found")
    return truck


def _require_staff(claims: Claims) -> None:
    if not is_staff(claims):
        raise HTTPException(status_code=403, detail="Forbidden")


# ---------- TRUCKS ----------
@router.get("/trucks", response_model=List[TruckResponse])
def list_trucks(
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """Trucks with their service health (fleet service status board)"""
    _require_staff(claims)
    tenant = resolve_tenant(claims, tenant_id)
    trucks = db.query(Truck).filter(Truck.tenant_id == tenant).order_by(Truck.name.asc()).all()
    return [truck_to_response(t, now) for t in trucks]


@router.post("/trucks", response_model=TruckResponse, status_code=201)
def create_truck(
    body: TruckCreate,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    if not is_admin(claims):
        raise HTTPException(status_code=403, detail="Forbidden")
    tenant = resolve_tenant(claims, tenant_id)
    truck = Truck(
        tenant_id=tenant,
        name=body.name,
        plate=body.plate.upper(),
        status=body.status.value,
        current_kms=body.current_kms,
        last_service_date=body.service.last_service_date,
        next_service_date=body.service.next_service_date,
        next_service_kms=body.service.next_service_kms,
    )
    db.add(truck)
    db.commit()
    db.refresh(truck)
    logger.info("truck_created", truck_id=str(truck.id), plate=truck.plate, tenant_id=tenant)
    return truck_to_response(truck, now)


@router.get("/trucks/{truck_id}", response_model=TruckResponse)
def get_truck(
    truck_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    _require_staff(claims)
    return truck_to_response(_get_truck(db, resolve_tenant(claims, tenant_id), truck_id), now)


@router.patch("/trucks/{truck_id}", response_model=TruckResponse)
def update_truck(
    truck_id: uuid.UUID,
    body: TruckUpdate,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    _require_staff(claims)
    truck = _get_truck(db, resolve_tenant(claims, tenant_id), truck_id)
    if body.name is not None:
        truck.name = body.name
    if body.plate is not None:
        truck.plate = body.plate.upper()
    if body.status is not None:
        truck.status = body.status.value
    truck.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(truck)
    return truck_to_response(truck, now)


@router.put("/trucks/{truck_id}/odometer", response_model=TruckResponse)
def update_odometer(
    truck_id: uuid.UUID,
    body: OdometerUpdate,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """Record the current odometer reading (typically from a pre-start inspection)."""
    _require_staff(claims)
    truck = _get_truck(db, resolve_tenant(claims, tenant_id), truck_id)
    if truck.current_kms is not None and body.current_kms < truck.current_kms:
        # Not rejected: odometer swaps and typo corrections happen
        logger.warning("odometer_decreased", truck_id=str(truck.id), previous=truck.current_kms, reading=body.current_kms)
    truck.current_kms = body.current_kms
    truck.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(truck)
    return truck_to_response(truck, now)


@router.post("/trucks/{truck_id}/service", response_model=TruckResponse)
def record_service(
    truck_id: uuid.UUID,
    body: ServiceRecord,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    """Log a completed service and schedule the next one by date and distance."""
    _require_staff(claims)
    truck = _get_truck(db, resolve_tenant(claims, tenant_id), truck_id)
    if body.next_service_kms <= (truck.current_kms or 0):
        logger.warning("next_service_kms_not_ahead", truck_id=str(truck.id), current_kms=truck.current_kms, next_service_kms=body.next_service_kms)
    truck.last_service_date = body.service_date
    truck.next_service_date = body.next_service_date
    truck.next_service_kms = body.next_service_kms
    if truck.status == TruckStatus.in_service.value:
        truck.status = TruckStatus.operational.value
    truck.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(truck)
    logger.info("truck_serviced", truck_id=str(truck.id), next_service_kms=body.next_service_kms)
    return truck_to_response(truck, now)


@router.post("/trucks/{truck_id}/fuel", response_model=TruckResponse, status_code=201)
def add_fuel_entry(
    truck_id: uuid.UUID,
    body: FuelLogEntry,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
    now: datetime = Depends(get_now),
):
    _require_staff(claims)
    truck = _get_truck(db, resolve_tenant(claims, tenant_id), truck_id)
    # Reassign so the JSON column is flagged dirty
    truck.fuel_log = (truck.fuel_log or []) + [body.model_dump()]
    truck.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(truck)
    logger.info("truck_fuel_logged", truck_id=str(truck.id), volume_liters=body.volume_liters)
    return truck_to_response(truck, now)


@router.delete("/trucks/{truck_id}")
def delete_truck(
    truck_id: uuid.UUID,
    tenant_id: Optional[str] = None,
    db: Session = Depends(get_db),
    claims: Claims = Depends(get_current_claims),
):
    if not is_admin(claims):
        raise HTTPException(status_code=403, detail="Forbidden")
    truck = _get_truck(db, resolve_tenant(claims, tenant_id), truck_id)
    db.delete(truck)
    db.commit()
    return {"status": "ok"}
