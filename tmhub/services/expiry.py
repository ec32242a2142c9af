"""
Expiry scanning for dated entities: staff certifications and licences, and
truck service schedules (by date and by odometer).

All functions are pure; `now` and every threshold come from the caller.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional

from ..schemas.fleet import ServiceHealth, TruckStatus
from .job_status import field
from .time_rules import coerce_instant, days_between

# Certifications that never lapse; kept off the expiry board
NON_EXPIRING_CERTIFICATIONS = frozenset({"TTMW"})


@dataclass(frozen=True)
class ExpiryMatch:
    entity: Any
    expires_at: datetime
    days_until_expiry: int
    urgent: bool


@dataclass(frozen=True)
class ServiceSignal:
    truck: Any
    trigger: str  # "date" | "kms"
    urgent: bool
    due_at: Optional[datetime] = None
    days_until_service: Optional[int] = None
    kms_until_service: Optional[int] = None


def _expiry_date(entity: Any) -> Any:
    return field(entity, "expiry_date")


def default_urgent_days(horizon_days: int) -> int:
    # 7 of a 30 day horizon
    return horizon_days // 4


def scan_expiring(
    entities: Optional[Iterable[Any]],
    horizon_days: int,
    now: datetime,
    urgent_days: Optional[int] = None,
    date_of: Callable[[Any], Any] = _expiry_date,
) -> List[ExpiryMatch]:
    """
    Entities expiring within `horizon_days` of `now`, both ends inclusive.

    Already-expired entities (negative days) are left out; use `scan_expired`
    for those. Entities without a usable date produce nothing. Order follows
    the input.
    """
    if urgent_days is None:
        urgent_days = default_urgent_days(horizon_days)
    matches: List[ExpiryMatch] = []
    for entity in entities or ():
        expires_at = coerce_instant(date_of(entity))
        if expires_at is None:
            continue
        days = days_between(expires_at, now)
        if 0 <= days <= horizon_days:
            matches.append(ExpiryMatch(entity, expires_at, days, days <= urgent_days))
    return matches


def scan_expired(
    entities: Optional[Iterable[Any]],
    now: datetime,
    date_of: Callable[[Any], Any] = _expiry_date,
) -> List[ExpiryMatch]:
    """Entities whose expiry is at least one whole day in the past."""
    matches: List[ExpiryMatch] = []
    for entity in entities or ():
        expires_at = coerce_instant(date_of(entity))
        if expires_at is None:
            continue
        days = days_between(expires_at, now)
        if days < 0:
            matches.append(ExpiryMatch(entity, expires_at, days, True))
    return matches


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def kms_until_service(truck: Any) -> Optional[int]:
    """Distance left before the next scheduled service, or None when either reading is missing."""
    service = field(truck, "service") or {}
    next_kms = _as_int(field(service, "next_service_kms"))
    current = _as_int(field(truck, "current_kms"))
    if next_kms is None or current is None:
        return None
    return next_kms - current


def days_until_service(truck: Any, now: datetime) -> Optional[int]:
    service = field(truck, "service") or {}
    due = coerce_instant(field(service, "next_service_date"))
    if due is None:
        return None
    return days_between(due, now)


def scan_truck_service(
    truck: Any,
    now: datetime,
    horizon_days: int = 14,
    urgent_days: int = 7,
    kms_threshold: int = 500,
    kms_urgent: int = 100,
) -> List[ServiceSignal]:
    """
    Service reminders for one truck. The date trigger and the odometer
    trigger are evaluated independently, so a truck can raise both.

    - date: 0 <= days until service <= horizon_days, urgent at <= urgent_days
    - kms:  0 < kms until service <= kms_threshold, urgent at <= kms_urgent
    """
    signals: List[ServiceSignal] = []

    service = field(truck, "service") or {}
    due_at = coerce_instant(field(service, "next_service_date"))
    if due_at is not None:
        days = days_between(due_at, now)
        if 0 <= days <= horizon_days:
            signals.append(ServiceSignal(truck, "date", days <= urgent_days, due_at=due_at, days_until_service=days))

    kms = kms_until_service(truck)
    if kms is not None and 0 < kms <= kms_threshold:
        signals.append(ServiceSignal(truck, "kms", kms <= kms_urgent, kms_until_service=kms))

    return signals


def credential_status(expires_at: datetime, now: datetime, horizon_days: int = 30):
    """
    Board label for a credential: ("Expired", "destructive"),
    ("Expires in Nd", "warning") or ("Valid", "success").
    """
    days = days_between(expires_at, now)
    if days < 0:
        return "Expired", "destructive"
    if days <= horizon_days:
        return f"Expires in {days}d", "warning"
    return "Valid", "success"


def truck_service_health(truck: Any, now: datetime, horizon_days: int = 14, warning_kms: int = 1000) -> ServiceHealth:
    """
    Traffic-light state for the fleet board. A truck in the workshop is red,
    one flagged for a check or close to its service (by date or distance)
    is amber, everything else is green.
    """
    status = field(truck, "status")
    if status == TruckStatus.in_service.value:
        return ServiceHealth.destructive
    if status == TruckStatus.check_required.value:
        return ServiceHealth.warning

    days = days_until_service(truck, now)
    kms = kms_until_service(truck)
    if (days is not None and days <= horizon_days) or (kms is not None and kms <= warning_kms):
        return ServiceHealth.warning
    return ServiceHealth.success
