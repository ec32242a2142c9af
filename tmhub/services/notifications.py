"""
Notification feed.

Builds the staff notification list from already-fetched snapshots of jobs,
staff, trucks and client registrations. Nothing here is persisted or cached:
the feed is recomputed from scratch on every call, so it is safe to call
again whenever any of the inputs change.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog

from ..schemas.notifications import (
    FeedNotification,
    NotificationFeed,
    NotificationPriority,
    NotificationType,
)
from .expiry import scan_expiring, scan_truck_service
from .job_status import field
from .time_rules import coerce_instant, days_between, ensure_utc

logger = structlog.get_logger(__name__)

HIGH = NotificationPriority.high
NORMAL = NotificationPriority.normal


@dataclass(frozen=True)
class NotificationThresholds:
    job_soon_days: int = 3
    cert_horizon_days: int = 30
    cert_urgent_days: int = 7
    truck_service_horizon_days: int = 14
    truck_service_urgent_days: int = 7
    truck_service_kms_threshold: int = 500
    truck_service_kms_urgent: int = 100

    @classmethod
    def from_settings(cls, settings) -> "NotificationThresholds":
        return cls(
            job_soon_days=settings.job_soon_days,
            cert_horizon_days=settings.cert_horizon_days,
            cert_urgent_days=settings.cert_urgent_days,
            truck_service_horizon_days=settings.truck_service_horizon_days,
            truck_service_urgent_days=settings.truck_service_urgent_days,
            truck_service_kms_threshold=settings.truck_service_kms_threshold,
            truck_service_kms_urgent=settings.truck_service_kms_urgent,
        )


# Display buckets: views over the sorted feed, selected by predicate only
BUCKETS: Dict[str, Callable[[FeedNotification], bool]] = {
    "urgent": lambda n: n.priority == HIGH,
    "requests": lambda n: n.type in (NotificationType.new_request, NotificationType.client_registration),
    "jobs": lambda n: n.type == NotificationType.job_starting_soon,
    "staff": lambda n: n.type in (NotificationType.certification_expiring, NotificationType.license_expiring),
    "fleet": lambda n: n.type == NotificationType.truck_service,
}


def _starts_in(days: int) -> str:
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    return f"in {days} days"


def _emit(out: List[FeedNotification], source: str, record: Any, build: Callable[[], Iterable[FeedNotification]]) -> None:
    # One bad record costs its own notifications, never the whole feed
    try:
        out.extend(build())
    except Exception as e:
        logger.warning("notification_item_skipped", source=source, record_id=str(field(record, "id")), error=str(e))


def _registration_notifications(registration: Any, now: datetime) -> List[FeedNotification]:
    reg_id = str(field(registration, "id"))
    return [FeedNotification(
        id=f"registration-{reg_id}",
        type=NotificationType.client_registration,
        title="New Client Registration",
        message=f"{field(registration, 'company_name')} ({field(registration, 'contact_name')}) is awaiting approval",
        timestamp=coerce_instant(field(registration, "requested_at")) or now,
        priority=HIGH,
        related_id=reg_id,
    )]


def _request_notifications(job: Any, now: datetime) -> List[FeedNotification]:
    job_id = str(field(job, "id"))
    # Stamped with `now` rather than the request time
    return [FeedNotification(
        id=f"request-{job_id}",
        type=NotificationType.new_request,
        title="New Job Request",
        message=f"Job request from {field(job, 'client_name')} at {field(job, 'location')}",
        timestamp=now,
        priority=HIGH,
        related_id=job_id,
    )]


def _starting_soon_notifications(job: Any, now: datetime, t: NotificationThresholds) -> List[FeedNotification]:
    start = coerce_instant(field(job, "start_date"))
    if start is None:
        return []
    days = days_between(start, now)
    if not 0 <= days <= t.job_soon_days:
        return []
    job_id = str(field(job, "id"))
    return [FeedNotification(
        id=f"job-soon-{job_id}",
        type=NotificationType.job_starting_soon,
        title="Job Starting Soon",
        message=f"{field(job, 'job_number')} at {field(job, 'location')} starts {_starts_in(days)}",
        timestamp=start,
        priority=NORMAL,
        related_id=job_id,
    )]


def _credential_key(credential: Any) -> str:
    # Stored rows have their own id; bare name/expiry dicts fall back to the name
    key = field(credential, "id")
    return str(key) if key is not None else str(field(credential, "name"))


def _credential_notifications(staff: Any, now: datetime, t: NotificationThresholds) -> List[FeedNotification]:
    out: List[FeedNotification] = []
    staff_id = str(field(staff, "id"))
    name = field(staff, "name")

    for match in scan_expiring(field(staff, "certifications"), t.cert_horizon_days, now, t.cert_urgent_days):
        cert_name = field(match.entity, "name")
        out.append(FeedNotification(
            id=f"cert-{staff_id}-{_credential_key(match.entity)}",
            type=NotificationType.certification_expiring,
            title="Certification Expiring Soon",
            message=f"{name}'s {cert_name} certification expires in {match.days_until_expiry} days",
            timestamp=match.expires_at,
            priority=HIGH if match.urgent else NORMAL,
            related_id=staff_id,
        ))

    for match in scan_expiring(field(staff, "licenses"), t.cert_horizon_days, now, t.cert_urgent_days):
        license_name = field(match.entity, "name")
        out.append(FeedNotification(
            id=f"license-{staff_id}-{_credential_key(match.entity)}",
            type=NotificationType.license_expiring,
            title="License Expiring Soon",
            message=f"{name}'s {license_name} expires in {match.days_until_expiry} days",
            timestamp=match.expires_at,
            priority=HIGH if match.urgent else NORMAL,
            related_id=staff_id,
        ))
    return out


def _truck_notifications(truck: Any, now: datetime, t: NotificationThresholds) -> List[FeedNotification]:
    out: List[FeedNotification] = []
    truck_id = str(field(truck, "id"))
    label = f"{field(truck, 'name')} ({field(truck, 'plate')})"
    signals = scan_truck_service(
        truck,
        now,
        horizon_days=t.truck_service_horizon_days,
        urgent_days=t.truck_service_urgent_days,
        kms_threshold=t.truck_service_kms_threshold,
        kms_urgent=t.truck_service_kms_urgent,
    )
    for signal in signals:
        if signal.trigger == "date":
            message = f"{label} service due in {signal.days_until_service} days"
            timestamp = signal.due_at
        else:
            message = f"{label} service due in {signal.kms_until_service}km"
            timestamp = now
        out.append(FeedNotification(
            id=f"truck-{signal.trigger}-{truck_id}",
            type=NotificationType.truck_service,
            title="Truck Service Due Soon",
            message=message,
            timestamp=timestamp,
            priority=HIGH if signal.urgent else NORMAL,
            related_id=truck_id,
        ))
    return out


def sort_notifications(notifications: Iterable[FeedNotification]) -> List[FeedNotification]:
    """High priority first, then newest first; equal keys keep insertion order."""
    return sorted(
        notifications,
        key=lambda n: (0 if n.priority == HIGH else 1, -n.timestamp.timestamp()),
    )


def build_notifications(
    pending_jobs: Optional[Iterable[Any]],
    upcoming_jobs: Optional[Iterable[Any]],
    all_staff: Optional[Iterable[Any]],
    all_trucks: Optional[Iterable[Any]],
    pending_registrations: Optional[Iterable[Any]],
    now: datetime,
    thresholds: Optional[NotificationThresholds] = None,
) -> List[FeedNotification]:
    """
    Sorted notification list for the given snapshots.

    Any collection may be None (not loaded yet); it is read as empty and its
    category is simply absent from the result.
    """
    t = thresholds or NotificationThresholds()
    now = ensure_utc(now)
    notifications: List[FeedNotification] = []

    for registration in pending_registrations or ():
        _emit(notifications, "client_registration", registration, lambda: _registration_notifications(registration, now))

    for job in pending_jobs or ():
        _emit(notifications, "new_request", job, lambda: _request_notifications(job, now))

    for job in upcoming_jobs or ():
        _emit(notifications, "job_starting_soon", job, lambda: _starting_soon_notifications(job, now, t))

    for staff in all_staff or ():
        _emit(notifications, "staff_credentials", staff, lambda: _credential_notifications(staff, now, t))

    for truck in all_trucks or ():
        _emit(notifications, "truck_service", truck, lambda: _truck_notifications(truck, now, t))

    return sort_notifications(notifications)


def partition_notifications(notifications: List[FeedNotification]) -> Dict[str, List[FeedNotification]]:
    """Split an already sorted feed into the display buckets, preserving order."""
    return {name: [n for n in notifications if matches(n)] for name, matches in BUCKETS.items()}


def build_feed(
    pending_jobs: Optional[Iterable[Any]],
    upcoming_jobs: Optional[Iterable[Any]],
    all_staff: Optional[Iterable[Any]],
    all_trucks: Optional[Iterable[Any]],
    pending_registrations: Optional[Iterable[Any]],
    now: datetime,
    thresholds: Optional[NotificationThresholds] = None,
) -> NotificationFeed:
    notifications = build_notifications(
        pending_jobs, upcoming_jobs, all_staff, all_trucks, pending_registrations, now, thresholds
    )
    buckets = partition_notifications(notifications)
    return NotificationFeed(
        notifications=notifications,
        total=len(notifications),
        high_priority_count=len(buckets["urgent"]),
        **buckets,
    )
