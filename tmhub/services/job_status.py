"""
Job status rules.

`resolve_display_status` is the single place that turns a stored status plus
the current instant into what the UI shows, and `transition_job_status` is
the single place stored statuses are allowed to change.
"""
from datetime import datetime
from typing import Any, Dict, FrozenSet, Mapping, Optional

import structlog

from ..schemas.jobs import JobStatus, DisplayStatus
from .time_rules import coerce_instant, ensure_utc

logger = structlog.get_logger(__name__)


class JobTransitionError(ValueError):
    def __init__(self, current: JobStatus, target: JobStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move a job from {current.value} to {target.value}")


# Completed and Cancelled are terminal; nothing is ever resurrected
ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.pending: frozenset({JobStatus.upcoming, JobStatus.cancelled}),
    JobStatus.upcoming: frozenset({JobStatus.in_progress, JobStatus.completed, JobStatus.cancelled}),
    JobStatus.in_progress: frozenset({JobStatus.completed, JobStatus.cancelled}),
    JobStatus.completed: frozenset(),
    JobStatus.cancelled: frozenset(),
}


def field(record: Any, name: str, default: Any = None) -> Any:
    """Read `name` from an ORM row, a pydantic model or a plain mapping."""
    if record is None:
        return default
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def parse_status(value: Any) -> JobStatus:
    """Stored status as an enum. Unknown values are treated as Pending, which never promotes."""
    if isinstance(value, JobStatus):
        return value
    try:
        return JobStatus(value)
    except ValueError:
        logger.debug("unknown_job_status", value=repr(value))
        return JobStatus.pending


def resolve_display_status(job: Any, now: datetime) -> DisplayStatus:
    """
    Displayed status for a job at `now`.

    - Pending is returned unconditionally; time never promotes a request.
    - Upcoming reads as In Progress once the start has passed, as long as the
      end (when there is one) has not. Past the end it reads Upcoming again;
      completing a job always takes an explicit staff action.
    - Every other status passes through verbatim.

    Missing or malformed dates are read as `now`.
    """
    status = parse_status(field(job, "status"))
    if status is not JobStatus.upcoming:
        return status

    now = ensure_utc(now)
    start = coerce_instant(field(job, "start_date")) or now
    if now < start:
        return status

    raw_end = field(job, "end_date")
    if raw_end is None:
        return JobStatus.in_progress
    end = coerce_instant(raw_end) or now
    if now <= end:
        return JobStatus.in_progress
    return status


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition_job_status(job: Any, target: JobStatus, actor: Optional[str] = None) -> JobStatus:
    """
    Move a job's stored status to `target`, mutating `job.status`.

    Raises JobTransitionError when the lifecycle does not allow the move.
    """
    current = parse_status(field(job, "status"))
    if not can_transition(current, target):
        logger.info("job_transition_rejected", job_id=str(field(job, "id")), current=current.value, target=target.value, actor=actor)
        raise JobTransitionError(current, target)
    job.status = target.value
    logger.info("job_transition", job_id=str(field(job, "id")), current=current.value, target=target.value, actor=actor)
    return target
