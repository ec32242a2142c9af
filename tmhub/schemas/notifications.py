from datetime import datetime
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel


class NotificationType(str, Enum):
    new_request = "new_request"
    client_registration = "client_registration"
    job_starting_soon = "job_starting_soon"
    certification_expiring = "certification_expiring"
    license_expiring = "license_expiring"
    truck_service = "truck_service"


class NotificationPriority(str, Enum):
    normal = "normal"
    high = "high"


class FeedNotification(BaseModel):
    """Derived alert; recomputed on every read and never stored."""
    id: str
    type: NotificationType
    title: str
    message: str
    timestamp: datetime
    priority: NotificationPriority
    related_id: Optional[str] = None


class NotificationFeed(BaseModel):
    notifications: List[FeedNotification]
    urgent: List[FeedNotification]
    requests: List[FeedNotification]
    jobs: List[FeedNotification]
    staff: List[FeedNotification]
    fleet: List[FeedNotification]
    total: int
    high_priority_count: int
