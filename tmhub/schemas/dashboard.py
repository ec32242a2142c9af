from typing import List

from pydantic import BaseModel

from .jobs import JobResponse


class AdminDashboardResponse(BaseModel):
    active_jobs: int
    upcoming_jobs: int
    pending_requests: int
    expiring_credentials: int
    expired_credentials: int
    trucks_needing_service: int


class ClientDashboardResponse(BaseModel):
    jobs: List[JobResponse]
    pending: int
    upcoming: int
    in_progress: int
    completed: int
