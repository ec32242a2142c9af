import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    JSON,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Tenant(Base):
    """A company account; nearly every record is partitioned by tenant id."""
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)  # slug, e.g. "traffic-flow"
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Active")  # Active|Suspended|Inactive
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class User(Base):
    """Login account. Its columns are what gets minted into token claims."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    tenant_id: Mapped[Optional[str]] = mapped_column(String(100), ForeignKey("tenants.id", ondelete="SET NULL"), index=True)
    access_level: Mapped[str] = mapped_column(String(30), default="Staff Member")  # Admin|Staff Member|Client|Client Staff
    role: Mapped[Optional[str]] = mapped_column(String(30))  # TC|STMS|Operator|Owner|Tester
    super_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    staff_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("staff.id", ondelete="SET NULL"))
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = uuid_pk()
    tenant_id: Mapped[Optional[str]] = mapped_column(String(100), ForeignKey("tenants.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(20), default="Active")  # Pending|Active
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ClientRegistration(Base):
    """Self-service client signup awaiting review. Not tenant scoped."""
    __tablename__ = "client_registrations"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(20), default="Pending", index=True)  # Pending|Approved|Rejected
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    decided_by: Mapped[Optional[str]] = mapped_column(String(255))
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id", ondelete="SET NULL"))


class Staff(Base):
    __tablename__ = "staff"

    id: Mapped[uuid.UUID] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(100), ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    role: Mapped[str] = mapped_column(String(30), default="TC")  # TC|STMS|Operator|Owner|Tester
    access_level: Mapped[str] = mapped_column(String(30), default="Staff Member")
    nzta_id: Mapped[Optional[str]] = mapped_column(String(50))
    emergency_contact: Mapped[Optional[dict]] = mapped_column(JSON)  # {"name": ..., "phone": ...}
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    credentials = relationship(
        "StaffCredential",
        back_populates="staff",
        cascade="all, delete-orphan",
        order_by="StaffCredential.expiry_date",
    )

    @property
    def certifications(self) -> list:
        return [c for c in self.credentials if c.kind == "certification"]

    @property
    def licenses(self) -> list:
        return [c for c in self.credentials if c.kind == "license"]


class StaffCredential(Base):
    """Certification or licence held by a staff member; the sub-lists are replaced wholesale."""
    __tablename__ = "staff_credentials"

    id: Mapped[uuid.UUID] = uuid_pk()
    staff_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # certification|license
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    staff = relationship("Staff", back_populates="credentials")

    __table_args__ = (
        Index("idx_staff_credential_kind", "staff_id", "kind"),
    )


class Truck(Base):
    __tablename__ = "trucks"

    id: Mapped[uuid.UUID] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(100), ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    plate: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(30), default="Operational")  # Operational|Check Required|In Service
    current_kms: Mapped[int] = mapped_column(Integer, default=0)
    last_service_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    next_service_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    next_service_kms: Mapped[Optional[int]] = mapped_column(Integer)
    fuel_log: Mapped[Optional[list]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    @property
    def service(self) -> dict:
        return {
            "last_service_date": self.last_service_date,
            "next_service_date": self.next_service_date,
            "next_service_kms": self.next_service_kms,
        }


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(100), ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)
    job_number: Mapped[str] = mapped_column(String(30), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    location: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id", ondelete="SET NULL"), index=True)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Pending", index=True)  # Pending|Upcoming|In Progress|Completed|Cancelled
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    start_time: Mapped[Optional[str]] = mapped_column(String(10))
    site_setup_time: Mapped[Optional[str]] = mapped_column(String(10))
    setup_type: Mapped[Optional[str]] = mapped_column(String(30))  # Stop-Go|Lane Shift|Shoulder|Mobiles|Other
    stms_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("staff.id", ondelete="SET NULL"))
    stms_name: Mapped[Optional[str]] = mapped_column(String(255))
    crew: Mapped[Optional[list]] = mapped_column(JSON)  # [{"id": ..., "name": ...}]
    contact_person: Mapped[Optional[str]] = mapped_column(String(255))
    contact_number: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_job_tenant_status", "tenant_id", "status"),
    )
