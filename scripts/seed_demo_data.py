"""
Seed the local database with a demo tenant: admin and staff logins, a client,
staff with credentials, trucks and a handful of jobs.

Usage:
  python scripts/seed_demo_data.py

This script is idempotent: running it multiple times will upsert the same
records based on unique fields (id for tenants, email for users, name for
clients and staff, plate for trucks, job number for jobs). Dates are placed
relative to today so the notification feed always has something to show.
"""

from datetime import datetime, timedelta, timezone

from tmhub.db import SessionLocal, Base, engine
from tmhub.models.models import (
    Tenant,
    User,
    Client,
    Staff,
    StaffCredential,
    Truck,
    Job,
)
from tmhub.auth.security import get_password_hash

TENANT_ID = "traffic-flow"


def ensure_tenant(session, tenant_id: str, name: str, **kwargs) -> Tenant:
    tenant = session.query(Tenant).filter(Tenant.id == tenant_id).first()
    if tenant:
        tenant.name = name
        for k, v in kwargs.items():
            setattr(tenant, k, v)
        session.flush()
        return tenant
    tenant = Tenant(id=tenant_id, name=name, **kwargs)
    session.add(tenant)
    session.flush()
    return tenant


def ensure_user(session, email: str, password: str, **kwargs) -> User:
    user = session.query(User).filter(User.email == email).first()
    if user:
        for k, v in kwargs.items():
            setattr(user, k, v)
        # Keep an existing password
        if not user.password_hash:
            user.password_hash = get_password_hash(password)
        session.flush()
        return user
    user = User(email=email, password_hash=get_password_hash(password), is_active=True, **kwargs)
    session.add(user)
    session.flush()
    return user


def ensure_client(session, tenant_id: str, name: str, **kwargs) -> Client:
    cli = session.query(Client).filter(Client.tenant_id == tenant_id, Client.name == name).first()
    if cli:
        for k, v in kwargs.items():
            setattr(cli, k, v)
        session.flush()
        return cli
    cli = Client(tenant_id=tenant_id, name=name, **kwargs)
    session.add(cli)
    session.flush()
    return cli


def ensure_staff(session, tenant_id: str, name: str, certifications=(), licenses=(), **kwargs) -> Staff:
    member = session.query(Staff).filter(Staff.tenant_id == tenant_id, Staff.name == name).first()
    if not member:
        member = Staff(tenant_id=tenant_id, name=name)
        session.add(member)
    for k, v in kwargs.items():
        setattr(member, k, v)
    member.credentials = [
        StaffCredential(kind="certification", name=n, expiry_date=d) for n, d in certifications
    ] + [
        StaffCredential(kind="license", name=n, expiry_date=d) for n, d in licenses
    ]
    session.flush()
    return member


def ensure_truck(session, tenant_id: str, plate: str, **kwargs) -> Truck:
    truck = session.query(Truck).filter(Truck.tenant_id == tenant_id, Truck.plate == plate).first()
    if truck:
        for k, v in kwargs.items():
            setattr(truck, k, v)
        truck.updated_at = datetime.now(timezone.utc)
        session.flush()
        return truck
    truck = Truck(tenant_id=tenant_id, plate=plate, **kwargs)
    session.add(truck)
    session.flush()
    return truck


def ensure_job(session, tenant_id: str, job_number: str, **kwargs) -> Job:
    job = session.query(Job).filter(Job.tenant_id == tenant_id, Job.job_number == job_number).first()
    if job:
        for k, v in kwargs.items():
            setattr(job, k, v)
        job.updated_at = datetime.now(timezone.utc)
        session.flush()
        return job
    job = Job(tenant_id=tenant_id, job_number=job_number, **kwargs)
    session.add(job)
    session.flush()
    return job


def main() -> None:
    # Ensure tables exist (safe for SQLite dev)
    Base.metadata.create_all(bind=engine)

    now = datetime.now(timezone.utc)

    def days(n: float) -> datetime:
        return now + timedelta(days=n)

    session = SessionLocal()
    try:
        ensure_tenant(session, TENANT_ID, "Traffic Flow Ltd", contact_email="ops@trafficflow.example")

        aroha = ensure_staff(
            session,
            TENANT_ID,
            "Aroha Ngata",
            role="STMS",
            email="aroha@trafficflow.example",
            nzta_id="STMS-10442",
            emergency_contact={"name": "Hemi Ngata", "phone": "021 555 0101"},
            certifications=[("STMS-NP", days(5)), ("TTMW", None)],
            licenses=[("Class 2", days(200))],
        )
        ensure_staff(
            session,
            TENANT_ID,
            "Sam Walker",
            role="TC",
            certifications=[("TC", days(25)), ("First Aid", days(-10))],
            licenses=[("Class 1", days(12))],
        )

        ensure_user(session, "admin@trafficflow.example", "TestAdmin123!", tenant_id=TENANT_ID, access_level="Admin", role="Owner")
        ensure_user(session, "aroha@trafficflow.example", "TestUser123!", tenant_id=TENANT_ID, access_level="Staff Member", role="STMS", staff_id=aroha.id)

        downer = ensure_client(session, TENANT_ID, "Downer Civil", email="site@downer.example", phone="09 555 0199")
        ensure_user(session, "pm@downer.example", "TestUser123!", tenant_id=TENANT_ID, access_level="Client", client_id=downer.id)

        ensure_truck(session, TENANT_ID, "TMA101", name="TMA Truck 1", current_kms=182400, next_service_kms=182600, next_service_date=days(40), last_service_date=days(-140))
        ensure_truck(session, TENANT_ID, "UTE202", name="Ute 2", current_kms=64000, next_service_kms=70000, next_service_date=days(6), last_service_date=days(-170))
        ensure_truck(session, TENANT_ID, "VMS303", name="VMS Board Truck", status="Check Required", current_kms=98000, next_service_kms=110000)

        ensure_job(session, TENANT_ID, "TMV-0001", status="Pending", client_id=downer.id, client_name=downer.name, location="Great South Rd, Papakura", start_date=days(9))
        ensure_job(session, TENANT_ID, "TMV-0002", status="Upcoming", client_id=downer.id, client_name=downer.name, location="SH1 Northbound, Drury", start_date=days(2), setup_type="Lane Shift", stms_id=aroha.id, stms_name=aroha.name)
        ensure_job(session, TENANT_ID, "TMV-0003", status="Upcoming", client_name="Fulton Hogan", location="Queen St, Auckland CBD", start_date=days(-0.1), end_date=days(0.3), setup_type="Stop-Go")
        ensure_job(session, TENANT_ID, "TMV-0004", status="Completed", client_name="Fulton Hogan", location="Dominion Rd", start_date=days(-12), end_date=days(-11))

        session.commit()
        print("Seed completed: tenant, users, staff, trucks and jobs upserted.")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
