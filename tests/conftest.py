import os
import uuid
from datetime import datetime, timedelta

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

from tmhub.auth.security import claims_for_user, create_access_token, get_password_hash  # noqa: E402
from tmhub.db import Base, get_db  # noqa: E402
from tmhub.main import app  # noqa: E402
from tmhub.models.models import Client, Job, Staff, StaffCredential, Tenant, Truck, User  # noqa: E402
from tmhub.services.time_rules import get_now  # noqa: E402

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=pytz.UTC)
TENANT = "traffic-flow"
OTHER_TENANT = "other-co"
PASSWORD = "correct-horse"


def days_from_now(days: float) -> datetime:
    return NOW + timedelta(days=days)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(claims_for_user(user))}"}


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def api_client(db_session) -> TestClient:
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_now] = lambda: NOW
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def tenants(db_session):
    rows = [
        Tenant(id=TENANT, name="Traffic Flow", contact_email="ops@trafficflow.nz"),
        Tenant(id=OTHER_TENANT, name="Other Co"),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


def _user(db_session, email: str, **kwargs) -> User:
    user = User(email=email, password_hash=get_password_hash(PASSWORD), **kwargs)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin(db_session, tenants) -> User:
    return _user(db_session, "admin@trafficflow.nz", tenant_id=TENANT, access_level="Admin", role="Owner")


@pytest.fixture
def tc_user(db_session, tenants) -> User:
    return _user(db_session, "tc@trafficflow.nz", tenant_id=TENANT, access_level="Staff Member", role="TC")


@pytest.fixture
def stms_user(db_session, tenants) -> User:
    return _user(db_session, "stms@trafficflow.nz", tenant_id=TENANT, access_level="Staff Member", role="STMS")


@pytest.fixture
def other_admin(db_session, tenants) -> User:
    return _user(db_session, "admin@other.co.nz", tenant_id=OTHER_TENANT, access_level="Admin", role="Owner")


@pytest.fixture
def super_admin(db_session, tenants) -> User:
    return _user(db_session, "root@tmhub.nz", tenant_id=TENANT, access_level="Admin", super_admin=True)


@pytest.fixture
def client_company(db_session, tenants) -> Client:
    client = Client(tenant_id=TENANT, name="Downer Civil", email="site@downer.nz")
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


@pytest.fixture
def client_user(db_session, client_company) -> User:
    return _user(db_session, "pm@downer.nz", tenant_id=TENANT, access_level="Client", client_id=client_company.id)


@pytest.fixture
def make_job(db_session):
    counter = iter(range(1, 1000))

    def _make(status="Upcoming", start=None, end=None, tenant_id=TENANT, client=None, **kwargs):
        job = Job(
            tenant_id=tenant_id,
            job_number=f"TMV-{next(counter):04d}",
            location=kwargs.pop("location", "SH1 Northbound, Drury"),
            client_id=client.id if client else None,
            client_name=client.name if client else kwargs.pop("client_name", "Fulton Hogan"),
            status=status,
            start_date=start or days_from_now(2),
            end_date=end,
            **kwargs,
        )
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        return job

    return _make


@pytest.fixture
def make_staff(db_session):
    def _make(name="Aroha Ngata", tenant_id=TENANT, certifications=(), licenses=()):
        member = Staff(id=uuid.uuid4(), tenant_id=tenant_id, name=name, role="TC")
        member.credentials = [
            StaffCredential(kind="certification", name=n, expiry_date=d) for n, d in certifications
        ] + [
            StaffCredential(kind="license", name=n, expiry_date=d) for n, d in licenses
        ]
        db_session.add(member)
        db_session.commit()
        db_session.refresh(member)
        return member

    return _make


@pytest.fixture
def make_truck(db_session):
    def _make(name="Truck 1", plate="ABC123", tenant_id=TENANT, **kwargs):
        truck = Truck(tenant_id=tenant_id, name=name, plate=plate, **kwargs)
        db_session.add(truck)
        db_session.commit()
        db_session.refresh(truck)
        return truck

    return _make
