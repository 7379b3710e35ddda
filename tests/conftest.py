"""Pytest configuration and fixtures."""

import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from civic_api import models  # noqa: F401
from civic_api.audit.recorder import AuditRecorder
from civic_api.auth.api_key import assign_api_key
from civic_api.db.base import Base
from civic_api.identity.actor import actor_from_account, actor_from_staff
from civic_api.models import Account, Staff, Ward
from civic_api.workflow.engine import ApplicationWorkflow

# Use test database URL from environment or default to SQLite in-memory
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite:///:memory:"
)

CLERK_KEY = "civ_test_clerk_key_0001"
OTHER_CLERK_KEY = "civ_test_clerk_key_0002"
INSPECTOR_KEY = "civ_test_inspector_key_0001"
ADMIN_KEY = "civ_test_admin_key_0001"
CITIZEN_KEY = "civ_test_citizen_key_0001"


@pytest.fixture(scope="function")
def engine():
    """
    Create a test database engine.

    For integration tests, use TEST_DATABASE_URL environment variable
    to point to a real PostgreSQL instance.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        # SQLite in-memory for fast unit tests
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Session:
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def recorder(session_factory) -> AuditRecorder:
    """Audit recorder writing to the test database."""
    return AuditRecorder(session_factory=session_factory)


@pytest.fixture
def workflow(db: Session, recorder: AuditRecorder) -> ApplicationWorkflow:
    return ApplicationWorkflow(db, audit_sink=recorder)


@pytest.fixture
def ward(db: Session) -> Ward:
    """Ward 7, the scope most tests file into."""
    ward = Ward(ward_number=7, ward_name="Ward 7", is_active=True)
    db.add(ward)
    db.commit()
    return ward


@pytest.fixture
def other_ward(db: Session) -> Ward:
    ward = Ward(ward_number=8, ward_name="Ward 8", is_active=True)
    db.add(ward)
    db.commit()
    return ward


@pytest.fixture
def citizen(db: Session) -> Account:
    account = Account(
        username="asha",
        first_name="Asha",
        last_name="Rao",
        phone="9000000001",
        role="citizen",
        is_active=True,
    )
    assign_api_key(account, CITIZEN_KEY)
    db.add(account)
    db.commit()
    return account


@pytest.fixture
def admin(db: Session) -> Account:
    account = Account(
        username="admin",
        first_name="System",
        last_name="Administrator",
        role="admin",
        is_active=True,
    )
    assign_api_key(account, ADMIN_KEY)
    db.add(account)
    db.commit()
    return account


@pytest.fixture
def clerk(db: Session) -> Staff:
    staff = Staff(employee_id="EMP-C-001", full_name="Clerk One", role="clerk", ward_ids=[], is_active=True)
    assign_api_key(staff, CLERK_KEY)
    db.add(staff)
    db.commit()
    return staff


@pytest.fixture
def other_clerk(db: Session) -> Staff:
    staff = Staff(employee_id="EMP-C-002", full_name="Clerk Two", role="clerk", ward_ids=[], is_active=True)
    assign_api_key(staff, OTHER_CLERK_KEY)
    db.add(staff)
    db.commit()
    return staff


@pytest.fixture
def inspector(db: Session, ward: Ward) -> Staff:
    """Inspector with jurisdiction over ward 7 only."""
    staff = Staff(
        employee_id="EMP-I-001",
        full_name="Inspector One",
        role="inspector",
        ward_ids=[ward.id],
        is_active=True,
    )
    assign_api_key(staff, INSPECTOR_KEY)
    db.add(staff)
    db.commit()
    return staff


@pytest.fixture
def clerk_actor(clerk):
    return actor_from_staff(clerk)


@pytest.fixture
def other_clerk_actor(other_clerk):
    return actor_from_staff(other_clerk)


@pytest.fixture
def inspector_actor(inspector):
    return actor_from_staff(inspector)


@pytest.fixture
def admin_actor(admin):
    return actor_from_account(admin)


@pytest.fixture
def citizen_actor(citizen):
    return actor_from_account(citizen)


@pytest.fixture
def payload(ward, citizen) -> dict:
    """Valid creation payload for a residential property in ward 7."""
    return {
        "ward_id": ward.id,
        "applicant_id": citizen.id,
        "owner_name": "Asha Rao",
        "owner_phone": "9000000001",
        "property_type": "residential",
        "address": "12 Temple Road",
        "city": "Pune",
        "state": "Maharashtra",
        "pincode": "411001",
        "area": 120.5,
        "floors": 2,
        "construction_type": "RCC",
    }


@pytest.fixture
def api_keys(clerk, other_clerk, inspector, admin, citizen) -> dict:
    """Raw API keys of the seeded callers, by role."""
    return {
        "clerk": CLERK_KEY,
        "other_clerk": OTHER_CLERK_KEY,
        "inspector": INSPECTOR_KEY,
        "admin": ADMIN_KEY,
        "citizen": CITIZEN_KEY,
    }
