"""Tests for per-ward sequence allocation and code composition."""

import threading

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from civic_api.audit.recorder import NullAuditSink
from civic_api.db.base import Base
from civic_api.errors import SequenceExhausted, UnknownScope
from civic_api.identifiers.allocator import (
    APPLICATION_TAG,
    PROPERTY_TAG,
    IdentifierAllocator,
    compose_application_number,
    compose_code,
    parse_code,
)
from civic_api.identity.actor import SYSTEM
from civic_api.models import Account, SequenceCounter, Ward
from civic_api.workflow.engine import ApplicationWorkflow


def test_compose_code_format():
    """Test prefix, ward and sequence padding."""
    assert compose_code(7, "residential", 1) == "PR0070001"
    assert compose_code(12, "industrial", 345) == "PI0120345"
    assert compose_code(3, "mixed", 9999) == "PC0039999"


def test_compose_code_unknown_type_uses_default_prefix():
    assert compose_code(7, "houseboat", 1) == "PC0070001"


def test_compose_code_overflow_raises():
    """Test that values wider than the fixed fields are refused."""
    with pytest.raises(SequenceExhausted):
        compose_code(7, "residential", 10000)
    with pytest.raises(SequenceExhausted):
        compose_code(1000, "residential", 1)


def test_compose_application_number():
    assert compose_application_number(7, 1) == "PROP-APP-007-000001"


def test_parse_code():
    assert parse_code("PR0070012") == {"prefix": "PR", "ward_number": 7, "sequence": 12}
    with pytest.raises(ValueError):
        parse_code("PR-007-12")


def test_allocate_is_monotonic_per_ward_and_tag(db, ward, other_ward):
    """Test that each (ward, tag) pair counts independently from 1."""
    allocator = IdentifierAllocator(db)

    assert [allocator.allocate(ward.id, PROPERTY_TAG) for _ in range(3)] == [1, 2, 3]
    assert allocator.allocate(other_ward.id, PROPERTY_TAG) == 1
    assert allocator.allocate(ward.id, APPLICATION_TAG) == 1
    db.commit()

    assert allocator.allocate(ward.id, PROPERTY_TAG) == 4


def test_next_code_embeds_ward_number(db, ward):
    allocator = IdentifierAllocator(db)

    assert allocator.next_code(ward.id, "commercial") == "PC0070001"
    assert allocator.next_application_number(ward.id) == "PROP-APP-007-000001"


def test_unknown_ward_raises_before_counter_write(db):
    """Test that an unresolvable scope leaves no counter row behind."""
    allocator = IdentifierAllocator(db)

    with pytest.raises(UnknownScope):
        allocator.allocate(999, PROPERTY_TAG)

    assert db.query(SequenceCounter).count() == 0


def test_inactive_ward_is_unknown_scope(db, ward):
    ward.is_active = False
    db.commit()

    with pytest.raises(UnknownScope):
        IdentifierAllocator(db).allocate(ward.id, PROPERTY_TAG)


def test_rolled_back_allocation_is_released(db, ward):
    """Test that the caller's rollback also rolls back the increment."""
    allocator = IdentifierAllocator(db)
    allocator.allocate(ward.id, PROPERTY_TAG)
    db.commit()

    allocator.allocate(ward.id, PROPERTY_TAG)
    db.rollback()

    assert allocator.allocate(ward.id, PROPERTY_TAG) == 2


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite engine shared by several threads.

    Transactions start with BEGIN IMMEDIATE so writers queue on the busy
    timeout instead of failing on lock upgrade.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'counters.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


def _run_threads(count, target):
    errors = []

    def wrapper(index):
        try:
            target(index)
        except Exception as e:  # noqa: BLE001
            errors.append(e)

    threads = [threading.Thread(target=wrapper, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return errors


def test_concurrent_allocations_are_distinct_and_gapless(file_engine):
    """Test that concurrent callers in one ward never share a value."""
    Session = sessionmaker(bind=file_engine)
    setup = Session()
    ward = Ward(ward_number=7, ward_name="Ward 7", is_active=True)
    setup.add(ward)
    setup.commit()
    ward_id = ward.id
    setup.close()

    results = []
    lock = threading.Lock()

    def allocate(_):
        session = Session()
        try:
            value = IdentifierAllocator(session).allocate(ward_id, PROPERTY_TAG)
            session.commit()
            with lock:
                results.append(value)
        finally:
            session.close()

    errors = _run_threads(8, allocate)

    assert errors == []
    assert sorted(results) == list(range(1, 9))


def test_concurrent_approvals_receive_consecutive_codes(file_engine):
    """Test that N concurrent approvals in one ward get N distinct sequence numbers."""
    Session = sessionmaker(bind=file_engine)
    setup = Session()
    ward = Ward(ward_number=7, ward_name="Ward 7", is_active=True)
    applicant = Account(username="asha", first_name="Asha", role="citizen", is_active=True)
    setup.add_all([ward, applicant])
    setup.commit()

    workflow = ApplicationWorkflow(setup, audit_sink=NullAuditSink())
    application_ids = []
    for index in range(6):
        application = workflow.create(
            SYSTEM,
            {
                "ward_id": ward.id,
                "applicant_id": applicant.id,
                "owner_name": f"Owner {index}",
                "property_type": "residential",
                "address": f"{index} Market Street",
                "city": "Pune",
                "state": "Maharashtra",
                "pincode": "411001",
                "area": 80,
            },
        )
        workflow.submit(SYSTEM, application.id)
        application_ids.append(application.id)
    setup.close()

    codes = []
    lock = threading.Lock()

    def approve(index):
        session = Session()
        try:
            approved = ApplicationWorkflow(session, audit_sink=NullAuditSink()).approve(
                SYSTEM, application_ids[index]
            )
            with lock:
                codes.append(approved.approved_property.unique_code)
        finally:
            session.close()

    errors = _run_threads(len(application_ids), approve)

    assert errors == []
    sequences = sorted(parse_code(code)["sequence"] for code in codes)
    assert sequences == list(range(1, len(application_ids) + 1))
    assert all(code.startswith("PR007") for code in codes)
