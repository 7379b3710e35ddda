"""Tests for the property application workflow engine."""

from unittest.mock import Mock

import pytest
from prometheus_client import REGISTRY

from civic_api.audit.recorder import AuditRecorder
from civic_api.errors import (
    InvalidTransition,
    NotFound,
    PermissionDenied,
    SequenceExhausted,
    UnknownScope,
    ValidationError,
)
from civic_api.identifiers.allocator import parse_code
from civic_api.identity.actor import SYSTEM
from civic_api.models import Account, AuditEntry, Property, PropertyApplication, SequenceCounter
from civic_api.workflow.engine import ApplicationWorkflow
from civic_api.workflow.states import ApplicationStatus

ALL_STATUSES = {status.value for status in ApplicationStatus}


def _entries(db, action_type=None):
    query = db.query(AuditEntry).filter(AuditEntry.entity_type == "PropertyApplication")
    if action_type:
        query = query.filter(AuditEntry.action_type == action_type)
    return query.order_by(AuditEntry.id).all()


def _changed_fields(entry):
    before, after = entry.previous_data, entry.new_data
    return {key for key in set(before) | set(after) if before.get(key) != after.get(key)}


def _submitted(workflow, clerk_actor, payload):
    application = workflow.create(clerk_actor, payload)
    return workflow.submit(clerk_actor, application.id)


# Creation


def test_create_starts_in_draft_with_allocated_number(db, workflow, clerk_actor, payload, clerk):
    """Test that creation allocates a ward-scoped application number."""
    application = workflow.create(clerk_actor, payload)

    assert application.status == "DRAFT"
    assert application.application_number == "PROP-APP-007-000001"
    assert application.created_by_kind == "staff"
    assert application.created_by_id == clerk.id
    assert application.approved_property_id is None

    entries = _entries(db)
    assert len(entries) == 1
    assert entries[0].action_type == "CREATE"
    assert entries[0].previous_data is None
    assert entries[0].new_data["application_number"] == "PROP-APP-007-000001"
    assert entries[0].actor_user_id is None
    assert entries[0].actor_role == "clerk"


def test_create_numbers_are_sequential_per_ward(workflow, clerk_actor, payload):
    first = workflow.create(clerk_actor, payload)
    second = workflow.create(clerk_actor, payload)

    assert first.application_number == "PROP-APP-007-000001"
    assert second.application_number == "PROP-APP-007-000002"


def test_staff_attribution_is_not_written_into_remarks(workflow, clerk_actor, payload):
    """Test that the clerk's identity stays out of user-visible payload text."""
    application = workflow.create(clerk_actor, dict(payload, remarks="Corner plot"))

    assert application.remarks == "Corner plot"


def test_create_finds_or_creates_citizen_by_phone(db, workflow, clerk_actor, payload):
    """Test that a clerk filing without an applicant id links a citizen account by phone."""
    payload = dict(payload, owner_phone="9111111111", owner_name="Ravi Kumar")
    payload.pop("applicant_id")

    first = workflow.create(clerk_actor, payload)
    second = workflow.create(clerk_actor, payload)

    applicant = db.query(Account).filter(Account.id == first.applicant_id).one()
    assert applicant.role == "citizen"
    assert applicant.phone == "9111111111"
    assert applicant.first_name == "Ravi"
    assert applicant.last_name == "Kumar"
    assert applicant.password_hash and applicant.password_hash.startswith("$pbkdf2-sha256$")
    assert second.applicant_id == first.applicant_id

    created = _entries(db, "CREATE")
    assert created[0].metadata_json["applicant_created"] is True
    assert "applicant_created" not in created[1].metadata_json


def test_create_uses_citizen_caller_as_applicant(workflow, citizen_actor, citizen, payload):
    payload = dict(payload)
    payload.pop("applicant_id")

    application = workflow.create(citizen_actor, payload)

    assert application.applicant_id == citizen.id
    assert application.created_by_kind == "account"


def test_create_without_applicant_or_phone_fails(db, workflow, clerk_actor, payload):
    payload = dict(payload)
    payload.pop("applicant_id")
    payload.pop("owner_phone")

    with pytest.raises(ValidationError):
        workflow.create(clerk_actor, payload)

    assert db.query(PropertyApplication).count() == 0
    assert _entries(db) == []


def test_create_with_unknown_applicant_fails(workflow, clerk_actor, payload):
    with pytest.raises(NotFound):
        workflow.create(clerk_actor, dict(payload, applicant_id=9999))


def test_create_missing_required_field_fails(db, workflow, clerk_actor, payload):
    """Test that required fields are enforced before anything is written."""
    payload = dict(payload)
    payload.pop("owner_name")

    with pytest.raises(ValidationError) as exc_info:
        workflow.create(clerk_actor, payload)

    assert "owner_name is required" in exc_info.value.detail
    assert db.query(SequenceCounter).count() == 0


def test_create_in_unknown_ward_fails(db, workflow, clerk_actor, payload):
    with pytest.raises(UnknownScope):
        workflow.create(clerk_actor, dict(payload, ward_id=999))

    assert db.query(PropertyApplication).count() == 0


def test_create_in_inactive_ward_fails(db, workflow, clerk_actor, payload, ward):
    ward.is_active = False
    db.commit()

    with pytest.raises(UnknownScope):
        workflow.create(clerk_actor, payload)


def test_inspector_cannot_create(workflow, inspector_actor, payload):
    with pytest.raises(PermissionDenied):
        workflow.create(inspector_actor, payload)


# Full life cycle


def test_approval_scenario_allocates_ward_codes(db, workflow, clerk_actor, inspector_actor, payload, citizen):
    """Test create, submit, inspect, approve and the next approval in the same ward."""
    application = workflow.create(clerk_actor, payload)
    workflow.submit(clerk_actor, application.id)
    workflow.start_inspection(inspector_actor, application.id)
    approved = workflow.approve(inspector_actor, application.id, inspection_remarks="Verified on site")

    assert approved.status == "APPROVED"
    assert approved.approved_property_id is not None
    assert approved.inspection_remarks == "Verified on site"
    assert approved.inspected_at is not None

    registered = db.query(Property).filter(Property.id == approved.approved_property_id).one()
    assert registered.unique_code == "PR0070001"
    assert registered.property_number == "PR0070001"
    assert registered.owner_id == citizen.id
    assert registered.source_application_id == application.id
    assert registered.address == payload["address"]
    assert registered.area == pytest.approx(120.5)
    assert parse_code(registered.unique_code) == {"prefix": "PR", "ward_number": 7, "sequence": 1}

    second = _submitted(workflow, clerk_actor, payload)
    second = workflow.approve(inspector_actor, second.id)
    assert second.approved_property.unique_code == "PR0070002"

    for row in db.query(PropertyApplication).all():
        assert row.status in ALL_STATUSES
        assert (row.approved_property_id is not None) == (row.status == "APPROVED")


def test_approve_writes_exactly_one_audit_entry(db, workflow, clerk_actor, inspector_actor, payload):
    application = _submitted(workflow, clerk_actor, payload)

    workflow.approve(inspector_actor, application.id)

    approvals = _entries(db, "APPROVE")
    assert len(approvals) == 1
    assert approvals[0].metadata_json["unique_code"] == "PR0070001"
    assert approvals[0].metadata_json["previous_status"] == "SUBMITTED"
    assert approvals[0].metadata_json["new_status"] == "APPROVED"
    assert "PR0070001" in approvals[0].description
    assert _changed_fields(approvals[0]) <= {
        "status",
        "approved_property_id",
        "inspected_by_kind",
        "inspected_by_id",
        "inspected_at",
    }


def test_approve_twice_fails_on_second_call(db, workflow, clerk_actor, inspector_actor, payload):
    """Test that a committed approval cannot be repeated."""
    application = _submitted(workflow, clerk_actor, payload)
    workflow.approve(inspector_actor, application.id)

    with pytest.raises(InvalidTransition):
        workflow.approve(inspector_actor, application.id)

    assert db.query(Property).count() == 1
    assert len(_entries(db, "APPROVE")) == 1


def test_submit_on_approved_fails_and_keeps_status(db, workflow, clerk_actor, inspector_actor, payload):
    application = _submitted(workflow, clerk_actor, payload)
    workflow.approve(inspector_actor, application.id)

    with pytest.raises(InvalidTransition) as exc_info:
        workflow.submit(clerk_actor, application.id)

    error = exc_info.value.to_dict()
    assert error["current_status"] == "APPROVED"
    assert error["allowed_statuses"] == ["DRAFT", "RETURNED"]
    db.expire_all()
    assert db.get(PropertyApplication, application.id).status == "APPROVED"


def test_failed_allocation_rolls_back_approval(db, workflow, clerk_actor, inspector_actor, payload):
    """Test that approval is all-or-nothing."""
    application = _submitted(workflow, clerk_actor, payload)
    workflow.allocator.next_code = Mock(side_effect=SequenceExhausted("Sequence 10000 does not fit 4 digits"))

    with pytest.raises(SequenceExhausted):
        workflow.approve(inspector_actor, application.id)

    db.expire_all()
    assert db.get(PropertyApplication, application.id).status == "SUBMITTED"
    assert db.query(Property).count() == 0
    assert _entries(db, "APPROVE") == []


def test_audit_failure_does_not_fail_transition(db, clerk_actor, payload):
    """Test that a broken audit store never blocks the business change."""
    broken = Mock()
    broken.commit.side_effect = RuntimeError("audit store down")
    workflow = ApplicationWorkflow(db, audit_sink=AuditRecorder(session_factory=lambda: broken))

    application = workflow.create(clerk_actor, payload)
    submitted = workflow.submit(clerk_actor, application.id)

    assert submitted.status == "SUBMITTED"


def test_raising_audit_sink_does_not_fail_transition(db, clerk_actor, inspector_actor, payload):
    """Test that any injected sink that raises leaves committed transitions successful."""
    sink = Mock()
    sink.record.side_effect = RuntimeError("sink down")
    workflow = ApplicationWorkflow(db, audit_sink=sink)

    application = workflow.create(clerk_actor, payload)
    submitted = workflow.submit(clerk_actor, application.id)
    approved = workflow.approve(inspector_actor, application.id)

    assert submitted.status == "SUBMITTED"
    assert approved.status == "APPROVED"
    assert sink.record.call_count == 3
    db.expire_all()
    assert db.get(PropertyApplication, application.id).status == "APPROVED"
    assert db.query(Property).count() == 1


def test_audit_sink_is_called_once_per_transition(db, clerk_actor, inspector_actor, payload):
    sink = Mock()
    workflow = ApplicationWorkflow(db, audit_sink=sink)

    application = workflow.create(clerk_actor, payload)
    workflow.submit(clerk_actor, application.id)
    workflow.start_inspection(inspector_actor, application.id)

    actions = [call.args[1].value for call in sink.record.call_args_list]
    assert actions == ["CREATE", "SUBMIT", "INSPECT"]


# Reject and return


def test_reject_without_reason_changes_nothing(db, workflow, clerk_actor, inspector_actor, payload):
    """Test that a missing reason is refused before any mutation or audit write."""
    application = _submitted(workflow, clerk_actor, payload)
    entries_before = db.query(AuditEntry).count()

    for reason in (None, "", "   "):
        with pytest.raises(ValidationError):
            workflow.reject(inspector_actor, application.id, reason)

    assert db.query(AuditEntry).count() == entries_before
    db.expire_all()
    assert db.get(PropertyApplication, application.id).status == "SUBMITTED"


def test_reject_with_reason(db, workflow, clerk_actor, inspector_actor, payload):
    application = _submitted(workflow, clerk_actor, payload)

    rejected = workflow.reject(inspector_actor, application.id, "Encroachment on public land")

    assert rejected.status == "REJECTED"
    assert rejected.rejection_reason == "Encroachment on public land"
    assert rejected.approved_property_id is None
    assert len(_entries(db, "REJECT")) == 1


def test_return_then_update_and_resubmit(db, workflow, clerk_actor, inspector_actor, payload):
    """Test the correction loop through RETURNED back to SUBMITTED."""
    application = _submitted(workflow, clerk_actor, payload)

    returned = workflow.return_application(inspector_actor, application.id, "missing documents")
    assert returned.status == "RETURNED"
    assert returned.inspection_remarks == "missing documents"

    workflow.update(clerk_actor, application.id, {"documents": [{"name": "sale-deed.pdf"}]})
    resubmitted = workflow.submit(clerk_actor, application.id)

    assert resubmitted.status == "SUBMITTED"
    assert resubmitted.documents == [{"name": "sale-deed.pdf"}]


def test_return_without_remarks_fails(workflow, clerk_actor, inspector_actor, payload):
    application = _submitted(workflow, clerk_actor, payload)

    with pytest.raises(ValidationError):
        workflow.return_application(inspector_actor, application.id, None)


def test_decide_dispatches_and_rejects_unknown_actions(workflow, clerk_actor, inspector_actor, payload):
    application = _submitted(workflow, clerk_actor, payload)

    inspected = workflow.decide(inspector_actor, application.id, "start_inspection")
    assert inspected.status == "UNDER_INSPECTION"

    with pytest.raises(ValidationError):
        workflow.decide(inspector_actor, application.id, "escalate")

    returned = workflow.decide(inspector_actor, application.id, "return", inspection_remarks="Wrong pincode")
    assert returned.status == "RETURNED"


def test_unknown_review_action_is_counted(workflow, inspector_actor):
    labels = {"action": "review", "outcome": "ValidationError"}
    before = REGISTRY.get_sample_value("civic_workflow_transitions_total", labels) or 0

    with pytest.raises(ValidationError):
        workflow.decide(inspector_actor, 1, "escalate")

    assert REGISTRY.get_sample_value("civic_workflow_transitions_total", labels) == before + 1


def test_start_inspection_stamps_inspector_and_time(db, workflow, clerk_actor, inspector_actor, inspector, payload):
    application = _submitted(workflow, clerk_actor, payload)

    inspected = workflow.start_inspection(inspector_actor, application.id)

    assert inspected.status == "UNDER_INSPECTION"
    assert inspected.inspected_by_kind == "staff"
    assert inspected.inspected_by_id == inspector.id
    assert inspected.inspected_at is not None
    assert inspected.approved_property_id is None


def test_start_inspection_only_from_submitted(workflow, clerk_actor, inspector_actor, payload):
    application = workflow.create(clerk_actor, payload)

    with pytest.raises(InvalidTransition):
        workflow.start_inspection(inspector_actor, application.id)


# Update


def test_update_changes_only_sent_fields(db, workflow, clerk_actor, payload):
    """Test that before/after snapshots differ only in updated fields."""
    application = workflow.create(clerk_actor, payload)

    updated = workflow.update(clerk_actor, application.id, {"owner_name": "Asha R. Rao", "floors": 2})

    assert updated.owner_name == "Asha R. Rao"
    assert updated.address == payload["address"]
    entry = _entries(db, "UPDATE")[0]
    assert _changed_fields(entry) == {"owner_name"}
    assert entry.metadata_json["updated_fields"] == ["floors", "owner_name"]


def test_update_cannot_clear_required_field(workflow, clerk_actor, payload):
    application = workflow.create(clerk_actor, payload)

    with pytest.raises(ValidationError):
        workflow.update(clerk_actor, application.id, {"address": None})


def test_empty_update_fails(workflow, clerk_actor, payload):
    application = workflow.create(clerk_actor, payload)

    with pytest.raises(ValidationError):
        workflow.update(clerk_actor, application.id, {})


def test_update_after_submit_fails(workflow, clerk_actor, payload):
    application = _submitted(workflow, clerk_actor, payload)

    with pytest.raises(InvalidTransition):
        workflow.update(clerk_actor, application.id, {"owner_name": "Someone Else"})


def test_update_to_unknown_ward_fails(db, workflow, clerk_actor, payload):
    application = workflow.create(clerk_actor, payload)

    with pytest.raises(UnknownScope):
        workflow.update(clerk_actor, application.id, {"ward_id": 999})

    db.expire_all()
    assert db.get(PropertyApplication, application.id).ward_id == payload["ward_id"]


def test_submit_snapshot_changes_status_and_timestamp_only(db, workflow, clerk_actor, payload):
    application = workflow.create(clerk_actor, payload)

    workflow.submit(clerk_actor, application.id)

    assert _changed_fields(_entries(db, "SUBMIT")[0]) == {"status", "submitted_at"}


# Delete


def test_delete_submitted_fails(db, workflow, clerk_actor, payload):
    application = _submitted(workflow, clerk_actor, payload)

    with pytest.raises(InvalidTransition):
        workflow.delete(clerk_actor, application.id)

    assert db.query(PropertyApplication).count() == 1


def test_delete_draft_removes_it(db, workflow, clerk_actor, payload):
    application = workflow.create(clerk_actor, payload)
    application_id = application.id

    workflow.delete(clerk_actor, application_id)

    assert db.query(PropertyApplication).count() == 0
    entry = _entries(db, "DELETE")[0]
    assert entry.entity_id == application_id
    assert entry.previous_data["status"] == "DRAFT"
    assert entry.new_data is None


# Authority and visibility


def test_clerk_cannot_inspect_own_application(workflow, clerk_actor, payload):
    """Test that a visible record without authority is PermissionDenied."""
    application = _submitted(workflow, clerk_actor, payload)

    with pytest.raises(PermissionDenied):
        workflow.approve(clerk_actor, application.id)


def test_other_clerk_sees_not_found(workflow, clerk_actor, other_clerk_actor, payload):
    application = workflow.create(clerk_actor, payload)

    with pytest.raises(NotFound):
        workflow.update(other_clerk_actor, application.id, {"owner_name": "Intruder"})


def test_inspector_outside_jurisdiction_sees_not_found(workflow, clerk_actor, inspector_actor, payload, other_ward):
    application = _submitted(workflow, clerk_actor, dict(payload, ward_id=other_ward.id))

    with pytest.raises(NotFound):
        workflow.start_inspection(inspector_actor, application.id)


def test_admin_can_act_on_any_application(workflow, clerk_actor, admin_actor, payload):
    application = workflow.create(clerk_actor, payload)

    submitted = workflow.submit(admin_actor, application.id)
    approved = workflow.approve(admin_actor, submitted.id)

    assert approved.status == "APPROVED"


def test_system_actor_transitions_are_attributed_to_system(db, workflow, clerk_actor, payload):
    application = workflow.create(clerk_actor, payload)

    workflow.submit(SYSTEM, application.id)

    entry = _entries(db, "SUBMIT")[0]
    assert entry.actor_role == "system"
    assert entry.actor_user_id is None
