"""Guarded state machine for property applications.

Each transition runs in a single transaction on the caller's session:

1. load the application through the access gate, locked for update
2. check authority (``PermissionDenied``), then source state (``InvalidTransition``)
3. mutate, commit
4. report to the audit sink with before/after snapshots

Failures before the commit roll the session back and leave the record
untouched. The audit sink is called only after a successful commit, and
its failures are logged, never raised.
"""

import logging
import secrets
from datetime import datetime
from typing import Callable, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from civic_api.access.gate import AccessGate, can_author, can_inspect, is_owner_or_admin
from civic_api.audit.kinds import AuditAction, AuditEntity
from civic_api.audit.recorder import AuditRecorder, AuditSink, RequestContext
from civic_api.auth.api_key import hash_password
from civic_api.errors import InvalidTransition, NotFound, PermissionDenied, ValidationError, WorkflowError
from civic_api.identifiers.allocator import PROPERTY_TAG, IdentifierAllocator
from civic_api.identity.actor import Actor, PublicAccountActor, actor_reference
from civic_api.models import Account, Property, PropertyApplication
from civic_api.models.application import PROPERTY_SUBJECT_FIELDS
from civic_api.settings import get_settings
from civic_api.utils.metrics import audit_entries, workflow_transitions
from civic_api.workflow.schemas import REQUIRED_FIELDS, ApplicationCreate, ApplicationUpdate
from civic_api.workflow.states import (
    DECISION_ACTIONS,
    ApplicationStatus,
    WorkflowAction,
    allowed_sources,
    is_allowed,
)

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = {
    WorkflowAction.CREATE: AuditAction.CREATE,
    WorkflowAction.UPDATE: AuditAction.UPDATE,
    WorkflowAction.SUBMIT: AuditAction.SUBMIT,
    WorkflowAction.START_INSPECTION: AuditAction.INSPECT,
    WorkflowAction.APPROVE: AuditAction.APPROVE,
    WorkflowAction.REJECT: AuditAction.REJECT,
    WorkflowAction.RETURN: AuditAction.RETURN,
    WorkflowAction.DELETE: AuditAction.DELETE,
}

DESCRIPTIONS = {
    WorkflowAction.CREATE: "created",
    WorkflowAction.UPDATE: "updated",
    WorkflowAction.SUBMIT: "submitted for review",
    WorkflowAction.START_INSPECTION: "moved to inspection",
    WorkflowAction.APPROVE: "approved",
    WorkflowAction.REJECT: "rejected",
    WorkflowAction.RETURN: "returned for corrections",
    WorkflowAction.DELETE: "deleted",
}

CITIZEN_ROLE = "citizen"


def _validation_message(error: PydanticValidationError) -> str:
    messages = []
    for item in error.errors():
        field = ".".join(str(part) for part in item.get("loc", ())) or "payload"
        if item.get("type") == "missing":
            messages.append(f"{field} is required")
        else:
            messages.append(f"{field}: {item.get('msg')}")
    return "; ".join(messages)


def _coerce(model, payload):
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload or {})
    except PydanticValidationError as e:
        raise ValidationError(_validation_message(e)) from e


def _require_text(value: Optional[str], message: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(message)
    return str(value).strip()


class ApplicationWorkflow:
    """Create, edit and adjudicate property applications."""

    def __init__(
        self,
        db: Session,
        audit_sink: Optional[AuditSink] = None,
        allocator: Optional[IdentifierAllocator] = None,
        gate: Optional[AccessGate] = None,
    ):
        """Initialize workflow with database session and collaborators."""
        self.db = db
        self.audit_sink = audit_sink if audit_sink is not None else AuditRecorder()
        self.allocator = allocator or IdentifierAllocator(db)
        self.gate = gate or AccessGate(db)
        self.settings = get_settings()

    # Creation

    def create(self, actor: Optional[Actor], payload, context: Optional[RequestContext] = None) -> PropertyApplication:
        """Create a DRAFT application with a freshly allocated application number."""
        action = WorkflowAction.CREATE
        try:
            data = _coerce(ApplicationCreate, payload)
            if not can_author(actor):
                raise PermissionDenied("Not permitted to create property applications")

            ward = self.allocator.resolve_ward(data.ward_id)
            applicant, applicant_created = self._resolve_applicant(actor, data)
            application_number = self.allocator.next_application_number(ward.id)

            kind, actor_id = actor_reference(actor)
            fields = data.model_dump(exclude={"applicant_id"})
            application = PropertyApplication(
                application_number=application_number,
                status=ApplicationStatus.DRAFT.value,
                applicant_id=applicant.id,
                created_by_kind=kind,
                created_by_id=actor_id,
                **fields,
            )
            self.db.add(application)
            self.db.commit()
        except WorkflowError as e:
            self._fail(action, e)
            raise
        except Exception:
            self._error(action)
            raise

        self.db.refresh(application)
        metadata = {
            "application_number": application.application_number,
            "new_status": application.status,
            "ward_id": application.ward_id,
            "applicant_id": application.applicant_id,
        }
        if applicant_created:
            metadata["applicant_created"] = True
        self._succeed(actor, action, application, None, application.to_snapshot(), metadata, context)
        return application

    def _resolve_applicant(self, actor: Optional[Actor], data: ApplicationCreate) -> Tuple[Account, bool]:
        """Return the applicant account and whether it was created just now."""
        if data.applicant_id is not None:
            account = self.db.query(Account).filter(Account.id == data.applicant_id).first()
            if not account:
                raise NotFound(f"Applicant {data.applicant_id} not found")
            return account, False

        if isinstance(actor, PublicAccountActor) and actor.role == CITIZEN_ROLE:
            account = self.db.query(Account).filter(Account.id == actor.account_id).first()
            if not account:
                raise NotFound(f"Applicant {actor.account_id} not found")
            return account, False

        if not data.owner_phone:
            raise ValidationError("owner_phone is required when no applicant is given")

        account = self.db.query(Account).filter(Account.phone == data.owner_phone).first()
        if account:
            return account, False
        return self._create_citizen(data), True

    def _create_citizen(self, data: ApplicationCreate) -> Account:
        username = f"citizen_{data.owner_phone}"
        if self.db.query(Account).filter(Account.username == username).first():
            username = f"{username}_{secrets.token_hex(3)}"

        first_name, _, last_name = data.owner_name.strip().partition(" ")
        temporary_password = secrets.token_urlsafe(self.settings.temporary_password_length)
        account = Account(
            username=username,
            first_name=first_name,
            last_name=last_name or None,
            phone=data.owner_phone,
            role=CITIZEN_ROLE,
            password_hash=hash_password(temporary_password[: self.settings.temporary_password_length]),
            is_active=True,
        )
        self.db.add(account)
        self.db.flush()
        logger.info(
            "Created citizen account for applicant",
            extra={"account_id": account.id, "username": username},
        )
        return account

    # Owner-side transitions

    def update(
        self, actor: Optional[Actor], application_id: int, payload, context: Optional[RequestContext] = None
    ) -> PropertyApplication:
        """Apply a partial update to a DRAFT or RETURNED application."""
        action = WorkflowAction.UPDATE
        try:
            changes = _coerce(ApplicationUpdate, payload).model_dump(exclude_unset=True)
        except ValidationError as e:
            self._fail(action, e)
            raise
        if not changes:
            error = ValidationError("No fields to update")
            self._fail(action, error)
            raise error
        for field in REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                error = ValidationError(f"{field} cannot be empty")
                self._fail(action, error)
                raise error

        def mutate(application: PropertyApplication) -> dict:
            if "ward_id" in changes and changes["ward_id"] != application.ward_id:
                self.allocator.resolve_ward(changes["ward_id"])
            for field, value in changes.items():
                setattr(application, field, value)
            return {"updated_fields": sorted(changes)}

        return self._transition(actor, application_id, action, is_owner_or_admin, mutate, context)

    def submit(
        self, actor: Optional[Actor], application_id: int, context: Optional[RequestContext] = None
    ) -> PropertyApplication:
        """Send a DRAFT or RETURNED application for review."""

        def mutate(application: PropertyApplication) -> dict:
            application.status = ApplicationStatus.SUBMITTED.value
            application.submitted_at = datetime.utcnow()
            return {}

        return self._transition(actor, application_id, WorkflowAction.SUBMIT, is_owner_or_admin, mutate, context)

    def delete(self, actor: Optional[Actor], application_id: int, context: Optional[RequestContext] = None) -> None:
        """Remove a DRAFT application."""
        action = WorkflowAction.DELETE
        try:
            application = self._load(actor, application_id, action, is_owner_or_admin)
            before = application.to_snapshot()
            self.db.delete(application)
            self.db.commit()
        except WorkflowError as e:
            self._fail(action, e)
            raise
        except Exception:
            self._error(action)
            raise

        metadata = {
            "application_number": before["application_number"],
            "previous_status": before["status"],
        }
        self._audit(actor, action, before["id"], before["application_number"], before, None, metadata, context)
        workflow_transitions.labels(action=action.value, outcome="success").inc()
        logger.info(
            f"Property application {before['application_number']} deleted",
            extra={"application_id": before["id"]},
        )

    # Inspection-stage transitions

    def start_inspection(
        self, actor: Optional[Actor], application_id: int, context: Optional[RequestContext] = None
    ) -> PropertyApplication:
        def mutate(application: PropertyApplication) -> dict:
            application.status = ApplicationStatus.UNDER_INSPECTION.value
            self._stamp_inspector(application, actor)
            return {}

        return self._transition(
            actor, application_id, WorkflowAction.START_INSPECTION, self._inspects, mutate, context
        )

    def approve(
        self,
        actor: Optional[Actor],
        application_id: int,
        inspection_remarks: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> PropertyApplication:
        """Approve an application and register its property in the same transaction."""

        def mutate(application: PropertyApplication) -> dict:
            code = self.allocator.next_code(application.ward_id, application.property_type, PROPERTY_TAG)
            kind, actor_id = actor_reference(actor)
            approved = Property(
                property_number=code,
                unique_code=code,
                owner_id=application.applicant_id,
                status="active",
                source_application_id=application.id,
                created_by_kind=kind,
                created_by_id=actor_id,
                **{field: getattr(application, field) for field in PROPERTY_SUBJECT_FIELDS},
            )
            self.db.add(approved)
            self.db.flush()

            application.status = ApplicationStatus.APPROVED.value
            application.approved_property_id = approved.id
            if inspection_remarks:
                application.inspection_remarks = inspection_remarks
            self._stamp_inspector(application, actor)
            return {"approved_property_id": approved.id, "unique_code": code}

        return self._transition(actor, application_id, WorkflowAction.APPROVE, self._inspects, mutate, context)

    def reject(
        self,
        actor: Optional[Actor],
        application_id: int,
        rejection_reason: Optional[str],
        inspection_remarks: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> PropertyApplication:
        action = WorkflowAction.REJECT
        try:
            reason = _require_text(rejection_reason, "Rejection reason is required")
        except ValidationError as e:
            self._fail(action, e)
            raise

        def mutate(application: PropertyApplication) -> dict:
            application.status = ApplicationStatus.REJECTED.value
            application.rejection_reason = reason
            if inspection_remarks:
                application.inspection_remarks = inspection_remarks
            self._stamp_inspector(application, actor)
            return {"rejection_reason": reason}

        return self._transition(actor, application_id, action, self._inspects, mutate, context)

    def return_application(
        self,
        actor: Optional[Actor],
        application_id: int,
        inspection_remarks: Optional[str],
        context: Optional[RequestContext] = None,
    ) -> PropertyApplication:
        """Send an application back to its owner for corrections."""
        action = WorkflowAction.RETURN
        try:
            remarks = _require_text(
                inspection_remarks, "Inspection remarks are required when returning an application"
            )
        except ValidationError as e:
            self._fail(action, e)
            raise

        def mutate(application: PropertyApplication) -> dict:
            application.status = ApplicationStatus.RETURNED.value
            application.inspection_remarks = remarks
            self._stamp_inspector(application, actor)
            return {"inspection_remarks": remarks}

        return self._transition(actor, application_id, action, self._inspects, mutate, context)

    def decide(
        self,
        actor: Optional[Actor],
        application_id: int,
        action,
        inspection_remarks: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> PropertyApplication:
        """Dispatch one of the inspection-stage actions by name."""
        requested = getattr(action, "value", action)
        try:
            action = WorkflowAction(requested)
        except ValueError:
            action = None
        if action not in DECISION_ACTIONS:
            error = ValidationError(
                "Invalid review action. Must be one of: " + ", ".join(a.value for a in DECISION_ACTIONS)
            )
            self._fail("review", error)
            raise error

        if action == WorkflowAction.START_INSPECTION:
            return self.start_inspection(actor, application_id, context=context)
        if action == WorkflowAction.APPROVE:
            return self.approve(actor, application_id, inspection_remarks=inspection_remarks, context=context)
        if action == WorkflowAction.REJECT:
            return self.reject(
                actor, application_id, rejection_reason, inspection_remarks=inspection_remarks, context=context
            )
        return self.return_application(actor, application_id, inspection_remarks, context=context)

    # Internals

    @staticmethod
    def _inspects(actor: Optional[Actor], application: PropertyApplication) -> bool:
        return can_inspect(actor)

    @staticmethod
    def _stamp_inspector(application: PropertyApplication, actor: Optional[Actor]):
        kind, actor_id = actor_reference(actor)
        application.inspected_by_kind = kind
        application.inspected_by_id = actor_id
        application.inspected_at = datetime.utcnow()

    def _load(
        self,
        actor: Optional[Actor],
        application_id: int,
        action: WorkflowAction,
        authorize: Callable[[Optional[Actor], PropertyApplication], bool],
    ) -> PropertyApplication:
        application = self.gate.get_visible_application(actor, application_id, for_update=True)
        if not authorize(actor, application):
            raise PermissionDenied(f"Not permitted to {action.value} this application")
        if not is_allowed(action, application.status):
            raise InvalidTransition(action, application.status, allowed_sources(action))
        return application

    def _transition(
        self,
        actor: Optional[Actor],
        application_id: int,
        action: WorkflowAction,
        authorize: Callable[[Optional[Actor], PropertyApplication], bool],
        mutate: Callable[[PropertyApplication], dict],
        context: Optional[RequestContext],
    ) -> PropertyApplication:
        try:
            application = self._load(actor, application_id, action, authorize)
            before = application.to_snapshot()
            extra = mutate(application) or {}
            self.db.commit()
        except WorkflowError as e:
            self._fail(action, e)
            raise
        except Exception:
            self._error(action)
            raise

        self.db.refresh(application)
        after = application.to_snapshot()
        metadata = {
            "application_number": application.application_number,
            "previous_status": before["status"],
            "new_status": application.status,
        }
        metadata.update(extra)
        self._succeed(actor, action, application, before, after, metadata, context)
        return application

    def _succeed(self, actor, action, application, before, after, metadata, context):
        self._audit(actor, action, application.id, application.application_number, before, after, metadata, context)
        workflow_transitions.labels(action=action.value, outcome="success").inc()
        logger.info(
            f"Property application {application.application_number} {DESCRIPTIONS[action]}",
            extra={
                "application_id": application.id,
                "action": action.value,
                "status": application.status,
            },
        )

    def _audit(self, actor, action, entity_id, application_number, before, after, metadata, context):
        description = f"Property application {application_number} {DESCRIPTIONS[action]}"
        if action == WorkflowAction.APPROVE and metadata.get("unique_code"):
            description += f" as property {metadata['unique_code']}"
        # The transition is already committed; a failing sink must not surface
        try:
            self.audit_sink.record(
                actor,
                AUDIT_ACTIONS[action],
                AuditEntity.PROPERTY_APPLICATION,
                entity_id=entity_id,
                before=before,
                after=after,
                description=description,
                metadata=metadata,
                context=context,
            )
        except Exception:
            audit_entries.labels(outcome="failed").inc()
            logger.error(
                f"Audit sink failed for {action.value} on {application_number}",
                extra={"application_id": entity_id, "action": action.value},
                exc_info=True,
            )

    def _fail(self, action, error: WorkflowError):
        self.db.rollback()
        name = getattr(action, "value", action)
        workflow_transitions.labels(action=name, outcome=type(error).__name__).inc()
        logger.info(
            f"Rejected {name}: {error.detail}",
            extra={"action": name, "error": type(error).__name__},
        )

    def _error(self, action: WorkflowAction):
        self.db.rollback()
        workflow_transitions.labels(action=action.value, outcome="error").inc()
        logger.error(f"Failed to {action.value} property application", exc_info=True)
