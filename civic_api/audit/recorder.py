"""Best-effort audit recorder.

Every mutating action reports here after its own transaction has committed.
The recorder writes through a separate session so that a failed audit write
can never roll back, or be rolled back with, the business change, and it
never raises to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from civic_api.audit.kinds import AuditAction, AuditEntity, coerce_action, coerce_entity
from civic_api.errors import AuditRecordingFailure
from civic_api.identity.actor import Actor, StaffActor, actor_display_name, resolve_actor
from civic_api.models import AuditEntry
from civic_api.utils.metrics import audit_entries

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

SENSITIVE_FIELDS = frozenset(
    {
        "key",
        "api_key",
        "apikey",
        "key_digest",
        "key_prefix",
        "password_hash",
    }
)
SENSITIVE_MARKERS = ("password", "secret", "token", "authorization", "credential")

ACTION_VERBS = {
    AuditAction.CREATE: "created",
    AuditAction.UPDATE: "updated",
    AuditAction.DELETE: "deleted",
    AuditAction.SUBMIT: "submitted",
    AuditAction.INSPECT: "started inspection of",
    AuditAction.APPROVE: "approved",
    AuditAction.REJECT: "rejected",
    AuditAction.RETURN: "returned",
    AuditAction.PAY: "processed payment for",
    AuditAction.ASSIGN: "assigned",
    AuditAction.ESCALATE: "escalated",
    AuditAction.SEND: "sent",
    AuditAction.RESOLVE: "resolved",
    AuditAction.VIEW: "viewed",
}


@dataclass(frozen=True)
class RequestContext:
    """Client provenance captured by the HTTP layer."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    correlation_id: Optional[str] = None


class AuditSink(Protocol):
    """Anything the workflow engine can report actions to."""

    def record(
        self,
        actor: Optional[Actor],
        action,
        entity_kind,
        entity_id: Optional[int] = None,
        before: Optional[dict] = None,
        after: Optional[dict] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        ...


class NullAuditSink:
    """Discards everything."""

    def record(self, actor, action, entity_kind, entity_id=None, before=None, after=None,
               description=None, metadata=None, context=None) -> None:
        return None


def _is_sensitive(field_name) -> bool:
    name = str(field_name).lower()
    if name in SENSITIVE_FIELDS:
        return True
    return any(marker in name for marker in SENSITIVE_MARKERS)


def sanitize(data):
    """Return a copy with sensitive values replaced by a redaction marker."""
    if isinstance(data, dict):
        return {
            key: (REDACTED if _is_sensitive(key) and value is not None else sanitize(value))
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize(item) for item in data]
    return data


def describe(actor: Optional[Actor], action: AuditAction, entity_kind: AuditEntity, entity_id=None) -> str:
    """Generate a human-readable description for an action."""
    name = actor_display_name(actor)
    ref = f" (ID: {entity_id})" if entity_id is not None else ""
    if action == AuditAction.LOGIN:
        return f"{name} logged in"
    if action == AuditAction.LOGOUT:
        return f"{name} logged out"
    verb = ACTION_VERBS.get(action)
    if verb:
        return f"{name} {verb} {entity_kind.value}{ref}"
    return f"{name} performed {action.value} on {entity_kind.value}{ref}"


class AuditRecorder:
    """Persist audit entries without ever failing the caller."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        """Initialize recorder with a factory for short-lived sessions."""
        if session_factory is None:
            from civic_api.db.session import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory

    def build_entry(
        self,
        actor: Optional[Actor],
        action,
        entity_kind,
        entity_id: Optional[int] = None,
        before: Optional[dict] = None,
        after: Optional[dict] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
        context: Optional[RequestContext] = None,
    ) -> AuditEntry:
        """Validate and assemble an entry. Raises AuditRecordingFailure."""
        try:
            action = coerce_action(action)
            entity_kind = coerce_entity(entity_kind)
        except ValueError as e:
            raise AuditRecordingFailure(
                f"Invalid audit enum value - action: {action}, entity: {entity_kind}"
            ) from e

        ref = resolve_actor(actor)
        meta = dict(metadata or {})
        if isinstance(actor, StaffActor):
            meta.setdefault("actor_staff_id", actor.staff_id)
            if actor.employee_id:
                meta.setdefault("actor_employee_id", actor.employee_id)
        if context and context.correlation_id:
            meta.setdefault("correlation_id", context.correlation_id)

        return AuditEntry(
            actor_user_id=ref.actor_id,
            actor_role=ref.actor_role,
            action_type=action.value,
            entity_type=entity_kind.value,
            entity_id=entity_id,
            previous_data=sanitize(before) if before is not None else None,
            new_data=sanitize(after) if after is not None else None,
            ip_address=context.ip_address if context else None,
            user_agent=context.user_agent if context else None,
            description=description or describe(actor, action, entity_kind, entity_id),
            metadata_json=sanitize(meta) or None,
        )

    def record(
        self,
        actor: Optional[Actor],
        action,
        entity_kind,
        entity_id: Optional[int] = None,
        before: Optional[dict] = None,
        after: Optional[dict] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        """Record an action. Never raises."""
        # Audit reads and writes are never themselves audited
        if entity_kind in (AuditEntity.AUDIT_LOG, AuditEntity.AUDIT_LOG.value):
            return

        try:
            entry = self.build_entry(
                actor, action, entity_kind, entity_id, before, after, description, metadata, context
            )
        except AuditRecordingFailure as e:
            logger.warning(f"Audit entry not written: {e}")
            audit_entries.labels(outcome="invalid").inc()
            return
        except Exception as e:
            logger.error(f"Failed to build audit entry: {e}", exc_info=True)
            audit_entries.labels(outcome="failed").inc()
            return

        try:
            self._persist(entry)
        except Exception as e:
            logger.error(
                f"Failed to create audit log: {e}",
                exc_info=True,
                extra={
                    "action_type": entry.action_type,
                    "entity_type": entry.entity_type,
                    "entity_id": entry.entity_id,
                },
            )
            audit_entries.labels(outcome="failed").inc()
            return

        audit_entries.labels(outcome="recorded").inc()

    def _persist(self, entry: AuditEntry) -> None:
        db = self.session_factory()
        try:
            db.add(entry)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def get_audit_sink() -> AuditSink:
    """FastAPI dependency returning the audit sink used by request handlers."""
    return AuditRecorder()
