"""Typed failures raised by the workflow core."""

from typing import Iterable, Optional


class WorkflowError(Exception):
    """Base class for failures surfaced to the caller."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"detail": self.detail, "error": type(self).__name__}


class ValidationError(WorkflowError):
    """Required field missing or malformed."""

    status_code = 400


class PermissionDenied(WorkflowError):
    """Caller can see the record but lacks authority for the action."""

    status_code = 403


class NotFound(WorkflowError):
    """Record missing or outside the caller's visible scope."""

    status_code = 404


class InvalidTransition(WorkflowError):
    """Action attempted from an illegal source state."""

    status_code = 409

    def __init__(self, action: str, current_status: str, allowed_statuses: Iterable[str]):
        self.action = str(getattr(action, "value", action))
        self.current_status = str(getattr(current_status, "value", current_status))
        self.allowed_statuses = [str(getattr(s, "value", s)) for s in allowed_statuses]
        super().__init__(
            f"Cannot {self.action} application in {self.current_status} status. "
            f"Allowed source states: {', '.join(self.allowed_statuses)}"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["current_status"] = self.current_status
        data["allowed_statuses"] = self.allowed_statuses
        return data


class UnknownScope(WorkflowError):
    """Partition key (ward) does not resolve to an active scope."""

    status_code = 422

    def __init__(self, ward_id, detail: Optional[str] = None):
        self.ward_id = ward_id
        super().__init__(detail or f"Ward {ward_id} not found or inactive")


class SequenceExhausted(WorkflowError):
    """Next sequence value does not fit the fixed code width."""

    status_code = 422


class AuditRecordingFailure(Exception):
    """Raised and caught inside the audit recorder only."""
