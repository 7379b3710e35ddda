"""Application life-cycle states and the legal transition table."""

import enum


class ApplicationStatus(str, enum.Enum):
    """Workflow status of a property application."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_INSPECTION = "UNDER_INSPECTION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"


class WorkflowAction(str, enum.Enum):
    """Operations the engine exposes."""

    CREATE = "create"
    UPDATE = "update"
    SUBMIT = "submit"
    START_INSPECTION = "start_inspection"
    APPROVE = "approve"
    REJECT = "reject"
    RETURN = "return"
    DELETE = "delete"


# Inspection-stage actions accepted by the review endpoint
DECISION_ACTIONS = (
    WorkflowAction.START_INSPECTION,
    WorkflowAction.APPROVE,
    WorkflowAction.REJECT,
    WorkflowAction.RETURN,
)

EDITABLE_STATUSES = (ApplicationStatus.DRAFT, ApplicationStatus.RETURNED)
UNDER_REVIEW_STATUSES = (ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_INSPECTION)
TERMINAL_STATUSES = (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED)

# action -> legal source states
TRANSITION_SOURCES = {
    WorkflowAction.UPDATE: EDITABLE_STATUSES,
    WorkflowAction.SUBMIT: EDITABLE_STATUSES,
    WorkflowAction.START_INSPECTION: (ApplicationStatus.SUBMITTED,),
    WorkflowAction.APPROVE: UNDER_REVIEW_STATUSES,
    WorkflowAction.REJECT: UNDER_REVIEW_STATUSES,
    WorkflowAction.RETURN: UNDER_REVIEW_STATUSES,
    WorkflowAction.DELETE: (ApplicationStatus.DRAFT,),
}

# action -> resulting state (update and delete keep/remove the row)
TRANSITION_TARGETS = {
    WorkflowAction.SUBMIT: ApplicationStatus.SUBMITTED,
    WorkflowAction.START_INSPECTION: ApplicationStatus.UNDER_INSPECTION,
    WorkflowAction.APPROVE: ApplicationStatus.APPROVED,
    WorkflowAction.REJECT: ApplicationStatus.REJECTED,
    WorkflowAction.RETURN: ApplicationStatus.RETURNED,
}


def allowed_sources(action: WorkflowAction) -> tuple:
    """Return the states an action may be taken from."""
    return TRANSITION_SOURCES[WorkflowAction(action)]


def is_allowed(action: WorkflowAction, status: str) -> bool:
    """Check whether an action is legal from the given status."""
    return ApplicationStatus(status) in allowed_sources(action)
