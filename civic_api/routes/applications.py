"""Property application endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from civic_api.access.gate import AccessGate
from civic_api.audit.kinds import AuditEntity
from civic_api.audit.recorder import AuditSink, RequestContext, get_audit_sink
from civic_api.auth.api_key import get_current_actor
from civic_api.db.session import get_db
from civic_api.identity.actor import Actor
from civic_api.middleware.correlation import get_request_context
from civic_api.models import AuditEntry
from civic_api.routes.audit import AuditEntryResponse
from civic_api.workflow.engine import ApplicationWorkflow
from civic_api.workflow.schemas import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationUpdate,
    ReviewRequest,
)
from civic_api.workflow.states import ApplicationStatus

router = APIRouter(prefix="/v1/property-applications", tags=["property-applications"])


def get_workflow(
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
) -> ApplicationWorkflow:
    return ApplicationWorkflow(db, audit_sink=audit_sink)


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_application(
    payload: ApplicationCreate,
    actor: Actor = Depends(get_current_actor),
    workflow: ApplicationWorkflow = Depends(get_workflow),
    context: RequestContext = Depends(get_request_context),
):
    """Create a draft property application."""
    return workflow.create(actor, payload, context=context)


@router.get("", response_model=ApplicationListResponse)
async def list_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    ward_id: Optional[int] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """List the applications visible to the caller."""
    gate = AccessGate(db)
    items, total = gate.list_applications(
        actor,
        status=status_filter,
        ward_id=ward_id,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    limit = max(1, min(limit or gate.settings.default_page_size, gate.settings.max_page_size))
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Get a single application."""
    return AccessGate(db).get_visible_application(actor, application_id)


@router.put("/{application_id}", response_model=ApplicationResponse)
async def update_application(
    application_id: int,
    payload: ApplicationUpdate,
    actor: Actor = Depends(get_current_actor),
    workflow: ApplicationWorkflow = Depends(get_workflow),
    context: RequestContext = Depends(get_request_context),
):
    """Update a draft or returned application. Only fields sent are changed."""
    return workflow.update(actor, application_id, payload, context=context)


@router.post("/{application_id}/submit", response_model=ApplicationResponse)
async def submit_application(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ApplicationWorkflow = Depends(get_workflow),
    context: RequestContext = Depends(get_request_context),
):
    """Submit an application for inspection."""
    return workflow.submit(actor, application_id, context=context)


@router.post("/{application_id}/review", response_model=ApplicationResponse)
async def review_application(
    application_id: int,
    review: ReviewRequest,
    actor: Actor = Depends(get_current_actor),
    workflow: ApplicationWorkflow = Depends(get_workflow),
    context: RequestContext = Depends(get_request_context),
):
    """Start inspection, approve, reject or return an application."""
    return workflow.decide(
        actor,
        application_id,
        review.action,
        inspection_remarks=review.inspection_remarks,
        rejection_reason=review.rejection_reason,
        context=context,
    )


@router.delete("/{application_id}")
async def delete_application(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ApplicationWorkflow = Depends(get_workflow),
    context: RequestContext = Depends(get_request_context),
):
    """Delete a draft application."""
    workflow.delete(actor, application_id, context=context)
    return {"message": "Property application deleted successfully", "id": application_id}


@router.get("/{application_id}/history", response_model=List[AuditEntryResponse])
async def application_history(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Audit trail of a visible application, oldest first."""
    AccessGate(db).get_visible_application(actor, application_id)
    return (
        db.query(AuditEntry)
        .filter(
            AuditEntry.entity_type == AuditEntity.PROPERTY_APPLICATION.value,
            AuditEntry.entity_id == application_id,
        )
        .order_by(AuditEntry.timestamp.asc(), AuditEntry.id.asc())
        .all()
    )
