"""Audit log listing endpoints."""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from civic_api.auth.api_key import get_current_actor
from civic_api.db.session import get_db
from civic_api.errors import NotFound, PermissionDenied
from civic_api.identity.actor import Actor, SYSTEM_ROLE, actor_role
from civic_api.models import AuditEntry
from civic_api.settings import get_settings

router = APIRouter(prefix="/v1/audit-logs", tags=["audit"])

AUDIT_READER_ROLES = frozenset({"admin", "assessor", SYSTEM_ROLE})


class AuditEntryResponse(BaseModel):
    """Audit entry response."""

    id: int
    actor_user_id: Optional[int] = None
    actor_role: str
    action_type: str
    entity_type: str
    entity_id: Optional[int] = None
    previous_data: Optional[Any] = None
    new_data: Optional[Any] = None
    description: Optional[str] = None
    metadata: Optional[dict] = Field(default=None, validation_alias="metadata_json")
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditListResponse(BaseModel):
    """Paginated audit listing."""

    items: List[AuditEntryResponse]
    total: int
    page: int
    limit: int
    total_pages: int


def require_audit_reader(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor_role(actor) not in AUDIT_READER_ROLES:
        raise PermissionDenied("Audit logs are restricted to administrators and assessors")
    return actor


@router.get("", response_model=AuditListResponse)
async def list_audit_logs(
    actor_user_id: Optional[int] = None,
    actor_role_filter: Optional[str] = Query(None, alias="actor_role"),
    action_type: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(require_audit_reader),
    db: Session = Depends(get_db),
):
    """List audit entries, newest first."""
    settings = get_settings()
    query = db.query(AuditEntry)

    if actor_user_id is not None:
        query = query.filter(AuditEntry.actor_user_id == actor_user_id)
    if actor_role_filter:
        query = query.filter(AuditEntry.actor_role == actor_role_filter.lower())
    if action_type:
        query = query.filter(AuditEntry.action_type == action_type.upper())
    if entity_type:
        query = query.filter(AuditEntry.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditEntry.entity_id == entity_id)
    if start_date:
        query = query.filter(AuditEntry.timestamp >= start_date)
    if end_date:
        query = query.filter(AuditEntry.timestamp <= end_date)

    total = query.count()
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    items = (
        query.order_by(AuditEntry.timestamp.desc(), AuditEntry.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }


@router.get("/{entry_id}", response_model=AuditEntryResponse)
async def get_audit_log(
    entry_id: int,
    actor: Actor = Depends(require_audit_reader),
    db: Session = Depends(get_db),
):
    """Get a single audit entry."""
    entry = db.query(AuditEntry).filter(AuditEntry.id == entry_id).first()
    if not entry:
        raise NotFound("Audit log not found")
    return entry
