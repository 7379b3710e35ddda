"""Admin routes for ward and staff directory management."""

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from civic_api.access.gate import is_admin
from civic_api.audit.kinds import AuditAction, AuditEntity
from civic_api.audit.recorder import AuditSink, RequestContext, get_audit_sink
from civic_api.auth.api_key import assign_api_key, get_current_actor
from civic_api.db.session import get_db
from civic_api.errors import NotFound, PermissionDenied
from civic_api.identity.actor import Actor
from civic_api.middleware.correlation import get_request_context
from civic_api.models import Staff, Ward
from civic_api.models.snapshot import row_snapshot

router = APIRouter(prefix="/admin", tags=["admin"])


class WardCreate(BaseModel):
    """Ward creation request."""

    ward_number: int = Field(ge=0, le=999)
    ward_name: str = Field(min_length=1, max_length=255)


class WardUpdate(BaseModel):
    """Ward update request."""

    ward_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    is_active: Optional[bool] = None


class WardResponse(BaseModel):
    """Ward response."""

    id: int
    ward_number: int
    ward_name: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class StaffCreate(BaseModel):
    """Staff member creation request."""

    employee_id: str = Field(min_length=1, max_length=50)
    full_name: str = Field(min_length=1, max_length=255)
    role: Literal["clerk", "inspector", "officer", "admin"]
    ward_ids: List[int] = Field(default_factory=list)


class StaffResponse(BaseModel):
    """Staff member response. ``api_key`` is only returned on creation."""

    id: int
    employee_id: str
    full_name: str
    role: str
    ward_ids: List[int] = Field(default_factory=list)
    is_active: bool
    api_key: Optional[str] = None


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not is_admin(actor):
        raise PermissionDenied("Administrator role required")
    return actor


@router.post("/wards", response_model=WardResponse, status_code=status.HTTP_201_CREATED)
async def create_ward(
    ward_data: WardCreate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
    context: RequestContext = Depends(get_request_context),
):
    """Create a new ward."""
    existing = db.query(Ward).filter(Ward.ward_number == ward_data.ward_number).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Ward {ward_data.ward_number} already exists",
        )

    ward = Ward(ward_number=ward_data.ward_number, ward_name=ward_data.ward_name, is_active=True)
    db.add(ward)
    db.commit()
    db.refresh(ward)

    audit_sink.record(
        actor,
        AuditAction.CREATE,
        AuditEntity.WARD,
        entity_id=ward.id,
        after=row_snapshot(ward),
        context=context,
    )
    return ward


@router.patch("/wards/{ward_id}", response_model=WardResponse)
async def update_ward(
    ward_id: int,
    ward_data: WardUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
    context: RequestContext = Depends(get_request_context),
):
    """Rename or (de)activate a ward. Inactive wards accept no new numbers."""
    ward = db.query(Ward).filter(Ward.id == ward_id).first()
    if not ward:
        raise NotFound(f"Ward {ward_id} not found")

    before = row_snapshot(ward)
    for field, value in ward_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(ward, field, value)
    db.commit()
    db.refresh(ward)

    audit_sink.record(
        actor,
        AuditAction.UPDATE,
        AuditEntity.WARD,
        entity_id=ward.id,
        before=before,
        after=row_snapshot(ward),
        context=context,
    )
    return ward


@router.post("/staff", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
async def create_staff(
    staff_data: StaffCreate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
    context: RequestContext = Depends(get_request_context),
):
    """Create a staff member and issue their API key."""
    existing = db.query(Staff).filter(Staff.employee_id == staff_data.employee_id).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Staff member {staff_data.employee_id} already exists",
        )

    staff = Staff(
        employee_id=staff_data.employee_id,
        full_name=staff_data.full_name,
        role=staff_data.role,
        ward_ids=staff_data.ward_ids,
        is_active=True,
    )
    raw_key = assign_api_key(staff)
    db.add(staff)
    db.commit()
    db.refresh(staff)

    audit_sink.record(
        actor,
        AuditAction.CREATE,
        AuditEntity.STAFF,
        entity_id=staff.id,
        after=row_snapshot(staff),
        context=context,
    )

    return StaffResponse(
        id=staff.id,
        employee_id=staff.employee_id,
        full_name=staff.full_name,
        role=staff.role,
        ward_ids=staff.ward_ids or [],
        is_active=staff.is_active,
        api_key=raw_key,
    )
