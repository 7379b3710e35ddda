"""Row-level visibility and authority checks for property applications."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import and_, false, or_, true
from sqlalchemy.orm import Session

from civic_api.errors import NotFound
from civic_api.identity.actor import (
    ACCOUNT_KIND,
    Actor,
    PublicAccountActor,
    StaffActor,
    SYSTEM_ROLE,
    actor_reference,
    actor_role,
)
from civic_api.models import PropertyApplication
from civic_api.settings import get_settings

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({"admin"})
REVIEWER_ROLES = frozenset({"assessor", "inspector", "officer"})
OWNER_ROLES = frozenset({"clerk", "citizen"})

NOT_FOUND_MESSAGE = "Property application not found"

SORTABLE_COLUMNS = {
    "created_at": PropertyApplication.created_at,
    "updated_at": PropertyApplication.updated_at,
    "submitted_at": PropertyApplication.submitted_at,
    "application_number": PropertyApplication.application_number,
    "owner_name": PropertyApplication.owner_name,
    "status": PropertyApplication.status,
}


def is_admin(actor: Optional[Actor]) -> bool:
    role = actor_role(actor)
    return role in ADMIN_ROLES or role == SYSTEM_ROLE


def can_author(actor: Optional[Actor]) -> bool:
    """Whether the actor may create applications."""
    return is_admin(actor) or actor_role(actor) in OWNER_ROLES


def can_inspect(actor: Optional[Actor]) -> bool:
    """Whether the actor holds inspection authority."""
    return is_admin(actor) or actor_role(actor) in REVIEWER_ROLES


def is_owner(actor: Optional[Actor], application: PropertyApplication) -> bool:
    kind, actor_id = actor_reference(actor)
    if actor_id is None:
        return False
    if application.created_by_kind == kind and application.created_by_id == actor_id:
        return True
    # Citizens also own applications filed for them by a clerk
    return kind == ACCOUNT_KIND and application.applicant_id == actor_id


def is_owner_or_admin(actor: Optional[Actor], application: PropertyApplication) -> bool:
    return is_admin(actor) or is_owner(actor, application)


class AccessGate:
    """Filter application queries down to what an actor may see."""

    def __init__(self, db: Session):
        """Initialize gate with database session."""
        self.db = db
        self.settings = get_settings()

    def visibility_filter(self, actor: Optional[Actor]):
        """Return a SQL criterion selecting the applications visible to an actor."""
        role = actor_role(actor)
        if is_admin(actor):
            return true()

        if role in REVIEWER_ROLES:
            ward_ids = list(actor.ward_ids) if isinstance(actor, StaffActor) else []
            if not ward_ids:
                return true()
            return PropertyApplication.ward_id.in_(ward_ids)

        if role in OWNER_ROLES:
            kind, actor_id = actor_reference(actor)
            created = and_(
                PropertyApplication.created_by_kind == kind,
                PropertyApplication.created_by_id == actor_id,
            )
            if isinstance(actor, PublicAccountActor):
                return or_(created, PropertyApplication.applicant_id == actor.account_id)
            return created

        logger.debug(f"Role {role} has no application visibility")
        return false()

    def get_visible_application(
        self, actor: Optional[Actor], application_id: int, for_update: bool = False
    ) -> PropertyApplication:
        """Load an application the actor may see.

        Missing and invisible rows raise the same NotFound so callers cannot
        probe for records outside their scope.
        """
        query = self.db.query(PropertyApplication).filter(
            PropertyApplication.id == application_id,
            self.visibility_filter(actor),
        )
        if for_update:
            query = query.with_for_update()
        application = query.first()
        if not application:
            raise NotFound(NOT_FOUND_MESSAGE)
        return application

    def list_applications(
        self,
        actor: Optional[Actor],
        status: Optional[str] = None,
        ward_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[PropertyApplication], int]:
        """Return one page of visible applications and the total match count."""
        query = self.db.query(PropertyApplication).filter(self.visibility_filter(actor))

        if status:
            query = query.filter(PropertyApplication.status == str(getattr(status, "value", status)))
        if ward_id is not None:
            query = query.filter(PropertyApplication.ward_id == ward_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    PropertyApplication.application_number.ilike(pattern),
                    PropertyApplication.owner_name.ilike(pattern),
                    PropertyApplication.owner_phone.ilike(pattern),
                    PropertyApplication.address.ilike(pattern),
                )
            )

        total = query.count()

        column = SORTABLE_COLUMNS.get(sort_by, PropertyApplication.created_at)
        ordering = column.asc() if str(sort_order).lower() == "asc" else column.desc()

        limit = limit or self.settings.default_page_size
        limit = max(1, min(int(limit), self.settings.max_page_size))
        page = max(1, int(page))

        rows = (
            query.order_by(ordering, PropertyApplication.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total
