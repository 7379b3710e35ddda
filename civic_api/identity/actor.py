"""Actor resolution across the public-account and staff identity spaces.

Every caller is one of three shapes:

- ``PublicAccountActor``: a row in ``accounts`` (citizens, portal admins)
- ``StaffActor``: a row in ``staff_members`` (clerks, inspectors, officers)
- ``SystemActor``: no human caller (scheduled or internal actions)

``resolve_actor`` is the single place these are translated into the
``(actor_id, actor_role)`` pair stored on audit entries. Staff ids are never
written to ``actor_user_id`` because that column holds account ids.
"""

from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Tuple, Union

SYSTEM_ROLE = "system"

ACCOUNT_KIND = "account"
STAFF_KIND = "staff"


@dataclass(frozen=True)
class PublicAccountActor:
    account_id: int
    role: str
    name: Optional[str] = None


@dataclass(frozen=True)
class StaffActor:
    staff_id: int
    role: str
    employee_id: Optional[str] = None
    name: Optional[str] = None
    ward_ids: Tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SystemActor:
    name: str = "System"


Actor = Union[PublicAccountActor, StaffActor, SystemActor]

SYSTEM = SystemActor()


class ActorRef(NamedTuple):
    """Storage-safe attribution pair."""

    actor_id: Optional[int]
    actor_role: str


def resolve_actor(actor: Optional[Actor]) -> ActorRef:
    """Normalize any caller into an ``ActorRef``. Never raises."""
    if isinstance(actor, StaffActor):
        return ActorRef(None, _normalize_role(actor.role))
    if isinstance(actor, PublicAccountActor):
        return ActorRef(actor.account_id, _normalize_role(actor.role))
    return ActorRef(None, SYSTEM_ROLE)


def actor_role(actor: Optional[Actor]) -> str:
    return resolve_actor(actor).actor_role


def actor_reference(actor: Optional[Actor]) -> Tuple[str, Optional[int]]:
    """Return the (kind, id) pair used for creator/inspector columns."""
    if isinstance(actor, StaffActor):
        return STAFF_KIND, actor.staff_id
    if isinstance(actor, PublicAccountActor):
        return ACCOUNT_KIND, actor.account_id
    return SYSTEM_ROLE, None


def actor_display_name(actor: Optional[Actor]) -> str:
    if isinstance(actor, (StaffActor, PublicAccountActor)) and actor.name:
        return actor.name
    if isinstance(actor, StaffActor):
        return f"Staff {actor.employee_id or actor.staff_id}"
    if isinstance(actor, PublicAccountActor):
        return f"Account {actor.account_id}"
    return "System"


def actor_from_account(account) -> PublicAccountActor:
    """Build an actor from an ``Account`` row."""
    return PublicAccountActor(
        account_id=account.id,
        role=_normalize_role(account.role),
        name=account.full_name,
    )


def actor_from_staff(staff) -> StaffActor:
    """Build an actor from a ``Staff`` row."""
    return StaffActor(
        staff_id=staff.id,
        role=_normalize_role(staff.role),
        employee_id=staff.employee_id,
        name=staff.full_name,
        ward_ids=tuple(staff.ward_ids or ()),
    )


def _normalize_role(role: Optional[str]) -> str:
    if not role:
        return SYSTEM_ROLE
    return role.strip().lower() or SYSTEM_ROLE
