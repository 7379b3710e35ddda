"""Per-ward monotonic sequence allocation and public code composition.

Code format (parsed by downstream systems, do not change):

    PREFIX(2) + WARD_NUMBER(3, zero padded) + SEQUENCE(4, zero padded)

e.g. ``PR0070001`` is the first residential property approved in ward 7.
Application numbers use ``PROP-APP-{ward:03d}-{seq:06d}``.
"""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from civic_api.errors import SequenceExhausted, UnknownScope
from civic_api.models import SequenceCounter, Ward
from civic_api.utils.metrics import identifier_allocations

logger = logging.getLogger(__name__)

WARD_CODE_WIDTH = 3
SEQUENCE_WIDTH = 4
APPLICATION_SEQUENCE_WIDTH = 6
APPLICATION_NUMBER_PREFIX = "PROP-APP"

APPLICATION_TAG = "application"
PROPERTY_TAG = "property"

TYPE_PREFIXES = {
    "residential": "PR",
    "commercial": "PC",
    "industrial": "PI",
    "agricultural": "PA",
    "mixed": "PC",
    "water": "WT",
    "shop": "ST",
    "d2dc": "DC",
}
DEFAULT_PREFIX = "PC"


def _pad(value: int, width: int, label: str) -> str:
    if value < 0 or len(str(value)) > width:
        raise SequenceExhausted(f"{label} {value} does not fit {width} digits")
    return str(value).zfill(width)


def compose_code(ward_number: int, type_tag: str, sequence: int) -> str:
    """Compose a public entity code from ward, type and sequence."""
    prefix = TYPE_PREFIXES.get(str(type_tag).lower(), DEFAULT_PREFIX)
    return (
        f"{prefix}"
        f"{_pad(int(ward_number), WARD_CODE_WIDTH, 'Ward number')}"
        f"{_pad(int(sequence), SEQUENCE_WIDTH, 'Sequence')}"
    )


def compose_application_number(ward_number: int, sequence: int) -> str:
    return (
        f"{APPLICATION_NUMBER_PREFIX}-"
        f"{_pad(int(ward_number), WARD_CODE_WIDTH, 'Ward number')}-"
        f"{_pad(int(sequence), APPLICATION_SEQUENCE_WIDTH, 'Sequence')}"
    )


def parse_code(code: str) -> dict:
    """Split a composed code back into prefix, ward number and sequence."""
    expected = 2 + WARD_CODE_WIDTH + SEQUENCE_WIDTH
    if not code or len(code) != expected or not code[2:].isdigit():
        raise ValueError(f"Malformed code: {code!r}")
    return {
        "prefix": code[:2],
        "ward_number": int(code[2 : 2 + WARD_CODE_WIDTH]),
        "sequence": int(code[2 + WARD_CODE_WIDTH :]),
    }


class IdentifierAllocator:
    """Issue strictly increasing sequence numbers per (ward, entity tag).

    The increment runs inside the caller's transaction: committing the
    caller commits the new value, rolling back releases it.
    """

    def __init__(self, db: Session):
        """Initialize allocator with database session."""
        self.db = db

    def resolve_ward(self, ward_id: int) -> Ward:
        """Return the active ward for a partition key or raise UnknownScope."""
        ward = None
        if ward_id is not None:
            ward = self.db.query(Ward).filter(Ward.id == ward_id).first()
        if not ward or not ward.is_active:
            raise UnknownScope(ward_id)
        return ward

    def _ensure_counter(self, ward_id: int, entity_tag: str):
        dialect = self.db.get_bind().dialect.name
        values = {"ward_id": ward_id, "entity_tag": entity_tag, "last_value": 0, "updated_at": datetime.utcnow()}
        if dialect == "postgresql":
            stmt = postgresql.insert(SequenceCounter).values(**values).on_conflict_do_nothing()
            self.db.execute(stmt)
        elif dialect == "sqlite":
            stmt = sqlite.insert(SequenceCounter).values(**values).on_conflict_do_nothing()
            self.db.execute(stmt)
        else:
            exists = (
                self.db.query(SequenceCounter)
                .filter(SequenceCounter.ward_id == ward_id, SequenceCounter.entity_tag == entity_tag)
                .with_for_update()
                .first()
            )
            if not exists:
                self.db.add(SequenceCounter(**values))
                self.db.flush()

    def allocate(self, ward_id: int, entity_tag: str) -> int:
        """Return the next sequence number for a ward and entity tag."""
        self.resolve_ward(ward_id)
        self._ensure_counter(ward_id, entity_tag)

        # Increment in the database so concurrent callers serialize on the row lock
        self.db.execute(
            update(SequenceCounter)
            .where(SequenceCounter.ward_id == ward_id, SequenceCounter.entity_tag == entity_tag)
            .values(last_value=SequenceCounter.last_value + 1, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        value = (
            self.db.query(SequenceCounter.last_value)
            .filter(SequenceCounter.ward_id == ward_id, SequenceCounter.entity_tag == entity_tag)
            .scalar()
        )

        identifier_allocations.labels(entity_tag=entity_tag).inc()
        logger.debug(
            "Allocated sequence value",
            extra={"ward_id": ward_id, "entity_tag": entity_tag, "value": value},
        )
        return int(value)

    def next_code(self, ward_id: int, type_tag: str, entity_tag: str = PROPERTY_TAG) -> str:
        """Allocate and compose a public code in one step."""
        ward = self.resolve_ward(ward_id)
        sequence = self.allocate(ward_id, entity_tag)
        return compose_code(ward.ward_number, type_tag, sequence)

    def next_application_number(self, ward_id: int) -> str:
        ward = self.resolve_ward(ward_id)
        sequence = self.allocate(ward_id, APPLICATION_TAG)
        return compose_application_number(ward.ward_number, sequence)
