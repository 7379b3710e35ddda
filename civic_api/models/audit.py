"""Audit log model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, Text, event

from civic_api.db.base import Base


class AuditEntry(Base):
    """Append-only record of one mutating action.

    Column names are read by external reporting tools and must stay stable.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_user_id = Column(Integer, nullable=True, index=True)  # NULL for staff and system actors
    actor_role = Column(String(50), nullable=False, index=True)
    action_type = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=True, index=True)
    previous_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        Index("ix_audit_logs_actor_timestamp", "actor_user_id", "timestamp"),
    )


@event.listens_for(AuditEntry, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise RuntimeError(f"Audit entry {target.id} is immutable")


@event.listens_for(AuditEntry, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise RuntimeError(f"Audit entry {target.id} cannot be deleted")
