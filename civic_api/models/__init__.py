"""Database models - import all models here for Alembic discovery."""

from civic_api.models.account import Account, Staff
from civic_api.models.application import Property, PropertyApplication
from civic_api.models.audit import AuditEntry
from civic_api.models.ward import SequenceCounter, Ward

__all__ = [
    "Ward",
    "SequenceCounter",
    "Account",
    "Staff",
    "PropertyApplication",
    "Property",
    "AuditEntry",
]
