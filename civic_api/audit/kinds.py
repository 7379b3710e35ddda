"""Closed enumerations for audit action and entity kinds.

These values are persisted verbatim in ``audit_logs.action_type`` and
``audit_logs.entity_type`` and consumed by external reporting, so members
may be added but never renamed.
"""

import enum


class AuditAction(str, enum.Enum):
    """Kind of action an audit entry records."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SUBMIT = "SUBMIT"
    INSPECT = "INSPECT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RETURN = "RETURN"
    PAY = "PAY"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    ASSIGN = "ASSIGN"
    ESCALATE = "ESCALATE"
    SEND = "SEND"
    RESOLVE = "RESOLVE"
    VIEW = "VIEW"


class AuditEntity(str, enum.Enum):
    """Kind of entity an audit entry is about."""

    AUDIT_LOG = "AuditLog"
    USER = "User"
    STAFF = "Staff"
    WARD = "Ward"
    PROPERTY = "Property"
    PROPERTY_APPLICATION = "PropertyApplication"
    ASSESSMENT = "Assessment"
    DEMAND = "Demand"
    PAYMENT = "Payment"
    NOTICE = "Notice"
    WATER_CONNECTION_REQUEST = "WaterConnectionRequest"
    SHOP_REGISTRATION_REQUEST = "ShopRegistrationRequest"
    MRF_FACILITY = "MrfFacility"
    MRF_SALE = "MrfSale"
    MRF_TASK = "MrfTask"
    GAUSHALA_FACILITY = "GauShalaFacility"
    GAUSHALA_CATTLE = "GauShalaCattle"
    GAUSHALA_INSPECTION = "GauShalaInspection"
    WORKER = "Worker"
    WORKER_TASK = "WorkerTask"
    INVENTORY_ITEM = "InventoryItem"


def coerce_action(value) -> AuditAction:
    """Convert a member or its string value, raising ValueError if unknown."""
    if isinstance(value, AuditAction):
        return value
    return AuditAction(value)


def coerce_entity(value) -> AuditEntity:
    """Convert a member or its string value, raising ValueError if unknown."""
    if isinstance(value, AuditEntity):
        return value
    return AuditEntity(value)
