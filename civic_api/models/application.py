"""Property application and approved property models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import relationship

from civic_api.db.base import Base
from civic_api.models.snapshot import row_snapshot
from civic_api.workflow.states import ApplicationStatus

# Subject fields copied from an approved application onto the property
PROPERTY_SUBJECT_FIELDS = (
    "owner_name",
    "owner_phone",
    "ward_id",
    "property_type",
    "usage_type",
    "address",
    "city",
    "state",
    "pincode",
    "area",
    "built_up_area",
    "floors",
    "construction_type",
    "construction_year",
    "occupancy_status",
    "geolocation",
    "photos",
)


class PropertyApplication(Base):
    """Request to register a property, awaiting adjudication."""

    __tablename__ = "property_applications"
    # Audit history is keyed by id, so ids of deleted drafts are never reused
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    application_number = Column(String(50), nullable=False, unique=True, index=True)
    status = Column(String(30), default=ApplicationStatus.DRAFT.value, nullable=False, index=True)
    ward_id = Column(Integer, ForeignKey("wards.id"), nullable=False, index=True)
    applicant_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    # Creator is either an account or a staff member
    created_by_kind = Column(String(20), nullable=False)  # account, staff, system
    created_by_id = Column(Integer, nullable=True, index=True)

    # Subject payload
    owner_name = Column(String(100), nullable=False)
    owner_phone = Column(String(20), nullable=True)
    property_type = Column(String(30), nullable=False)  # residential, commercial, industrial, agricultural, mixed
    usage_type = Column(String(30), nullable=True)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    pincode = Column(String(10), nullable=False)
    area = Column(Numeric(10, 2, asdecimal=False), nullable=False)  # square meters
    built_up_area = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    floors = Column(Integer, default=1, nullable=True)
    construction_type = Column(String(20), nullable=True)  # RCC, Pucca, Kutcha, Semi-Pucca
    construction_year = Column(Integer, nullable=True)
    occupancy_status = Column(String(30), default="owner_occupied", nullable=True)
    geolocation = Column(JSON, nullable=True)  # {"latitude": ..., "longitude": ...}
    photos = Column(JSON, nullable=True)
    documents = Column(JSON, nullable=True)
    remarks = Column(Text, nullable=True)

    # Decision metadata
    inspection_remarks = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    inspected_by_kind = Column(String(20), nullable=True)
    inspected_by_id = Column(Integer, nullable=True)
    inspected_at = Column(DateTime, nullable=True)
    approved_property_id = Column(Integer, ForeignKey("properties.id"), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    ward = relationship("Ward")
    applicant = relationship("Account", foreign_keys=[applicant_id])
    approved_property = relationship("Property", foreign_keys=[approved_property_id])

    def to_snapshot(self) -> dict:
        """JSON-safe copy of the row for audit before/after state."""
        return row_snapshot(self)


class Property(Base):
    """Registered property, created once when an application is approved."""

    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    property_number = Column(String(50), nullable=False)
    unique_code = Column(String(50), nullable=False, unique=True, index=True)
    owner_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    owner_name = Column(String(100), nullable=True)
    owner_phone = Column(String(20), nullable=True)
    ward_id = Column(Integer, ForeignKey("wards.id"), nullable=False, index=True)
    property_type = Column(String(30), nullable=False)
    usage_type = Column(String(30), nullable=True)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    pincode = Column(String(10), nullable=False)
    area = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    built_up_area = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    floors = Column(Integer, nullable=True)
    construction_type = Column(String(20), nullable=True)
    construction_year = Column(Integer, nullable=True)
    occupancy_status = Column(String(30), nullable=True)
    geolocation = Column(JSON, nullable=True)
    photos = Column(JSON, nullable=True)
    status = Column(String(30), default="active", nullable=False)  # active, inactive
    # Back-reference without a FK constraint; property_applications already points here
    source_application_id = Column(Integer, nullable=False, unique=True, index=True)
    created_by_kind = Column(String(20), nullable=False)
    created_by_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    ward = relationship("Ward")
    owner = relationship("Account", foreign_keys=[owner_id])

    def to_snapshot(self) -> dict:
        return row_snapshot(self)
