"""Ward (administrative scope) and per-ward sequence counter models."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from civic_api.db.base import Base


class Ward(Base):
    """Administrative partition used for access scoping and numbering."""

    __tablename__ = "wards"

    id = Column(Integer, primary_key=True, index=True)
    ward_number = Column(Integer, nullable=False, unique=True, index=True)
    ward_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    sequence_counters = relationship("SequenceCounter", back_populates="ward", cascade="all, delete-orphan")


class SequenceCounter(Base):
    """Last value issued per (ward, entity tag). Only ever incremented."""

    __tablename__ = "sequence_counters"

    ward_id = Column(Integer, ForeignKey("wards.id"), primary_key=True)
    entity_tag = Column(String(50), primary_key=True)  # application, property
    last_value = Column(BigInteger, default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    ward = relationship("Ward", back_populates="sequence_counters")
