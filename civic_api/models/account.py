"""Public account and staff directory models.

The two tables are disjoint identity spaces: an ``Account`` id and a
``Staff`` id may be equal while naming different people.
"""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String

from civic_api.db.base import Base


class Account(Base):
    """Public account (citizens, and administrators of the public portal)."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True, index=True)
    role = Column(String(50), default="citizen", nullable=False)  # citizen, admin, assessor, cashier, collector
    key_prefix = Column(String(16), nullable=True, index=True)
    key_digest = Column(String(128), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Staff(Base):
    """Internal staff directory entry (clerks, inspectors, officers)."""

    __tablename__ = "staff_members"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(50), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)  # clerk, inspector, officer, admin
    ward_ids = Column(JSON, nullable=True)  # empty or NULL means all wards
    key_prefix = Column(String(16), nullable=True, index=True)
    key_digest = Column(String(128), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
