"""Seed data for development and testing."""

from sqlalchemy.orm import Session

from civic_api.auth.api_key import assign_api_key, hash_password
from civic_api.models import Account, Staff, Ward

DEMO_WARD_COUNT = 10

DEMO_ADMIN_KEY = "civ_demo_admin_key_0001"
DEMO_CLERK_KEY = "civ_demo_clerk_key_0001"
DEMO_INSPECTOR_KEY = "civ_demo_inspector_key_0001"


def seed_wards(db: Session):
    """Seed wards 1-10."""
    created = 0
    for number in range(1, DEMO_WARD_COUNT + 1):
        if db.query(Ward).filter(Ward.ward_number == number).first():
            continue
        db.add(Ward(ward_number=number, ward_name=f"Ward {number}", is_active=True))
        created += 1
    db.commit()
    print(f"✓ Wards ready ({created} created)")


def seed_admin(db: Session):
    """Seed the portal administrator account."""
    admin = db.query(Account).filter(Account.username == "admin").first()
    if admin:
        print(f"✓ Admin account already exists: {admin.username}")
        return

    admin = Account(
        username="admin",
        email="admin@civic.local",
        password_hash=hash_password("admin123"),
        first_name="System",
        last_name="Administrator",
        role="admin",
        is_active=True,
    )
    assign_api_key(admin, DEMO_ADMIN_KEY)
    db.add(admin)
    db.commit()
    print(f"✓ Created admin account: {admin.username} (ID: {admin.id})")
    print(f"  API Key: {DEMO_ADMIN_KEY}")


def seed_staff(db: Session):
    """Seed a clerk and an inspector for ward 1."""
    ward = db.query(Ward).filter(Ward.ward_number == 1).first()
    ward_ids = [ward.id] if ward else []

    demo_staff = [
        ("EMP-CLERK-001", "Demo Clerk", "clerk", DEMO_CLERK_KEY),
        ("EMP-INSP-001", "Demo Inspector", "inspector", DEMO_INSPECTOR_KEY),
    ]
    for employee_id, full_name, role, raw_key in demo_staff:
        staff = db.query(Staff).filter(Staff.employee_id == employee_id).first()
        if staff:
            print(f"✓ Staff member already exists: {employee_id}")
            continue

        staff = Staff(
            employee_id=employee_id,
            full_name=full_name,
            role=role,
            ward_ids=ward_ids,
            is_active=True,
        )
        assign_api_key(staff, raw_key)
        db.add(staff)
        db.commit()
        print(f"✓ Created {role}: {employee_id} (ID: {staff.id})")
        print(f"  API Key: {raw_key}")


def seed_all(db: Session):
    """Seed all initial data."""
    seed_wards(db)
    seed_admin(db)
    seed_staff(db)
