"""Seed the super-admin user from env vars."""

from sqlalchemy.orm import Session
from crm_api.models.user import User, UserStatus
from crm_api.core.roles import default_hierarchy
from crm_api.core.security import hash_password
from crm_api.core.config import settings


def seed_super_admin(db: Session) -> None:
    """Create the top-rank user if not already present."""
    email = settings.SUPER_ADMIN_EMAIL.strip().lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        print(f"ℹ️  Super admin '{email}' already exists, skipping.")
        return

    admin = User(
        email=email,
        hashed_password=hash_password(settings.SUPER_ADMIN_PASSWORD),
        full_name="Super Admin",
        role=default_hierarchy().top_role,
        status=UserStatus.Active,
        permissions_json="[]",
    )
    db.add(admin)
    db.commit()
    print(f"✅ Created super admin: {email}")
