"""Seed default branches into the database."""

from sqlalchemy.orm import Session
from crm_api.models.branch import Branch
from crm_api.core.config import settings


def seed_branches(db: Session) -> None:
    """Insert the configured default branches if they don't already exist."""
    for name in settings.DEFAULT_BRANCHES:
        existing = db.query(Branch).filter(Branch.name == name).first()
        if not existing:
            db.add(Branch(name=name))

    db.commit()
    print(f"✅ Seeded {len(settings.DEFAULT_BRANCHES)} branches")
