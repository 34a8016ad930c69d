"""Session records — hashes of issued tokens, used for revocation."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from crm_api.core.config import settings
from crm_api.core.security import hash_token
from crm_api.models.user_session import UserSession

logger = logging.getLogger("crm_api.sessions")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_timestamp(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)


class SessionService:
    """Create, look up and delete session records by token hash."""

    @staticmethod
    def create(db: Session, user_id: int, token: str, issued_at: int, expires_at: int) -> UserSession:
        record = UserSession(
            user_id=user_id,
            token_hash=hash_token(token),
            issued_at=from_timestamp(issued_at),
            expires_at=from_timestamp(expires_at),
        )
        db.add(record)
        db.commit()
        return record

    @staticmethod
    def exists(db: Session, token: str) -> bool:
        return db.query(UserSession.id).filter(
            UserSession.token_hash == hash_token(token),
        ).first() is not None

    @staticmethod
    def revoke(db: Session, token: str) -> bool:
        """Delete the record for ``token``. Returns whether one existed."""
        deleted = db.query(UserSession).filter(
            UserSession.token_hash == hash_token(token),
        ).delete(synchronize_session=False)
        db.commit()
        return deleted > 0

    @staticmethod
    def revoke_all_for_user(db: Session, user_id: int, commit: bool = True) -> int:
        deleted = db.query(UserSession).filter(
            UserSession.user_id == user_id,
        ).delete(synchronize_session=False)
        if commit:
            db.commit()
        return deleted

    @staticmethod
    def sweep_expired(db: Session, now: Optional[datetime] = None, grace: Optional[timedelta] = None) -> int:
        """Best-effort removal of records whose refresh window has closed.

        A record outlives its token by ``grace`` (``SESSION_REFRESH_GRACE_MINUTES``
        by default) so an expired token can still be refreshed until then.
        """
        now = now or utcnow()
        if grace is None:
            grace = timedelta(minutes=settings.SESSION_REFRESH_GRACE_MINUTES)
        deleted = db.query(UserSession).filter(
            UserSession.expires_at <= now - grace,
        ).delete(synchronize_session=False)
        db.commit()
        if deleted:
            logger.info("Swept %d expired sessions", deleted)
        return deleted


session_service = SessionService()
