"""Celery app and periodic session maintenance."""

from celery import Celery
from crm_api.core.config import settings

celery_app = Celery(
    "crm_api",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_soft_time_limit=60,
    task_time_limit=120,
    beat_schedule={
        "sweep-expired-sessions": {
            "task": "sweep_expired_sessions",
            "schedule": settings.SESSION_SWEEP_INTERVAL_MINUTES * 60.0,
        },
    },
)


@celery_app.task(name="sweep_expired_sessions", ignore_result=True)
def sweep_expired_sessions() -> int:
    """Delete expired session records. Best-effort; a missed run is harmless."""
    from crm_api.db.session import SessionLocal
    from crm_api.services.session_service import session_service

    db = SessionLocal()
    try:
        return session_service.sweep_expired(db)
    finally:
        db.close()
