"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "parcelops",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["workers.settlement"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.settlement.*": {"queue": "settlement"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    # Weekly settlement runs cover the window ending yesterday.
    beat_schedule={
        "courier-settlement-weekly": {
            "task": "workers.settlement.run_periodic_settlements",
            "schedule": crontab(hour=2, minute=0, day_of_week="monday"),
            "kwargs": {"payout_type": "COURIER_SETTLEMENT"},
            "options": {"queue": "settlement"},
        },
        "merchant-payout-weekly": {
            "task": "workers.settlement.run_periodic_settlements",
            "schedule": crontab(hour=2, minute=30, day_of_week="monday"),  # After courier run
            "kwargs": {"payout_type": "MERCHANT_PAYOUT"},
            "options": {"queue": "settlement"},
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["workers"])
