"""Celery worker configuration.

Runs the booking sweeps:
- Auto-cancelling On Hold bookings whose hold period ran out
- Completing confirmed stays once check-out has passed
"""

from celery import Celery
from celery.schedules import crontab

from hotelbook.config import settings

# Create Celery app
celery_app = Celery(
    "hotelbook_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["hotelbook.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Asia/Colombo",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=3600,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=3,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Cancel expired holds
        "expire-held-bookings": {
            "task": "hotelbook.tasks.expire_held_bookings",
            "schedule": crontab(minute=f"*/{settings.hold_sweep_minutes}"),
        },
        # Complete stays after check-out
        "complete-finished-stays": {
            "task": "hotelbook.tasks.complete_finished_stays",
            "schedule": crontab(hour=settings.completion_sweep_hour, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
