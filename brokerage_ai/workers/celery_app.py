"""
Celery app for compliance refreshes and chunk indexing.

Tasks run their async service calls under asyncio.run(), so workers use
the solo pool. The EMD timeline check depends on the current date, which
is why a nightly beat entry re-evaluates every transaction.

Usage:
    celery -A brokerage_ai.workers.celery_app worker -Q compliance -l info -P solo
    celery -A brokerage_ai.workers.celery_app beat -l info
"""

from celery import Celery
from celery.schedules import crontab

from brokerage_ai.core.config import settings

TASK_QUEUE = "compliance"

celery_app = Celery(
    "brokerage_ai",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=["brokerage_ai.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A refresh is idempotent, so a redelivered message is harmless
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_always_eager=settings.celery_task_always_eager,
    task_eager_propagates=settings.celery_task_always_eager,
    result_expires=settings.celery_result_expires,
    task_default_queue=TASK_QUEUE,
    task_routes={"brokerage_ai.workers.tasks.*": {"queue": TASK_QUEUE}},
)

if settings.nightly_refresh_hour is not None:
    celery_app.conf.beat_schedule = {
        "nightly-compliance-refresh": {
            "task": "brokerage_ai.workers.tasks.bulk_rollup_task",
            "schedule": crontab(hour=settings.nightly_refresh_hour, minute=0),
            "kwargs": {"evaluate": True},
        },
    }
