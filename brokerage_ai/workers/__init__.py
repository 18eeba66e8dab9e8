"""
Workers module - Celery tasks for batch compliance and indexing.

Architecture:
    FastAPI API  ──dispatch──>  Redis Queue  ──consume──>  Celery Worker
                                                              │
    Fact store  <──check results / rollup status──────────────┘

Start worker:
    celery -A brokerage_ai.workers.celery_app worker -l info -P solo -Q compliance

The -P solo pool is required because tasks use asyncio.run() internally.
"""

from brokerage_ai.workers.celery_app import celery_app

__all__ = ["celery_app"]
