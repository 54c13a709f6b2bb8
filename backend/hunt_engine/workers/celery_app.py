# backend/hunt_engine/workers/celery_app.py
from __future__ import annotations

from celery import Celery

from ..config import settings

celery_app = Celery(
    "hunt_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["hunt_engine.workers.signature_tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    timezone="UTC",
)

celery_app.conf.task_routes = {
    "hunt_engine.workers.signature_tasks.*": {"queue": "signatures"},
}

# requires celery beat
celery_app.conf.beat_schedule = {
    "sync-pending-signatures": {
        "task": "hunt_engine.workers.signature_tasks.sync_pending_signatures",
        "schedule": float(settings.signature_poll_seconds),
    },
}
