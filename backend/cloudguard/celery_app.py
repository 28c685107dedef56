"""
Celery configuration for CloudGuard background processing
Redis broker, JSON serialization and the scheduled-job dispatcher beat entry
"""

import logging
from datetime import timedelta

from celery import Celery
from celery.signals import worker_ready, worker_shutdown
from kombu import Queue

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

celery_app = Celery(
    "cloudguard",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["cloudguard.tasks.job_tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Reliability
    task_reject_on_worker_lost=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Task routing
    task_routes={
        "cloudguard.tasks.dispatch_due_jobs": {"queue": "scheduler"},
        "cloudguard.tasks.run_scheduled_job": {"queue": "jobs"},
        "cloudguard.tasks.execute_remediation_action": {"queue": "remediation"},
    },
    task_default_queue="default",
    task_queues=[
        Queue("default", routing_key="default"),
        Queue("scheduler", routing_key="scheduler"),
        Queue("jobs", routing_key="jobs"),
        Queue("remediation", routing_key="remediation"),
    ],
    result_expires=3600,  # 1 hour
    worker_max_tasks_per_child=1000,
    task_eager_propagates=settings.debug,
    beat_schedule={
        "dispatch-due-jobs": {
            "task": "cloudguard.tasks.dispatch_due_jobs",
            "schedule": timedelta(seconds=settings.job_dispatch_interval_seconds),
            "options": {"queue": "scheduler"},
        },
    },
)


@worker_ready.connect
def worker_ready_handler(sender=None, **kwargs):
    """Handle worker ready signal"""
    logger.info(f"Celery worker ready: {sender}")


@worker_shutdown.connect
def worker_shutdown_handler(sender=None, **kwargs):
    """Handle worker shutdown signal"""
    logger.info(f"Celery worker shutting down: {sender}")
