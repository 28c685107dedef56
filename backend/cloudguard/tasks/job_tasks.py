"""
Scheduled Job and Remediation Celery Tasks

Celery Beat calls dispatch_due_jobs() every job_dispatch_interval_seconds.
The dispatcher runs each enabled job whose next_run has passed; the run
itself is recorded by JobSchedulerService as a JobExecution.
"""

import logging
from datetime import datetime
from typing import Any, Dict

from celery import shared_task

from ..database import SessionLocal
from ..services.errors import InvalidStateTransition, NotFoundError
from ..services.job_scheduler_service import JobSchedulerService
from ..services.remediation_service import RemediationService

logger = logging.getLogger(__name__)


@shared_task(name="cloudguard.tasks.dispatch_due_jobs", bind=True, time_limit=600, soft_time_limit=540)
def dispatch_due_jobs(self) -> Dict[str, Any]:
    """
    Run all scheduled jobs that are due.

    Returns:
        dict: Number of jobs run and their execution ids
    """
    db = SessionLocal()
    try:
        execution_ids = JobSchedulerService(db).dispatch_due_jobs()
        if execution_ids:
            logger.info(f"Dispatched {len(execution_ids)} scheduled jobs")
        return {
            "status": "ok",
            "jobs_run": len(execution_ids),
            "execution_ids": execution_ids,
            "timestamp": datetime.utcnow().isoformat(),
        }
    except Exception as e:
        logger.error(f"Error in scheduled job dispatcher: {e}", exc_info=True)
        return {"status": "error", "error": str(e), "jobs_run": 0}
    finally:
        db.close()


@shared_task(name="cloudguard.tasks.run_scheduled_job", bind=True)
def run_scheduled_job(self, job_id: int, triggered_by: str = "task") -> Dict[str, Any]:
    """Run one job outside its schedule."""
    db = SessionLocal()
    try:
        execution = JobSchedulerService(db).run_job(job_id, triggered_by=triggered_by)
        return {"status": execution.status, "execution_id": execution.id}
    except NotFoundError:
        logger.error(f"Job {job_id} not found")
        return {"status": "error", "reason": "job_not_found"}
    except InvalidStateTransition:
        logger.warning(f"Job {job_id} is already running")
        return {"status": "skipped", "reason": "already_running"}
    finally:
        db.close()


@shared_task(name="cloudguard.tasks.execute_remediation_action", bind=True)
def execute_remediation_action(self, action_id: int) -> Dict[str, Any]:
    """Execute an approved remediation action."""
    logger.info(f"Starting remediation action {action_id}")
    db = SessionLocal()
    try:
        action = RemediationService(db).execute_action(action_id)
        return {"status": action.status, "action_id": action.id}
    except NotFoundError:
        logger.error(f"Remediation action {action_id} not found")
        return {"status": "error", "reason": "action_not_found"}
    except InvalidStateTransition as e:
        logger.warning(f"Remediation action {action_id} could not be executed: {e}")
        return {"status": "skipped", "reason": "not_approved"}
    finally:
        db.close()
