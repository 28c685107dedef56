"""
Scheduled Job Service

User-authored automation jobs run on a cron schedule.

The cron string is stored exactly as submitted. ``next_run`` is computed with
croniter when the expression is valid and the job is enabled, and is left
null otherwise; such jobs only run when triggered manually.

Each run records a JobExecution. While a job is ``running`` it cannot be
started again, which serializes runs of the same job.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import croniter
from sqlalchemy.orm import Session

from ..database import JobExecution, ScheduledJob
from ..schemas.automation_schemas import (
    ExecutionStatus,
    JobStatus,
    JobType,
    ScheduledJobCreate,
    ScheduledJobUpdate,
)
from ..utils.logging_security import sanitize_error_message_for_log, sanitize_for_log
from .compliance_service import ComplianceService
from .cost_service import CostService
from .drift_service import DriftService
from .errors import InvalidStateTransition, NotFoundError
from .recommendation_service import RecommendationService
from .updates import apply_changes

logger = logging.getLogger(__name__)

JOB_REQUIRED_FIELDS = ("name", "type", "schedule", "enabled")


def calculate_next_run(cron_expression: str, after: Optional[datetime] = None) -> Optional[datetime]:
    """Next fire time after ``after`` (UTC, naive), or None for an invalid expression."""
    if not cron_expression or not croniter.croniter.is_valid(cron_expression):
        return None
    try:
        cron = croniter.croniter(cron_expression, after or datetime.utcnow())
        return cron.get_next(datetime)
    except (ValueError, KeyError) as e:
        logger.warning(f"Cannot schedule cron expression {sanitize_for_log(cron_expression)}: {e}")
        return None


def _run_compliance_scan(db: Session) -> Dict[str, Any]:
    assessments = ComplianceService(db).run_enabled_assessments()
    return {
        "assessments": [assessment.id for assessment in assessments],
        "frameworks": [assessment.framework_id for assessment in assessments],
    }


def _run_cost_report(db: Session) -> Dict[str, Any]:
    overview = CostService(db).get_overview()
    return {
        "monthlyCost": overview["monthly_cost"],
        "dailyCost": overview["daily_cost"],
        "byProvider": overview["by_provider"],
        "anomalyCount": overview["anomaly_count"],
        "potentialSavings": overview["potential_savings"],
    }


def _run_drift_detection(db: Session) -> Dict[str, Any]:
    return DriftService(db).detect_drifts()


def _run_resource_cleanup(db: Session) -> Dict[str, Any]:
    return RecommendationService(db).recommend_resource_cleanup()


JOB_HANDLERS: Dict[str, Callable[[Session], Dict[str, Any]]] = {
    JobType.COMPLIANCE_SCAN.value: _run_compliance_scan,
    JobType.COST_REPORT.value: _run_cost_report,
    JobType.DRIFT_DETECTION.value: _run_drift_detection,
    JobType.RESOURCE_CLEANUP.value: _run_resource_cleanup,
}


class JobSchedulerService:
    """CRUD and execution of scheduled jobs."""

    def __init__(self, db: Session):
        self.db = db

    def list_jobs(self, job_type: Optional[str] = None, enabled: Optional[bool] = None) -> List[ScheduledJob]:
        query = self.db.query(ScheduledJob)
        if job_type:
            query = query.filter(ScheduledJob.type == job_type)
        if enabled is not None:
            query = query.filter(ScheduledJob.enabled.is_(enabled))
        return query.order_by(ScheduledJob.id).all()

    def get_job(self, job_id: int) -> ScheduledJob:
        job = self.db.query(ScheduledJob).filter(ScheduledJob.id == job_id).first()
        if not job:
            raise NotFoundError("Job", job_id)
        return job

    def create_job(self, data: ScheduledJobCreate) -> ScheduledJob:
        job = ScheduledJob(**data.model_dump(mode="json"), status=JobStatus.IDLE.value)
        job.next_run = calculate_next_run(job.schedule) if job.enabled else None
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.info(f"Created job {job.id} ({job.type}) with schedule {sanitize_for_log(job.schedule)}")
        return job

    def update_job(self, job_id: int, data: ScheduledJobUpdate) -> ScheduledJob:
        job = self.get_job(job_id)
        apply_changes(job, data.model_dump(exclude_unset=True, mode="json"), JOB_REQUIRED_FIELDS)
        job.next_run = calculate_next_run(job.schedule) if job.enabled else None
        job.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(job)
        return job

    def delete_job(self, job_id: int) -> None:
        job = self.get_job(job_id)
        self.db.query(JobExecution).filter(JobExecution.job_id == job_id).delete(synchronize_session=False)
        self.db.delete(job)
        self.db.commit()
        logger.info(f"Deleted job {job_id}")

    def list_executions(self, job_id: int, limit: int = 20) -> List[JobExecution]:
        self.get_job(job_id)
        return (
            self.db.query(JobExecution)
            .filter(JobExecution.job_id == job_id)
            .order_by(JobExecution.started_at.desc(), JobExecution.id.desc())
            .limit(limit)
            .all()
        )

    def run_job(self, job_id: int, triggered_by: str = "manual") -> JobExecution:
        """
        Run a job now and record the execution.

        Handler failures are captured on the execution and the job is left
        in ``failed`` status; they are not raised.

        Raises:
            NotFoundError: Unknown job
            InvalidStateTransition: Job is already running
        """
        job = self.get_job(job_id)
        if job.status == JobStatus.RUNNING.value:
            raise InvalidStateTransition("job", job.status, "run")

        started_at = datetime.utcnow()
        job.status = JobStatus.RUNNING.value
        execution = JobExecution(job_id=job.id, status=ExecutionStatus.RUNNING.value, started_at=started_at)
        self.db.add(execution)
        self.db.commit()
        execution_id = execution.id
        logger.info(f"Running job {job.id} ({job.type}), triggered by {sanitize_for_log(triggered_by)}")

        handler = JOB_HANDLERS.get(job.type)
        try:
            if handler is None:
                raise ValueError(f"Unsupported job type: {job.type}")
            result = handler(self.db)
            status, error_message = ExecutionStatus.SUCCESS, None
        except Exception as e:
            self.db.rollback()
            result = None
            status, error_message = ExecutionStatus.FAILURE, sanitize_error_message_for_log(e)
            logger.error(f"Job {job_id} failed: {error_message}")

        job = self.get_job(job_id)
        execution = self.db.query(JobExecution).filter(JobExecution.id == execution_id).first()
        execution.status = status.value
        execution.completed_at = datetime.utcnow()
        execution.error_message = error_message
        execution.result = result
        job.status = JobStatus.IDLE.value if status == ExecutionStatus.SUCCESS else JobStatus.FAILED.value
        job.last_run = started_at
        job.next_run = calculate_next_run(job.schedule, execution.completed_at) if job.enabled else None
        self.db.commit()
        self.db.refresh(execution)
        return execution

    def get_due_jobs(self, now: Optional[datetime] = None) -> List[ScheduledJob]:
        now = now or datetime.utcnow()
        return (
            self.db.query(ScheduledJob)
            .filter(
                ScheduledJob.enabled.is_(True),
                ScheduledJob.status != JobStatus.RUNNING.value,
                ScheduledJob.next_run.isnot(None),
                ScheduledJob.next_run <= now,
            )
            .order_by(ScheduledJob.next_run, ScheduledJob.id)
            .all()
        )

    def dispatch_due_jobs(self, now: Optional[datetime] = None) -> List[int]:
        """Run every job whose next_run has passed. Returns the execution ids."""
        execution_ids = []
        for job in self.get_due_jobs(now):
            try:
                execution_ids.append(self.run_job(job.id, triggered_by="schedule").id)
            except InvalidStateTransition:
                logger.info(f"Job {job.id} is already running, skipping")
        return execution_ids
