"""
Scheduled Jobs API Endpoints

Endpoints:
    GET /api/v1/jobs - List jobs
    POST /api/v1/jobs - Create a job (cron schedule stored as submitted)
    GET /api/v1/jobs/{id} - Job details
    PUT /api/v1/jobs/{id} - Update a job
    DELETE /api/v1/jobs/{id} - Delete a job and its executions
    POST /api/v1/jobs/{id}/trigger - Run the job now
    GET /api/v1/jobs/{id}/executions - Recent executions
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..schemas.automation_schemas import (
    JobExecutionResponse,
    JobTriggerResponse,
    ScheduledJobCreate,
    ScheduledJobResponse,
    ScheduledJobUpdate,
)
from ..services.job_scheduler_service import JobSchedulerService
from ..utils.logging_security import create_audit_log_entry
from .errors import translate_service_errors

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cloudguard.audit")

router = APIRouter(prefix="/api/v1/jobs", tags=["jobs"])


@router.get("", response_model=List[ScheduledJobResponse])
async def list_jobs(
    type: Optional[str] = Query(None),
    enabled: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("list jobs"):
        return JobSchedulerService(db).list_jobs(type, enabled)


@router.post("", response_model=ScheduledJobResponse, status_code=201)
async def create_job(
    job: ScheduledJobCreate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("create job"):
        created = JobSchedulerService(db).create_job(job)
    audit_logger.info(
        create_audit_log_entry(
            "JOB_CREATED", current_user.get("id"), "job", created.id, additional_context={"type": created.type}
        )
    )
    return created


@router.get("/{job_id}", response_model=ScheduledJobResponse)
async def get_job(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("get job"):
        return JobSchedulerService(db).get_job(job_id)


@router.put("/{job_id}", response_model=ScheduledJobResponse)
async def update_job(
    job_id: int,
    update: ScheduledJobUpdate,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("update job"):
        updated = JobSchedulerService(db).update_job(job_id, update)
    audit_logger.info(create_audit_log_entry("JOB_UPDATED", current_user.get("id"), "job", job_id))
    return updated


@router.delete("/{job_id}", status_code=204)
async def delete_job(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> None:
    with translate_service_errors("delete job"):
        JobSchedulerService(db).delete_job(job_id)
    audit_logger.info(create_audit_log_entry("JOB_DELETED", current_user.get("id"), "job", job_id))


@router.post("/{job_id}/trigger", response_model=JobTriggerResponse)
async def trigger_job(
    job_id: int,
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with translate_service_errors("trigger job"):
        execution = JobSchedulerService(db).run_job(job_id, triggered_by=f"user:{current_user.get('id')}")
    audit_logger.info(
        create_audit_log_entry(
            "JOB_TRIGGERED", current_user.get("id"), "job", job_id, additional_context={"status": execution.status}
        )
    )
    return {"job_id": job_id, "execution_id": execution.id, "status": execution.status}


@router.get("/{job_id}/executions", response_model=List[JobExecutionResponse])
async def list_executions(
    job_id: int,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    with translate_service_errors("list job executions"):
        return JobSchedulerService(db).list_executions(job_id, limit)
