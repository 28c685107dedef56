"""
Automation Schemas

Pydantic models for scheduled jobs, job executions and remediation actions.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from .base import CamelModel, Severity


class JobType(str, Enum):
    """Kinds of work a scheduled job can perform."""

    COMPLIANCE_SCAN = "compliance_scan"
    COST_REPORT = "cost_report"
    DRIFT_DETECTION = "drift_detection"
    RESOURCE_CLEANUP = "resource_cleanup"


class JobStatus(str, Enum):
    """Stored job status. Display status is derived separately."""

    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"


class RemediationStatus(str, Enum):
    """Remediation action status."""

    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTING = "executing"
    EXECUTED = "executed"
    FAILED = "failed"


class ScheduledJobCreate(CamelModel):
    """
    Request model for creating a scheduled job.

    ``schedule`` is a cron expression stored exactly as submitted.
    """

    name: str = Field(..., min_length=1)
    type: JobType
    schedule: str = Field(..., description="Cron expression")
    description: Optional[str] = None
    enabled: bool = True


class ScheduledJobUpdate(CamelModel):
    name: Optional[str] = None
    type: Optional[JobType] = None
    schedule: Optional[str] = None
    description: Optional[str] = None
    enabled: Optional[bool] = None


class ScheduledJobResponse(CamelModel):
    id: int
    name: str
    type: JobType
    schedule: str
    description: Optional[str] = None
    enabled: bool
    status: JobStatus
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None


class JobExecutionResponse(CamelModel):
    id: int
    job_id: int
    status: ExecutionStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration: Optional[str] = None
    error_message: Optional[str] = None
    result: Optional[Dict[str, Any]] = None


class JobTriggerResponse(CamelModel):
    job_id: int
    execution_id: int
    status: ExecutionStatus


class RemediationActionCreate(CamelModel):
    """Request model for proposing a remediation action."""

    action_type: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    resource_id: Optional[int] = None
    drift_id: Optional[int] = None
    vulnerability_id: Optional[int] = None
    severity: Optional[Severity] = None


class RemediationActionResponse(CamelModel):
    id: int
    action_type: str
    resource_id: Optional[int] = None
    drift_id: Optional[int] = None
    vulnerability_id: Optional[int] = None
    severity: Optional[Severity] = None
    description: str
    status: RemediationStatus
    requested_by: Optional[int] = None
    requested_at: datetime
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None


class RemediationSummary(CamelModel):
    """Counts per remediation status."""

    total: int
    pending_approval: int
    approved: int
    rejected: int
    executing: int
    executed: int
    failed: int
    success_rate: float
