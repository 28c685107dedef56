"""
Presentation helpers for dashboard clients

Display formatting for amounts, percentages and timestamps, derived display
states for jobs and queue items, and the job scheduling form model.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Optional, Union

from ..schemas.automation_schemas import JobStatus, JobType, RemediationStatus
from ..schemas.resource_schemas import OptimizationStatus

DateLike = Union[datetime, str]


def _round_half_up(value: Decimal, places: str) -> Decimal:
    return value.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def format_currency(amount_cents: int) -> str:
    """Cents to whole US dollars: ``123456`` -> ``"$1,235"``."""
    dollars = _round_half_up(Decimal(amount_cents) / 100, "1")
    sign = "-" if dollars < 0 else ""
    return f"{sign}${abs(dollars):,.0f}"


def format_percentage(value: float) -> str:
    """One decimal place: ``12.345`` -> ``"12.3%"``."""
    rounded = _round_half_up(Decimal(str(value)), "0.1")
    return f"{rounded:,.1f}%"


def _as_datetime(value: DateLike) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_date(value: DateLike) -> str:
    """``"Jan 5, 2024, 3:07 PM"``"""
    value = _as_datetime(value)
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value:%b} {value.day}, {value.year}, {hour}:{value:%M} {meridiem}"


def format_time_ago(value: DateLike, now: Optional[datetime] = None) -> str:
    """Relative time for recent timestamps, the full date after a week."""
    value = _as_datetime(value)
    now = _as_datetime(now) if now else datetime.now(timezone.utc)
    seconds = int((now - value).total_seconds())
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400

    if seconds < 60:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return format_date(value)


def _status_of(item: Any) -> Optional[str]:
    if isinstance(item, dict):
        return item.get("status")
    return getattr(item, "status", None)


def display_job_status(job: Any) -> str:
    """running > failed > paused (disabled) > active"""
    status = _status_of(job)
    enabled = job.get("enabled", True) if isinstance(job, dict) else getattr(job, "enabled", True)
    if status == JobStatus.RUNNING.value:
        return "running"
    if status == JobStatus.FAILED.value:
        return "failed"
    if not enabled:
        return "paused"
    return "active"


def remediation_actions_available(item: Any) -> bool:
    """Approve/reject are offered only while the action awaits approval."""
    return _status_of(item) == RemediationStatus.PENDING_APPROVAL.value


def optimization_actions_available(item: Any) -> bool:
    """Apply/dismiss are offered only for open suggestions."""
    return _status_of(item) == OptimizationStatus.OPEN.value


@dataclass
class JobSchedulerForm:
    """
    Form state for scheduling a job.

    The cron expression is passed on exactly as typed; the server decides
    whether it can be scheduled.
    """

    name: str = ""
    type: str = JobType.COMPLIANCE_SCAN.value
    schedule: str = "0 0 * * *"
    description: str = ""
    config: Dict[str, Any] = field(default_factory=dict)

    def to_job(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "schedule": self.schedule,
            "description": self.description,
            "config": dict(self.config),
        }

    def submit(self, on_create: Callable[[Dict[str, Any]], Any]) -> Any:
        """Hand the job to ``on_create`` and clear name and description."""
        result = on_create(self.to_job())
        self.name = ""
        self.description = ""
        return result
