"""
Compliance Schemas

Frameworks, controls, assessments and the aggregated overview.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from .base import CamelModel, Severity


class AssessmentStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FindingStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    NOT_APPLICABLE = "not_applicable"


class FrameworkResponse(CamelModel):
    id: str
    name: str
    version: str
    description: Optional[str] = None
    provider: Optional[str] = None
    is_enabled: bool


class ControlResponse(CamelModel):
    id: int
    framework_id: str
    control_id: str
    title: str
    description: Optional[str] = None
    category: str
    severity: Severity
    remediation: Optional[str] = None


class AssessmentFinding(CamelModel):
    control_id: str
    control_title: str
    category: str
    severity: Severity
    status: FindingStatus
    affected_count: int = 0
    affected_resources: List[str] = Field(default_factory=list)
    remediation: str = ""


class AssessmentResponse(CamelModel):
    id: int
    framework_id: str
    framework_name: str
    assessment_date: datetime
    total_controls: int
    passed_controls: int
    failed_controls: int
    not_applicable_controls: int
    compliance_percent: float
    status: AssessmentStatus
    findings: List[AssessmentFinding] = Field(default_factory=list)


class RunAssessmentRequest(CamelModel):
    framework_id: str


class FrameworkCompliance(CamelModel):
    framework_id: str
    framework_name: str
    total_controls: int
    passed_controls: int
    failed_controls: int
    compliance_percent: float
    last_assessment: Optional[datetime] = None


class ComplianceOverview(CamelModel):
    total_controls: int
    passed_controls: int
    failed_controls: int
    compliance_percent: float
    by_framework: List[FrameworkCompliance]
    by_severity: Dict[str, int]


class FailingControl(CamelModel):
    framework_id: str
    control_id: str
    control_title: str
    category: str
    severity: Severity
    affected_count: int
    affected_resources: List[str]
    remediation: str


class ComplianceTrendPoint(CamelModel):
    framework_id: str
    date: datetime
    compliance_percent: float


class ComplianceTrend(CamelModel):
    framework_id: Optional[str] = None
    days: int
    points: List[ComplianceTrendPoint]
