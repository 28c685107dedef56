"""
Inventory and finding schemas

Request/response models for resources, security drifts, cost anomalies,
alerts, recommendations and vulnerabilities.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import CamelModel, Severity


class AlertType(str, Enum):
    SECURITY = "security"
    COST = "cost"
    RESOURCE = "resource"


class AlertStatus(str, Enum):
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class DriftStatus(str, Enum):
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    REMEDIATED = "remediated"
    APPROVED = "approved"
    RESOLVED = "resolved"


class AnomalyStatus(str, Enum):
    OPEN = "open"
    INVESTIGATED = "investigated"
    RESOLVED = "resolved"


class OptimizationStatus(str, Enum):
    OPEN = "open"
    APPLIED = "applied"
    DISMISSED = "dismissed"


class VulnerabilityStatus(str, Enum):
    OPEN = "open"
    FIXED = "fixed"
    IGNORED = "ignored"


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------
class ResourceCreate(CamelModel):
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, description="EC2, S3, RDS, ...")
    provider: str = Field(..., min_length=1, description="AWS, GCP or AZURE")
    region: str
    status: str
    tags: Optional[Dict[str, Any]] = None
    cost: Optional[int] = Field(None, ge=0, description="Monthly cost in cents")
    organization_id: Optional[int] = None
    user_id: Optional[int] = None


class ResourceUpdate(CamelModel):
    name: Optional[str] = None
    type: Optional[str] = None
    provider: Optional[str] = None
    region: Optional[str] = None
    status: Optional[str] = None
    tags: Optional[Dict[str, Any]] = None
    cost: Optional[int] = Field(None, ge=0)


class ResourceResponse(CamelModel):
    id: int
    name: str
    type: str
    provider: str
    region: str
    status: str
    tags: Optional[Dict[str, Any]] = None
    cost: Optional[int] = None
    organization_id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Security drifts
# ---------------------------------------------------------------------------
class DriftCreate(CamelModel):
    resource_id: int
    drift_type: str
    severity: Severity
    details: Optional[Dict[str, Any]] = None
    status: DriftStatus = DriftStatus.OPEN


class DriftUpdate(CamelModel):
    status: Optional[DriftStatus] = None
    details: Optional[Dict[str, Any]] = None


class DriftResponse(CamelModel):
    id: int
    resource_id: int
    drift_type: str
    severity: Severity
    details: Optional[Dict[str, Any]] = None
    detected_at: datetime
    status: DriftStatus


class DriftSummary(CamelModel):
    total: int
    open: int
    by_severity: Dict[str, int]
    by_status: Dict[str, int]


class DriftDetectionResult(CamelModel):
    message: str
    resources_scanned: int
    drifts_detected: int
    alerts_created: int
    remediations_proposed: int


# ---------------------------------------------------------------------------
# Cost anomalies
# ---------------------------------------------------------------------------
class CostAnomalyCreate(CamelModel):
    resource_id: int
    anomaly_type: str
    severity: Severity
    percentage: int
    previous_cost: int = Field(..., ge=0)
    current_cost: int = Field(..., ge=0)
    status: AnomalyStatus = AnomalyStatus.OPEN


class CostAnomalyResponse(CamelModel):
    id: int
    resource_id: int
    anomaly_type: str
    severity: Severity
    percentage: int
    previous_cost: int
    current_cost: int
    detected_at: datetime
    status: AnomalyStatus


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------
class AlertCreate(CamelModel):
    title: str = Field(..., min_length=1)
    message: str
    type: AlertType
    severity: Severity
    resource_id: Optional[int] = None
    status: AlertStatus = AlertStatus.OPEN


class AlertUpdate(CamelModel):
    """
    Alert updates. ``type`` and ``severity`` are accepted only so that a
    request attempting to change them can be rejected explicitly.
    """

    title: Optional[str] = None
    message: Optional[str] = None
    status: Optional[AlertStatus] = None
    type: Optional[AlertType] = None
    severity: Optional[Severity] = None


class AlertResponse(CamelModel):
    id: int
    title: str
    message: str
    type: AlertType
    severity: Severity
    resource_id: Optional[int] = None
    created_at: datetime
    status: AlertStatus


class AlertSummary(CamelModel):
    total: int
    open: int
    by_type: Dict[str, int]
    by_severity: Dict[str, int]


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------
class RecommendationCreate(CamelModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    potential_savings: int = Field(0, ge=0, description="Monthly savings in cents")
    resources_affected: Optional[List[Any]] = None
    status: OptimizationStatus = OptimizationStatus.OPEN


class RecommendationUpdate(CamelModel):
    status: Optional[OptimizationStatus] = None
    title: Optional[str] = None
    description: Optional[str] = None


class RecommendationResponse(CamelModel):
    id: int
    title: str
    description: str
    type: str
    potential_savings: int
    resources_affected: Optional[List[Any]] = None
    created_at: datetime
    status: OptimizationStatus


class SavingsResponse(CamelModel):
    total_savings: int


class GenerateRecommendationsResult(CamelModel):
    message: str
    generated: int


# ---------------------------------------------------------------------------
# Vulnerabilities
# ---------------------------------------------------------------------------
class VulnerabilityResponse(CamelModel):
    id: int
    resource_id: Optional[int] = None
    cve_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    severity: Severity
    cvss_score: Optional[float] = None
    package_name: Optional[str] = None
    fixed_version: Optional[str] = None
    status: VulnerabilityStatus
    detected_at: datetime


class VulnerabilitySummary(CamelModel):
    total: int
    open: int
    by_severity: Dict[str, int]
