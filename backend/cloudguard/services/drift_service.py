"""
Security Drift Service

Detects configuration drift on tracked resources and manages the lifecycle of
the resulting drift records.

Detection evaluates the configuration checks against every resource. A new
drift is recorded only if the resource has no unresolved drift of the same
type; drifts approved as the new baseline suppress re-detection. Each new
drift raises a security alert, and critical/high drifts get a remediation
action queued for approval.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import RemediationAction, Resource, SecurityDrift
from ..schemas.base import Severity
from ..schemas.resource_schemas import AlertCreate, AlertType, DriftCreate, DriftStatus, DriftUpdate
from .alert_service import AlertService
from .errors import NotFoundError
from .pagination import DEFAULT_PAGE_SIZE, paginate
from .remediation_service import RemediationService
from .resource_checks import find_violations
from .updates import apply_changes

logger = logging.getLogger(__name__)

# A drift in any of these statuses blocks re-detection of the same drift type
UNRESOLVED_STATUSES = (
    DriftStatus.OPEN.value,
    DriftStatus.ACKNOWLEDGED.value,
    DriftStatus.APPROVED.value,
)

AUTO_REMEDIATION_SEVERITIES = (Severity.CRITICAL.value, Severity.HIGH.value)


class DriftService:
    def __init__(self, db: Session):
        self.db = db

    def list_drifts(
        self,
        severity: Optional[str] = None,
        status: Optional[str] = None,
        resource_id: Optional[int] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[list, int]:
        query = self.db.query(SecurityDrift)
        if severity:
            query = query.filter(SecurityDrift.severity == severity)
        if status:
            query = query.filter(SecurityDrift.status == status)
        if resource_id is not None:
            query = query.filter(SecurityDrift.resource_id == resource_id)
        return paginate(query.order_by(SecurityDrift.detected_at.desc(), SecurityDrift.id.desc()), page, page_size)

    def get_drift(self, drift_id: int) -> SecurityDrift:
        drift = self.db.query(SecurityDrift).filter(SecurityDrift.id == drift_id).first()
        if not drift:
            raise NotFoundError("Security drift", drift_id)
        return drift

    def create_drift(self, data: DriftCreate) -> SecurityDrift:
        if not self.db.query(Resource.id).filter(Resource.id == data.resource_id).first():
            raise NotFoundError("Resource", data.resource_id)
        drift = SecurityDrift(**data.model_dump(mode="json"))
        self.db.add(drift)
        self.db.commit()
        self.db.refresh(drift)
        return drift

    def update_drift(self, drift_id: int, data: DriftUpdate) -> SecurityDrift:
        drift = self.get_drift(drift_id)
        apply_changes(drift, data.model_dump(exclude_unset=True, mode="json"), required=("status",))
        self.db.commit()
        self.db.refresh(drift)
        return drift

    def delete_drift(self, drift_id: int) -> None:
        drift = self.get_drift(drift_id)
        self.db.query(RemediationAction).filter(RemediationAction.drift_id == drift_id).update(
            {RemediationAction.drift_id: None}, synchronize_session=False
        )
        self.db.delete(drift)
        self.db.commit()

    def get_summary(self) -> Dict[str, Any]:
        total = self.db.query(func.count(SecurityDrift.id)).scalar() or 0
        open_count = (
            self.db.query(func.count(SecurityDrift.id)).filter(SecurityDrift.status == DriftStatus.OPEN.value).scalar()
            or 0
        )
        by_severity = dict(
            self.db.query(SecurityDrift.severity, func.count(SecurityDrift.id)).group_by(SecurityDrift.severity).all()
        )
        by_status = dict(
            self.db.query(SecurityDrift.status, func.count(SecurityDrift.id)).group_by(SecurityDrift.status).all()
        )
        return {"total": total, "open": open_count, "by_severity": by_severity, "by_status": by_status}

    def detect_drifts(self, provider: Optional[str] = None) -> Dict[str, Any]:
        """
        Scan resources for configuration drift.

        Args:
            provider: Limit the scan to one provider

        Returns:
            Counts of resources scanned, drifts, alerts and remediation proposals
        """
        query = self.db.query(Resource)
        if provider:
            query = query.filter(Resource.provider == provider.upper())
        resources = query.order_by(Resource.id).all()

        alert_service = AlertService(self.db)
        remediation_service = RemediationService(self.db)
        drifts_detected = alerts_created = remediations_proposed = 0

        for resource in resources:
            known_types = {
                row.drift_type
                for row in self.db.query(SecurityDrift.drift_type).filter(
                    SecurityDrift.resource_id == resource.id,
                    SecurityDrift.status.in_(UNRESOLVED_STATUSES),
                )
            }

            for check in find_violations(resource.tags):
                if check.key in known_types:
                    continue

                drift = SecurityDrift(
                    resource_id=resource.id,
                    drift_type=check.key,
                    severity=check.severity,
                    details={"title": check.title, "tag": check.tag, "observed": resource.tags.get(check.tag)},
                    detected_at=datetime.utcnow(),
                    status=DriftStatus.OPEN.value,
                )
                self.db.add(drift)
                self.db.flush()
                drifts_detected += 1

                alert_service.create_alert(
                    AlertCreate(
                        title=f"{check.title} on {resource.name}",
                        message=f"{check.title} detected on {resource.type} '{resource.name}' "
                        f"({resource.provider} {resource.region}). {check.remediation}",
                        type=AlertType.SECURITY,
                        severity=Severity(check.severity),
                        resource_id=resource.id,
                    ),
                    commit=False,
                )
                alerts_created += 1

                if check.severity in AUTO_REMEDIATION_SEVERITIES:
                    if remediation_service.propose_for_drift(drift):
                        remediations_proposed += 1

        self.db.commit()
        logger.info(
            f"Drift detection scanned {len(resources)} resources: "
            f"{drifts_detected} drifts, {remediations_proposed} remediation proposals"
        )
        return {
            "message": f"Detected {drifts_detected} new security drifts",
            "resources_scanned": len(resources),
            "drifts_detected": drifts_detected,
            "alerts_created": alerts_created,
            "remediations_proposed": remediations_proposed,
        }
