"""
Compliance Assessment Service

Evaluates framework controls against the current resource inventory.

Each control names a configuration check. For every control:
- not_applicable: no resource carries the tag the check inspects
- failed: at least one applicable resource violates the check
- passed: otherwise

Compliance percent is passed / (passed + failed), not-applicable controls
excluded.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..database import ComplianceAssessment, ComplianceControl, ComplianceFramework, Resource
from ..schemas.base import SEVERITY_ORDER
from ..schemas.compliance_schemas import AssessmentStatus, FindingStatus
from ..utils.logging_security import sanitize_error_message_for_log
from .errors import NotFoundError
from .resource_checks import get_check

logger = logging.getLogger(__name__)

# (id, name, version, provider, description)
DEFAULT_FRAMEWORKS = [
    ("cis-aws", "CIS AWS Foundations Benchmark", "1.5.0", "AWS", "Security configuration baseline for AWS accounts"),
    ("soc2", "SOC 2", "2017", None, "Trust Services Criteria for security, availability and confidentiality"),
    ("pci-dss", "PCI DSS", "4.0", None, "Payment Card Industry Data Security Standard"),
    ("hipaa", "HIPAA Security Rule", "2013", None, "Safeguards for electronic protected health information"),
]

# framework_id -> [(control_id, title, category, check_key)]
DEFAULT_CONTROLS = {
    "cis-aws": [
        ("1.10", "Ensure MFA is enabled for all IAM users with a console password", "Identity and Access Management", "mfa_disabled"),
        ("2.1.1", "Ensure S3 bucket encryption is enabled", "Storage", "encryption_disabled"),
        ("2.1.3", "Ensure S3 bucket versioning is enabled", "Storage", "versioning_disabled"),
        ("2.1.5", "Ensure S3 buckets are configured with Block Public Access", "Storage", "public_access"),
        ("2.3.1", "Ensure RDS instances have automated backups enabled", "Storage", "backup_disabled"),
        ("3.1", "Ensure logging is enabled", "Logging", "logging_disabled"),
        ("5.2", "Ensure no security groups allow ingress from 0.0.0.0/0 to remote administration ports", "Networking", "open_management_port"),
    ],
    "soc2": [
        ("CC6.1", "Logical access is restricted with multi-factor authentication", "Logical Access", "mfa_disabled"),
        ("CC6.6", "External access points are restricted", "Logical Access", "public_access"),
        ("CC6.7", "Data is encrypted at rest", "Data Protection", "encryption_disabled"),
        ("CC7.2", "System components are monitored for anomalies", "Monitoring", "logging_disabled"),
        ("A1.2", "Data backup processes are in place", "Availability", "backup_disabled"),
    ],
    "pci-dss": [
        ("1.3.1", "Inbound traffic to the cardholder data environment is restricted", "Network Security", "open_management_port"),
        ("1.4.1", "Public access to system components is prohibited", "Network Security", "public_access"),
        ("3.5.1", "Stored account data is rendered unreadable", "Data Protection", "encryption_disabled"),
        ("8.4.1", "MFA is implemented for all access into the CDE", "Authentication", "mfa_disabled"),
        ("10.2.1", "Audit logs are enabled and active", "Logging", "logging_disabled"),
    ],
    "hipaa": [
        ("164.308(a)(7)", "Data backup plan", "Administrative Safeguards", "backup_disabled"),
        ("164.312(a)(2)(iv)", "Encryption and decryption", "Technical Safeguards", "encryption_disabled"),
        ("164.312(b)", "Audit controls", "Technical Safeguards", "logging_disabled"),
        ("164.312(d)", "Person or entity authentication", "Technical Safeguards", "mfa_disabled"),
    ],
}


def seed_frameworks(db: Session) -> int:
    """
    Insert the built-in frameworks and controls that are missing.

    Returns:
        Number of controls inserted
    """
    inserted = 0
    for framework_id, name, version, provider, description in DEFAULT_FRAMEWORKS:
        if not db.query(ComplianceFramework).filter(ComplianceFramework.id == framework_id).first():
            db.add(
                ComplianceFramework(
                    id=framework_id,
                    name=name,
                    version=version,
                    provider=provider,
                    description=description,
                    is_enabled=True,
                )
            )
            db.flush()

        existing = {
            row.control_id
            for row in db.query(ComplianceControl.control_id).filter(ComplianceControl.framework_id == framework_id)
        }
        for control_id, title, category, check_key in DEFAULT_CONTROLS.get(framework_id, []):
            if control_id in existing:
                continue
            check = get_check(check_key)
            db.add(
                ComplianceControl(
                    framework_id=framework_id,
                    control_id=control_id,
                    title=title,
                    description=check.title if check else None,
                    category=category,
                    severity=check.severity if check else "medium",
                    remediation=check.remediation if check else None,
                    check_key=check_key,
                )
            )
            inserted += 1

    db.commit()
    if inserted:
        logger.info(f"Seeded {inserted} compliance controls")
    return inserted


class ComplianceService:
    """Framework management and control assessment."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Frameworks and controls
    # ------------------------------------------------------------------
    def list_frameworks(self) -> List[ComplianceFramework]:
        return self.db.query(ComplianceFramework).order_by(ComplianceFramework.id).all()

    def get_framework(self, framework_id: str) -> ComplianceFramework:
        framework = self.db.query(ComplianceFramework).filter(ComplianceFramework.id == framework_id).first()
        if not framework:
            raise NotFoundError("Framework", framework_id)
        return framework

    def list_controls(self, framework_id: str) -> List[ComplianceControl]:
        self.get_framework(framework_id)
        return (
            self.db.query(ComplianceControl)
            .filter(ComplianceControl.framework_id == framework_id)
            .order_by(ComplianceControl.id)
            .all()
        )

    def set_framework_enabled(self, framework_id: str, enabled: bool) -> ComplianceFramework:
        framework = self.get_framework(framework_id)
        framework.is_enabled = enabled
        self.db.commit()
        self.db.refresh(framework)
        return framework

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------
    def run_assessment(self, framework_id: str) -> ComplianceAssessment:
        """
        Assess one framework against the current inventory.

        Raises:
            NotFoundError: Unknown framework
            ValueError: Framework is disabled
        """
        framework = self.get_framework(framework_id)
        if not framework.is_enabled:
            raise ValueError(f"Framework '{framework_id}' is disabled")

        assessment = ComplianceAssessment(
            framework_id=framework.id,
            assessment_date=datetime.utcnow(),
            status=AssessmentStatus.RUNNING.value,
        )
        self.db.add(assessment)
        self.db.commit()

        try:
            resources_query = self.db.query(Resource)
            if framework.provider:
                resources_query = resources_query.filter(Resource.provider == framework.provider)
            resources = resources_query.order_by(Resource.id).all()

            findings = [self._evaluate_control(control, resources) for control in self.list_controls(framework.id)]
            passed = sum(1 for f in findings if f["status"] == FindingStatus.PASSED.value)
            failed = sum(1 for f in findings if f["status"] == FindingStatus.FAILED.value)
            not_applicable = len(findings) - passed - failed

            assessment.total_controls = len(findings)
            assessment.passed_controls = passed
            assessment.failed_controls = failed
            assessment.not_applicable_controls = not_applicable
            assessment.compliance_percent = round(passed / (passed + failed) * 100, 1) if passed + failed else 0.0
            assessment.findings = findings
            assessment.status = AssessmentStatus.COMPLETED.value
            logger.info(
                f"Assessment {assessment.id} for {framework.id}: "
                f"{passed} passed, {failed} failed, {not_applicable} not applicable"
            )
        except Exception as e:
            logger.error(f"Assessment for {framework.id} failed: {sanitize_error_message_for_log(e)}")
            assessment.status = AssessmentStatus.FAILED.value

        self.db.commit()
        self.db.refresh(assessment)
        return assessment

    def run_enabled_assessments(self) -> List[ComplianceAssessment]:
        """Assess every enabled framework."""
        frameworks = (
            self.db.query(ComplianceFramework)
            .filter(ComplianceFramework.is_enabled.is_(True))
            .order_by(ComplianceFramework.id)
            .all()
        )
        return [self.run_assessment(framework.id) for framework in frameworks]

    @staticmethod
    def _evaluate_control(control: ComplianceControl, resources: List[Resource]) -> Dict[str, Any]:
        finding = {
            "controlId": control.control_id,
            "controlTitle": control.title,
            "category": control.category,
            "severity": control.severity,
            "status": FindingStatus.NOT_APPLICABLE.value,
            "affectedCount": 0,
            "affectedResources": [],
            "remediation": control.remediation or "",
        }
        check = get_check(control.check_key)
        if check is None:
            return finding

        applicable = [resource for resource in resources if check.applies_to(resource.tags)]
        if not applicable:
            return finding

        affected = [resource.name for resource in applicable if check.is_violated(resource.tags)]
        finding["status"] = FindingStatus.FAILED.value if affected else FindingStatus.PASSED.value
        finding["affectedCount"] = len(affected)
        finding["affectedResources"] = affected
        return finding

    def list_assessments(self, framework_id: Optional[str] = None, limit: int = 20) -> List[ComplianceAssessment]:
        query = self.db.query(ComplianceAssessment)
        if framework_id:
            query = query.filter(ComplianceAssessment.framework_id == framework_id)
        return (
            query.order_by(ComplianceAssessment.assessment_date.desc(), ComplianceAssessment.id.desc())
            .limit(limit)
            .all()
        )

    def get_assessment(self, assessment_id: int) -> ComplianceAssessment:
        assessment = self.db.query(ComplianceAssessment).filter(ComplianceAssessment.id == assessment_id).first()
        if not assessment:
            raise NotFoundError("Assessment", assessment_id)
        return assessment

    def _latest_assessments(self) -> List[tuple]:
        """(framework, latest completed assessment or None) for enabled frameworks."""
        result = []
        for framework in self.list_frameworks():
            if not framework.is_enabled:
                continue
            latest = (
                self.db.query(ComplianceAssessment)
                .filter(
                    ComplianceAssessment.framework_id == framework.id,
                    ComplianceAssessment.status == AssessmentStatus.COMPLETED.value,
                )
                .order_by(ComplianceAssessment.assessment_date.desc(), ComplianceAssessment.id.desc())
                .first()
            )
            result.append((framework, latest))
        return result

    def get_overview(self) -> Dict[str, Any]:
        by_framework = []
        by_severity: Dict[str, int] = {}
        total = passed = failed = 0

        for framework, latest in self._latest_assessments():
            entry = {
                "framework_id": framework.id,
                "framework_name": framework.name,
                "total_controls": latest.total_controls if latest else 0,
                "passed_controls": latest.passed_controls if latest else 0,
                "failed_controls": latest.failed_controls if latest else 0,
                "compliance_percent": latest.compliance_percent if latest else 0.0,
                "last_assessment": latest.assessment_date if latest else None,
            }
            by_framework.append(entry)
            total += entry["total_controls"]
            passed += entry["passed_controls"]
            failed += entry["failed_controls"]
            for finding in (latest.findings or []) if latest else []:
                if finding.get("status") == FindingStatus.FAILED.value:
                    by_severity[finding["severity"]] = by_severity.get(finding["severity"], 0) + 1

        return {
            "total_controls": total,
            "passed_controls": passed,
            "failed_controls": failed,
            "compliance_percent": round(passed / (passed + failed) * 100, 1) if passed + failed else 0.0,
            "by_framework": by_framework,
            "by_severity": by_severity,
        }

    def get_failing_controls(self, framework_id: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """Failed findings from the latest assessment of each enabled framework, most severe first."""
        failing = []
        for framework, latest in self._latest_assessments():
            if latest is None or (framework_id and framework.id != framework_id):
                continue
            for finding in latest.findings or []:
                if finding.get("status") != FindingStatus.FAILED.value:
                    continue
                failing.append(
                    {
                        "framework_id": framework.id,
                        "control_id": finding["controlId"],
                        "control_title": finding["controlTitle"],
                        "category": finding["category"],
                        "severity": finding["severity"],
                        "affected_count": finding.get("affectedCount", 0),
                        "affected_resources": finding.get("affectedResources", []),
                        "remediation": finding.get("remediation", ""),
                    }
                )
        failing.sort(key=lambda item: (-SEVERITY_ORDER.get(item["severity"], 0), -item["affected_count"]))
        return failing[:limit]

    def get_trend(self, framework_id: Optional[str] = None, days: int = 30) -> Dict[str, Any]:
        if days < 1:
            raise ValueError("days must be >= 1")
        if framework_id:
            self.get_framework(framework_id)

        query = self.db.query(ComplianceAssessment).filter(
            ComplianceAssessment.status == AssessmentStatus.COMPLETED.value,
            ComplianceAssessment.assessment_date >= datetime.utcnow() - timedelta(days=days),
        )
        if framework_id:
            query = query.filter(ComplianceAssessment.framework_id == framework_id)

        points = [
            {
                "framework_id": assessment.framework_id,
                "date": assessment.assessment_date,
                "compliance_percent": assessment.compliance_percent,
            }
            for assessment in query.order_by(ComplianceAssessment.assessment_date.asc(), ComplianceAssessment.id.asc())
        ]
        return {"framework_id": framework_id, "days": days, "points": points}
