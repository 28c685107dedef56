"""
Remediation Workflow Service

Proposed corrective actions pass through an approval gate before execution.

Status flow:
    pending_approval -> approved -> executing -> executed | failed
    pending_approval -> rejected

Approval and rejection are terminal decisions; only a pending action may be
approved or rejected, and only an approved action may be executed.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import RemediationAction, Resource, SecurityDrift, Vulnerability
from ..schemas.automation_schemas import RemediationActionCreate, RemediationStatus
from ..schemas.resource_schemas import DriftStatus, VulnerabilityStatus
from ..utils.logging_security import sanitize_error_message_for_log
from .alert_service import AlertService
from .errors import InvalidStateTransition, NotFoundError
from .pagination import DEFAULT_PAGE_SIZE, paginate
from .resource_checks import apply_fix, get_check

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (
    RemediationStatus.PENDING_APPROVAL.value,
    RemediationStatus.APPROVED.value,
    RemediationStatus.EXECUTING.value,
)


class RemediationService:
    """
    Creates, approves, rejects and executes remediation actions.

    Args:
        db: Database session
    """

    def __init__(self, db: Session):
        self.db = db

    def get_action(self, action_id: int) -> RemediationAction:
        action = self.db.query(RemediationAction).filter(RemediationAction.id == action_id).first()
        if not action:
            raise NotFoundError("Remediation action", action_id)
        return action

    def list_actions(
        self,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[list, int]:
        query = self.db.query(RemediationAction)
        if status:
            query = query.filter(RemediationAction.status == status)
        return paginate(query.order_by(RemediationAction.requested_at.desc(), RemediationAction.id.desc()), page, page_size)

    def list_pending(self) -> List[RemediationAction]:
        return (
            self.db.query(RemediationAction)
            .filter(RemediationAction.status == RemediationStatus.PENDING_APPROVAL.value)
            .order_by(RemediationAction.requested_at.asc(), RemediationAction.id.asc())
            .all()
        )

    def get_summary(self) -> Dict[str, Any]:
        counts = dict(
            self.db.query(RemediationAction.status, func.count(RemediationAction.id))
            .group_by(RemediationAction.status)
            .all()
        )
        summary: Dict[str, Any] = {status.value: counts.get(status.value, 0) for status in RemediationStatus}
        summary["total"] = sum(counts.values())

        finished = summary[RemediationStatus.EXECUTED.value] + summary[RemediationStatus.FAILED.value]
        summary["success_rate"] = (
            round(summary[RemediationStatus.EXECUTED.value] / finished * 100, 1) if finished else 0.0
        )
        return summary

    def create_action(self, data: RemediationActionCreate, requested_by: Optional[int] = None) -> RemediationAction:
        """
        Propose a remediation action.

        Resource and severity default to those of the linked drift.

        Raises:
            NotFoundError: Linked drift, vulnerability or resource does not exist
        """
        values = data.model_dump(mode="json")
        if data.drift_id is not None:
            drift = self.db.query(SecurityDrift).filter(SecurityDrift.id == data.drift_id).first()
            if not drift:
                raise NotFoundError("Security drift", data.drift_id)
            values["resource_id"] = values.get("resource_id") or drift.resource_id
            values["severity"] = values.get("severity") or drift.severity
        if data.vulnerability_id is not None:
            vulnerability = self.db.query(Vulnerability).filter(Vulnerability.id == data.vulnerability_id).first()
            if not vulnerability:
                raise NotFoundError("Vulnerability", data.vulnerability_id)
            values["resource_id"] = values.get("resource_id") or vulnerability.resource_id
            values["severity"] = values.get("severity") or vulnerability.severity
        if values.get("resource_id") is not None:
            if not self.db.query(Resource.id).filter(Resource.id == values["resource_id"]).first():
                raise NotFoundError("Resource", values["resource_id"])

        action = RemediationAction(
            **values,
            status=RemediationStatus.PENDING_APPROVAL.value,
            requested_by=requested_by,
            requested_at=datetime.utcnow(),
        )
        self.db.add(action)
        self.db.commit()
        self.db.refresh(action)
        logger.info(f"Remediation action {action.id} proposed ({action.action_type})")
        return action

    def propose_for_drift(self, drift: SecurityDrift) -> Optional[RemediationAction]:
        """
        Queue an action for a detected drift unless one is already active.

        Does not commit; used inside drift detection.
        """
        existing = (
            self.db.query(RemediationAction.id)
            .filter(RemediationAction.drift_id == drift.id, RemediationAction.status.in_(ACTIVE_STATUSES))
            .first()
        )
        if existing:
            return None

        check = get_check(drift.drift_type)
        action = RemediationAction(
            action_type=check.action_type if check else "manual_review",
            resource_id=drift.resource_id,
            drift_id=drift.id,
            severity=drift.severity,
            description=check.remediation if check else f"Review drift '{drift.drift_type}'",
            status=RemediationStatus.PENDING_APPROVAL.value,
            requested_at=datetime.utcnow(),
        )
        self.db.add(action)
        self.db.flush()
        return action

    def _require_status(self, action: RemediationAction, expected: RemediationStatus, operation: str) -> None:
        if action.status != expected.value:
            raise InvalidStateTransition("remediation action", action.status, operation)

    def approve_action(self, action_id: int, user_id: Optional[int] = None) -> RemediationAction:
        action = self.get_action(action_id)
        self._require_status(action, RemediationStatus.PENDING_APPROVAL, "approve")
        action.status = RemediationStatus.APPROVED.value
        action.approved_by = user_id
        action.approved_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(action)
        return action

    def reject_action(self, action_id: int, user_id: Optional[int] = None, reason: Optional[str] = None) -> RemediationAction:
        action = self.get_action(action_id)
        self._require_status(action, RemediationStatus.PENDING_APPROVAL, "reject")
        action.status = RemediationStatus.REJECTED.value
        action.approved_by = user_id
        action.approved_at = datetime.utcnow()
        if reason:
            action.result = {"reason": reason}
        self.db.commit()
        self.db.refresh(action)
        return action

    def execute_action(self, action_id: int) -> RemediationAction:
        """
        Execute an approved action.

        Applies the linked rule's fix to the resource, marks the drift
        remediated and resolves the resource's open alerts. A failure while
        applying leaves the action in ``failed`` with the error recorded.

        Raises:
            InvalidStateTransition: Action is not approved
        """
        action = self.get_action(action_id)
        self._require_status(action, RemediationStatus.APPROVED, "execute")

        action.status = RemediationStatus.EXECUTING.value
        self.db.commit()

        try:
            result = self._apply(action)
            action.status = RemediationStatus.EXECUTED.value
            action.result = result
            logger.info(f"Remediation action {action.id} executed")
        except Exception as e:
            self.db.rollback()
            action = self.get_action(action_id)
            action.status = RemediationStatus.FAILED.value
            action.result = {"error": sanitize_error_message_for_log(e)}
            logger.error(f"Remediation action {action_id} failed: {sanitize_error_message_for_log(e)}")

        action.executed_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(action)
        return action

    def _apply(self, action: RemediationAction) -> Dict[str, Any]:
        result: Dict[str, Any] = {"actionType": action.action_type}

        drift = None
        if action.drift_id is not None:
            drift = self.db.query(SecurityDrift).filter(SecurityDrift.id == action.drift_id).first()

        resource = None
        if action.resource_id is not None:
            resource = self.db.query(Resource).filter(Resource.id == action.resource_id).first()

        if drift is not None and resource is not None and get_check(drift.drift_type):
            resource.tags = apply_fix(drift.drift_type, resource.tags)
            resource.updated_at = datetime.utcnow()
            result["tagsUpdated"] = True

        if drift is not None:
            drift.status = DriftStatus.REMEDIATED.value
            result["driftId"] = drift.id

        if action.vulnerability_id is not None:
            vulnerability = self.db.query(Vulnerability).filter(Vulnerability.id == action.vulnerability_id).first()
            if vulnerability is not None:
                vulnerability.status = VulnerabilityStatus.FIXED.value
                result["vulnerabilityId"] = vulnerability.id

        if action.resource_id is not None:
            result["alertsResolved"] = AlertService(self.db).resolve_open_for_resource(action.resource_id)

        return result
