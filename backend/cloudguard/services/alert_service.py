"""
Alert Service

Alerts are raised from drifts and anomalies or created directly. Type and
severity are fixed at creation.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import Alert
from ..schemas.resource_schemas import AlertCreate, AlertStatus, AlertUpdate
from .errors import NotFoundError
from .pagination import DEFAULT_PAGE_SIZE, paginate

logger = logging.getLogger(__name__)


class AlertService:
    def __init__(self, db: Session):
        self.db = db

    def list_alerts(
        self,
        alert_type: Optional[str] = None,
        severity: Optional[str] = None,
        status: Optional[str] = None,
        resource_id: Optional[int] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[list, int]:
        query = self.db.query(Alert)
        if alert_type:
            query = query.filter(Alert.type == alert_type)
        if severity:
            query = query.filter(Alert.severity == severity)
        if status:
            query = query.filter(Alert.status == status)
        if resource_id is not None:
            query = query.filter(Alert.resource_id == resource_id)
        return paginate(query.order_by(Alert.created_at.desc(), Alert.id.desc()), page, page_size)

    def get_alert(self, alert_id: int) -> Alert:
        alert = self.db.query(Alert).filter(Alert.id == alert_id).first()
        if not alert:
            raise NotFoundError("Alert", alert_id)
        return alert

    def create_alert(self, data: AlertCreate, commit: bool = True) -> Alert:
        alert = Alert(**data.model_dump(mode="json"))
        self.db.add(alert)
        if commit:
            self.db.commit()
            self.db.refresh(alert)
        else:
            self.db.flush()
        return alert

    def update_alert(self, alert_id: int, data: AlertUpdate) -> Alert:
        """
        Update title, message or status of an alert.

        Raises:
            ValueError: The request tries to set type or severity
            NotFoundError: Unknown alert
        """
        changes = data.model_dump(exclude_unset=True, mode="json")
        if changes.get("type") is not None or changes.get("severity") is not None:
            raise ValueError("Alert type and severity cannot be changed")

        alert = self.get_alert(alert_id)
        for field in ("title", "message", "status"):
            if changes.get(field) is not None:
                setattr(alert, field, changes[field])
        self.db.commit()
        self.db.refresh(alert)
        return alert

    def set_status(self, alert_id: int, status: AlertStatus) -> Alert:
        return self.update_alert(alert_id, AlertUpdate(status=status))

    def delete_alert(self, alert_id: int) -> None:
        alert = self.get_alert(alert_id)
        self.db.delete(alert)
        self.db.commit()

    def resolve_open_for_resource(self, resource_id: int) -> int:
        """Resolve every open or acknowledged alert of a resource. Returns the count; caller commits."""
        return (
            self.db.query(Alert)
            .filter(
                Alert.resource_id == resource_id,
                Alert.status.in_([AlertStatus.OPEN.value, AlertStatus.ACKNOWLEDGED.value]),
            )
            .update({Alert.status: AlertStatus.RESOLVED.value}, synchronize_session=False)
        )

    def get_summary(self) -> Dict[str, Any]:
        total = self.db.query(func.count(Alert.id)).scalar() or 0
        open_count = (
            self.db.query(func.count(Alert.id)).filter(Alert.status == AlertStatus.OPEN.value).scalar() or 0
        )
        by_type = dict(self.db.query(Alert.type, func.count(Alert.id)).group_by(Alert.type).all())
        by_severity = dict(self.db.query(Alert.severity, func.count(Alert.id)).group_by(Alert.severity).all())
        return {"total": total, "open": open_count, "by_type": by_type, "by_severity": by_severity}
