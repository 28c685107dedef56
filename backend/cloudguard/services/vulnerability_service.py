"""
Vulnerability Service

Read access to known vulnerabilities with severity rollups.
"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ..database import Vulnerability
from ..schemas.base import SEVERITY_ORDER
from ..schemas.resource_schemas import VulnerabilityStatus
from .errors import NotFoundError
from .pagination import DEFAULT_PAGE_SIZE, paginate

_severity_rank = case(SEVERITY_ORDER, value=Vulnerability.severity, else_=0)


class VulnerabilityService:
    def __init__(self, db: Session):
        self.db = db

    def list_vulnerabilities(
        self,
        severity: Optional[str] = None,
        status: Optional[str] = None,
        resource_id: Optional[int] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[list, int]:
        query = self.db.query(Vulnerability)
        if severity:
            query = query.filter(Vulnerability.severity == severity)
        if status:
            query = query.filter(Vulnerability.status == status)
        if resource_id is not None:
            query = query.filter(Vulnerability.resource_id == resource_id)
        return paginate(query.order_by(_severity_rank.desc(), Vulnerability.id), page, page_size)

    def get_vulnerability(self, vulnerability_id: int) -> Vulnerability:
        vulnerability = self.db.query(Vulnerability).filter(Vulnerability.id == vulnerability_id).first()
        if not vulnerability:
            raise NotFoundError("Vulnerability", vulnerability_id)
        return vulnerability

    def get_summary(self) -> Dict[str, Any]:
        total = self.db.query(func.count(Vulnerability.id)).scalar() or 0
        open_count = (
            self.db.query(func.count(Vulnerability.id))
            .filter(Vulnerability.status == VulnerabilityStatus.OPEN.value)
            .scalar()
            or 0
        )
        by_severity = dict(
            self.db.query(Vulnerability.severity, func.count(Vulnerability.id))
            .filter(Vulnerability.status == VulnerabilityStatus.OPEN.value)
            .group_by(Vulnerability.severity)
            .all()
        )
        return {"total": total, "open": open_count, "by_severity": by_severity}

    def get_top(self, limit: int = 10) -> List[Vulnerability]:
        """Open vulnerabilities ordered by severity, then CVSS score."""
        return (
            self.db.query(Vulnerability)
            .filter(Vulnerability.status == VulnerabilityStatus.OPEN.value)
            .order_by(_severity_rank.desc(), func.coalesce(Vulnerability.cvss_score, 0).desc(), Vulnerability.id)
            .limit(limit)
            .all()
        )
