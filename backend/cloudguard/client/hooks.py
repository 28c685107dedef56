"""
Data-access hooks for dashboard clients

Reads go through the QueryCache under stable keys; mutations call the API and,
on success, invalidate the keys listed in INVALIDATIONS so the next read
refetches. Errors propagate as ApiError. Mutations are not retried.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from .api_client import CloudGuardClient
from .query_cache import QueryCache, QueryKey

logger = logging.getLogger(__name__)

JOBS = "/api/v1/jobs"
REMEDIATION = "/api/v1/remediation"
COMPLIANCE = "/api/v1/compliance"
COSTS = "/api/v1/costs"

# Mutation name -> cache key prefixes dropped after it succeeds
INVALIDATIONS: Dict[str, Tuple[QueryKey, ...]] = {
    "create_job": ((JOBS,),),
    "update_job": ((JOBS,),),
    "delete_job": ((JOBS,),),
    "trigger_job": (),
    "approve_remediation": ((REMEDIATION,),),
    "reject_remediation": ((REMEDIATION,),),
    "execute_remediation": ((REMEDIATION,),),
    "run_assessment": ((COMPLIANCE,),),
    "toggle_framework": ((f"{COMPLIANCE}/frameworks",), (f"{COMPLIANCE}/overview",)),
    "sync_costs": ((COSTS,),),
    "detect_anomalies": ((f"{COSTS}/anomalies",),),
    "apply_optimization": ((f"{COSTS}/optimizations",), (f"{COSTS}/savings",)),
    "dismiss_optimization": ((f"{COSTS}/optimizations",), (f"{COSTS}/savings",)),
    "create_alert": (("alerts",),),
    "update_alert": (("alerts",),),
    "acknowledge_alert": (("alerts",),),
    "resolve_alert": (("alerts",),),
    "delete_alert": (("alerts",),),
    "detect_drifts": (("drifts",), ("alerts",)),
    "update_drift": (("drifts",),),
    "resolve_drift": (("drifts",),),
    "acknowledge_drift": (("drifts",),),
    "delete_drift": (("drifts",),),
    "approve_drift_as_baseline": (("drifts",), ("baselines",)),
    "generate_recommendations": (("recommendations",),),
    "update_recommendation": (("recommendations",),),
    "create_resource": (("resources",),),
    "update_resource": (("resources",),),
    "delete_resource": (("resources",),),
    "start_trial": (("trial-status",), ("user",)),
}


class ApiHooks:
    """Cached queries and invalidating mutations over a CloudGuardClient"""

    def __init__(self, client: CloudGuardClient, cache: Optional[QueryCache] = None):
        self.client = client
        self.cache = cache if cache is not None else QueryCache()

    async def _query(self, key: QueryKey, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.cache.fetch(key, lambda: self.client.get(path, params))

    async def _mutate(self, mutation: str, method: str, path: str, **kwargs) -> Any:
        result = await self.client.request(method, path, **kwargs)
        for prefix in INVALIDATIONS[mutation]:
            self.cache.invalidate(prefix)
        return result

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------
    async def jobs(self):
        return await self._query((JOBS,), JOBS)

    async def job_executions(self, job_id: int):
        path = f"{JOBS}/{job_id}/executions"
        return await self._query((path,), path)

    async def create_job(self, job: Dict[str, Any]):
        return await self._mutate("create_job", "POST", JOBS, json=job)

    async def update_job(self, job_id: int, job: Dict[str, Any]):
        return await self._mutate("update_job", "PUT", f"{JOBS}/{job_id}", json=job)

    async def delete_job(self, job_id: int):
        return await self._mutate("delete_job", "DELETE", f"{JOBS}/{job_id}")

    async def trigger_job(self, job_id: int):
        return await self._mutate("trigger_job", "POST", f"{JOBS}/{job_id}/trigger")

    # ------------------------------------------------------------------
    # Remediation
    # ------------------------------------------------------------------
    async def remediation_summary(self):
        return await self._query((f"{REMEDIATION}/summary",), f"{REMEDIATION}/summary")

    async def pending_approvals(self):
        return await self._query((f"{REMEDIATION}/pending",), f"{REMEDIATION}/pending")

    async def approve_remediation(self, action_id: int):
        return await self._mutate("approve_remediation", "POST", f"{REMEDIATION}/{action_id}/approve")

    async def reject_remediation(self, action_id: int, reason: Optional[str] = None):
        return await self._mutate(
            "reject_remediation", "POST", f"{REMEDIATION}/{action_id}/reject", json={"reason": reason}
        )

    async def execute_remediation(self, action_id: int):
        return await self._mutate("execute_remediation", "POST", f"{REMEDIATION}/{action_id}/execute")

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------
    async def compliance_overview(self):
        return await self._query((f"{COMPLIANCE}/overview",), f"{COMPLIANCE}/overview")

    async def compliance_trend(self, framework_id: Optional[str] = None, days: int = 30):
        return await self._query(
            (f"{COMPLIANCE}/trend", framework_id, days),
            f"{COMPLIANCE}/trend",
            {"frameworkId": framework_id, "days": days},
        )

    async def frameworks(self):
        return await self._query((f"{COMPLIANCE}/frameworks",), f"{COMPLIANCE}/frameworks")

    async def framework(self, framework_id: str):
        return await self._query((f"{COMPLIANCE}/frameworks", framework_id), f"{COMPLIANCE}/frameworks/{framework_id}")

    async def framework_controls(self, framework_id: str):
        return await self._query(
            (f"{COMPLIANCE}/frameworks/controls", framework_id),
            f"{COMPLIANCE}/frameworks/{framework_id}/controls",
        )

    async def assessments(self, framework_id: Optional[str] = None, limit: int = 10):
        return await self._query(
            (f"{COMPLIANCE}/assessments", framework_id, limit),
            f"{COMPLIANCE}/assessments",
            {"frameworkId": framework_id, "limit": limit},
        )

    async def assessment(self, assessment_id: int):
        return await self._query(
            (f"{COMPLIANCE}/assessments", assessment_id), f"{COMPLIANCE}/assessments/{assessment_id}"
        )

    async def failing_controls(self, framework_id: Optional[str] = None):
        return await self._query(
            (f"{COMPLIANCE}/controls/failing", framework_id),
            f"{COMPLIANCE}/controls/failing",
            {"frameworkId": framework_id},
        )

    async def run_assessment(self, framework_id: str):
        return await self._mutate(
            "run_assessment", "POST", f"{COMPLIANCE}/assessments", json={"frameworkId": framework_id}
        )

    async def toggle_framework(self, framework_id: str, enabled: bool):
        action = "enable" if enabled else "disable"
        return await self._mutate("toggle_framework", "POST", f"{COMPLIANCE}/frameworks/{framework_id}/{action}")

    # ------------------------------------------------------------------
    # Costs
    # ------------------------------------------------------------------
    async def cost_overview(self, provider: Optional[str] = None):
        return await self._query((f"{COSTS}/overview", provider), f"{COSTS}/overview", {"provider": provider})

    async def cost_trends(self, provider: Optional[str] = None, period: str = "monthly"):
        return await self._query(
            (f"{COSTS}/trends", provider, period), f"{COSTS}/trends", {"provider": provider, "period": period}
        )

    async def cost_forecast(self, provider: Optional[str] = None, days: int = 30):
        return await self._query(
            (f"{COSTS}/forecast", provider, days), f"{COSTS}/forecast", {"provider": provider, "days": days}
        )

    async def cost_anomalies(self, status: Optional[str] = "open", limit: int = 10, offset: int = 0):
        return await self._query(
            (f"{COSTS}/anomalies", status, limit, offset),
            f"{COSTS}/anomalies",
            {"status": status, "limit": limit, "offset": offset},
        )

    async def cost_optimizations(self, status: Optional[str] = "open", limit: int = 10, offset: int = 0):
        return await self._query(
            (f"{COSTS}/optimizations", status, limit, offset),
            f"{COSTS}/optimizations",
            {"status": status, "limit": limit, "offset": offset},
        )

    async def potential_savings(self):
        return await self._query((f"{COSTS}/savings",), f"{COSTS}/savings")

    async def sync_costs(self, provider: Optional[str] = None):
        return await self._mutate("sync_costs", "POST", f"{COSTS}/sync", json={"provider": provider})

    async def detect_anomalies(self, provider: Optional[str] = None):
        return await self._mutate(
            "detect_anomalies", "POST", f"{COSTS}/detect-anomalies", params={"provider": provider}
        )

    async def apply_optimization(self, optimization_id: int):
        return await self._mutate("apply_optimization", "POST", f"{COSTS}/optimizations/{optimization_id}/apply")

    async def dismiss_optimization(self, optimization_id: int):
        return await self._mutate(
            "dismiss_optimization", "POST", f"{COSTS}/optimizations/{optimization_id}/dismiss"
        )

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------
    async def alerts(self, params: Optional[Dict[str, Any]] = None):
        return await self._query(("alerts", params), "/api/alerts", params)

    async def alert(self, alert_id: int):
        return await self._query(("alerts", alert_id), f"/api/alerts/{alert_id}")

    async def alert_summary(self):
        return await self._query(("alerts", "summary"), "/api/alerts/summary")

    async def create_alert(self, data: Dict[str, Any]):
        return await self._mutate("create_alert", "POST", "/api/alerts", json=data)

    async def update_alert(self, alert_id: int, data: Dict[str, Any]):
        return await self._mutate("update_alert", "PUT", f"/api/alerts/{alert_id}", json=data)

    async def acknowledge_alert(self, alert_id: int):
        return await self._mutate("acknowledge_alert", "PUT", f"/api/alerts/{alert_id}", json={"status": "acknowledged"})

    async def resolve_alert(self, alert_id: int):
        return await self._mutate("resolve_alert", "PUT", f"/api/alerts/{alert_id}", json={"status": "resolved"})

    async def delete_alert(self, alert_id: int):
        return await self._mutate("delete_alert", "DELETE", f"/api/alerts/{alert_id}")

    # ------------------------------------------------------------------
    # Drifts
    # ------------------------------------------------------------------
    async def drifts(self, params: Optional[Dict[str, Any]] = None):
        return await self._query(("drifts", params), "/api/drifts", params)

    async def drift(self, drift_id: int):
        return await self._query(("drifts", drift_id), f"/api/drifts/{drift_id}")

    async def drift_summary(self):
        return await self._query(("drifts", "summary"), "/api/drifts/summary")

    async def detect_drifts(self, provider: Optional[str] = None):
        return await self._mutate("detect_drifts", "POST", "/api/drifts/detect", params={"provider": provider})

    async def update_drift(self, drift_id: int, data: Dict[str, Any]):
        return await self._mutate("update_drift", "PUT", f"/api/drifts/{drift_id}", json=data)

    async def resolve_drift(self, drift_id: int):
        return await self._mutate("resolve_drift", "PUT", f"/api/drifts/{drift_id}", json={"status": "resolved"})

    async def acknowledge_drift(self, drift_id: int):
        return await self._mutate(
            "acknowledge_drift", "PUT", f"/api/drifts/{drift_id}", json={"status": "acknowledged"}
        )

    async def delete_drift(self, drift_id: int):
        return await self._mutate("delete_drift", "DELETE", f"/api/drifts/{drift_id}")

    async def approve_drift_as_baseline(self, drift_id: int):
        return await self._mutate(
            "approve_drift_as_baseline", "PUT", f"/api/drifts/{drift_id}", json={"status": "approved"}
        )

    # ------------------------------------------------------------------
    # Recommendations and vulnerabilities
    # ------------------------------------------------------------------
    async def recommendations(self):
        return await self._query(("recommendations",), "/api/recommendations")

    async def recommendation(self, recommendation_id: int):
        return await self._query(("recommendations", recommendation_id), f"/api/recommendations/{recommendation_id}")

    async def recommendation_savings(self):
        return await self._query(("recommendations", "savings"), "/api/recommendations/savings")

    async def generate_recommendations(self, provider: Optional[str] = None):
        return await self._mutate(
            "generate_recommendations", "POST", "/api/recommendations/generate", params={"provider": provider}
        )

    async def update_recommendation(self, recommendation_id: int, data: Dict[str, Any]):
        return await self._mutate(
            "update_recommendation", "PUT", f"/api/recommendations/{recommendation_id}", json=data
        )

    async def vulnerabilities(self):
        return await self._query(("vulnerabilities",), "/api/vulnerabilities")

    async def vulnerability(self, vulnerability_id: int):
        return await self._query(("vulnerabilities", vulnerability_id), f"/api/vulnerabilities/{vulnerability_id}")

    async def vulnerability_summary(self):
        return await self._query(("vulnerabilities", "summary"), "/api/vulnerabilities/summary")

    async def top_vulnerabilities(self):
        return await self._query(("vulnerabilities", "top"), "/api/vulnerabilities/top")

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------
    async def resources(self, params: Optional[Dict[str, Any]] = None):
        return await self._query(("resources", params), "/api/resources", params)

    async def resource(self, resource_id: int):
        return await self._query(("resources", resource_id), f"/api/resources/{resource_id}")

    async def create_resource(self, data: Dict[str, Any]):
        return await self._mutate("create_resource", "POST", "/api/resources", json=data)

    async def update_resource(self, resource_id: int, data: Dict[str, Any]):
        return await self._mutate("update_resource", "PUT", f"/api/resources/{resource_id}", json=data)

    async def delete_resource(self, resource_id: int):
        return await self._mutate("delete_resource", "DELETE", f"/api/resources/{resource_id}")

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------
    async def user(self):
        return await self._query(("user",), "/api/user")

    async def trial_status(self):
        return await self._query(("trial-status",), "/api/trial-status")

    async def start_trial(self):
        return await self._mutate("start_trial", "POST", "/api/start-trial")
