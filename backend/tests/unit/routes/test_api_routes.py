"""
API route tests through FastAPI's TestClient

Responses are camelCase; paginated lists use the
{data, page, pageSize, total, totalPages} envelope. Service errors map to
404 (not found), 409 (invalid state transition) and 400 (invalid request).
"""

import pytest

from cloudguard.config import get_settings
from cloudguard.main import app
from cloudguard.services.analysis_service import AnalysisService, get_analysis_service
from cloudguard.services.compliance_service import seed_frameworks


def _create_resource(client, **overrides):
    payload = {
        "name": "admin-sg",
        "type": "SecurityGroup",
        "provider": "AWS",
        "region": "us-east-1",
        "status": "active",
        "tags": {"openPorts": [22, 443]},
        "cost": 0,
    }
    payload.update(overrides)
    response = client.post("/api/resources", json=payload)
    assert response.status_code == 201
    return response.json()


@pytest.mark.unit
class TestHealthAndAuth:
    """Test health check and token authentication"""

    def test_health_reports_database(self, app_client) -> None:
        """The API is up when the database is; Redis only degrades it"""
        response = app_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "healthy"
        assert body["status"] in ("healthy", "degraded")
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_register_login_and_profile(self, app_client) -> None:
        """A registered user can log in and read their profile with the token"""
        registered = app_client.post(
            "/api/register",
            json={"username": "bob", "email": "bob@example.com", "password": "s3cure-passw0rd"},
        )
        assert registered.status_code == 201
        assert registered.json()["user"]["trialStatus"] == "inactive"

        login = app_client.post("/api/login", json={"username": "bob", "password": "s3cure-passw0rd"})
        assert login.status_code == 200
        token = login.json()["accessToken"]

        profile = app_client.get("/api/user", headers={"Authorization": f"Bearer {token}"})
        assert profile.status_code == 200
        assert profile.json()["username"] == "bob"
        assert "password" not in profile.json()

    def test_bad_credentials(self, app_client) -> None:
        """Wrong passwords get 401"""
        response = app_client.post("/api/login", json={"username": "ghost", "password": "whatever1"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

    def test_missing_token_rejected(self, app_client) -> None:
        """Protected endpoints require a bearer token"""
        assert app_client.get("/api/resources").status_code in (401, 403)

    def test_trial_start(self, client, test_user) -> None:
        """Starting a trial activates it once"""
        started = client.post("/api/start-trial")
        assert started.status_code == 200
        assert started.json()["status"] == "active"
        assert started.json()["daysRemaining"] == 7

        assert client.post("/api/start-trial").status_code == 400


@pytest.mark.unit
class TestInventoryRoutes:
    """Test resources, alerts and drifts"""

    def test_paginated_envelope(self, client) -> None:
        """List endpoints return the pagination envelope"""
        for index in range(3):
            _create_resource(client, name=f"sg-{index}")

        response = client.get("/api/resources", params={"page": 2, "pageSize": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["page"] == 2
        assert body["pageSize"] == 2
        assert body["total"] == 3
        assert body["totalPages"] == 2
        assert [item["name"] for item in body["data"]] == ["sg-2"]
        assert "createdAt" in body["data"][0]

    def test_missing_resource(self, client) -> None:
        """Unknown ids get 404"""
        assert client.get("/api/resources/999").status_code == 404

    def test_alert_severity_is_immutable(self, client) -> None:
        """Changing an alert's severity is a bad request"""
        created = client.post(
            "/api/alerts",
            json={"title": "Spike", "message": "Cost rose", "type": "cost", "severity": "high"},
        )
        assert created.status_code == 201
        alert_id = created.json()["id"]

        assert client.put(f"/api/alerts/{alert_id}", json={"severity": "low"}).status_code == 400
        acknowledged = client.put(f"/api/alerts/{alert_id}", json={"status": "acknowledged"})
        assert acknowledged.json()["status"] == "acknowledged"

    def test_detect_and_approve_drift(self, client) -> None:
        """Detected drifts can be approved as the new baseline"""
        _create_resource(client)

        detected = client.post("/api/drifts/detect")
        assert detected.status_code == 200
        assert detected.json()["driftsDetected"] == 1
        assert detected.json()["remediationsProposed"] == 1

        drifts = client.get("/api/drifts").json()["data"]
        approved = client.put(f"/api/drifts/{drifts[0]['id']}", json={"status": "approved"})
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["driftType"] == "open_management_port"

    def test_resource_analysis_falls_back(self, client) -> None:
        """Without an API key the analysis endpoint returns the default result"""
        resource = _create_resource(client)
        settings = get_settings().model_copy(update={"openai_api_key": None})
        app.dependency_overrides[get_analysis_service] = lambda: AnalysisService(settings=settings)

        response = client.post(f"/api/resources/{resource['id']}/analysis/cost")

        assert response.status_code == 200
        assert response.json()["detected"] is False
        assert response.json()["description"] == "Analysis failed due to an error"
        assert client.post("/api/resources/999/analysis/security").status_code == 404


@pytest.mark.unit
class TestJobRoutes:
    """Test scheduled job endpoints"""

    def test_schedule_round_trips_verbatim(self, client) -> None:
        """The cron string comes back exactly as submitted"""
        response = client.post(
            "/api/v1/jobs",
            json={"name": "Drift sweep", "type": "drift_detection", "schedule": "*/5 * * * *", "description": ""},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["schedule"] == "*/5 * * * *"
        assert body["nextRun"] is not None
        assert client.get(f"/api/v1/jobs/{body['id']}").json()["schedule"] == "*/5 * * * *"

    def test_trigger_and_history(self, client) -> None:
        """Triggering runs the job and records an execution"""
        job = client.post(
            "/api/v1/jobs", json={"name": "Cost report", "type": "cost_report", "schedule": "0 6 * * 1"}
        ).json()

        triggered = client.post(f"/api/v1/jobs/{job['id']}/trigger")

        assert triggered.status_code == 200
        assert triggered.json()["jobId"] == job["id"]
        assert triggered.json()["status"] == "success"
        executions = client.get(f"/api/v1/jobs/{job['id']}/executions").json()
        assert [e["id"] for e in executions] == [triggered.json()["executionId"]]
        assert executions[0]["duration"].endswith("s")

    def test_update_with_null_fields(self, client) -> None:
        """A null description is cleared; a null name is a bad request"""
        job = client.post(
            "/api/v1/jobs",
            json={"name": "Drift sweep", "type": "drift_detection", "schedule": "0 * * * *", "description": "hourly"},
        ).json()

        cleared = client.put(f"/api/v1/jobs/{job['id']}", json={"description": None})
        rejected = client.put(f"/api/v1/jobs/{job['id']}", json={"name": None})

        assert cleared.status_code == 200
        assert cleared.json()["description"] is None
        assert cleared.json()["name"] == "Drift sweep"
        assert rejected.status_code == 400
        assert client.get(f"/api/v1/jobs/{job['id']}").json()["name"] == "Drift sweep"

    def test_unknown_job_type_rejected(self, client) -> None:
        """Job types are validated"""
        response = client.post("/api/v1/jobs", json={"name": "x", "type": "backup", "schedule": "* * * * *"})

        assert response.status_code == 422

    def test_delete_job(self, client) -> None:
        """Deleted jobs are gone"""
        job = client.post("/api/v1/jobs", json={"name": "x", "type": "cost_report", "schedule": "* * * * *"}).json()

        assert client.delete(f"/api/v1/jobs/{job['id']}").status_code == 204
        assert client.get(f"/api/v1/jobs/{job['id']}").status_code == 404


@pytest.mark.unit
class TestRemediationRoutes:
    """Test the approval workflow over HTTP"""

    def test_approve_execute_flow(self, client) -> None:
        """pending -> approved -> executed, with invalid transitions refused"""
        resource = _create_resource(client)
        client.post("/api/drifts/detect")

        pending = client.get("/api/v1/remediation/pending").json()
        assert len(pending) == 1
        action_id = pending[0]["id"]
        assert pending[0]["status"] == "pending_approval"

        assert client.post(f"/api/v1/remediation/{action_id}/execute").status_code == 409

        approved = client.post(f"/api/v1/remediation/{action_id}/approve")
        assert approved.status_code == 200
        assert approved.json()["approvedBy"] == 1
        assert client.post(f"/api/v1/remediation/{action_id}/approve").status_code == 409

        executed = client.post(f"/api/v1/remediation/{action_id}/execute")
        assert executed.status_code == 200
        assert executed.json()["status"] == "executed"

        updated = client.get(f"/api/resources/{resource['id']}").json()
        assert updated["tags"]["openPorts"] == [443]
        summary = client.get("/api/v1/remediation/summary").json()
        assert summary["executed"] == 1
        assert summary["successRate"] == 100.0

    def test_reject_with_reason(self, client) -> None:
        """Rejection stores the reason"""
        _create_resource(client)
        client.post("/api/drifts/detect")
        action_id = client.get("/api/v1/remediation/pending").json()[0]["id"]

        rejected = client.post(f"/api/v1/remediation/{action_id}/reject", json={"reason": "Bastion host"})

        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"
        assert rejected.json()["result"] == {"reason": "Bastion host"}
        assert client.get("/api/v1/remediation/pending").json() == []

    def test_list_by_status(self, client) -> None:
        """Actions can be listed by status"""
        _create_resource(client)
        client.post("/api/drifts/detect")

        body = client.get("/api/v1/remediation", params={"status": "pending_approval"}).json()

        assert body["total"] == 1
        assert body["data"][0]["actionType"] == "restrict_security_group"


@pytest.mark.unit
class TestComplianceRoutes:
    """Test compliance endpoints"""

    def test_run_assessment(self, client, db_session) -> None:
        """Assessments are created by framework id and returned with findings"""
        seed_frameworks(db_session)
        _create_resource(client)

        response = client.post("/api/v1/compliance/assessments", json={"frameworkId": "cis-aws"})

        assert response.status_code == 201
        body = response.json()
        assert body["frameworkName"] == "CIS AWS Foundations Benchmark"
        assert body["failedControls"] == 1
        assert body["compliancePercent"] == 0.0
        assert any(f["controlId"] == "5.2" and f["status"] == "failed" for f in body["findings"])

        failing = client.get("/api/v1/compliance/controls/failing", params={"frameworkId": "cis-aws"}).json()
        assert [c["controlId"] for c in failing] == ["5.2"]

    def test_disable_framework(self, client, db_session) -> None:
        """Disabled frameworks cannot be assessed"""
        seed_frameworks(db_session)

        disabled = client.post("/api/v1/compliance/frameworks/soc2/disable")
        assert disabled.json()["isEnabled"] is False

        response = client.post("/api/v1/compliance/assessments", json={"frameworkId": "soc2"})
        assert response.status_code == 400

    def test_unknown_framework(self, client, db_session) -> None:
        """Unknown frameworks get 404"""
        seed_frameworks(db_session)

        assert client.get("/api/v1/compliance/frameworks/nope/controls").status_code == 404


@pytest.mark.unit
class TestCostRoutes:
    """Test cost endpoints"""

    def test_forecast_without_history(self, client) -> None:
        """Forecasting without enough data is a bad request"""
        response = client.get("/api/v1/costs/forecast")

        assert response.status_code == 400
        assert "Not enough historical data" in response.json()["detail"]

    def test_sync_then_optimizations(self, client) -> None:
        """Sync records cost points and surfaces optimization suggestions"""
        _create_resource(client, name="idle-vm", type="EC2", cost=20000, tags={"cpuUtilization": 3})

        synced = client.post("/api/v1/costs/sync")
        assert synced.status_code == 200
        assert synced.json()["recordsSynced"] == 1
        assert synced.json()["optimizationsFound"] == 1

        page = client.get("/api/v1/costs/optimizations", params={"limit": 10, "offset": 0}).json()
        assert page["total"] == 1
        assert page["page"] == 1
        optimization_id = page["data"][0]["id"]

        applied = client.post(f"/api/v1/costs/optimizations/{optimization_id}/apply")
        assert applied.json()["status"] == "applied"
        assert client.post(f"/api/v1/costs/optimizations/{optimization_id}/dismiss").status_code == 409
        assert client.get("/api/v1/costs/savings").json()["totalSavings"] == 0

    def test_detect_anomalies_endpoint(self, client) -> None:
        """Anomaly detection reports the number created"""
        response = client.post("/api/v1/costs/detect-anomalies", params={"provider": "AWS"})

        assert response.status_code == 200
        assert response.json() == {"anomaliesDetected": 0, "provider": "AWS"}
