"""
Unit Tests for the API client, query cache and data-access hooks

The server is replaced by httpx.MockTransport; each test counts the requests
that actually reach it.
"""

import asyncio
import json
from collections import Counter
from typing import Any, Dict

import httpx
import pytest

from cloudguard.client import INVALIDATIONS, ApiError, ApiHooks, CloudGuardClient, QueryCache
from cloudguard.client.hooks import COMPLIANCE, COSTS, JOBS, REMEDIATION
from cloudguard.client.query_cache import key_matches


class FakeApi:
    """Routes requests to canned JSON responses and counts them"""

    def __init__(self, responses: Dict[str, Any]):
        self.responses = responses
        self.calls: Counter = Counter()
        self.bodies: Dict[str, Any] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        key = f"{request.method} {request.url.path}"
        self.calls[key] += 1
        if request.content:
            self.bodies[key] = json.loads(request.content)
        status, body = self.responses.get(key, (404, {"detail": "Not Found"}))
        if status == 204:
            return httpx.Response(204)
        return httpx.Response(status, json=body)


def _hooks(api: FakeApi) -> ApiHooks:
    client = CloudGuardClient(base_url="http://testserver", token="t0ken", transport=httpx.MockTransport(api))
    return ApiHooks(client)


@pytest.mark.unit
class TestKeyMatching:
    """Test prefix invalidation rules"""

    def test_nested_paths_match(self) -> None:
        """A path prefix covers nested paths but not siblings"""
        assert key_matches((REMEDIATION,), (f"{REMEDIATION}/pending",))
        assert key_matches((REMEDIATION,), (REMEDIATION, "pending_approval", 1))
        assert not key_matches((REMEDIATION,), (JOBS,))
        assert not key_matches(("/api/v1/cost",), ("/api/v1/costs",))

    def test_parameter_prefix(self) -> None:
        """Later elements must match exactly"""
        assert key_matches(("alerts",), ("alerts", {"type": "cost"}))
        assert key_matches(("alerts", "summary"), ("alerts", "summary"))
        assert not key_matches(("alerts", "summary"), ("alerts", 3))
        assert not key_matches((), ("alerts",))


@pytest.mark.unit
class TestQueryCache:
    """Test caching and request de-duplication"""

    @pytest.mark.asyncio
    async def test_concurrent_fetch_shares_one_load(self) -> None:
        """Two readers of the same key trigger one load"""
        cache = QueryCache()
        loads = 0

        async def loader():
            nonlocal loads
            loads += 1
            await asyncio.sleep(0.01)
            return {"value": 1}

        first, second = await asyncio.gather(cache.fetch(("k",), loader), cache.fetch(("k",), loader))

        assert first == second == {"value": 1}
        assert loads == 1
        assert ("k",) in cache

    @pytest.mark.asyncio
    async def test_failed_load_not_cached(self) -> None:
        """Errors propagate and leave nothing behind"""
        cache = QueryCache()

        async def failing():
            raise ApiError(500, "boom")

        with pytest.raises(ApiError):
            await cache.fetch(("k",), failing)
        assert len(cache) == 0

    def test_invalidate_counts(self) -> None:
        """invalidate returns how many entries were dropped"""
        cache = QueryCache()
        cache.set((JOBS,), [])
        cache.set((f"{JOBS}/1/executions",), [])
        cache.set((REMEDIATION,), [])

        assert cache.invalidate((JOBS,)) == 2
        assert cache.get((REMEDIATION,)) == []


@pytest.mark.unit
class TestApiClient:
    """Test request handling and error messages"""

    @pytest.mark.asyncio
    async def test_error_detail_surfaces(self) -> None:
        """The server's detail becomes the ApiError message"""
        api = FakeApi({"POST /api/v1/remediation/5/approve": (409, {"detail": "Cannot approve remediation action"})})
        client = CloudGuardClient(base_url="http://testserver", transport=httpx.MockTransport(api))

        with pytest.raises(ApiError) as exc_info:
            await client.post("/api/v1/remediation/5/approve")

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "Cannot approve remediation action"
        await client.close()

    @pytest.mark.asyncio
    async def test_generic_message_without_detail(self) -> None:
        """Bodies without a usable message get the generic text"""
        api = FakeApi({"GET /api/v1/jobs": (500, {"errors": ["x"]})})
        async with CloudGuardClient(base_url="http://testserver", transport=httpx.MockTransport(api)) as client:
            with pytest.raises(ApiError, match="Request failed"):
                await client.get("/api/v1/jobs")

    @pytest.mark.asyncio
    async def test_none_params_dropped_and_token_sent(self) -> None:
        """None query parameters are omitted; the bearer token is attached"""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["query"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"ok": True})

        async with CloudGuardClient(
            base_url="http://testserver", token="abc", transport=httpx.MockTransport(handler)
        ) as client:
            await client.get("/api/v1/costs/overview", {"provider": None, "days": 30})

        assert seen["query"] == {"days": "30"}
        assert seen["auth"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_no_content(self) -> None:
        """204 responses decode to None"""
        api = FakeApi({"DELETE /api/v1/jobs/3": (204, None)})
        async with CloudGuardClient(base_url="http://testserver", transport=httpx.MockTransport(api)) as client:
            assert await client.delete("/api/v1/jobs/3") is None


@pytest.mark.unit
class TestHookInvalidation:
    """Test that mutations refresh exactly the affected queries"""

    @pytest.mark.asyncio
    async def test_approving_refreshes_remediation_only(self) -> None:
        """Approval invalidates remediation queries and leaves jobs cached"""
        api = FakeApi(
            {
                "GET /api/v1/remediation/pending": (200, [{"id": 5, "status": "pending_approval"}]),
                "GET /api/v1/remediation/summary": (200, {"total": 1}),
                "GET /api/v1/jobs": (200, []),
                "POST /api/v1/remediation/5/approve": (200, {"id": 5, "status": "approved"}),
            }
        )
        hooks = _hooks(api)

        await hooks.pending_approvals()
        await hooks.remediation_summary()
        await hooks.jobs()
        await hooks.pending_approvals()
        assert api.calls["GET /api/v1/remediation/pending"] == 1

        await hooks.approve_remediation(5)
        await hooks.pending_approvals()
        await hooks.remediation_summary()
        await hooks.jobs()

        assert api.calls["GET /api/v1/remediation/pending"] == 2
        assert api.calls["GET /api/v1/remediation/summary"] == 2
        assert api.calls["GET /api/v1/jobs"] == 1

    @pytest.mark.asyncio
    async def test_cost_overview_keyed_on_its_path(self) -> None:
        """Each provider's overview is cached under the overview path"""
        api = FakeApi({"GET /api/v1/costs/overview": (200, {"totalCost": 0})})
        hooks = _hooks(api)

        await hooks.cost_overview("aws")
        await hooks.cost_overview("gcp")
        await hooks.cost_overview("aws")

        assert api.calls["GET /api/v1/costs/overview"] == 2
        assert (f"{COSTS}/overview", "aws") in hooks.cache
        assert (COSTS, "aws") not in hooks.cache
        assert hooks.cache.invalidate((f"{COSTS}/overview",)) == 2

    @pytest.mark.asyncio
    async def test_failed_mutation_keeps_cache(self) -> None:
        """A rejected mutation raises and invalidates nothing"""
        api = FakeApi(
            {
                "GET /api/v1/remediation/pending": (200, []),
                "POST /api/v1/remediation/5/execute": (409, {"detail": "Cannot execute remediation action"}),
            }
        )
        hooks = _hooks(api)
        await hooks.pending_approvals()

        with pytest.raises(ApiError, match="Cannot execute"):
            await hooks.execute_remediation(5)
        await hooks.pending_approvals()

        assert api.calls["GET /api/v1/remediation/pending"] == 1

    @pytest.mark.asyncio
    async def test_trigger_does_not_invalidate(self) -> None:
        """Triggering a job leaves the job list cached"""
        api = FakeApi(
            {
                "GET /api/v1/jobs": (200, [{"id": 1}]),
                "POST /api/v1/jobs/1/trigger": (200, {"jobId": 1, "executionId": 9, "status": "success"}),
            }
        )
        hooks = _hooks(api)
        await hooks.jobs()

        await hooks.trigger_job(1)
        await hooks.jobs()

        assert INVALIDATIONS["trigger_job"] == ()
        assert api.calls["GET /api/v1/jobs"] == 1

    @pytest.mark.asyncio
    async def test_create_job_sends_body_verbatim(self) -> None:
        """The job payload, cron string included, is sent unchanged"""
        job = {"name": "Sweep", "type": "drift_detection", "schedule": "*/5 * * * *", "description": "", "config": {}}
        api = FakeApi({"POST /api/v1/jobs": (201, dict(job, id=1)), "GET /api/v1/jobs": (200, [])})
        hooks = _hooks(api)
        await hooks.jobs()

        await hooks.create_job(job)
        await hooks.jobs()

        assert api.bodies["POST /api/v1/jobs"] == job
        assert api.calls["GET /api/v1/jobs"] == 2

    @pytest.mark.asyncio
    async def test_parameterized_keys_are_distinct(self) -> None:
        """Different parameters are cached separately and invalidated together"""
        api = FakeApi({"GET /api/v1/costs/anomalies": (200, {"data": [], "total": 0})})
        hooks = _hooks(api)

        await hooks.cost_anomalies(status="open")
        await hooks.cost_anomalies(status="resolved")
        await hooks.cost_anomalies(status="open")
        assert api.calls["GET /api/v1/costs/anomalies"] == 2

        hooks.cache.invalidate(("/api/v1/costs",))
        await hooks.cost_anomalies(status="open")
        assert api.calls["GET /api/v1/costs/anomalies"] == 3


class CountingApi:
    """Answers every request with an empty JSON object and counts GETs per path"""

    def __init__(self):
        self.gets: Counter = Counter()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            self.gets[request.url.path] += 1
        return httpx.Response(200, json={})


# Query name -> (read hook, request path)
READERS = {
    "jobs": (lambda h: h.jobs(), JOBS),
    "job_executions": (lambda h: h.job_executions(1), f"{JOBS}/1/executions"),
    "pending_approvals": (lambda h: h.pending_approvals(), f"{REMEDIATION}/pending"),
    "remediation_summary": (lambda h: h.remediation_summary(), f"{REMEDIATION}/summary"),
    "compliance_overview": (lambda h: h.compliance_overview(), f"{COMPLIANCE}/overview"),
    "frameworks": (lambda h: h.frameworks(), f"{COMPLIANCE}/frameworks"),
    "assessments": (lambda h: h.assessments(), f"{COMPLIANCE}/assessments"),
    "cost_overview": (lambda h: h.cost_overview(), f"{COSTS}/overview"),
    "cost_forecast": (lambda h: h.cost_forecast(), f"{COSTS}/forecast"),
    "cost_anomalies": (lambda h: h.cost_anomalies(), f"{COSTS}/anomalies"),
    "cost_optimizations": (lambda h: h.cost_optimizations(), f"{COSTS}/optimizations"),
    "potential_savings": (lambda h: h.potential_savings(), f"{COSTS}/savings"),
    "alerts": (lambda h: h.alerts(), "/api/alerts"),
    "alert_summary": (lambda h: h.alert_summary(), "/api/alerts/summary"),
    "drifts": (lambda h: h.drifts(), "/api/drifts"),
    "recommendations": (lambda h: h.recommendations(), "/api/recommendations"),
    "vulnerabilities": (lambda h: h.vulnerabilities(), "/api/vulnerabilities"),
    "resources": (lambda h: h.resources(), "/api/resources"),
    "user": (lambda h: h.user(), "/api/user"),
    "trial_status": (lambda h: h.trial_status(), "/api/trial-status"),
}

# Baselines have no read hook here; the dashboard caches them under ("baselines",)
BASELINES_KEY = ("baselines",)

JOB_QUERIES = {"jobs", "job_executions"}
REMEDIATION_QUERIES = {"pending_approvals", "remediation_summary"}
ALERT_QUERIES = {"alerts", "alert_summary"}
OPTIMIZATION_QUERIES = {"cost_optimizations", "potential_savings"}

# Mutation name -> (mutation hook, queries that must be refetched afterwards)
MUTATIONS = {
    "create_job": (lambda h: h.create_job({"name": "x"}), JOB_QUERIES),
    "update_job": (lambda h: h.update_job(1, {"name": "y"}), JOB_QUERIES),
    "delete_job": (lambda h: h.delete_job(1), JOB_QUERIES),
    "trigger_job": (lambda h: h.trigger_job(1), set()),
    "approve_remediation": (lambda h: h.approve_remediation(5), REMEDIATION_QUERIES),
    "reject_remediation": (lambda h: h.reject_remediation(5, "Bastion host"), REMEDIATION_QUERIES),
    "execute_remediation": (lambda h: h.execute_remediation(5), REMEDIATION_QUERIES),
    "run_assessment": (
        lambda h: h.run_assessment("cis-aws"),
        {"compliance_overview", "frameworks", "assessments"},
    ),
    "toggle_framework": (lambda h: h.toggle_framework("soc2", False), {"frameworks", "compliance_overview"}),
    "sync_costs": (
        lambda h: h.sync_costs(),
        {"cost_overview", "cost_forecast", "cost_anomalies"} | OPTIMIZATION_QUERIES,
    ),
    "detect_anomalies": (lambda h: h.detect_anomalies("AWS"), {"cost_anomalies"}),
    "apply_optimization": (lambda h: h.apply_optimization(3), OPTIMIZATION_QUERIES),
    "dismiss_optimization": (lambda h: h.dismiss_optimization(3), OPTIMIZATION_QUERIES),
    "create_alert": (lambda h: h.create_alert({"title": "t"}), ALERT_QUERIES),
    "update_alert": (lambda h: h.update_alert(2, {"title": "u"}), ALERT_QUERIES),
    "acknowledge_alert": (lambda h: h.acknowledge_alert(2), ALERT_QUERIES),
    "resolve_alert": (lambda h: h.resolve_alert(2), ALERT_QUERIES),
    "delete_alert": (lambda h: h.delete_alert(2), ALERT_QUERIES),
    "detect_drifts": (lambda h: h.detect_drifts(), {"drifts"} | ALERT_QUERIES),
    "update_drift": (lambda h: h.update_drift(4, {"status": "acknowledged"}), {"drifts"}),
    "resolve_drift": (lambda h: h.resolve_drift(4), {"drifts"}),
    "acknowledge_drift": (lambda h: h.acknowledge_drift(4), {"drifts"}),
    "delete_drift": (lambda h: h.delete_drift(4), {"drifts"}),
    "approve_drift_as_baseline": (lambda h: h.approve_drift_as_baseline(4), {"drifts", "baselines"}),
    "generate_recommendations": (lambda h: h.generate_recommendations(), {"recommendations"}),
    "update_recommendation": (lambda h: h.update_recommendation(6, {"status": "dismissed"}), {"recommendations"}),
    "create_resource": (lambda h: h.create_resource({"name": "r"}), {"resources"}),
    "update_resource": (lambda h: h.update_resource(7, {"name": "s"}), {"resources"}),
    "delete_resource": (lambda h: h.delete_resource(7), {"resources"}),
    "start_trial": (lambda h: h.start_trial(), {"user", "trial_status"}),
}


@pytest.mark.unit
class TestInvalidationTable:
    """Test every mutation hook against the full set of cached queries"""

    def test_every_mutation_is_covered(self) -> None:
        """The table below exercises each entry of INVALIDATIONS"""
        assert set(MUTATIONS) == set(INVALIDATIONS)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mutation", sorted(MUTATIONS))
    async def test_mutation_refetches_exactly_its_queries(self, mutation) -> None:
        """Only the documented queries are dropped; everything else stays cached"""
        api = CountingApi()
        hooks = _hooks(api)
        for read, _ in READERS.values():
            await read(hooks)
        hooks.cache.set(BASELINES_KEY, [])
        call, expected = MUTATIONS[mutation]

        await call(hooks)
        for read, _ in READERS.values():
            await read(hooks)

        refetched = {name for name, (_, path) in READERS.items() if api.gets[path] == 2}
        if BASELINES_KEY not in hooks.cache:
            refetched.add("baselines")
        assert refetched == expected
        assert all(api.gets[path] in (1, 2) for _, path in READERS.values())
