"""
Unit Tests for CostService

All amounts are integer cents. Covers the regression helper, trends,
forecast, spike detection, optimization suggestions and sync.
"""

from datetime import date

import pytest

from cloudguard.database import Alert, CostAnomaly, CostHistory, CostPrediction
from cloudguard.schemas.cost_schemas import CostPeriod
from cloudguard.services.cost_service import CostService, linear_regression, spike_severity, suggest_optimization
from cloudguard.services.errors import InvalidStateTransition, NotFoundError


@pytest.mark.unit
class TestRegressionHelpers:
    """Test pure helpers"""

    def test_exact_line(self) -> None:
        """A perfect line has r_squared 1.0"""
        slope, intercept, r_squared = linear_regression([0, 1, 2, 3], [1, 3, 5, 7])

        assert slope == pytest.approx(2.0)
        assert intercept == pytest.approx(1.0)
        assert r_squared == pytest.approx(1.0)

    def test_empty_series(self) -> None:
        """Empty or mismatched input yields zeros"""
        assert linear_regression([], []) == (0.0, 0.0, 0.0)
        assert linear_regression([1, 2], [1]) == (0.0, 0.0, 0.0)

    def test_spike_severity_bands(self) -> None:
        """Severity grows with the size of the spike"""
        assert spike_severity(30) == "low"
        assert spike_severity(50) == "medium"
        assert spike_severity(75) == "high"
        assert spike_severity(150) == "critical"


@pytest.mark.unit
class TestTrendsAndForecast:
    """Test period comparison and forecasting"""

    def test_weekly_trend_up(self, db_session, add_cost_history) -> None:
        """A 20% week-over-week increase is an upward trend"""
        add_cost_history([1000] * 7 + [1200] * 7)

        trend = CostService(db_session).get_trends(period=CostPeriod.WEEKLY)

        assert trend["current_cost"] == 8400
        assert trend["previous_cost"] == 7000
        assert trend["change_percent"] == 20.0
        assert trend["trend"] == "up"
        assert len(trend["data_points"]) == 7

    def test_trend_without_history(self, db_session) -> None:
        """No data means a stable trend at zero"""
        trend = CostService(db_session).get_trends()

        assert trend["current_cost"] == 0
        assert trend["change_percent"] == 0.0
        assert trend["trend"] == "stable"

    def test_forecast_needs_seven_points(self, db_session, add_cost_history) -> None:
        """Fewer than 7 daily points cannot be forecast"""
        add_cost_history([1000] * 6)

        with pytest.raises(ValueError, match="Not enough historical data"):
            CostService(db_session).get_forecast()

    def test_flat_forecast(self, db_session, add_cost_history) -> None:
        """A flat series projects the same daily cost"""
        add_cost_history([1000] * 10)

        forecast = CostService(db_session).get_forecast(days=30)

        assert forecast["forecasted_cost"] == 30000
        assert forecast["lower_bound"] == 30000
        assert forecast["upper_bound"] == 30000
        assert forecast["confidence_level"] == 1.0
        assert forecast["provider"] == "ALL"
        assert db_session.query(CostPrediction).count() == 1

    def test_repeated_forecast_reuses_prediction(self, db_session, add_cost_history) -> None:
        """Reading the same forecast again refreshes the stored prediction instead of adding one"""
        add_cost_history([1000] * 10)
        service = CostService(db_session)

        service.get_forecast(days=30)
        service.get_forecast(days=30)
        service.get_forecast(days=30, provider="aws")
        service.get_forecast(days=30, provider="AWS")
        assert db_session.query(CostPrediction).count() == 2

        add_cost_history([2000] * 10)
        service.get_forecast(days=30)
        service.get_forecast(days=7)

        assert db_session.query(CostPrediction).count() == 3
        stored = db_session.query(CostPrediction).filter(CostPrediction.provider.is_(None)).all()
        assert sorted(p.predicted_amount for p in stored) == [21000, 90000]

    def test_forecast_days_range(self, db_session) -> None:
        """days outside 1..365 are rejected"""
        with pytest.raises(ValueError):
            CostService(db_session).get_forecast(days=0)

    def test_overview_totals(self, db_session, add_cost_history) -> None:
        """Overview reports monthly and latest daily cost per provider"""
        add_cost_history([500, 700, 900], provider="AWS")
        add_cost_history([100, 100, 100], provider="GCP", service_category="ComputeEngine")

        overview = CostService(db_session).get_overview()

        assert overview["monthly_cost"] == 2400
        assert overview["daily_cost"] == 1000
        assert overview["by_provider"] == {"AWS": 2100, "GCP": 300}
        assert overview["top_services"][0]["service"] == "EC2"


@pytest.mark.unit
class TestAnomalyDetection:
    """Test spike detection"""

    def test_spike_creates_anomaly_and_alert(self, db_session, make_resource, add_cost_history) -> None:
        """Doubling the daily cost is a critical spike on the costliest resource"""
        make_resource(name="small", cost=1000)
        big = make_resource(name="big", cost=90000)
        add_cost_history([1000] * 7 + [2000])

        created = CostService(db_session).detect_anomalies()

        assert created == 1
        anomaly = db_session.query(CostAnomaly).one()
        assert anomaly.resource_id == big.id
        assert anomaly.percentage == 100
        assert anomaly.severity == "critical"
        assert anomaly.previous_cost == 1000
        assert anomaly.current_cost == 2000
        alert = db_session.query(Alert).one()
        assert alert.type == "cost"
        assert alert.resource_id == big.id

    def test_open_anomaly_not_duplicated(self, db_session, make_resource, add_cost_history) -> None:
        """A resource with an open spike anomaly is not flagged again"""
        make_resource()
        add_cost_history([1000] * 7 + [2000])
        service = CostService(db_session)

        service.detect_anomalies()

        assert service.detect_anomalies() == 0

    def test_small_increase_ignored(self, db_session, make_resource, add_cost_history) -> None:
        """Increases under 30% are not anomalies"""
        make_resource()
        add_cost_history([1000] * 7 + [1200])

        assert CostService(db_session).detect_anomalies() == 0

    def test_anomaly_listing_by_provider(self, db_session, make_resource, add_cost_history) -> None:
        """Anomalies can be filtered by the provider of their resource"""
        make_resource()
        add_cost_history([1000] * 7 + [2000])
        service = CostService(db_session)
        service.detect_anomalies()

        aws_items, aws_total = service.list_anomalies(provider="aws")
        gcp_items, gcp_total = service.list_anomalies(provider="GCP")

        assert aws_total == 1 and len(aws_items) == 1
        assert gcp_total == 0 and gcp_items == []


@pytest.mark.unit
class TestOptimizations:
    """Test heuristic optimization suggestions"""

    def test_rightsizing_heuristic(self, make_resource) -> None:
        """Low CPU utilization suggests rightsizing at half the cost"""
        resource = make_resource(cost=10000, tags={"cpuUtilization": 8})

        found = suggest_optimization(resource)

        assert found["optimization_type"] == "rightsizing"
        assert found["estimated_savings"] == 5000

    def test_free_resource_has_no_suggestion(self, make_resource) -> None:
        """Resources without cost are skipped"""
        assert suggest_optimization(make_resource(cost=0, tags={"cpuUtilization": 1})) is None

    def test_apply_and_savings(self, db_session, make_resource) -> None:
        """Applied suggestions leave the savings total and cannot be applied again"""
        make_resource(name="idle", cost=20000, tags={"lastAccessDays": 45})
        make_resource(name="oversized", cost=10000, tags={"cpuUtilization": 5})
        service = CostService(db_session)

        assert service.generate_optimizations() == 2
        assert service.get_savings()["total_savings"] == 25000

        items, total = service.list_optimizations(status="open")
        assert total == 2
        assert items[0].optimization_type == "idle_resource"

        service.apply_optimization(items[0].id)
        assert service.get_savings() == {"total_savings": 5000, "count": 1, "by_type": {"rightsizing": 5000}}

        with pytest.raises(InvalidStateTransition):
            service.dismiss_optimization(items[0].id)

    def test_unknown_optimization(self, db_session) -> None:
        """Unknown ids raise NotFoundError"""
        with pytest.raises(NotFoundError):
            CostService(db_session).apply_optimization(404)


@pytest.mark.unit
class TestCostSync:
    """Test inventory-derived cost sync"""

    def test_sync_records_daily_points(self, db_session, make_resource) -> None:
        """Monthly resource cost is recorded as a daily point per provider and type"""
        make_resource(type="EC2", cost=30000)
        make_resource(type="EC2", cost=6000)
        make_resource(type="RDS", provider="AZURE", cost=3000)

        result = CostService(db_session).sync_costs()

        assert result["providers"] == ["AWS", "AZURE"]
        assert result["records_synced"] == 2
        ec2 = db_session.query(CostHistory).filter(CostHistory.service_category == "EC2").one()
        assert ec2.date == date.today()
        assert ec2.amount == 1200

    def test_sync_replaces_todays_point(self, db_session, make_resource) -> None:
        """Running sync twice on the same day keeps one point per group"""
        make_resource(cost=30000)
        service = CostService(db_session)

        service.sync_costs()
        service.sync_costs()

        assert db_session.query(CostHistory).count() == 1
