"""
Cost Analytics Service

Works on the daily ``cost_history`` series (integer cents):

- overview, period-over-period trends and a linear-regression forecast
- spike detection per provider/service category
- heuristic optimization suggestions from resource tags
- sync, which records today's cost points from the resource inventory

There is no provider billing integration; sync derives daily cost from each
resource's monthly cost.
"""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import CostAnomaly, CostHistory, CostOptimizationSuggestion, CostPrediction, Resource
from ..schemas.base import Severity
from ..schemas.cost_schemas import PERIOD_DAYS, CostPeriod, TrendDirection
from ..schemas.resource_schemas import AlertCreate, AlertType, AnomalyStatus, OptimizationStatus
from .alert_service import AlertService
from .errors import InvalidStateTransition, NotFoundError

logger = logging.getLogger(__name__)

MIN_FORECAST_POINTS = 7
FORECAST_HISTORY_DAYS = 90
TREND_STABLE_PERCENT = 5.0
SPIKE_THRESHOLD_PERCENT = 30
SPIKE_BASELINE_POINTS = 7

COMPUTE_TYPES = ("EC2", "VM", "ComputeEngine", "Compute")
DATABASE_TYPES = ("RDS", "CloudSQL", "SQLDatabase")
NON_PRODUCTION_ENVIRONMENTS = ("dev", "development", "test", "staging", "qa")


def linear_regression(x: List[float], y: List[float]) -> Tuple[float, float, float]:
    """
    Ordinary least squares fit.

    Returns:
        (slope, intercept, r_squared). A flat series has r_squared 1.0.
    """
    n = len(x)
    if n == 0 or len(y) != n:
        return 0.0, 0.0, 0.0

    x_mean = sum(x) / n
    y_mean = sum(y) / n
    sxx = sum((xi - x_mean) ** 2 for xi in x)
    if sxx == 0:
        return 0.0, y_mean, 0.0
    sxy = sum((xi - x_mean) * (yi - y_mean) for xi, yi in zip(x, y))
    slope = sxy / sxx
    intercept = y_mean - slope * x_mean

    total_variation = sum((yi - y_mean) ** 2 for yi in y)
    if total_variation == 0:
        return slope, intercept, 1.0
    residual = sum((yi - (slope * xi + intercept)) ** 2 for xi, yi in zip(x, y))
    return slope, intercept, max(0.0, 1 - residual / total_variation)


def spike_severity(percentage: float) -> str:
    if percentage >= 100:
        return Severity.CRITICAL.value
    if percentage >= 75:
        return Severity.HIGH.value
    if percentage >= 50:
        return Severity.MEDIUM.value
    return Severity.LOW.value


def suggest_optimization(resource: Resource) -> Optional[Dict[str, Any]]:
    """
    First matching optimization heuristic for a resource, or None.

    Heuristics read these tags: storageClass, lastAccessDays, cpuUtilization,
    dbConnections, schedule, environment.
    """
    cost = resource.cost or 0
    if cost <= 0:
        return None

    tags = resource.tags or {}
    last_access = tags.get("lastAccessDays")
    utilization = tags.get("cpuUtilization")
    connections = tags.get("dbConnections")

    def suggestion(optimization_type: str, ratio: float, confidence: float, description: str) -> Dict[str, Any]:
        return {
            "optimization_type": optimization_type,
            "estimated_savings": int(round(cost * ratio)),
            "confidence": confidence,
            "description": description,
        }

    if str(tags.get("storageClass", "")).upper() == "STANDARD" and isinstance(last_access, (int, float)) and last_access > 90:
        return suggestion(
            "storage_tiering", 0.7, 0.7,
            f"'{resource.name}' has not been accessed for {int(last_access)} days; move it to an archive storage class",
        )
    if isinstance(last_access, (int, float)) and last_access > 30:
        return suggestion(
            "idle_resource", 1.0, 0.9,
            f"'{resource.name}' has not been accessed for {int(last_access)} days; consider removing it",
        )
    if isinstance(utilization, (int, float)) and utilization < 20:
        return suggestion(
            "rightsizing", 0.5, 0.8,
            f"'{resource.name}' averages {utilization}% CPU; downsize to a smaller instance type",
        )
    if resource.type in DATABASE_TYPES and isinstance(connections, (int, float)) and connections < 5:
        return suggestion(
            "database_rightsizing", 0.4, 0.6,
            f"'{resource.name}' averages {int(connections)} connections; downsize the database instance",
        )
    if (
        resource.type in COMPUTE_TYPES
        and resource.status == "running"
        and "schedule" not in tags
        and str(tags.get("environment", "")).lower() in NON_PRODUCTION_ENVIRONMENTS
    ):
        return suggestion(
            "scheduling", 0.3, 0.5,
            f"'{resource.name}' runs around the clock in a non-production environment; stop it outside working hours",
        )
    return None


class CostService:
    """Cost overview, trends, forecast, anomalies and optimizations."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Series helpers
    # ------------------------------------------------------------------
    def _history_query(self, provider: Optional[str] = None):
        query = self.db.query(CostHistory)
        if provider:
            query = query.filter(CostHistory.provider == provider.upper())
        return query

    def _daily_totals(self, start: date, end: date, provider: Optional[str] = None) -> List[Tuple[date, int]]:
        query = self.db.query(CostHistory.date, func.sum(CostHistory.amount)).filter(
            CostHistory.date >= start, CostHistory.date <= end
        )
        if provider:
            query = query.filter(CostHistory.provider == provider.upper())
        rows = query.group_by(CostHistory.date).order_by(CostHistory.date).all()
        return [(row_date, int(total or 0)) for row_date, total in rows]

    def _sum_between(self, start: date, end: date, provider: Optional[str] = None) -> int:
        return sum(total for _, total in self._daily_totals(start, end, provider))

    # ------------------------------------------------------------------
    # Overview and trends
    # ------------------------------------------------------------------
    def get_overview(self, provider: Optional[str] = None) -> Dict[str, Any]:
        today = date.today()
        window_start = today - timedelta(days=PERIOD_DAYS[CostPeriod.MONTHLY] - 1)

        total_cost = int(
            self._history_query(provider).with_entities(func.coalesce(func.sum(CostHistory.amount), 0)).scalar() or 0
        )
        daily = self._daily_totals(window_start, today, provider)
        monthly_cost = sum(total for _, total in daily)
        daily_cost = daily[-1][1] if daily else 0

        by_provider_query = self.db.query(CostHistory.provider, func.sum(CostHistory.amount)).filter(
            CostHistory.date >= window_start, CostHistory.date <= today
        )
        if provider:
            by_provider_query = by_provider_query.filter(CostHistory.provider == provider.upper())
        by_provider = {name: int(total or 0) for name, total in by_provider_query.group_by(CostHistory.provider).all()}

        services_query = self.db.query(
            CostHistory.service_category, CostHistory.provider, func.sum(CostHistory.amount).label("total")
        ).filter(CostHistory.date >= window_start, CostHistory.date <= today)
        if provider:
            services_query = services_query.filter(CostHistory.provider == provider.upper())
        top_services = [
            {"service": service or "Other", "provider": name, "cost": int(total or 0)}
            for service, name, total in services_query.group_by(CostHistory.service_category, CostHistory.provider)
            .order_by(func.sum(CostHistory.amount).desc())
            .limit(5)
            .all()
        ]

        anomaly_count = (
            self.db.query(func.count(CostAnomaly.id)).filter(CostAnomaly.status == AnomalyStatus.OPEN.value).scalar()
            or 0
        )

        return {
            "total_cost": total_cost,
            "monthly_cost": monthly_cost,
            "daily_cost": daily_cost,
            "currency": "USD",
            "by_provider": by_provider,
            "top_services": top_services,
            "trend": self.get_trends(provider, CostPeriod.MONTHLY),
            "anomaly_count": anomaly_count,
            "potential_savings": self.get_savings()["total_savings"],
        }

    def get_trends(self, provider: Optional[str] = None, period: CostPeriod = CostPeriod.MONTHLY) -> Dict[str, Any]:
        """Compare the current period with the one before it."""
        period = CostPeriod(period)
        days = PERIOD_DAYS[period]
        today = date.today()
        current_start = today - timedelta(days=days - 1)
        previous_end = current_start - timedelta(days=1)
        previous_start = previous_end - timedelta(days=days - 1)

        data_points = self._daily_totals(current_start, today, provider)
        current_cost = sum(total for _, total in data_points)
        previous_cost = self._sum_between(previous_start, previous_end, provider)

        if previous_cost:
            change_percent = round((current_cost - previous_cost) / previous_cost * 100, 1)
        else:
            change_percent = 100.0 if current_cost else 0.0

        if change_percent > TREND_STABLE_PERCENT:
            direction = TrendDirection.UP
        elif change_percent < -TREND_STABLE_PERCENT:
            direction = TrendDirection.DOWN
        else:
            direction = TrendDirection.STABLE

        return {
            "period": period.value,
            "provider": provider.upper() if provider else None,
            "current_cost": current_cost,
            "previous_cost": previous_cost,
            "change_percent": change_percent,
            "trend": direction.value,
            "data_points": [{"date": point_date, "cost": total} for point_date, total in data_points],
        }

    # ------------------------------------------------------------------
    # Forecast
    # ------------------------------------------------------------------
    def get_forecast(self, provider: Optional[str] = None, days: int = 30) -> Dict[str, Any]:
        """
        Project total cost over the next ``days`` days by linear regression
        on up to 90 days of daily totals.

        Raises:
            ValueError: Fewer than 7 daily points, or days out of range
        """
        if days < 1 or days > 365:
            raise ValueError("days must be between 1 and 365")

        today = date.today()
        series = self._daily_totals(today - timedelta(days=FORECAST_HISTORY_DAYS), today, provider)
        if len(series) < MIN_FORECAST_POINTS:
            raise ValueError("Not enough historical data to make predictions")

        first_date = series[0][0]
        x = [float((point_date - first_date).days) for point_date, _ in series]
        y = [float(total) for _, total in series]
        slope, intercept, r_squared = linear_regression(x, y)

        last_x = x[-1] + (today - series[-1][0]).days
        predicted = [max(0.0, slope * (last_x + i) + intercept) for i in range(1, days + 1)]
        forecasted = int(round(sum(predicted)))

        # Per-day band widens as the fit gets worse
        daily_interval = math.sqrt(max(0.0, 1 - r_squared)) * max(y) * 0.1
        spread = daily_interval * days
        end_date = today + timedelta(days=days)

        # One stored prediction per provider, end date and model; re-reads refresh it
        stored_provider = provider.upper() if provider else None
        if stored_provider is None:
            same_provider = CostPrediction.provider.is_(None)
        else:
            same_provider = CostPrediction.provider == stored_provider
        prediction = (
            self.db.query(CostPrediction)
            .filter(
                same_provider,
                CostPrediction.prediction_date == end_date,
                CostPrediction.model == "linear",
            )
            .first()
        )
        if prediction is None:
            prediction = CostPrediction(provider=stored_provider, prediction_date=end_date, model="linear")
            self.db.add(prediction)
        prediction.predicted_amount = forecasted
        prediction.lower_bound = max(0, int(round(forecasted - spread)))
        prediction.upper_bound = int(round(forecasted + spread))
        self.db.commit()

        return {
            "provider": provider.upper() if provider else "ALL",
            "period": f"{days}d",
            "forecasted_cost": forecasted,
            "confidence_level": round(min(1.0, max(0.0, r_squared)), 2),
            "lower_bound": prediction.lower_bound,
            "upper_bound": prediction.upper_bound,
            "currency": "USD",
            "end_date": end_date,
        }

    # ------------------------------------------------------------------
    # Anomalies
    # ------------------------------------------------------------------
    def list_anomalies(
        self, status: Optional[str] = None, provider: Optional[str] = None, limit: int = 10, offset: int = 0
    ) -> Tuple[list, int]:
        query = self.db.query(CostAnomaly)
        if status:
            query = query.filter(CostAnomaly.status == status)
        if provider:
            query = query.join(Resource, Resource.id == CostAnomaly.resource_id).filter(
                Resource.provider == provider.upper()
            )
        total = query.count()
        items = query.order_by(CostAnomaly.detected_at.desc(), CostAnomaly.id.desc()).offset(offset).limit(limit).all()
        return items, total

    def detect_anomalies(self, provider: Optional[str] = None) -> int:
        """
        Flag cost spikes.

        For each provider/service series the latest daily point is compared
        with the mean of the preceding points (up to 7). An increase of 30% or
        more is recorded against the most expensive matching resource and
        raises a cost alert.

        Returns:
            Number of anomalies created
        """
        groups_query = self.db.query(CostHistory.provider, CostHistory.service_category).distinct()
        if provider:
            groups_query = groups_query.filter(CostHistory.provider == provider.upper())

        alert_service = AlertService(self.db)
        created = 0
        for group_provider, category in groups_query.all():
            points = (
                self.db.query(CostHistory.date, func.sum(CostHistory.amount))
                .filter(CostHistory.provider == group_provider, CostHistory.service_category == category)
                .group_by(CostHistory.date)
                .order_by(CostHistory.date.desc())
                .limit(SPIKE_BASELINE_POINTS + 1)
                .all()
            )
            if len(points) < 3:
                continue

            current = int(points[0][1] or 0)
            baseline_values = [int(total or 0) for _, total in points[1:]]
            baseline = sum(baseline_values) / len(baseline_values)
            if baseline <= 0:
                continue
            percentage = int(round((current - baseline) / baseline * 100))
            if percentage < SPIKE_THRESHOLD_PERCENT:
                continue

            resource = (
                self.db.query(Resource)
                .filter(Resource.provider == group_provider, Resource.type == category)
                .order_by(func.coalesce(Resource.cost, 0).desc(), Resource.id)
                .first()
            )
            if resource is None:
                continue

            already_open = (
                self.db.query(CostAnomaly.id)
                .filter(
                    CostAnomaly.resource_id == resource.id,
                    CostAnomaly.anomaly_type == "spike",
                    CostAnomaly.status == AnomalyStatus.OPEN.value,
                )
                .first()
            )
            if already_open:
                continue

            severity = spike_severity(percentage)
            self.db.add(
                CostAnomaly(
                    resource_id=resource.id,
                    anomaly_type="spike",
                    severity=severity,
                    percentage=percentage,
                    previous_cost=int(round(baseline)),
                    current_cost=current,
                    detected_at=datetime.utcnow(),
                    status=AnomalyStatus.OPEN.value,
                )
            )
            alert_service.create_alert(
                AlertCreate(
                    title=f"Cost spike on {group_provider} {category}",
                    message=f"Daily {category} cost rose {percentage}% above the recent average "
                    f"(${baseline / 100:,.2f} to ${current / 100:,.2f}).",
                    type=AlertType.COST,
                    severity=Severity(severity),
                    resource_id=resource.id,
                ),
                commit=False,
            )
            created += 1

        self.db.commit()
        logger.info(f"Cost anomaly detection created {created} anomalies")
        return created

    # ------------------------------------------------------------------
    # Optimizations
    # ------------------------------------------------------------------
    def generate_optimizations(self, provider: Optional[str] = None) -> int:
        """Create open suggestions for resources matching a heuristic. Returns the number created."""
        query = self.db.query(Resource)
        if provider:
            query = query.filter(Resource.provider == provider.upper())

        created = 0
        for resource in query.order_by(Resource.id).all():
            found = suggest_optimization(resource)
            if found is None:
                continue
            exists = (
                self.db.query(CostOptimizationSuggestion.id)
                .filter(
                    CostOptimizationSuggestion.resource_id == resource.id,
                    CostOptimizationSuggestion.optimization_type == found["optimization_type"],
                    CostOptimizationSuggestion.status == OptimizationStatus.OPEN.value,
                )
                .first()
            )
            if exists:
                continue
            self.db.add(
                CostOptimizationSuggestion(
                    organization_id=resource.organization_id,
                    provider=resource.provider,
                    resource_id=resource.id,
                    resource_type=resource.type,
                    status=OptimizationStatus.OPEN.value,
                    detected_at=datetime.utcnow(),
                    **found,
                )
            )
            created += 1

        self.db.commit()
        return created

    def list_optimizations(
        self, status: Optional[str] = None, provider: Optional[str] = None, limit: int = 10, offset: int = 0
    ) -> Tuple[list, int]:
        query = self.db.query(CostOptimizationSuggestion)
        if status:
            query = query.filter(CostOptimizationSuggestion.status == status)
        if provider:
            query = query.filter(CostOptimizationSuggestion.provider == provider.upper())
        total = query.count()
        items = (
            query.order_by(CostOptimizationSuggestion.estimated_savings.desc(), CostOptimizationSuggestion.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    def _set_optimization_status(self, optimization_id: int, status: OptimizationStatus, operation: str):
        optimization = (
            self.db.query(CostOptimizationSuggestion).filter(CostOptimizationSuggestion.id == optimization_id).first()
        )
        if not optimization:
            raise NotFoundError("Optimization", optimization_id)
        if optimization.status != OptimizationStatus.OPEN.value:
            raise InvalidStateTransition("optimization", optimization.status, operation)
        optimization.status = status.value
        self.db.commit()
        self.db.refresh(optimization)
        return optimization

    def apply_optimization(self, optimization_id: int) -> CostOptimizationSuggestion:
        return self._set_optimization_status(optimization_id, OptimizationStatus.APPLIED, "apply")

    def dismiss_optimization(self, optimization_id: int) -> CostOptimizationSuggestion:
        return self._set_optimization_status(optimization_id, OptimizationStatus.DISMISSED, "dismiss")

    def get_savings(self) -> Dict[str, Any]:
        rows = (
            self.db.query(
                CostOptimizationSuggestion.optimization_type,
                func.count(CostOptimizationSuggestion.id),
                func.sum(CostOptimizationSuggestion.estimated_savings),
            )
            .filter(CostOptimizationSuggestion.status == OptimizationStatus.OPEN.value)
            .group_by(CostOptimizationSuggestion.optimization_type)
            .all()
        )
        by_type = {optimization_type: int(total or 0) for optimization_type, _, total in rows}
        return {
            "total_savings": sum(by_type.values()),
            "count": sum(count for _, count, _ in rows),
            "by_type": by_type,
        }

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------
    def sync_costs(self, provider: Optional[str] = None) -> Dict[str, Any]:
        """
        Record today's cost point per provider and resource type from the
        inventory (monthly cost / 30), replacing any point already recorded
        today, then refresh optimization suggestions.
        """
        today = date.today()
        query = self.db.query(Resource.provider, Resource.type, func.sum(func.coalesce(Resource.cost, 0)))
        if provider:
            query = query.filter(Resource.provider == provider.upper())
        groups = query.group_by(Resource.provider, Resource.type).all()

        providers = sorted({group_provider for group_provider, _, _ in groups})
        records = 0
        for group_provider, resource_type, monthly_total in groups:
            self._history_query(group_provider).filter(
                CostHistory.date == today, CostHistory.service_category == resource_type
            ).delete(synchronize_session=False)
            self.db.add(
                CostHistory(
                    provider=group_provider,
                    service_category=resource_type,
                    date=today,
                    amount=int(round((monthly_total or 0) / 30)),
                )
            )
            records += 1
        self.db.commit()

        optimizations = self.generate_optimizations(provider)
        logger.info(f"Cost sync recorded {records} cost points for {len(providers)} providers")
        return {
            "providers": providers,
            "records_synced": records,
            "optimizations_found": optimizations,
            "synced_at": datetime.utcnow(),
        }
