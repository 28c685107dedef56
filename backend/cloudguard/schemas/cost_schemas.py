"""
Cost Schemas

All monetary amounts are integer cents.
"""

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from .base import CamelModel
from .resource_schemas import OptimizationStatus


class CostPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


PERIOD_DAYS = {
    CostPeriod.DAILY: 1,
    CostPeriod.WEEKLY: 7,
    CostPeriod.MONTHLY: 30,
}


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class CostDataPoint(CamelModel):
    date: date
    cost: int


class ServiceCost(CamelModel):
    service: str
    provider: str
    cost: int


class CostTrend(CamelModel):
    period: CostPeriod
    provider: Optional[str] = None
    current_cost: int
    previous_cost: int
    change_percent: float
    trend: TrendDirection
    data_points: List[CostDataPoint] = Field(default_factory=list)


class CostOverview(CamelModel):
    total_cost: int
    monthly_cost: int
    daily_cost: int
    currency: str = "USD"
    by_provider: Dict[str, int]
    top_services: List[ServiceCost]
    trend: Optional[CostTrend] = None
    anomaly_count: int
    potential_savings: int


class CostForecast(CamelModel):
    provider: str
    period: str
    forecasted_cost: int
    confidence_level: float
    lower_bound: int
    upper_bound: int
    currency: str = "USD"
    end_date: date


class CostOptimizationResponse(CamelModel):
    id: int
    provider: str
    resource_id: Optional[int] = None
    resource_type: Optional[str] = None
    optimization_type: str
    description: str
    estimated_savings: int
    confidence: float
    status: OptimizationStatus
    detected_at: datetime


class PotentialSavings(CamelModel):
    total_savings: int
    count: int
    by_type: Dict[str, int]


class CostSyncRequest(CamelModel):
    provider: Optional[str] = None


class CostSyncResult(CamelModel):
    providers: List[str]
    records_synced: int
    optimizations_found: int
    synced_at: datetime


class AnomalyDetectionResult(CamelModel):
    anomalies_detected: int
    provider: Optional[str] = None
