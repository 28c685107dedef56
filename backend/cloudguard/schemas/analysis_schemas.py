"""
Analysis Schemas

Typed results of the LLM-backed analysis service and their fallback values.
"""

from typing import List

from pydantic import Field

from .base import CamelModel, Severity


class CostAnomalyAnalysisResult(CamelModel):
    detected: bool
    description: str
    severity: Severity
    recommendations: List[str] = Field(default_factory=list)
    estimated_savings: float = 0


class SecurityDriftAnalysisResult(CamelModel):
    detected: bool
    description: str
    severity: Severity
    vulnerabilities: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    compliance_impact: List[str] = Field(default_factory=list)


ANALYSIS_FAILED_DESCRIPTION = "Analysis failed due to an error"


def default_cost_analysis() -> CostAnomalyAnalysisResult:
    """Result returned when cost analysis cannot be completed."""
    return CostAnomalyAnalysisResult(
        detected=False,
        description=ANALYSIS_FAILED_DESCRIPTION,
        severity=Severity.LOW,
        recommendations=["Retry analysis"],
        estimated_savings=0,
    )


def default_drift_analysis() -> SecurityDriftAnalysisResult:
    """Result returned when drift analysis cannot be completed."""
    return SecurityDriftAnalysisResult(
        detected=False,
        description=ANALYSIS_FAILED_DESCRIPTION,
        severity=Severity.LOW,
        vulnerabilities=["Analysis could not be completed"],
        recommendations=["Retry analysis"],
        compliance_impact=[],
    )
