"""
Analysis Service

LLM-backed analysis of resource cost and security posture through a hosted
chat-completion API.

Each operation builds a prompt asking for a fixed JSON schema, posts it to
``{openai_base_url}/chat/completions`` and validates the JSON reply into a
typed result. Any failure (missing API key, network, HTTP status, parse or
validation error) is logged and a fixed benign default is returned; callers
never see an exception.

Requests within one invocation are sequential. There is no retry.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..schemas.analysis_schemas import (
    CostAnomalyAnalysisResult,
    SecurityDriftAnalysisResult,
    default_cost_analysis,
    default_drift_analysis,
)
from ..schemas.resource_schemas import OptimizationStatus, RecommendationCreate
from ..utils.logging_security import sanitize_error_message_for_log, sanitize_for_log

logger = logging.getLogger(__name__)


class AnalysisError(Exception):
    """Raised internally when the model reply cannot be used."""


COST_ANOMALY_PROMPT = """
You are an expert cloud cost optimization specialist. Analyze the following cloud resource data and its cost history to identify potential cost anomalies, inefficiencies, or waste.

RESOURCE DATA:
{resource_data}

COST HISTORY:
{cost_history}

PROVIDER: {provider}

Please analyze this data and provide:
1. Whether any cost anomalies are detected (true/false)
2. A clear description of the anomaly or inefficiency if detected
3. The severity level (low, medium, high, critical)
4. A list of specific recommendations to address the issue
5. An estimated monthly savings amount in USD if recommendations are implemented

Respond in the following JSON format:
{{
  "detected": boolean,
  "description": "string",
  "severity": "low|medium|high|critical",
  "recommendations": ["string"],
  "estimatedSavings": number
}}
"""

SECURITY_DRIFT_PROMPT = """
You are an expert cloud security specialist. Analyze the following cloud resource data to identify potential security configuration drifts, vulnerabilities, or compliance issues.

RESOURCE DATA:
{resource_data}

PROVIDER: {provider}

Please analyze this data and provide:
1. Whether any security drifts or vulnerabilities are detected (true/false)
2. A clear description of the security issue if detected
3. The severity level (low, medium, high, critical)
4. A list of specific vulnerabilities or misconfigurations
5. A list of specific recommendations to address the issues
6. The potential compliance impacts (e.g., GDPR, HIPAA, SOC2, etc.)

Respond in the following JSON format:
{{
  "detected": boolean,
  "description": "string",
  "severity": "low|medium|high|critical",
  "vulnerabilities": ["string"],
  "recommendations": ["string"],
  "complianceImpact": ["string"]
}}
"""

RECOMMENDATIONS_PROMPT = """
You are an expert cloud optimization specialist. Generate detailed optimization recommendations for the following cloud resources.

RESOURCE DATA:
{resource_data}

COST HISTORY:
{cost_history}

PROVIDER: {provider}

Generate 3-5 specific, actionable recommendations that would optimize costs, performance, or security.
For each recommendation include a short title, a type (cost, security, performance),
a detailed description, the id of the affected resource if any, and the
estimated monthly savings in USD.

Respond with a JSON object in the following format:
{{
  "recommendations": [{{
    "title": "string",
    "type": "cost|security|performance",
    "description": "string",
    "resourceId": number | null,
    "estimatedSavings": number
  }}]
}}
"""


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


class AnalysisService:
    """
    Client for the hosted chat-completion API.

    Args:
        settings: Application settings (API key, base URL, model, timeout)
        transport: Optional httpx transport, used to stub the API in tests
    """

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    async def _complete_json(self, prompt: str) -> Any:
        """
        Send one prompt and return the decoded JSON content of the reply.

        Raises:
            AnalysisError: Missing API key or malformed reply
            httpx.HTTPError: Network failure or non-2xx status
        """
        if not self.settings.openai_api_key:
            raise AnalysisError("OpenAI API key is not configured")

        payload = {
            "model": self.settings.openai_model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self.settings.openai_api_key}"}
        url = f"{self.settings.openai_base_url.rstrip('/')}/chat/completions"

        async with httpx.AsyncClient(transport=self._transport, timeout=self.settings.openai_timeout) as client:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AnalysisError(f"Unexpected completion response: {e}") from e

        if content is None:
            raise AnalysisError("Completion response has no content")

        try:
            return json.loads(content)
        except ValueError as e:
            raise AnalysisError(f"Completion content is not valid JSON: {e}") from e

    async def analyze_cost_anomalies(
        self,
        resource_data: Any,
        cost_history: List[Any],
        provider: str,
    ) -> CostAnomalyAnalysisResult:
        """Look for cost anomalies in a resource and its cost history."""
        try:
            prompt = COST_ANOMALY_PROMPT.format(
                resource_data=_to_json(resource_data),
                cost_history=_to_json(cost_history),
                provider=provider,
            )
            result = await self._complete_json(prompt)
            return CostAnomalyAnalysisResult.model_validate(result)
        except Exception as e:
            logger.error(
                f"Error analyzing cost anomalies for provider {sanitize_for_log(provider)}: "
                f"{sanitize_error_message_for_log(e)}"
            )
            return default_cost_analysis()

    async def analyze_security_drifts(self, resource_data: Any, provider: str) -> SecurityDriftAnalysisResult:
        """Look for security configuration drift in a resource."""
        try:
            prompt = SECURITY_DRIFT_PROMPT.format(resource_data=_to_json(resource_data), provider=provider)
            result = await self._complete_json(prompt)
            return SecurityDriftAnalysisResult.model_validate(result)
        except Exception as e:
            logger.error(
                f"Error analyzing security drifts for provider {sanitize_for_log(provider)}: "
                f"{sanitize_error_message_for_log(e)}"
            )
            return default_drift_analysis()

    async def generate_optimization_recommendations(
        self,
        resource_data: Any,
        cost_history: List[Any],
        provider: str,
    ) -> List[RecommendationCreate]:
        """
        Ask the model for optimization recommendations.

        The reply may be a bare list or an object with a ``recommendations``
        list. Every item must validate; if any item fails the whole call
        yields an empty list.
        """
        try:
            prompt = RECOMMENDATIONS_PROMPT.format(
                resource_data=_to_json(resource_data),
                cost_history=_to_json(cost_history),
                provider=provider,
            )
            result = await self._complete_json(prompt)
            return self._parse_recommendations(result, resource_data)
        except Exception as e:
            logger.error(
                f"Error generating optimization recommendations for provider {sanitize_for_log(provider)}: "
                f"{sanitize_error_message_for_log(e)}"
            )
            return []

    @staticmethod
    def _parse_recommendations(result: Any, resource_data: Any) -> List[RecommendationCreate]:
        if isinstance(result, dict):
            result = result.get("recommendations")
        if not isinstance(result, list):
            raise AnalysisError("Recommendations reply is not a list")

        default_affected = _resource_ids(resource_data)
        recommendations = []
        for item in result:
            if not isinstance(item, dict):
                raise AnalysisError("Recommendation entry is not an object")
            resource_id = item.get("resourceId")
            savings_usd = item.get("estimatedSavings") or 0
            try:
                savings_cents = int(round(float(savings_usd) * 100))
            except (TypeError, ValueError) as e:
                raise AnalysisError(f"Invalid estimatedSavings: {savings_usd!r}") from e
            try:
                recommendations.append(
                    RecommendationCreate(
                        title=item.get("title"),
                        description=item.get("description"),
                        type=item.get("type"),
                        potential_savings=savings_cents,
                        resources_affected=[resource_id] if resource_id is not None else default_affected,
                        status=OptimizationStatus.OPEN,
                    )
                )
            except ValidationError as e:
                raise AnalysisError(f"Invalid recommendation: {e.error_count()} validation errors") from e
        return recommendations


def _resource_ids(resource_data: Any) -> List[Any]:
    items = resource_data if isinstance(resource_data, list) else [resource_data]
    return [item["id"] for item in items if isinstance(item, dict) and item.get("id") is not None]


_analysis_service: Optional[AnalysisService] = None


def get_analysis_service() -> AnalysisService:
    """FastAPI dependency returning the shared AnalysisService."""
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = AnalysisService()
        logger.info("Initialized AnalysisService singleton")
    return _analysis_service
