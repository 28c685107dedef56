"""
CloudGuard API client

Python counterpart of the dashboard data layer: an HTTP client raising
ApiError, a query cache with key-prefix invalidation, mutation hooks and
presentation helpers.
"""

from .api_client import ApiError, CloudGuardClient
from .hooks import INVALIDATIONS, ApiHooks
from .query_cache import QueryCache

__all__ = ["ApiError", "ApiHooks", "CloudGuardClient", "INVALIDATIONS", "QueryCache"]
