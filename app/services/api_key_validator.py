"""
API Key Validation Service

Probes a fixed set of endpoints per platform with a candidate key and
reports which scopes the key actually grants. Used by the settings page
before a key is saved.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional
import asyncio

import aiohttp
from pydantic import BaseModel, Field

from app.config import Settings, get_settings
from app.utils.helpers import utcnow
from app.utils.logger import log


@dataclass(frozen=True)
class EndpointProbe:
    """One endpoint to try and the scope it needs"""
    path: str
    method: str = "GET"
    required_scope: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    params: Optional[Dict[str, str]] = None


class ApiKeyValidationResult(BaseModel):
    is_valid: bool = False
    has_required_scopes: bool = False
    available_endpoints: List[str] = Field(default_factory=list)
    missing_scopes: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    error_details: Optional[str] = None


SUPPORTED_PLATFORMS = ("klaviyo", "triple-whale")


def _days_ago(days: int) -> str:
    return (utcnow() - timedelta(days=days)).date().isoformat()


def triple_whale_probes() -> List[EndpointProbe]:
    today = utcnow().date().isoformat()
    return [
        EndpointProbe(
            "/summary-page", "POST", "analytics:read",
            payload={"start_date": _days_ago(7), "end_date": today},
        ),
        EndpointProbe(
            "/tw-metrics/metrics-data", "POST", "metrics:read",
            payload={"start_date": _days_ago(30), "end_date": today, "metrics": ["revenue", "orders", "customers"]},
        ),
        EndpointProbe(
            "/attribution/get-orders-with-journeys-v2", "POST", "attribution:read",
            payload={"start_date": _days_ago(7), "end_date": today, "limit": 10},
        ),
        EndpointProbe("/customers", "GET", "customers:read"),
        EndpointProbe("/orders", "GET", "orders:read"),
    ]


def klaviyo_probes() -> List[EndpointProbe]:
    page = {"page[size]": "1"}
    return [
        EndpointProbe("/profiles", "GET", "profiles:read", params=page),
        EndpointProbe("/campaigns", "GET", "campaigns:read", params=page),
        EndpointProbe("/flows", "GET", "flows:read", params=page),
    ]


class ApiKeyValidator:
    """
    Checks a key against one platform.

    Status handling per probe:
    - 2xx: endpoint available, key is valid
    - 401: key rejected, probing stops
    - 403: key is valid but lacks the endpoint's scope
    - anything else (404, 5xx, transport errors): logged and ignored
    """

    def __init__(self, platform: str, base_url: str, headers: Dict[str, str], timeout: float = 20.0):
        self.platform = platform
        self.base_url = base_url.rstrip("/")
        self.headers = headers
        self.timeout = timeout

    @classmethod
    def for_platform(
        cls,
        platform: str,
        api_key: str,
        base_url: Optional[str] = None,
        settings: Optional[Settings] = None
    ) -> "ApiKeyValidator":
        settings = settings or get_settings()
        platform = platform.lower()

        if platform == "klaviyo":
            headers = {
                "Authorization": f"Klaviyo-API-Key {api_key}",
                "revision": settings.klaviyo_revision,
                "Accept": "application/json",
            }
            return cls(platform, base_url or settings.klaviyo_base_url, headers, settings.request_timeout_seconds)

        if platform == "triple-whale":
            headers = {
                "x-api-key": api_key,
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
            return cls(platform, base_url or settings.triple_whale_base_url, headers, settings.request_timeout_seconds)

        raise ValueError(
            f"Unsupported platform: {platform}. Supported platforms: {', '.join(SUPPORTED_PLATFORMS)}"
        )

    def probes(self) -> List[EndpointProbe]:
        return klaviyo_probes() if self.platform == "klaviyo" else triple_whale_probes()

    async def _probe(self, probe: EndpointProbe) -> int:
        """HTTP status of one probe request"""
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                probe.method,
                f"{self.base_url}{probe.path}",
                headers=self.headers,
                params=probe.params,
                json=probe.payload,
            ) as response:
                return response.status

    async def validate(self) -> ApiKeyValidationResult:
        """Run every probe in order; never raises"""
        result = ApiKeyValidationResult()
        probes = self.probes()
        log.info(f"Starting {self.platform} API key validation ({len(probes)} endpoints)")

        for probe in probes:
            try:
                status = await self._probe(probe)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                log.error(f"Network error testing {self.platform} {probe.path}: {e}")
                continue

            if 200 <= status < 300:
                result.available_endpoints.append(probe.path)
                result.is_valid = True
                log.info(f"Endpoint accessible: {probe.path} ({status})")
            elif status == 401:
                result.error_details = f"Invalid {self.platform} API key or authentication failed"
                log.error(f"Authentication failed on {probe.path}; stopping validation")
                break
            elif status == 403:
                result.is_valid = True
                if probe.required_scope:
                    result.missing_scopes.append(probe.required_scope)
                log.warning(f"Insufficient permissions for {probe.path} (needs {probe.required_scope})")
            elif status == 404:
                log.warning(f"Endpoint not found: {probe.path}")
            else:
                log.warning(f"Endpoint error: {probe.path} returned {status}")

        result.has_required_scopes = bool(result.available_endpoints)
        result.recommendations = self._recommendations(result)

        log.info(
            f"{self.platform} API key validation completed: valid={result.is_valid}, "
            f"endpoints={len(result.available_endpoints)}, missing scopes={len(result.missing_scopes)}"
        )
        return result

    def _recommendations(self, result: ApiKeyValidationResult) -> List[str]:
        recommendations = []
        if not result.is_valid:
            recommendations.append(f"Verify the {self.platform} API key is correct and active")
            if self.platform == "klaviyo":
                recommendations.append("Ensure the key is a private API key usable with the configured revision")
        elif not result.has_required_scopes:
            recommendations.append("Request read access to analytics, metrics and attribution scopes")
        elif result.missing_scopes:
            recommendations.append(f"Request additional scopes: {', '.join(result.missing_scopes)}")
            recommendations.append("Some dashboard features may be limited until all scopes are available")

        if result.available_endpoints:
            recommendations.append(f"Currently accessible endpoints: {', '.join(result.available_endpoints)}")
        return recommendations
