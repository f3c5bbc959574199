"""
Base client for external capabilities (scraping, AI extraction)
"""
import logging
from typing import Dict, Optional, Any
import httpx

from propscrape.core.exceptions import ConfigurationError, ExternalServiceError


logger = logging.getLogger(__name__)


class BaseCapabilityClient:
    """Shared HTTP plumbing for capability clients.

    Credentials are bound once at construction. Calls are never retried here:
    every request against these capabilities is billed.
    """

    service_name = "capability"

    def __init__(self, api_key: str, base_url: str, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if not api_key:
            raise ConfigurationError(f"{self.service_name} API key is not configured")

        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None,
                       timeout: Optional[float] = None) -> Dict[str, Any]:
        """Make one HTTP request and return the decoded JSON body"""
        kwargs: Dict[str, Any] = {"json": json}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error {e.response.status_code} from {self.service_name} {path}: {e.response.text}")
            raise ExternalServiceError(
                self.service_name,
                f"HTTP {e.response.status_code} for {path}",
                status_code=e.response.status_code,
                details=e.response.text,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Request error for {self.service_name} {path}: {str(e)}")
            raise ExternalServiceError(self.service_name, f"Request failed for {path}: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                self.service_name, f"Invalid JSON in response for {path}",
                status_code=response.status_code,
            ) from e
