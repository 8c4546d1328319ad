"""
Financial Modeling Prep (FMP) API client.

This module maps raw HTTP outcomes onto the exception hierarchy:
- Timeouts and connection failures -> NetworkError (retried by the dispatcher)
- HTTP 401/403 -> AuthenticationError (fatal for the run)
- HTTP 429 -> RateLimitError honouring Retry-After (retried by the dispatcher)
- HTTP 5xx -> ServerError (the crawler skips the page)
- HTTP 404 -> ResourceNotFoundError
- Undecodable or unparseable body -> APIExtractionError

Every call is submitted through the RateLimitedDispatcher.
"""

import httpx
import logging
from typing import List, Dict, Any, Optional

from core.config import settings
from core.exceptions import (
    APIExtractionError,
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    RateLimitError,
    ResourceNotFoundError,
    ServerError,
    SyncException
)
from ingestion.dispatcher import RateLimitedDispatcher

logger = logging.getLogger(__name__)


class FMPClient:
    """
    Thin async client over the FMP "stable" endpoints.

    Attributes:
        api_key: FMP API key, sent as the `apikey` query parameter
        base_url: Provider base URL
        timeout: Per-request timeout in seconds
        dispatcher: Shared RateLimitedDispatcher (one per process)
    """

    SENATE_LATEST = "/stable/senate-latest"
    HOUSE_LATEST = "/stable/house-latest"
    INSIDER_LATEST = "/stable/insider-trading/latest"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        dispatcher: Optional[RateLimitedDispatcher] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key or settings.FMP_API_KEY
        if not self.api_key:
            raise ConfigurationError("FMP_API_KEY is not configured")

        self.base_url = (base_url or settings.FMP_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.FMP_TIMEOUT
        self.dispatcher = dispatcher or RateLimitedDispatcher()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"}
        )

    async def __aenter__(self) -> "FMPClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        await self.dispatcher.aclose()
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def get_senate_trades(self, page: int = 1, limit: int = 250) -> List[Dict[str, Any]]:
        return await self.fetch_page(self.SENATE_LATEST, page, limit)

    async def get_house_trades(self, page: int = 1, limit: int = 250) -> List[Dict[str, Any]]:
        return await self.fetch_page(self.HOUSE_LATEST, page, limit)

    async def get_insider_trades(self, page: int = 1, limit: int = 250) -> List[Dict[str, Any]]:
        return await self.fetch_page(self.INSIDER_LATEST, page, limit)

    async def fetch_page(self, endpoint: str, page: int, limit: int) -> List[Dict[str, Any]]:
        """Fetch one 1-based page of a list endpoint through the dispatcher."""
        params = {"page": page, "limit": limit}
        return await self.dispatcher.enqueue(
            lambda: self._request(endpoint, params),
            label=f"{endpoint} page {page}"
        )

    async def test_connection(self) -> bool:
        """Cheap connectivity check used by the CLI before a sync."""
        try:
            await self.get_senate_trades(page=1, limit=1)
            return True
        except SyncException as e:
            logger.error(f"FMP connection test failed: {e}")
            return False

    def get_rate_limit_status(self) -> Dict[str, Any]:
        return self.dispatcher.get_rate_limit_status()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        context = {"endpoint": endpoint, "page": params.get("page"), "limit": params.get("limit")}
        logger.debug(f"GET {endpoint} page={params.get('page')} limit={params.get('limit')}")

        try:
            response = await self._client.get(endpoint, params={**params, "apikey": self.api_key})
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"Request timeout for {endpoint}",
                context={**context, "timeout": self.timeout},
                original_exception=e
            )
        except httpx.TransportError as e:
            raise NetworkError(
                f"Network error for {endpoint}",
                context=context,
                original_exception=e
            )
        except httpx.RequestError as e:
            raise APIExtractionError(
                f"Failed to read response for {endpoint}",
                context=context,
                original_exception=e
            )

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(
                f"Authentication failed for {endpoint}",
                context={**context, "status_code": status}
            )

        if status == 429:
            raise RateLimitError(
                f"Rate limit exceeded for {endpoint}",
                context={**context, "status_code": 429},
                retry_after=self._parse_retry_after(response)
            )

        if status >= 500:
            raise ServerError(
                f"Server error {status} for {endpoint}",
                context={**context, "status_code": status, "response_body": response.text[:500]}
            )

        if status == 404:
            raise ResourceNotFoundError(
                f"Resource not found: {endpoint}",
                context={**context, "status_code": 404}
            )

        if status >= 400:
            raise APIExtractionError(
                f"Unexpected status {status} for {endpoint}",
                context={**context, "status_code": status, "response_body": response.text[:500]}
            )

        try:
            data = response.json()
        except ValueError as e:
            raise APIExtractionError(
                "Failed to parse JSON response",
                context={**context, "response_body": response.text[:500]},
                original_exception=e
            )

        if isinstance(data, list):
            return data

        if isinstance(data, dict) and "Error Message" in data:
            raise APIExtractionError(
                f"Provider error: {data['Error Message']}",
                context=context
            )

        logger.warning(f"Unexpected response shape from {endpoint}: {type(data).__name__}")
        return []

    @staticmethod
    def _parse_retry_after(response: httpx.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None
