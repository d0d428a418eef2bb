"""
Async Graph API client with pagination, throttling, and safety enforcement.
Every failure surfaces as a typed UpstreamError; callers never see partial pages.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    MAX_RETRIES,
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    BACKOFF_MULTIPLIER,
    DEFAULT_PAGE_SIZE,
    MAX_PAGES_PER_ENDPOINT,
    MAX_CONCURRENT_ENRICHMENTS,
)
from ..safety.guardian import SafetyGuardian

logger = logging.getLogger("sharedmailbox_audit.graph")

THROTTLE_STATUSES = (429, 503, 504)


class UpstreamError(Exception):
    """Raised when Graph returns a non-2xx status or the transport fails."""
    def __init__(
        self,
        status_code: Optional[int],
        message: str,
        url: str,
        stage: str = "",
    ):
        self.status_code = status_code
        self.message = message
        self.url = url
        self.stage = stage
        status = status_code if status_code is not None else "transport"
        prefix = f"[{stage}] " if stage else ""
        super().__init__(f"{prefix}Graph API Error {status} for {url}: {message}")

    def with_stage(self, stage: str, hint: str = "") -> "UpstreamError":
        """Return a copy of this error tagged with the pipeline stage."""
        message = f"{self.message} ({hint})" if hint else self.message
        return type(self)(self.status_code, message, self.url, stage=stage)


class NotFoundError(UpstreamError):
    """Raised on 404 — e.g. a principal that has no mailbox."""
    pass


class GraphClient:
    """
    Async Microsoft Graph API client.
    Features:
      - Safety-validated requests (read-only enforcement)
      - Automatic pagination with @odata.nextLink
      - Retry-After handling on 429/503/504
      - Concurrent request semaphore
    """

    def __init__(
        self,
        access_token: str,
        guardian: SafetyGuardian,
        max_concurrency: int = MAX_CONCURRENT_ENRICHMENTS,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.guardian = guardian
        self.max_concurrency = max_concurrency
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._request_count = 0
        self._throttle_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, connect=30.0),
            limits=httpx.Limits(
                max_connections=self.max_concurrency * 2,
                max_keepalive_connections=self.max_concurrency,
            ),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
            },
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{GRAPH_API_VERSION}/{endpoint}"

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """Execute a single GET request with throttle handling."""
        url = self._build_url(endpoint)
        self.guardian.validate_request("GET", url)

        async with self._semaphore:
            return await self._execute_with_retry("GET", url, params=params)

    async def get_all_pages(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        top: Optional[int] = None,
        skip_top: bool = False,
    ) -> list[dict]:
        """
        Fetch all pages of a paginated endpoint into a list.
        Set skip_top=True for endpoints that don't support $top.
        """
        items = []
        async for item in self.get_all_pages_stream(endpoint, params, top, skip_top=skip_top):
            items.append(item)
        return items

    async def get_all_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        top: Optional[int] = None,
        skip_top: bool = False,
    ) -> AsyncGenerator[dict, None]:
        """Stream all pages of a paginated endpoint as an async generator."""
        params = dict(params or {})
        if not skip_top and "$top" not in params:
            params["$top"] = str(min(top or DEFAULT_PAGE_SIZE, DEFAULT_PAGE_SIZE))

        url: Optional[str] = self._build_url(endpoint)
        query: Optional[dict] = params or None
        pages = 0

        while url and pages < MAX_PAGES_PER_ENDPOINT:
            self.guardian.validate_request("GET", url)

            async with self._semaphore:
                data = await self._execute_with_retry("GET", url, params=query)

            value = data.get("value")
            if not isinstance(value, list):
                raise UpstreamError(None, "Paged response has no 'value' list", url)
            for item in value:
                yield item

            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            query = None
            pages += 1
            logger.debug(f"Fetched page {pages} of {endpoint} ({len(value)} items)")

        if url:
            logger.warning(
                f"Pagination safety cap reached ({MAX_PAGES_PER_ENDPOINT} pages) "
                f"for endpoint: {endpoint}"
            )

    async def _execute_with_retry(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
    ) -> dict:
        """Execute request, waiting out throttling responses."""
        backoff = self.initial_backoff

        for attempt in range(self.max_retries + 1):
            response = await self._execute_raw(method, url, params=params)
            self._request_count += 1

            if response.is_success:
                return self._decode(response, url)

            if response.status_code in THROTTLE_STATUSES and attempt < self.max_retries:
                self._throttle_count += 1
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                wait_time = max(retry_after if retry_after is not None else backoff, 0.0)
                wait_time = min(wait_time, MAX_BACKOFF_SECONDS)
                logger.warning(
                    f"Throttled ({response.status_code}) on {url}. "
                    f"Retry {attempt + 1}/{self.max_retries} in {wait_time:.1f}s"
                )
                await asyncio.sleep(wait_time)
                backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)
                continue

            error_msg = _error_message(response)
            if response.status_code == 404:
                logger.debug(f"404 Not Found: {url}")
                raise NotFoundError(404, error_msg, url)
            raise UpstreamError(response.status_code, error_msg, url)

        # Loop always returns or raises; kept for type checkers
        raise UpstreamError(None, "Retries exhausted", url)

    @staticmethod
    def _decode(response: httpx.Response, url: str) -> dict:
        if not response.content or not response.content.strip():
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(response.status_code, f"Invalid JSON body: {e}", url)
        if not isinstance(data, dict):
            raise UpstreamError(response.status_code, "Expected a JSON object", url)
        return data

    async def _execute_raw(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """Execute raw HTTP request, wrapping transport failures."""
        if not self._client:
            raise RuntimeError("GraphClient not initialized. Use 'async with' context.")

        try:
            return await self._client.request(method, url, params=params)
        except httpx.HTTPError as e:
            logger.warning(f"Transport error on {url}: {type(e).__name__}: {e}")
            raise UpstreamError(None, f"{type(e).__name__}: {e}", url) from e

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {
            "total_requests": self._request_count,
            "throttle_events": self._throttle_count,
        }


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    """Extract Graph's error.message, falling back to the raw body."""
    try:
        body: Any = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text[:200] or response.reason_phrase
