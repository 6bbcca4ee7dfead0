"""Resilient Twitch Client: wraps httpx.AsyncClient with retry, backoff, and error mapping.

Invariants:
    - Rate limits (429): exponential backoff with jitter, respects Retry-After / Ratelimit-Reset
    - Transient errors (5xx, connection): max N retries with exponential backoff
    - Timeouts: immediate UpstreamTransportError, no retry
    - Client errors (4xx except 429 and expected statuses): immediate UpstreamStatusError
    - Undecodable or mis-shaped bodies: UpstreamTransportError
    - Subscription lookups return Subscribed | NotSubscribed, decided here at parse time

Design Decisions:
    - One shared AsyncClient per process (connection pooling); closed in lifespan shutdown
    - http_client injectable: tests pass httpx.MockTransport-backed clients
    - ±25% jitter on backoff: spreads retries of a wide fan-out
"""

import asyncio
import logging
import random
import time

import httpx

from subrecap.core.domain_types import (
    FOLLOWED_ENDPOINT, GQL_ENDPOINT, SUBSCRIPTIONS_ENDPOINT,
)
from subrecap.core.errors import (
    ErrorContext, UpstreamStatusError, UpstreamTransportError,
)
from subrecap.core.lookup_results import (
    NotSubscribed, SubscriptionLookup, classify_subscription_response,
)

logger = logging.getLogger(__name__)

_USER_AGENT = "SubRecap/1.0"


class ResilientTwitchClient:
    """Helix + GQL access with retry logic, timeouts, and error mapping."""

    def __init__(
        self,
        client_id: str,
        helix_base_url: str = "https://api.twitch.tv/helix",
        gql_endpoint: str = "https://gql.twitch.tv/gql",
        max_retries: int = 3,
        base_delay_ms: int = 250,
        max_delay_ms: int = 5_000,
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.client_id = client_id
        self.helix_base_url = helix_base_url.rstrip("/")
        self.gql_endpoint = gql_endpoint
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.http = http_client or httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"User-Agent": _USER_AGENT},
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    # ─── Headers ────────────────────────────────────────────────

    def helix_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Client-Id": self.client_id,
        }

    def gql_headers(self, global_token: str) -> dict[str, str]:
        return {
            "Authorization": f"OAuth {global_token}",
            "Client-Id": self.client_id,
            "Content-Type": "application/json",
            "Accept": "*/*",
        }

    # ─── Upstream operations ────────────────────────────────────

    async def get_followed_page(
        self,
        twitch_id: str,
        access_token: str,
        after: str | None = None,
        first: int = 100,
    ) -> dict:
        """One page of channels/followed: {"data": [...], "total": n, "pagination": {...}}."""
        params: dict[str, str | int] = {"user_id": twitch_id}
        if after is not None:
            params["after"] = after
        params["first"] = first

        response = await self._request(
            "GET", f"{self.helix_base_url}/channels/followed",
            endpoint=FOLLOWED_ENDPOINT,
            params=params,
            headers=self.helix_headers(access_token),
        )
        body = self._decode(response, FOLLOWED_ENDPOINT)
        if not isinstance(body, dict) or not isinstance(body.get("data", []), list):
            raise UpstreamTransportError(
                "followed page is not an object with a data list", FOLLOWED_ENDPOINT,
            )
        try:
            body["total"] = int(body.get("total") or 0)
        except (TypeError, ValueError):
            raise UpstreamTransportError(
                "followed page has a non-integer total", FOLLOWED_ENDPOINT,
            )
        body.setdefault("data", [])
        if not isinstance(body.get("pagination"), dict):
            body["pagination"] = {}
        return body

    async def lookup_subscription(
        self, twitch_id: str, broadcaster_id: str, access_token: str,
    ) -> SubscriptionLookup:
        """Check whether twitch_id subscribes to broadcaster_id."""
        context = ErrorContext(broadcaster_id=broadcaster_id)
        response = await self._request(
            "GET", f"{self.helix_base_url}/subscriptions/user",
            endpoint=SUBSCRIPTIONS_ENDPOINT,
            params={"broadcaster_id": broadcaster_id, "user_id": twitch_id},
            headers=self.helix_headers(access_token),
            expected_statuses=frozenset({404}),
            context=context,
        )
        if response.status_code == 404 and not response.content:
            return NotSubscribed(broadcaster_id=broadcaster_id, status_code=404)
        body = self._decode(response, SUBSCRIPTIONS_ENDPOINT, context)
        return classify_subscription_response(
            broadcaster_id, response.status_code, body,
        )

    async def post_recaps_query(
        self, operation: list[dict], global_token: str,
    ) -> list[dict]:
        """POST a persisted-query batch; returns one response body per operation."""
        response = await self._request(
            "POST", self.gql_endpoint,
            endpoint=GQL_ENDPOINT,
            json=operation,
            headers=self.gql_headers(global_token),
        )
        body = self._decode(response, GQL_ENDPOINT)
        if isinstance(body, dict):
            body = [body]
        if not isinstance(body, list) or not all(isinstance(b, dict) for b in body):
            raise UpstreamTransportError(
                "GQL response is not a list of objects", GQL_ENDPOINT,
            )
        return body

    # ─── Transport ──────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        url: str,
        *,
        endpoint: str,
        params: dict | None = None,
        json: object = None,
        headers: dict[str, str] | None = None,
        expected_statuses: frozenset[int] = frozenset(),
        context: ErrorContext | None = None,
    ) -> httpx.Response:
        """Send with automatic retry on transient failures."""
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.http.request(
                    method, url, params=params, json=json, headers=headers,
                )
            except httpx.TimeoutException:
                raise UpstreamTransportError("request timed out", endpoint, context)
            except httpx.TransportError as e:
                await self._handle_transient_error(e, attempt, endpoint, context)
                continue

            status = response.status_code
            if status == 429:
                await self._handle_rate_limit(response, attempt, endpoint, context)
                continue
            if status >= 500:
                await self._handle_server_error(response, attempt, endpoint, context)
                continue
            if response.is_success or status in expected_statuses:
                logger.debug(
                    "Twitch API success",
                    extra={"endpoint": endpoint, "attempt": attempt + 1, "status_code": status},
                )
                return response
            raise UpstreamStatusError(status, endpoint, context=context)

        raise UpstreamTransportError("retries exhausted", endpoint, context)

    def _decode(
        self, response: httpx.Response, endpoint: str, context: ErrorContext | None = None,
    ):
        try:
            return response.json()
        except ValueError:
            raise UpstreamTransportError("malformed JSON body", endpoint, context)

    async def _handle_rate_limit(
        self, response: httpx.Response, attempt: int, endpoint: str,
        context: ErrorContext | None,
    ) -> None:
        """Handle rate limit response with retry or raise."""
        retry_after_ms = self._extract_retry_after(response)
        if attempt >= self.max_retries:
            raise UpstreamStatusError(
                429, endpoint, retry_after_ms=retry_after_ms, context=context,
            )
        delay = min(self.max_delay_ms, retry_after_ms or self._backoff(attempt))
        logger.warning(
            f"Rate limit hit, retry after {delay}ms (attempt {attempt + 1})",
            extra={"endpoint": endpoint, "attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_server_error(
        self, response: httpx.Response, attempt: int, endpoint: str,
        context: ErrorContext | None,
    ) -> None:
        if attempt >= self.max_retries:
            raise UpstreamStatusError(response.status_code, endpoint, context=context)
        delay = self._backoff(attempt)
        logger.warning(
            f"Upstream {response.status_code}, retry after {delay}ms",
            extra={"endpoint": endpoint, "attempt": attempt + 1,
                   "status_code": response.status_code},
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self, e: Exception, attempt: int, endpoint: str,
        context: ErrorContext | None,
    ) -> None:
        """Handle connection errors with retry or raise."""
        if attempt >= self.max_retries:
            raise UpstreamTransportError(
                f"transient failure after {self.max_retries} retries: {e}",
                endpoint, context,
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"Transient error, retry after {delay}ms: {e}",
            extra={"endpoint": endpoint, "attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, response: httpx.Response) -> int | None:
        """Retry-After (seconds) or Ratelimit-Reset (epoch seconds), as milliseconds."""
        retry_after = response.headers.get("retry-after")
        if retry_after and retry_after.isdigit():
            return int(retry_after) * 1000
        reset = response.headers.get("ratelimit-reset")
        if reset and reset.isdigit():
            return max(0, int((int(reset) - time.time()) * 1000))
        return None
