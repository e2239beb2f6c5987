"""
Reviews API client.

Thin wrapper over SerpApi's google_maps_reviews engine: one call per
page, with per-request timeout and retry on transient failures.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from reviewsync.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

# Returned by the provider for places without reviews; not a failure
NO_RESULTS_ERROR = "hasn't returned any results"


class TransientUpstreamError(UpstreamUnavailable):
    """Timeouts, connection errors, 429 and 5xx responses. Retried."""


class ReviewsApiClient:
    """
    Fetches single pages of Google Maps reviews.

    Every failure (transport, HTTP status, auth, provider error payload)
    is raised as UpstreamUnavailable once retries are exhausted.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://serpapi.com/search.json",
        language: str = "pt-BR",
        page_size: int = 20,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        http_client: Optional[httpx.Client] = None
    ):
        """
        Initialize API client.

        Args:
            api_key: SerpApi key
            base_url: Search endpoint
            language: Review language (hl parameter)
            page_size: Reviews per page after the first (max 20)
            timeout_seconds: Per-request timeout
            max_retries: Attempts per page before giving up
            backoff_seconds: Base for exponential backoff between attempts
            http_client: Preconfigured httpx.Client (tests inject a MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url
        self.language = language
        self.page_size = page_size
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.session = http_client or httpx.Client(timeout=timeout_seconds)

        logger.info(f"Initialized ReviewsApiClient (timeout={timeout_seconds}s, retries={max_retries})")

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "ReviewsApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def get_page(self, place_id: str, next_page_token: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch one page of reviews, newest first.

        Args:
            place_id: Google place id
            next_page_token: Continuation cursor from the previous page

        Returns:
            Decoded response: {"reviews": [...], "serpapi_pagination": {...},
            "place_info": {...}} (place_info only on the first page)

        Raises:
            UpstreamUnavailable: If the page could not be retrieved
        """
        if not self.api_key:
            raise UpstreamUnavailable("SERPAPI_API_KEY is not set")

        params = {
            "engine": "google_maps_reviews",
            "place_id": place_id,
            "sort_by": "newestFirst",
            "hl": self.language,
            "api_key": self.api_key,
        }
        if next_page_token:
            # num is rejected on the first page
            params["next_page_token"] = next_page_token
            params["num"] = self.page_size

        retrying = Retrying(
            retry=retry_if_exception_type(TransientUpstreamError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=30 * self.backoff_seconds),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self._request, params)

    def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Single HTTP round trip with error classification."""
        try:
            response = self.session.get(self.base_url, params=params)
        except httpx.TransportError as e:
            raise TransientUpstreamError(f"Request to review provider failed: {e!r}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientUpstreamError(f"Review provider returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamUnavailable(
                f"Review provider returned invalid JSON (HTTP {response.status_code})"
            ) from e

        error = data.get("error") if isinstance(data, dict) else None
        if response.status_code >= 400:
            raise UpstreamUnavailable(
                f"Review provider returned HTTP {response.status_code}: {error or 'no detail'}"
            )

        if not isinstance(data, dict):
            raise UpstreamUnavailable("Review provider returned an unexpected payload")

        if error:
            if NO_RESULTS_ERROR in error:
                logger.info(f"No reviews upstream for {params['place_id']}")
                data.setdefault("reviews", [])
                return data
            raise UpstreamUnavailable(f"Review provider error: {error}")

        return data
