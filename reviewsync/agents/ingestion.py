"""
Ingestion Agent.

Fetches the full current review set for a place by following the
provider's continuation cursor page after page. Falls back to the
stored reviews when the provider cannot be reached.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from reviewsync.errors import UpstreamUnavailable
from reviewsync.models.review import Review
from reviewsync.utils.reviews_api import ReviewsApiClient
from reviewsync.utils.storage import ReviewStore

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """
    Reviews returned by ReviewFetcher.fetch_all().

    When ok is False the reviews are the store's contents (stale), never
    a partial upstream fetch.
    """
    reviews: List[Review] = field(default_factory=list)
    ok: bool = True
    error: Optional[str] = None
    pages: int = 0

    @property
    def stale(self) -> bool:
        return not self.ok


class ReviewFetcher:
    """
    Paginated retrieval of all reviews of a place.

    Pages are requested sequentially, newest first; the cursor for page
    N+1 is only known once page N has returned.
    """

    def __init__(
        self,
        client: ReviewsApiClient,
        store: ReviewStore,
        max_pages: int = 100
    ):
        """
        Initialize fetcher.

        Args:
            client: Upstream API client
            store: Review store, read for the stale fallback
            max_pages: Safety cap on pages per fetch
        """
        self.client = client
        self.store = store
        self.max_pages = max_pages

    def fetch_all(self, place_id: str) -> FetchResult:
        """
        Fetch every review of place_id.

        Args:
            place_id: Google place id

        Returns:
            FetchResult with all pages' reviews in upstream order, or with
            ok=False and the stored reviews if any page failed

        Raises:
            StoreUnavailable: If the fallback read from the store fails
        """
        reviews: List[Review] = []
        seen_tokens = set()
        next_page_token = None
        pages = 0

        try:
            while True:
                page = self.client.get_page(place_id, next_page_token)
                pages += 1

                page_reviews = self._parse_reviews(page.get("reviews") or [], place_id)
                reviews.extend(page_reviews)
                logger.debug(f"Page {pages} for {place_id}: {len(page_reviews)} reviews")

                next_page_token = (page.get("serpapi_pagination") or {}).get("next_page_token")
                if not next_page_token:
                    break

                if next_page_token in seen_tokens:
                    logger.warning(f"Continuation token repeated for {place_id}, stopping at page {pages}")
                    break
                seen_tokens.add(next_page_token)

                if pages >= self.max_pages:
                    logger.warning(f"Reached max_pages={self.max_pages} for {place_id}, stopping")
                    break

        except UpstreamUnavailable as e:
            logger.warning(
                f"Upstream fetch failed for {place_id} after {pages} page(s): {e}. "
                f"Falling back to stored reviews."
            )
            return FetchResult(
                reviews=self.store.list_reviews(place_id),
                ok=False,
                error=str(e),
                pages=pages
            )

        logger.info(f"Fetched {len(reviews)} reviews for {place_id} in {pages} page(s)")
        return FetchResult(reviews=reviews, ok=True, pages=pages)

    @staticmethod
    def _parse_reviews(items: list, place_id: str) -> List[Review]:
        """Convert one page's payload items, skipping malformed ones."""
        parsed = []
        for item in items:
            try:
                parsed.append(Review.from_api(item, place_id))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed review {item.get('review_id') if isinstance(item, dict) else item!r}: {e}")
        return parsed
