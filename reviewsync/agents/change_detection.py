"""
Change Detection Agent.

Decides with a single upstream request whether a place has reviews the
store does not hold yet, so unchanged places skip the paginated fetch.
"""

import logging
from enum import Enum
from typing import Optional, Set

from reviewsync.errors import UpstreamUnavailable
from reviewsync.models.review import IdentityStrategy, Review
from reviewsync.utils.reviews_api import ReviewsApiClient

logger = logging.getLogger(__name__)


class ChangeResult(str, Enum):
    GROWN = "grown"
    UNCHANGED = "unchanged"
    UNKNOWN = "unknown"  # Upstream count unavailable


class ChangeDetector:
    """
    Compares the upstream review count with the stored count.

    With known_keys, the newest upstream review is also checked against
    the stored keys: sorted newest first, a fresh review always shows up
    at the top of the first page, even if another one was deleted and
    the counts still match.
    """

    def __init__(
        self,
        client: ReviewsApiClient,
        identity: IdentityStrategy = IdentityStrategy.REVIEW_ID
    ):
        self.client = client
        self.identity = IdentityStrategy(identity)

    def has_grown(
        self,
        place_id: str,
        local_count: int,
        known_keys: Optional[Set[str]] = None
    ) -> ChangeResult:
        """
        Check whether upstream holds reviews not yet stored.

        Args:
            place_id: Google place id
            local_count: Number of stored reviews for the place
            known_keys: Stored dedup keys, enables the newest-review check

        Returns:
            GROWN, UNCHANGED, or UNKNOWN when upstream could not be asked
        """
        try:
            page = self.client.get_page(place_id)
        except UpstreamUnavailable as e:
            logger.warning(f"Could not get upstream review count for {place_id}: {e}")
            return ChangeResult.UNKNOWN

        upstream_count = self._review_count(page)
        if upstream_count is None:
            logger.warning(f"Upstream response for {place_id} has no review count")
            return ChangeResult.UNKNOWN

        if upstream_count > local_count:
            logger.info(f"{place_id}: upstream has {upstream_count} reviews, store has {local_count}")
            return ChangeResult.GROWN

        if known_keys is not None and self._newest_is_unknown(page, place_id, known_keys):
            logger.info(f"{place_id}: newest upstream review not stored (counts {upstream_count}/{local_count})")
            return ChangeResult.GROWN

        logger.info(f"{place_id}: no new reviews (upstream {upstream_count}, store {local_count})")
        return ChangeResult.UNCHANGED

    @staticmethod
    def _review_count(page: dict) -> Optional[int]:
        count = (page.get("place_info") or {}).get("reviews")
        if count is None:
            return None
        try:
            return int(count)
        except (TypeError, ValueError):
            return None

    def _newest_is_unknown(self, page: dict, place_id: str, known_keys: Set[str]) -> bool:
        items = page.get("reviews") or []
        if not items:
            return False
        try:
            newest = Review.from_api(items[0], place_id)
        except (ValueError, TypeError, AttributeError):
            return False
        key = newest.identity(self.identity)
        return key is not None and key not in known_keys
