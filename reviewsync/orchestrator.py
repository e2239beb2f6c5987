"""
Sync Orchestrator.

Runs one incremental review sync for a place: read the store, ask the
change detector, fetch upstream only when needed, and insert the delta.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Set

from reviewsync.agents.change_detection import ChangeDetector, ChangeResult
from reviewsync.agents.ingestion import ReviewFetcher
from reviewsync.models.outcome import SyncOutcome, SyncStatus
from reviewsync.models.review import IdentityStrategy, Review
from reviewsync.registry.place_registry import PlaceRegistry
from reviewsync.utils.reviews_api import ReviewsApiClient
from reviewsync.utils.storage import ReviewStore, create_store_engine
import reviewsync.config.settings as settings

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Incremental sync state machine, one invocation per call.

    Start -> no stored reviews -> full fetch -> insert everything
          -> stored reviews    -> change check -> unchanged: return stored
                                               -> unknown:   return stored (stale)
                                               -> grown:     full fetch -> insert delta

    Holds no state between calls beyond what it reads from the store.
    StoreUnavailable propagates; upstream failures become
    UPSTREAM_UNAVAILABLE outcomes carrying the stored reviews.
    """

    def __init__(
        self,
        store: ReviewStore,
        fetcher: ReviewFetcher,
        detector: ChangeDetector,
        identity: IdentityStrategy = IdentityStrategy.REVIEW_ID
    ):
        """
        Initialize orchestrator.

        Args:
            store: Review store gateway
            fetcher: Paginated upstream fetcher
            detector: Upstream change detector
            identity: Dedup key, must match the store's
        """
        self.store = store
        self.fetcher = fetcher
        self.detector = detector
        self.identity = IdentityStrategy(identity)

        if self.store.identity != self.identity:
            raise ValueError(
                f"Store identity {self.store.identity.value} does not match "
                f"orchestrator identity {self.identity.value}"
            )

    @classmethod
    def from_settings(cls) -> "SyncOrchestrator":
        """Build the orchestrator and its collaborators from settings."""
        logger.info("Initializing sync components...")
        identity = IdentityStrategy(settings.REVIEW_IDENTITY)

        engine = create_store_engine(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
            statement_timeout=settings.DB_STATEMENT_TIMEOUT_SECONDS
        )
        store = ReviewStore(engine, identity=identity)
        store.init_schema()

        client = ReviewsApiClient(
            api_key=settings.SERPAPI_API_KEY,
            base_url=settings.SERPAPI_URL,
            language=settings.REVIEWS_LANGUAGE,
            page_size=settings.UPSTREAM_PAGE_SIZE,
            timeout_seconds=settings.UPSTREAM_TIMEOUT_SECONDS,
            max_retries=settings.UPSTREAM_MAX_RETRIES
        )

        return cls(
            store=store,
            fetcher=ReviewFetcher(client, store, max_pages=settings.UPSTREAM_MAX_PAGES),
            detector=ChangeDetector(client, identity=identity),
            identity=identity
        )

    def close(self) -> None:
        """Release the HTTP session and the connection pool."""
        self.fetcher.client.close()
        self.store.close()

    def sync_context(self, context_key: str, registry: PlaceRegistry) -> SyncOutcome:
        """
        Resolve context_key and sync that place.

        Raises:
            UnknownContext: Before any store or upstream access
        """
        place_id = registry.resolve(context_key)
        logger.info(f"Context '{context_key}' -> place {place_id}")
        return self.sync(place_id)

    def sync(self, place_id: str) -> SyncOutcome:
        """
        Run one incremental sync for place_id.

        Returns:
            SyncOutcome (never NO_PRIOR_DATA, which is only a transient state)

        Raises:
            StoreUnavailable: If the review store cannot be reached
        """
        start_time = datetime.now()
        existing = self.store.list_reviews(place_id)

        if not existing:
            logger.info(f"{SyncStatus.NO_PRIOR_DATA.value}: no stored reviews for {place_id}")
            outcome = self._sync_without_prior_data(place_id)
        else:
            outcome = self._sync_with_prior_data(place_id, existing)

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(f"Sync of {place_id} finished: {outcome.status.value}, count={outcome.count} ({elapsed:.1f}s)")
        return outcome

    def _sync_without_prior_data(self, place_id: str) -> SyncOutcome:
        result = self.fetcher.fetch_all(place_id)

        if not result.ok:
            return self._upstream_unavailable(place_id, result.reviews, result.error)

        if not result.reviews:
            return SyncOutcome(
                status=SyncStatus.NO_NEW_REVIEWS,
                count=0,
                reviews=[],
                message="No reviews found",
                place_id=place_id
            )

        to_save = self._compute_delta(result.reviews, known_keys=set())
        return self._save(place_id, to_save)

    def _sync_with_prior_data(self, place_id: str, existing: List[Review]) -> SyncOutcome:
        known_keys = self._identity_keys(existing)
        change = self.detector.has_grown(place_id, len(existing), known_keys=known_keys)

        if change == ChangeResult.UNKNOWN:
            return self._upstream_unavailable(place_id, existing, "could not check upstream for new reviews")

        if change == ChangeResult.UNCHANGED:
            return self._no_new_reviews(place_id, existing)

        result = self.fetcher.fetch_all(place_id)
        if not result.ok:
            return self._upstream_unavailable(place_id, result.reviews, result.error)

        delta = self._compute_delta(result.reviews, known_keys)
        if not delta:
            logger.info(f"{place_id}: upstream grew but every fetched review is already stored")
            return self._no_new_reviews(place_id, existing)

        return self._save(place_id, delta)

    def _save(self, place_id: str, reviews: List[Review]) -> SyncOutcome:
        """Insert reviews and report only the ones this run wrote."""
        result = self.store.insert_reviews_detailed(reviews, place_id)

        if not result.inserted and not result.failed_keys:
            # Another sync of the same place stored them first
            logger.info(f"{place_id}: all {len(reviews)} new reviews were already stored by another sync")
            return self._no_new_reviews(place_id, self.store.list_reviews(place_id))

        message = f"{result.count} new reviews saved"
        if result.failed_keys:
            message += f" ({len(result.failed_keys)} could not be saved)"

        return SyncOutcome(
            status=SyncStatus.NEW_REVIEWS_SAVED,
            count=result.count,
            reviews=result.inserted,
            message=message,
            place_id=place_id
        )

    @staticmethod
    def _no_new_reviews(place_id: str, existing: List[Review]) -> SyncOutcome:
        return SyncOutcome(
            status=SyncStatus.NO_NEW_REVIEWS,
            count=len(existing),
            reviews=existing,
            message="No new reviews",
            place_id=place_id
        )

    @staticmethod
    def _upstream_unavailable(place_id: str, fallback: List[Review], error: str) -> SyncOutcome:
        logger.warning(f"Returning {len(fallback)} stored reviews for {place_id}: {error}")
        return SyncOutcome(
            status=SyncStatus.UPSTREAM_UNAVAILABLE,
            count=len(fallback),
            reviews=fallback,
            message=f"Review provider unavailable, returning stored reviews ({error})",
            place_id=place_id
        )

    def _identity_keys(self, reviews: Iterable[Review]) -> Set[str]:
        keys = set()
        for review in reviews:
            key = review.identity(self.identity)
            if key is not None:
                keys.add(key)
        return keys

    def _compute_delta(self, fetched: List[Review], known_keys: Set[str]) -> List[Review]:
        """
        Fetched reviews whose key is not stored, first occurrence only.

        Reviews without a key for the configured identity are dropped.
        """
        delta = []
        seen = set(known_keys)
        missing_key = 0

        for review in fetched:
            key = review.identity(self.identity)
            if key is None:
                missing_key += 1
                continue
            if key in seen:
                continue
            seen.add(key)
            delta.append(review)

        if missing_key:
            logger.warning(f"Dropped {missing_key} fetched reviews without {self.identity.value}")

        logger.info(f"Delta: {len(delta)} new of {len(fetched)} fetched ({len(known_keys)} stored)")
        return delta
