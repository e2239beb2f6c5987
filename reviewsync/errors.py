"""
Error taxonomy for review synchronization.

UnknownContext and StoreUnavailable reach the caller. UpstreamUnavailable
is absorbed into a degraded (stale data) outcome. PartialInsertFailure is
only ever logged.
"""

from typing import List, Optional


class ReviewSyncError(Exception):
    """Base class for all review sync errors."""


class UnknownContext(ReviewSyncError, ValueError):
    """The caller-facing context key is not in the place table."""

    def __init__(self, context_key: Optional[str]):
        self.context_key = context_key
        super().__init__(f"Unknown context: {context_key!r}")


class UpstreamUnavailable(ReviewSyncError):
    """The review provider could not be reached or refused the request."""


class StoreUnavailable(ReviewSyncError):
    """The review store could not be reached. Fatal for the invocation."""


class PartialInsertFailure(ReviewSyncError):
    """
    Some reviews of a batch failed to insert while others landed.

    Never raised by the store; built to describe the failure in logs.
    """

    def __init__(self, place_id: str, failed_keys: List[str], inserted: int):
        self.place_id = place_id
        self.failed_keys = failed_keys
        self.inserted = inserted
        super().__init__(
            f"{len(failed_keys)} review(s) failed to insert for {place_id} "
            f"({inserted} inserted): {', '.join(failed_keys[:10])}"
        )
