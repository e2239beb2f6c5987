"""
Sync outcome data model.

The transient result of one synchronization run, plus its
response shape ({status_code, message, data}).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from reviewsync.models.review import Review


class SyncStatus(str, Enum):
    NO_PRIOR_DATA = "no_prior_data"
    NO_NEW_REVIEWS = "no_new_reviews"
    NEW_REVIEWS_SAVED = "new_reviews_saved"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"


@dataclass
class SyncOutcome:
    """
    What happened during one sync of a place.

    count is the number of reviews inserted for NEW_REVIEWS_SAVED and the
    number of reviews returned otherwise.
    """
    status: SyncStatus
    count: int
    reviews: List[Review] = field(default_factory=list)
    message: str = ""
    place_id: str = ""

    @property
    def status_code(self) -> int:
        """200 for fresh data, 206 when stale store data is returned instead."""
        if self.status == SyncStatus.UPSTREAM_UNAVAILABLE:
            return 206
        return 200

    def to_response(self) -> dict:
        return {
            "status_code": self.status_code,
            "message": self.message,
            "data": {
                "status": self.status.value,
                "count": self.count,
                "reviews": [r.to_dict() for r in self.reviews],
            },
        }
