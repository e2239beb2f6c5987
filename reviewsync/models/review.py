"""
Review data model.

Represents a Google Maps review as returned by the upstream provider
and as stored in the review store.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class IdentityStrategy(str, Enum):
    """Which field identifies a review for deduplication."""
    REVIEW_ID = "review_id"
    PUBLISHED_ISO_AT = "published_iso_at"


@dataclass
class Review:
    """
    A single place review.

    Exactly one of review_id / published_iso_at is the dedup key,
    depending on the deployment's IdentityStrategy.
    """
    place_id: str
    author_name: str
    rating: float  # 0-5 stars
    text: str = ""
    published_at: str = ""  # Human-readable, e.g. "2 months ago"
    published_iso_at: Optional[str] = None  # e.g. "2024-05-01T12:00:00Z"
    review_id: Optional[str] = None
    created_at: Optional[datetime] = None  # Set by the store on insert

    def __post_init__(self):
        self.rating = float(self.rating)
        if not (0 <= self.rating <= 5):
            raise ValueError(f"Invalid rating: {self.rating}. Must be 0-5")
        if self.text is None:
            self.text = ""

    def identity(self, strategy: IdentityStrategy) -> Optional[str]:
        """Return the dedup key for the given strategy, or None if absent."""
        if strategy == IdentityStrategy.REVIEW_ID:
            return self.review_id or None
        return self.published_iso_at or None

    @classmethod
    def from_api(cls, item: Dict[str, Any], place_id: str) -> "Review":
        """
        Create Review from one entry of the provider's "reviews" array.

        Raises:
            ValueError: If the rating is missing or out of range
        """
        snippet = item.get("snippet")
        if snippet is None:
            snippet = (item.get("extracted_snippet") or {}).get("original", "")

        rating = item.get("rating")
        if rating is None:
            raise ValueError(f"Review {item.get('review_id')} has no rating")

        return cls(
            place_id=place_id,
            author_name=(item.get("user") or {}).get("name") or "",
            rating=rating,
            text=snippet or "",
            published_at=item.get("date") or "",
            published_iso_at=item.get("iso_date"),
            review_id=item.get("review_id"),
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "review_id": self.review_id,
            "place_id": self.place_id,
            "author_name": self.author_name,
            "rating": self.rating,
            "text": self.text,
            "published_at": self.published_at,
            "published_iso_at": self.published_iso_at,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
