"""
Review export.

Writes a list of reviews to CSV for inspection outside the database.
"""

import logging
import os
from typing import List

import pandas as pd

from reviewsync.models.review import Review

logger = logging.getLogger(__name__)

COLUMNS = [
    "review_id",
    "place_id",
    "author_name",
    "rating",
    "text",
    "published_at",
    "published_iso_at",
    "created_at",
]


def export_reviews_csv(reviews: List[Review], output_path: str) -> str:
    """
    Write reviews to CSV, newest first.

    Args:
        reviews: Reviews to export (may be empty)
        output_path: Destination file; parent directories are created

    Returns:
        output_path
    """
    df = pd.DataFrame([r.to_dict() for r in reviews], columns=COLUMNS)

    if not df.empty:
        df = df.sort_values("published_iso_at", ascending=False, na_position="last")

    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    df.to_csv(output_path, index=False)
    logger.info(f"Exported {len(df)} reviews to {output_path}")
    return output_path
