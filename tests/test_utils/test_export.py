"""
Unit tests for CSV export.
"""

import os
import tempfile

import pandas as pd
import pytest

from reviewsync.models.review import Review
from reviewsync.utils.export import COLUMNS, export_reviews_csv


PLACE = "ChIJF8dM_x_VmwARHGUmlUaKD5M"


def test_export_sorted_newest_first():
    """Test CSV content and ordering."""
    reviews = [
        Review(place_id=PLACE, author_name="A", rating=3, review_id="r1",
               published_iso_at="2024-06-01T12:00:00Z"),
        Review(place_id=PLACE, author_name="B", rating=5, review_id="r2",
               published_iso_at="2024-06-02T12:00:00Z", text="Excelente"),
    ]

    with tempfile.TemporaryDirectory() as tmpdir:
        path = export_reviews_csv(reviews, os.path.join(tmpdir, "out", "reviews.csv"))
        df = pd.read_csv(path)

    assert list(df.columns) == COLUMNS
    assert list(df["review_id"]) == ["r2", "r1"]
    assert df.iloc[0]["text"] == "Excelente"


def test_export_empty_list_writes_header():
    """Test that exporting nothing still yields a valid CSV."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = export_reviews_csv([], os.path.join(tmpdir, "empty.csv"))
        df = pd.read_csv(path)

    assert df.empty
    assert list(df.columns) == COLUMNS


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
