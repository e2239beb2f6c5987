"""
Unit tests for the Change Detection Agent.
"""

from unittest.mock import Mock

import pytest

from reviewsync.agents.change_detection import ChangeDetector, ChangeResult
from reviewsync.errors import UpstreamUnavailable
from reviewsync.models.review import IdentityStrategy


PLACE = "ChIJhxTcDIrVmwARm0brYm21Hkw"


def first_page(count, newest_id="r5", newest_iso="2024-06-05T12:00:00Z") -> dict:
    data = {
        "reviews": [{
            "review_id": newest_id,
            "user": {"name": "Newest"},
            "rating": 5,
            "snippet": "Ótimo",
            "iso_date": newest_iso,
        }],
    }
    if count is not None:
        data["place_info"] = {"title": "Nema", "reviews": count}
    return data


def make_detector(response, identity=IdentityStrategy.REVIEW_ID):
    client = Mock()
    if isinstance(response, Exception):
        client.get_page.side_effect = response
    else:
        client.get_page.return_value = response
    return ChangeDetector(client, identity=identity), client


def test_grown_when_upstream_count_higher():
    """Test the count comparison."""
    detector, client = make_detector(first_page(7))

    assert detector.has_grown(PLACE, 5) == ChangeResult.GROWN
    client.get_page.assert_called_once_with(PLACE)


def test_unchanged_when_counts_match():
    """Test equal counts without the newest-review check."""
    detector, _ = make_detector(first_page(5))

    assert detector.has_grown(PLACE, 5) == ChangeResult.UNCHANGED


def test_unchanged_when_upstream_count_lower():
    """Test that deletions upstream are not growth."""
    detector, _ = make_detector(first_page(3))

    assert detector.has_grown(PLACE, 5) == ChangeResult.UNCHANGED


def test_unknown_when_upstream_fails():
    """Test soft failure instead of a plain False."""
    detector, _ = make_detector(UpstreamUnavailable("HTTP 503"))

    result = detector.has_grown(PLACE, 5)

    assert result == ChangeResult.UNKNOWN
    assert result != ChangeResult.UNCHANGED


def test_unknown_when_count_missing_or_garbled():
    """Test responses without a usable review count."""
    detector, _ = make_detector(first_page(None))
    assert detector.has_grown(PLACE, 5) == ChangeResult.UNKNOWN

    detector, _ = make_detector(first_page("many"))
    assert detector.has_grown(PLACE, 5) == ChangeResult.UNKNOWN


def test_newest_review_unknown_means_grown_with_equal_counts():
    """Test a review added and another deleted upstream."""
    detector, _ = make_detector(first_page(5, newest_id="r6"))

    result = detector.has_grown(PLACE, 5, known_keys={"r1", "r2", "r3", "r4", "r5"})

    assert result == ChangeResult.GROWN


def test_newest_review_known_means_unchanged():
    """Test equal counts with the newest review already stored."""
    detector, _ = make_detector(first_page(5, newest_id="r5"))

    result = detector.has_grown(PLACE, 5, known_keys={"r1", "r2", "r3", "r4", "r5"})

    assert result == ChangeResult.UNCHANGED


def test_newest_check_uses_configured_identity():
    """Test the newest-review check with publish-date identity."""
    detector, _ = make_detector(
        first_page(2, newest_id=None, newest_iso="2024-06-03T09:00:00Z"),
        identity=IdentityStrategy.PUBLISHED_ISO_AT
    )

    assert detector.has_grown(
        PLACE, 2, known_keys={"2024-06-01T12:00:00Z", "2024-06-02T12:00:00Z"}
    ) == ChangeResult.GROWN
    assert detector.has_grown(
        PLACE, 2, known_keys={"2024-06-03T09:00:00Z", "2024-06-02T12:00:00Z"}
    ) == ChangeResult.UNCHANGED


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
