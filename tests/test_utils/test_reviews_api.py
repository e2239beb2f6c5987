"""
Unit tests for the reviews API client.

Uses httpx.MockTransport so no request leaves the process.
"""

import httpx
import pytest

from reviewsync.errors import UpstreamUnavailable
from reviewsync.utils.reviews_api import ReviewsApiClient


PLACE = "ChIJF8dM_x_VmwARHGUmlUaKD5M"


def make_client(handler, **kwargs) -> ReviewsApiClient:
    kwargs.setdefault("max_retries", 3)
    return ReviewsApiClient(
        api_key="test-key",
        backoff_seconds=0,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        **kwargs
    )


def test_first_page_request_parameters():
    """Test query parameters on the first page."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"reviews": [], "place_info": {"reviews": 0}})

    client = make_client(handler, language="en")
    data = client.get_page(PLACE)

    assert data["place_info"]["reviews"] == 0
    params = seen[0].url.params
    assert params["engine"] == "google_maps_reviews"
    assert params["place_id"] == PLACE
    assert params["sort_by"] == "newestFirst"
    assert params["hl"] == "en"
    assert params["api_key"] == "test-key"
    assert "next_page_token" not in params
    assert "num" not in params


def test_next_page_request_parameters():
    """Test that the cursor and page size are sent after page one."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"reviews": []})

    client = make_client(handler, page_size=20)
    client.get_page(PLACE, next_page_token="CAESBkVnSUlDZw")

    params = seen[0].url.params
    assert params["next_page_token"] == "CAESBkVnSUlDZw"
    assert params["num"] == "20"


def test_transient_errors_are_retried():
    """Test retry on 5xx followed by success."""
    responses = [
        httpx.Response(503, json={"error": "busy"}),
        httpx.Response(500, text="oops"),
        httpx.Response(200, json={"reviews": [{"review_id": "r1", "rating": 5}]}),
    ]
    calls = []

    def handler(request):
        calls.append(request)
        return responses[len(calls) - 1]

    client = make_client(handler)
    data = client.get_page(PLACE)

    assert len(calls) == 3
    assert data["reviews"][0]["review_id"] == "r1"


def test_persistent_failure_raises_after_max_retries():
    """Test that retries stop at max_retries."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(502, text="bad gateway")

    client = make_client(handler, max_retries=2)

    with pytest.raises(UpstreamUnavailable, match="502"):
        client.get_page(PLACE)
    assert len(calls) == 2


def test_transport_errors_are_retried_then_raised():
    """Test connection failures and timeouts."""
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler, max_retries=3)

    with pytest.raises(UpstreamUnavailable):
        client.get_page(PLACE)
    assert len(calls) == 3


def test_auth_failure_is_not_retried():
    """Test that 401 fails immediately."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, json={"error": "Invalid API key."})

    client = make_client(handler)

    with pytest.raises(UpstreamUnavailable, match="Invalid API key"):
        client.get_page(PLACE)
    assert len(calls) == 1


def test_error_payload_raises():
    """Test provider-level errors on HTTP 200."""
    client = make_client(lambda request: httpx.Response(200, json={"error": "Invalid place_id"}))

    with pytest.raises(UpstreamUnavailable, match="Invalid place_id"):
        client.get_page(PLACE)


def test_no_results_error_means_empty_page():
    """Test that a place without reviews is not a failure."""
    client = make_client(lambda request: httpx.Response(
        200,
        json={"error": "Google hasn't returned any results for this query."}
    ))

    data = client.get_page(PLACE)

    assert data["reviews"] == []


def test_invalid_json_raises():
    """Test non-JSON bodies."""
    client = make_client(lambda request: httpx.Response(200, text="<html>captcha</html>"))

    with pytest.raises(UpstreamUnavailable, match="invalid JSON"):
        client.get_page(PLACE)


def test_missing_api_key_fails_without_request():
    """Test that no request is sent without an API key."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    client = ReviewsApiClient(
        api_key="",
        http_client=httpx.Client(transport=httpx.MockTransport(handler))
    )

    with pytest.raises(UpstreamUnavailable, match="SERPAPI_API_KEY"):
        client.get_page(PLACE)
    assert calls == []


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
