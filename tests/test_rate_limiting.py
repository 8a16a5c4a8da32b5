"""
Rate limiting tests.

The limiter is created inside the app factory and must outlive it; these
tests run with the limiter enabled and a very low generation limit.
"""

import gc

import pytest

from app import create_app
from src.yorkiebook.api.helpers import LIMITER_EXTENSION
from tests.test_constants import HTTP_OK, HTTP_TOO_MANY_REQUESTS, RATE_LIMITED


@pytest.fixture
def rate_limit_client(test_config, services):
    """Test client with the limiter enabled and two generations per minute."""
    config = dict(
        test_config,
        RATELIMIT_ENABLED=True,
        RATELIMIT_STORAGE_URI="memory://",
        GENERATE_RATE_LIMIT="2 per minute",
    )
    app = create_app(config=config, services=services)
    with app.test_client() as test_client:
        yield test_client


def test_limiter_is_kept_on_the_app(app):
    assert app.extensions[LIMITER_EXTENSION] is not None


def test_limited_route_works_after_garbage_collection(app, story_config):
    gc.collect()
    response = app.test_client().post("/api/stories/generate", json=story_config)
    assert response.status_code == HTTP_OK


def test_generation_limit_enforced(rate_limit_client, story_config):
    gc.collect()
    for _ in range(2):
        response = rate_limit_client.post("/api/stories/generate", json=story_config)
        assert response.status_code == HTTP_OK

    response = rate_limit_client.post("/api/stories/generate", json=story_config)

    assert response.status_code == HTTP_TOO_MANY_REQUESTS
    body = response.get_json()
    assert body["error"] == RATE_LIMITED
    assert body["retry"] is True


def test_rate_limit_headers_present(rate_limit_client, story_config):
    response = rate_limit_client.post("/api/stories/generate", json=story_config)
    assert response.status_code == HTTP_OK
    assert "X-RateLimit-Limit" in response.headers


def test_unlimited_route_not_counted(rate_limit_client):
    for _ in range(5):
        assert rate_limit_client.get("/api/health").status_code == HTTP_OK
