"""Shared pytest configuration and fixtures."""

import pytest
from rest_framework.test import APIClient

pytest_plugins = [
    "bookings.tests.fixtures",
]


@pytest.fixture
def api_client():
    """DRF API client for request/response helpers."""
    return APIClient()


@pytest.fixture
def auth_client():
    """Return a factory producing API clients authenticated with a real JWT."""

    def _auth_client(user):
        client = APIClient()
        resp = client.post(
            "/api/users/token/",
            {"username": user.username, "password": "testpass"},
            format="json",
        )
        token = resp.data["access"]
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        return client

    return _auth_client
