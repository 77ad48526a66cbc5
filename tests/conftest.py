"""
Global pytest configuration and fixtures for SafeTrack testing.
"""
import tempfile
from pathlib import Path

import pytest

from tests.mocks.gateway_mocks import MockApiClient, MockLocationProvider, make_point


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config():
    """Provide test configuration."""
    return {
        "app": {"name": "SafeTrack", "debug": True},
        "api": {
            "base_url": "https://api.example.com/api",
            "token": "test-token",
            "timeout": 5,
            "max_retries": 0
        },
        "tracking": {
            "refresh_interval": 0.05,
            "min_distance_meters": 50,
            "on_duty_interval": 0.05
        },
        "sos": {"location_timeout": 0.1},
        "logging": {
            "level": "DEBUG",
            "file": None,
            "console": False
        }
    }


@pytest.fixture
def mock_api():
    """Provide an in-memory backend."""
    return MockApiClient()


@pytest.fixture
def mock_provider():
    """Provide a location provider with permission granted."""
    return MockLocationProvider()


@pytest.fixture
def sample_history():
    """Location history as returned by the backend, deliberately out of order."""
    return [
        make_point(10, lat=28.62, lng=77.21, _id="p3"),
        make_point(0, lat=28.60, lng=77.20, _id="p1", address="India Gate", city="New Delhi"),
        make_point(5, lat=28.61, lng=77.205, _id="p2", isSOS=True),
        make_point(15, lat=28.63, lng=77.22, _id="p4"),
    ]
