"""
Base test classes for SafeTrack testing.
"""
import asyncio
import tempfile
from pathlib import Path
from unittest.mock import Mock, patch

from tests.mocks.gateway_mocks import MockApiClient, MockLocationProvider


class BaseTestCase:
    """Base class for all test cases."""

    def setup_method(self):
        """Set up test method."""
        self.temp_files = []
        self.mock_patches = []

    def teardown_method(self):
        """Clean up after test method."""
        for temp_file in self.temp_files:
            if temp_file.exists():
                temp_file.unlink()

        for patch_obj in self.mock_patches:
            patch_obj.stop()

    def create_temp_file(self, content: str = "", suffix: str = ".tmp") -> Path:
        """Create a temporary file for testing."""
        handle = tempfile.NamedTemporaryFile("w", suffix=suffix, delete=False)
        handle.write(content)
        handle.close()
        temp_file = Path(handle.name)
        self.temp_files.append(temp_file)
        return temp_file

    def add_patch(self, target: str, **kwargs) -> Mock:
        """Add a mock patch that will be automatically cleaned up."""
        patch_obj = patch(target, **kwargs)
        mock_obj = patch_obj.start()
        self.mock_patches.append(patch_obj)
        return mock_obj


class AsyncTestCase(BaseTestCase):
    """Base class for async test cases."""

    async def wait_for_condition(self, condition_func, timeout: float = 1.0,
                                 interval: float = 0.01) -> bool:
        """Wait for a condition to become true."""
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        while loop.time() - start_time < timeout:
            if condition_func():
                return True
            await asyncio.sleep(interval)
        return condition_func()

    async def settle(self, rounds: int = 5):
        """Let scheduled tasks run."""
        for _ in range(rounds):
            await asyncio.sleep(0)


class ServiceTestCase(AsyncTestCase):
    """Base class for tests that drive services against the mock backend."""

    def setup_method(self):
        super().setup_method()
        self.api = MockApiClient()
        self.provider = MockLocationProvider()
