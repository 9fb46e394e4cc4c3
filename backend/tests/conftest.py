import os

import pytest

# Disable rate limiting for tests
os.environ["DISEASE_EXPLORER_NO_RATE_LIMIT"] = "true"

from fake_ols import FakeLookupClient  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_client() -> FakeLookupClient:
    return FakeLookupClient()
