from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from media_service.main import app
from tests.fakes import FakeCloudinary, FakeSleep


@pytest.fixture
def fake_cloudinary() -> FakeCloudinary:
    return FakeCloudinary()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
