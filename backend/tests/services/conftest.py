"""Service test fixtures: fake Twitch API, in-memory store, pipeline, ASGI client.

Invariants:
    - Every test gets a fresh RecordingStoreFactory and FakeTwitchApi
    - The clock is pinned to 2024-03-15T10:00:00Z
    - get_pipeline / get_store_factory overridden on the FastAPI app; lifespan not run
"""

import pytest
from httpx import ASGITransport, AsyncClient

from subrecap.api.dependencies import get_pipeline, get_store_factory
from subrecap.core.credentials import ViewerCredentials
from subrecap.main import app
from subrecap.services.aggregate_pipeline import AggregatePipeline

from tests.services.fake_twitch import FIXED_NOW, QUERY_HASH, FakeTwitchApi
from tests.services.recording_store import RecordingStoreFactory


@pytest.fixture
def fake_twitch():
    return FakeTwitchApi(
        follows=["1", "2", "3", "4"],
        subscribed=["2", "4"],
        minutes={"2": "300"},
    )


@pytest.fixture
def store_factory():
    return RecordingStoreFactory()


@pytest.fixture
def credentials():
    return ViewerCredentials(
        user_id="user-1", twitch_id="tw-1",
        access_token="user-token", global_token="global-token",
    )


@pytest.fixture
def pipeline(fake_twitch, store_factory):
    return AggregatePipeline(
        twitch=fake_twitch,
        store_factory=store_factory,
        persisted_query_hash=QUERY_HASH,
        concurrency=2,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
async def client(pipeline, store_factory):
    """FastAPI test client with pipeline and store dependencies overridden."""
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_store_factory] = lambda: store_factory

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {
        "X-User-Id": "user-1",
        "X-Twitch-Id": "tw-1",
        "Authorization": "Bearer user-token",
        "X-Twitch-Global-Token": "global-token",
    }
